"""Static constants shared across the registry."""

from __future__ import annotations

import re

# Search
QUERY_TOKEN_RE = re.compile(r"[a-z0-9]+")

# Slugs
SLUG_RE = re.compile(r"^(?:[a-z0-9]|[a-z0-9][a-z0-9-]{0,62}[a-z0-9])$")

# Primary document names inside a published version (compared lowercased)
PRIMARY_DOCUMENT_NAMES = ("skill.md", "skills.md")

# Semantic version, optional pre-release / build metadata
SEMVER_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)

# Quality signals
FRONTMATTER_RE = re.compile(r"\A---\s*\n.*?\n---\s*(?:\n|\Z)", re.DOTALL)
WORD_RE = re.compile(r"[A-Za-z0-9]+(?:'[A-Za-z]+)?")
HEADING_RE = re.compile(r"^\s{0,3}#{1,6}\s+\S", re.MULTILINE)
BULLET_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+\S", re.MULTILINE)

# Boilerplate phrases produced by skill generators and copy-paste spam
TEMPLATE_MARKER_PATTERNS: list[re.Pattern[str]] = [
    re.compile(p, re.IGNORECASE)
    for p in [
        r"step[-\s]by[-\s]step\s+tutorials?",
        r"tips\s+and\s+techniques",
        r"project\s+ideas",
        r"resource\s+recommendations",
        r"common\s+mistakes\s+to\s+avoid",
        r"expert\s+guidance",
        r"lorem\s+ipsum",
        r"your\s+skill\s+description\s+here",
        r"\bTODO:?\s+(?:add|write|describe)\b",
        r"replace\s+this\s+(?:text|section)",
        r"insert\s+(?:content|description)\s+here",
    ]
]

GENERIC_SUMMARY_PATTERNS: list[re.Pattern[str]] = [
    re.compile(p, re.IGNORECASE)
    for p in [
        r"^expert\s+guidance\s+(?:for|on)\s+[\w\s-]+\.?$",
        r"^(?:a|an|the)\s+(?:skill|tool|helper)\s+(?:for|to)\s+[\w-]+\.?$",
        r"^(?:help|helps)\s+with\s+[\w-]+\.?$",
        r"^(?:description|summary|todo|tbd|n/?a)\.?$",
    ]
]

# Unicode ranges that count as Latin script (basic + supplements + extended A/B)
LATIN_MAX_CODEPOINT = 0x024F

# Audit log target types
TARGET_SKILL = "skill"
TARGET_USER = "user"
TARGET_SLUG = "slug"

# Sweep bounds
MAX_SWEEP_BATCH_SIZE = 200
MIN_README_BYTES = 256
MAX_README_BYTES = 65536
MAX_NOMINATION_THRESHOLD = 100
MAX_SAMPLE_SLUGS = 10
MAX_REPORTED_NOMINATIONS = 200

# Near-duplicate detection
MINHASH_NUM_PERM = 128

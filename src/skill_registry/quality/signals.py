"""Pure text measurements feeding the quality evaluator."""

from __future__ import annotations

from skill_registry.config.constants import (
    BULLET_RE,
    FRONTMATTER_RE,
    GENERIC_SUMMARY_PATTERNS,
    HEADING_RE,
    LATIN_MAX_CODEPOINT,
    TEMPLATE_MARKER_PATTERNS,
    WORD_RE,
)
from skill_registry.models.domain import QualitySignals


def strip_frontmatter(text: str) -> str:
    return FRONTMATTER_RE.sub("", text, count=1)


def is_generic_summary(summary: str | None) -> bool:
    if not summary or not summary.strip():
        return True
    candidate = " ".join(summary.split())
    return any(p.match(candidate) for p in GENERIC_SUMMARY_PATTERNS)


def compute_quality_signals(readme_text: str, summary: str | None = None) -> QualitySignals:
    body = strip_frontmatter(readme_text)
    words = [w.lower() for w in WORD_RE.findall(body)]
    word_count = len(words)
    return QualitySignals(
        body_length=len(body.strip()),
        word_count=word_count,
        unique_word_ratio=round(len(set(words)) / word_count, 4) if word_count else 0.0,
        heading_count=len(HEADING_RE.findall(body)),
        bullet_count=len(BULLET_RE.findall(body)),
        template_marker_hits=sum(len(p.findall(body)) for p in TEMPLATE_MARKER_PATTERNS),
        generic_summary_flag=is_generic_summary(summary),
        # Scripts without spaces between words (CJK, Thai) would otherwise read as empty.
        non_latin_char_count=sum(
            1 for c in body if c.isalpha() and ord(c) > LATIN_MAX_CODEPOINT
        ),
    )


def effective_word_count(signals: QualitySignals) -> float:
    return signals.word_count + signals.non_latin_char_count / 2

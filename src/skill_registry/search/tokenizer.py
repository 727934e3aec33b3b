"""Query tokenization and the exact-token predicate used to confirm matches."""

from __future__ import annotations

import re
import unicodedata

from skill_registry.config.constants import QUERY_TOKEN_RE

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_query(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", unicodedata.normalize("NFKC", text)).strip()


def tokenize(text: str) -> list[str]:
    """Lowercase alphanumeric runs, in order of appearance."""
    return QUERY_TOKEN_RE.findall(text.lower())


def matches_exact_tokens(query_tokens: list[str], *fields: str | None) -> bool:
    """True when every query token appears as a whole token in the given fields.

    An empty token list never matches, nor does a candidate with no text.
    """
    if not query_tokens:
        return False
    text = " ".join(f for f in fields if f)
    if not text.strip():
        return False
    candidate_tokens = set(tokenize(text))
    if not candidate_tokens:
        return False
    return all(token in candidate_tokens for token in query_tokens)

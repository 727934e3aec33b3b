"""Machine-readable reasons attached to quality decisions."""

from __future__ import annotations

from enum import Enum


class ReasonCode(str, Enum):
    ACCEPTED = "quality.accepted"
    EMPTY_DOCUMENT = "quality.empty_document"
    TOO_FEW_WORDS = "quality.too_few_words"
    TEMPLATED = "quality.templated_content"
    LOW_SCORE = "quality.low_score"
    NEAR_DUPLICATE = "quality.near_duplicate"

"""Near-duplicate counting over a publisher's recent documents."""

from __future__ import annotations

import re

from datasketch import MinHash, MinHashLSH

from skill_registry.config.constants import MINHASH_NUM_PERM
from skill_registry.observability.logger import get_logger

logger = get_logger("similarity")


def _minhash(text: str) -> MinHash | None:
    words = set(re.findall(r"\w+", text.lower()))
    if not words:
        return None
    mh = MinHash(num_perm=MINHASH_NUM_PERM)
    for word in words:
        mh.update(word.encode("utf-8"))
    return mh


def count_similar_recent(text: str, recent_texts: list[str], threshold: float) -> int:
    """How many of recent_texts are near-duplicates (Jaccard >= threshold) of text."""
    target = _minhash(text)
    if target is None or not recent_texts:
        return 0

    lsh = MinHashLSH(threshold=threshold, num_perm=MINHASH_NUM_PERM)
    for i, recent in enumerate(recent_texts):
        mh = _minhash(recent)
        if mh is not None:
            lsh.insert(str(i), mh)

    count = len(lsh.query(target))
    if count:
        logger.info("similar_recent_found", count=count, compared=len(recent_texts))
    return count

"""Lexical name similarity used to flag near-duplicate records."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

DEFAULT_THRESHOLD = 0.6
WORD_WEIGHT = 0.7
CHAR_WEIGHT = 0.3
MIN_WORD_LENGTH = 3


def similarity(left: str, right: str) -> float:
    """Score how alike two names are.

    Identical names (case and surrounding whitespace ignored) score 1.0 and a
    name contained in the other scores the length ratio. Otherwise the score
    blends shared words (weight 0.7) with a positional character overlap
    (weight 0.3). The word term can push the score above 1.0.
    """

    s1 = left.lower().strip()
    s2 = right.lower().strip()
    if s1 == s2:
        return 1.0
    if s1 in s2 or s2 in s1:
        return min(len(s1), len(s2)) / max(len(s1), len(s2))

    words1 = [word for word in s1.split() if len(word) >= MIN_WORD_LENGTH]
    words2 = [word for word in s2.split() if len(word) >= MIN_WORD_LENGTH]
    if not words1 or not words2:
        return 0.0

    common = [w1 for w1 in words1 if any(_words_overlap(w1, w2) for w2 in words2)]
    word_sim = (len(common) * 2) / len(set(words1) | set(words2))

    # Not edit distance: equal characters at equal positions only.
    matches = sum(1 for a, b in zip(s1, s2) if a == b)
    char_sim = matches / max(len(s1), len(s2))

    return word_sim * WORD_WEIGHT + char_sim * CHAR_WEIGHT


def _words_overlap(w1: str, w2: str) -> bool:
    return w1 == w2 or w2 in w1 or w1 in w2


def best_match(
    name: str,
    existing: Iterable[Mapping[str, Any]],
    *,
    field: str = "name",
    threshold: float = DEFAULT_THRESHOLD,
) -> tuple[Mapping[str, Any], float] | None:
    """Return the highest-scoring existing record at or above ``threshold``.

    Ties keep the record seen first.
    """

    best: tuple[Mapping[str, Any], float] | None = None
    for record in existing:
        value = record.get(field)
        if not value:
            continue
        score = similarity(name, str(value))
        if score >= threshold and (best is None or score > best[1]):
            best = (record, score)
    return best

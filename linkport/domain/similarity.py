from __future__ import annotations

from rapidfuzz.distance import Levenshtein


def edit_distance(a: str, b: str) -> int:
    """Classic Levenshtein distance with unit insert/delete/substitute costs."""
    return Levenshtein.distance(a, b, weights=(1, 1, 1))


def similarity(a: str, b: str) -> float:
    """Case-insensitive edit-distance ratio in [0, 1].

    Computed over the full strings, so punctuation and suffixes such as
    "(Remaster)" lower the score. Two empty strings are a full match.
    """
    a = (a or "").lower()
    b = (b or "").lower()
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - edit_distance(a, b) / longest

from __future__ import annotations

import re
from typing import Optional

from .entities import MatchStatus, Track, VariantKind


# Trailing "(Remastered 2011)", "[Live]", "- Acoustic Version", "- Remix" etc.
_VARIANT_SUFFIX_PATTERN = re.compile(
    r"(?:\s*[\(\[][^\(\)\[\]]*\b(?:remaster(?:ed)?|live|acoustic|cover|remix)\b[^\(\)\[\]]*[\)\]]"
    r"|\s+-\s*(?:\d{4}\s+)?(?:remaster(?:ed)?|live|acoustic|cover|remix)\b.*)\s*$",
    re.IGNORECASE,
)
_TOPIC_SUFFIX_PATTERN = re.compile(r"\s*-\s*Topic\s*$")

_EXPLANATIONS = {
    VariantKind.REMASTERED: "Found remastered version",
    VariantKind.LIVE: "Found live version",
    VariantKind.ACOUSTIC: "Found acoustic version",
    VariantKind.COVER: "Found cover version",
    VariantKind.PLATFORM_GENERATED: "Found auto-generated version",
    VariantKind.REMIX: "Found remix version",
}

MATCHED_NOTE = "Exact or near-exact match found"
SIMILAR_NOTE = "Similar song found with slight differences"
NOT_FOUND_NOTE = "No suitable match found on target platform"


def classify_variant(candidate_title: str, candidate_artist: str) -> VariantKind:
    """Recognize a known naming variant by substring; first rule wins.

    Advisory only: the result never feeds back into scoring.
    """
    title = candidate_title or ""
    artist = candidate_artist or ""
    if "Remaster" in title:
        return VariantKind.REMASTERED
    if "Live" in title:
        return VariantKind.LIVE
    if "Acoustic" in title:
        return VariantKind.ACOUSTIC
    if "Cover" in title or "Cover" in artist:
        return VariantKind.COVER
    if "Topic" in artist:
        return VariantKind.PLATFORM_GENERATED
    if "Remix" in title:
        return VariantKind.REMIX
    return VariantKind.NONE


def strip_variant_suffix(title: str) -> str:
    value = title or ""
    while True:
        new_value = _VARIANT_SUFFIX_PATTERN.sub("", value)
        if new_value == value:
            break
        value = new_value
    return value.strip()


def strip_topic_suffix(artist: str) -> str:
    return _TOPIC_SUFFIX_PATTERN.sub("", artist or "").strip()


def explain(status: MatchStatus, candidate: Optional[Track]) -> str:
    """Human-readable explanation shown next to a match verdict."""
    if status is MatchStatus.MATCHED:
        return MATCHED_NOTE
    if status is MatchStatus.PARTIAL and candidate is not None:
        kind = classify_variant(candidate.title, candidate.artist)
        return _EXPLANATIONS.get(kind, SIMILAR_NOTE)
    return NOT_FOUND_NOTE

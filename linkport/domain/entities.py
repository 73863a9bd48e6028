from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


MATCHED_THRESHOLD = 0.9
PARTIAL_THRESHOLD = 0.7


class MatchStatus(str, Enum):
    """Tri-state verdict for a single source track."""

    MATCHED = "matched"
    PARTIAL = "partial"
    NOT_FOUND = "not_found"


class VariantKind(str, Enum):
    """Known naming variants of a candidate track."""

    NONE = "none"
    REMASTERED = "remastered"
    LIVE = "live"
    ACOUSTIC = "acoustic"
    COVER = "cover"
    PLATFORM_GENERATED = "platform_generated"
    REMIX = "remix"


def classify_confidence(confidence: float) -> MatchStatus:
    if confidence > MATCHED_THRESHOLD:
        return MatchStatus.MATCHED
    if confidence > PARTIAL_THRESHOLD:
        return MatchStatus.PARTIAL
    return MatchStatus.NOT_FOUND


@dataclass(frozen=True)
class Track:
    """Domain entity representing a song independent of platforms.

    ``artist`` may be a composite "A, B, C" join of several performers.
    ``platform_ref`` is only set on tracks returned by a target platform.
    """

    title: str
    artist: str
    album: Optional[str] = None
    duration_seconds: Optional[int] = None
    platform_ref: Optional[str] = None

    def __post_init__(self):
        if self.duration_seconds is not None and self.duration_seconds < 0:
            raise ValueError("duration_seconds must be non-negative")


@dataclass(frozen=True)
class ScoredCandidate:
    """A candidate track paired with its combined confidence."""

    track: Track
    confidence: float

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence out of range: {self.confidence}")


@dataclass(frozen=True)
class Match:
    """Verdict for one original track.

    The best-scored candidate is kept even when its confidence is too low to
    count as a match; ``matched_track`` and ``confidence`` only expose it when
    the status is matched or partial.
    """

    original_track: Track
    best_candidate: Optional[ScoredCandidate] = None
    alternative_tracks: Tuple[Track, ...] = ()
    note: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'alternative_tracks', tuple(self.alternative_tracks))
        if self.best_candidate is not None and self.best_candidate.track in self.alternative_tracks:
            raise ValueError("alternative tracks must not include the selected candidate")

    @property
    def status(self) -> MatchStatus:
        if self.best_candidate is None:
            return MatchStatus.NOT_FOUND
        return classify_confidence(self.best_candidate.confidence)

    @property
    def matched_track(self) -> Optional[Track]:
        if self.status is MatchStatus.NOT_FOUND:
            return None
        return self.best_candidate.track

    @property
    def confidence(self) -> Optional[float]:
        if self.status is MatchStatus.NOT_FOUND:
            return None
        return self.best_candidate.confidence


@dataclass(frozen=True)
class MatchBatch:
    """Ordered Match results for a whole playlist; rollups are derived."""

    matches: Tuple[Match, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'matches', tuple(self.matches))

    def __len__(self) -> int:
        return len(self.matches)

    def __iter__(self):
        return iter(self.matches)

    def count(self, status: MatchStatus) -> int:
        return sum(1 for m in self.matches if m.status is status)

    @property
    def total(self) -> int:
        return len(self.matches)

    @property
    def matched(self) -> int:
        return self.count(MatchStatus.MATCHED)

    @property
    def partial(self) -> int:
        return self.count(MatchStatus.PARTIAL)

    @property
    def not_found(self) -> int:
        return self.count(MatchStatus.NOT_FOUND)

    @property
    def match_rate(self) -> float:
        if not self.matches:
            return 0.0
        return (self.matched + self.partial) / self.total

    def matched_tracks(self) -> List[Track]:
        """Tracks selected for the mirror playlist, in playlist order."""
        return [m.matched_track for m in self.matches if m.matched_track is not None]

    def stats(self) -> Dict[str, int]:
        return {
            "totalSongs": self.total,
            "matchedSongs": self.matched,
            "partialMatches": self.partial,
            "notFound": self.not_found,
        }


@dataclass(frozen=True)
class Playlist:
    """Source playlist as extracted by a playlist parser."""

    title: str
    platform: str
    original_url: str
    songs: Tuple[Track, ...] = ()
    description: str = ""

    def __post_init__(self):
        object.__setattr__(self, 'songs', tuple(self.songs))

    @property
    def total_duration(self) -> int:
        return sum(s.duration_seconds or 0 for s in self.songs)


@dataclass(frozen=True)
class MirrorPlaylist:
    """Playlist assembled on the target platform from matched tracks."""

    id: str
    title: str
    description: str
    platform: str
    original_url: str
    shareable_url: str
    created_at: str
    songs: Tuple[Track, ...] = field(default_factory=tuple)
    total_duration: int = 0

    def __post_init__(self):
        object.__setattr__(self, 'songs', tuple(self.songs))

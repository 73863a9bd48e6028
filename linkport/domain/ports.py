from __future__ import annotations

from typing import Protocol, Sequence

from .entities import MatchBatch, MirrorPlaylist, Playlist, Track


class PlaylistParser(Protocol):
    """Port extracting the ordered track list of a source playlist.

    Implementations raise InvalidUrl, UnsupportedPlatform, NotFound,
    PermanentFailure or RateLimited instead of returning partial data.
    """

    def parse(self, url: str) -> Playlist:
        """Return the playlist behind the given URL."""


class CandidateSupplier(Protocol):
    """Port returning target-platform candidates for one source track.

    Plain functions ``Track -> Sequence[Track]`` satisfy it. Any error raised
    is treated by the matcher as a per-track failure.
    """

    def __call__(self, track: Track) -> Sequence[Track]:
        """Return zero or more candidates in search-rank order."""


class PlaylistAssembler(Protocol):
    """Port building the mirror playlist on the target platform."""

    def assemble(self, source: Playlist, batch: MatchBatch, target_platform: str) -> MirrorPlaylist:
        """Create a playlist from the tracks with a selected match."""

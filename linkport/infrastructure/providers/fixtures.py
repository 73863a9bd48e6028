"""Deterministic demo adapters: built-in playlists and simulated target-platform search."""

import hashlib
import logging
import random
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from linkport.domain.entities import Playlist, Track
from linkport.domain.errors import NotFound, UnsupportedPlatform
from linkport.domain.platforms import (
    APPLE, SOUNDCLOUD, SPOTIFY, YOUTUBE, detect_platform, ensure_supported, validate_url
)

logger = logging.getLogger(__name__)


def _songs(*rows: Tuple[str, str, str]) -> Tuple[Track, ...]:
    return tuple(Track(title=t, artist=a, album=al) for t, a, al in rows)


_TOP_HITS = (
    ("As It Was", "Harry Styles", "Harry's House"),
    ("Anti-Hero", "Taylor Swift", "Midnights"),
    ("Flowers", "Miley Cyrus", "Endless Summer Vacation"),
    ("Unholy", "Sam Smith ft. Kim Petras", "Gloria"),
    ("Calm Down", "Rema & Selena Gomez", "Rave & Roses"),
)

DEMO_PLAYLISTS: Dict[str, Dict[str, object]] = {
    SPOTIFY: {
        "title": "Today's Top Hits",
        "description": "The most played songs right now",
        "songs": _songs(
            *_TOP_HITS,
            ("Lavender Haze", "Taylor Swift", "Midnights"),
            ("Creepin'", "Metro Boomin, The Weeknd, 21 Savage", "Heroes & Villains"),
            ("Kill Bill", "SZA", "SOS"),
            ("Vampire", "Olivia Rodrigo", "GUTS"),
            ("Cruel Summer", "Taylor Swift", "Lover"),
        ),
    },
    YOUTUBE: {
        "title": "YouTube Music Trending",
        "description": "What's trending on YouTube Music",
        "songs": _songs(
            ("Paint The Town Red", "Doja Cat", "Scarlet"),
            ("Greedy", "Tate McRae", "Think Later"),
            ("Water", "Tyla", "Water"),
            ("Lovin On Me", "Jack Harlow", "Lovin On Me"),
            ("Stick Season", "Noah Kahan", "I Was / I Am"),
            ("What It Is (Block Boy)", "Doechii", "Alligator Bites Never Heal"),
            ("Rich Baby Daddy", "Drake ft. Sexyy Red & SZA", "For All The Dogs"),
            ("Northern Attitude", "Noah Kahan", "Stick Season"),
            ("Dance The Night", "Dua Lipa", "Barbie The Album"),
            ("Snooze", "SZA", "SOS"),
        ),
    },
    SOUNDCLOUD: {
        "title": "SoundCloud Weekly",
        "description": "Fresh tracks from emerging artists",
        "songs": _songs(
            ("Midnight Dreams", "Luna Wave", "Neon Nights"),
            ("Electric Pulse", "Synth Master", "Digital Horizon"),
            ("Ocean Breeze", "Coastal Vibes", "Summer Sessions"),
            ("City Lights", "Urban Echo", "Metropolitan"),
            ("Starfall", "Cosmic Journey", "Interstellar"),
            ("Neon Glow", "Retro Future", "80s Revival"),
            ("Mountain High", "Nature Sounds", "Wilderness"),
            ("Digital Love", "Cyber Romance", "Virtual Reality"),
        ),
    },
    APPLE: {
        "title": "Apple Music Hits",
        "description": "Popular songs from Apple Music",
        "songs": _songs(*_TOP_HITS),
    },
}


class FixturePlaylistParser:
    """Returns the built-in demo playlist of the platform detected from the URL."""

    def __init__(self, playlists: Optional[Mapping[str, Mapping[str, object]]] = None):
        self.playlists = dict(playlists if playlists is not None else DEMO_PLAYLISTS)

    def parse(self, url: str) -> Playlist:
        url = validate_url(url)
        platform = detect_platform(url)
        data = self.playlists.get(platform)
        if data is None:
            raise UnsupportedPlatform(f"No demo playlist for platform: {platform}")
        logger.info(f"Parsing {platform} playlist: {url}")
        return Playlist(
            title=data["title"],
            description=data.get("description", ""),
            platform=platform,
            original_url=url,
            songs=data["songs"],
        )


class FixtureCandidateSupplier:
    """Candidate supplier backed by a fixed ``(title, artist) -> candidates`` table."""

    def __init__(self, candidates: Mapping[Tuple[str, str], Sequence[Track]], strict: bool = False):
        """
        Args:
            candidates: Candidate lists keyed by the source track's title and artist
            strict: Raise NotFound for unknown tracks instead of returning no candidates
        """
        self.candidates = {key: list(value) for key, value in candidates.items()}
        self.strict = strict

    def __call__(self, track: Track) -> List[Track]:
        key = (track.title, track.artist)
        if key not in self.candidates:
            if self.strict:
                raise NotFound(f"No fixture candidates for {track.title} - {track.artist}")
            return []
        return list(self.candidates[key])


class SeededSearchSupplier:
    """Simulated target-platform search producing realistic naming variants.

    Every track draws from its own ``random.Random`` seeded with
    ``seed:title:artist``, so results do not depend on call order or threads.
    """

    # Titles the demo search sometimes fails to find
    HARD_TO_FIND = ("Sweet Child O' Mine", "Stairway to Heaven")

    def __init__(self, platform: str, seed: int = 0):
        self.platform = ensure_supported(platform)
        self.seed = seed

    def _rng(self, track: Track) -> random.Random:
        return random.Random(f"{self.seed}:{track.title}:{track.artist}")

    def __call__(self, track: Track) -> List[Track]:
        rng = self._rng(track)
        album = track.album or 'Unknown Album'
        variations: List[Track] = []

        if rng.random() > 0.2:
            variations.append(self._candidate(track.title, track.artist, album, len(variations)))
        if rng.random() > 0.3:
            variations.append(self._candidate(f"{track.title} (Remastered)", track.artist,
                                              f"{album} (Remastered)", len(variations)))
        if rng.random() > 0.4:
            variations.append(self._candidate(f"{track.title} (Live)", track.artist,
                                              'Live Album', len(variations)))
        if rng.random() > 0.5:
            variations.append(self._candidate(track.title, f"{track.artist} Cover Band",
                                              'Cover Album', len(variations)))
        if rng.random() > 0.6:
            variations.append(self._candidate(f"{track.title} (Acoustic Version)", track.artist,
                                              'Acoustic Sessions', len(variations)))

        if self.platform == YOUTUBE:
            # Auto-generated uploads
            variations.append(self._candidate(f"{track.title} - {track.artist}", f"{track.artist} - Topic",
                                              track.album or 'Auto-Generated', len(variations)))
        if self.platform == SOUNDCLOUD and rng.random() > 0.7:
            variations.append(self._candidate(f"{track.title} (Remix)", f"{track.artist} ft. Various Artists",
                                              'Remix Collection', len(variations)))

        if any(title in track.title for title in self.HARD_TO_FIND) and rng.random() > 0.5:
            return []

        return variations[:rng.randint(1, 3)]

    def _candidate(self, title: str, artist: str, album: str, position: int) -> Track:
        key = f"{self.seed}:{title}:{artist}:{position}".encode('utf-8')
        digest = hashlib.sha1(key).hexdigest()[:12]
        return Track(
            title=title,
            artist=artist,
            album=album,
            platform_ref=f"{self.platform}:mock:{digest}",
        )

import logging
import re
from dataclasses import replace
from typing import Any, Dict, List, Optional

import requests
import spotipy
from spotipy.exceptions import SpotifyException
from spotipy.oauth2 import SpotifyClientCredentials

from linkport.crosscutting.config import ConfigError, Settings
from linkport.domain.entities import Playlist, Track
from linkport.domain.errors import (
    InvalidUrl, NotFound, PermanentFailure, PlaylistParseError, RateLimited, TemporaryFailure
)
from linkport.domain.platforms import SPOTIFY

logger = logging.getLogger(__name__)

_PLAYLIST_ID_PATTERNS = [
    re.compile(r"(?:https?://)?(?:open\.)?spotify\.com/(?:[\w-]+/)?playlist/([a-zA-Z0-9]+)", re.IGNORECASE),
    re.compile(r"spotify:playlist:([a-zA-Z0-9]+)", re.IGNORECASE),
]


def extract_playlist_id(url: str) -> str:
    """Return the playlist id of a Spotify web URL or URI.

    Raises:
        InvalidUrl: If no plausible playlist id is present
    """
    for pattern in _PLAYLIST_ID_PATTERNS:
        match = pattern.search((url or "").strip())
        if match and 10 <= len(match.group(1)) <= 30:
            return match.group(1)
    raise InvalidUrl(
        "Invalid Spotify playlist URL format. Use a URL like "
        "https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M"
    )


def map_spotify_error(error: Exception, operation: str) -> Exception:
    """Translate spotipy/requests errors into domain errors."""
    if isinstance(error, SpotifyException):
        status = error.http_status
        if status == 429:
            headers = getattr(error, 'headers', None) or {}
            try:
                retry_after = int(headers.get('Retry-After', 1))
            except (TypeError, ValueError):
                retry_after = 1
            return RateLimited(retry_after_ms=retry_after * 1000,
                               message=f"Spotify rate limit exceeded during {operation}")
        if status in (401, 403):
            return PermanentFailure(f"Spotify authorization failed during {operation} (HTTP {status})")
        if status == 404:
            return NotFound(f"Spotify resource not found during {operation}")
        return TemporaryFailure(f"Spotify error during {operation} (HTTP {status}): {error.msg}")
    if isinstance(error, requests.exceptions.RequestException):
        return TemporaryFailure(f"Network error during {operation}: {error}")
    return TemporaryFailure(f"Unexpected error during {operation}: {error}")


def spotify_track_to_domain(spotify_track: Dict[str, Any]) -> Optional[Track]:
    """Convert a Spotify track object to a domain Track; None for unusable items."""
    if not spotify_track or not spotify_track.get('name'):
        return None

    artists = spotify_track.get('artists') or []
    artist_names = [a.get('name') for a in artists if a.get('name')]
    album = spotify_track.get('album') or {}
    duration_ms = spotify_track.get('duration_ms')
    external_urls = spotify_track.get('external_urls') or {}

    return Track(
        title=spotify_track['name'],
        artist=', '.join(artist_names),
        album=album.get('name') or None,
        duration_seconds=round(duration_ms / 1000) if duration_ms else None,
        platform_ref=external_urls.get('spotify') or spotify_track.get('uri'),
    )


def create_client(client_id: str, client_secret: str, requests_timeout: float = 15) -> spotipy.Spotify:
    """Spotify client using the client-credentials flow.

    The auth manager owns the token: it is acquired on first use and
    refreshed when it expires.
    """
    auth_manager = SpotifyClientCredentials(client_id=client_id, client_secret=client_secret)
    return spotipy.Spotify(auth_manager=auth_manager, requests_timeout=requests_timeout)


def client_from_settings(settings: Settings) -> spotipy.Spotify:
    if not settings.has_spotify_credentials:
        raise ConfigError("SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET are required")
    return create_client(settings.spotify_client_id, settings.spotify_client_secret,
                         requests_timeout=settings.request_timeout)


class SpotifySearchSupplier:
    """Candidate supplier searching the Spotify catalog."""

    def __init__(self, client: spotipy.Spotify, limit: int = 5, market: Optional[str] = None):
        self._client = client
        self.limit = limit
        self.market = market

    @staticmethod
    def build_query(track: Track) -> str:
        title = track.title.replace('"', '')
        artist = track.artist.replace('"', '')
        return f'track:"{title}" artist:"{artist}"'

    def __call__(self, track: Track) -> List[Track]:
        query = self.build_query(track)
        try:
            response = self._client.search(q=query, type='track', limit=self.limit, market=self.market)
        except Exception as e:
            raise map_spotify_error(e, 'search') from e

        items = ((response or {}).get('tracks') or {}).get('items') or []
        candidates = [t for t in (spotify_track_to_domain(item) for item in items) if t is not None]
        logger.debug(f"Spotify search '{query}' returned {len(candidates)} candidates")
        return candidates


class SpotifyPlaylistParser:
    """Reads a public Spotify playlist, following pagination up to ``max_tracks``."""

    FIELDS = ('name,description,'
              'tracks.items(track(name,uri,artists(name),album(name),duration_ms,external_urls)),'
              'tracks.next')

    def __init__(self, client: spotipy.Spotify, max_tracks: int = 100):
        self._client = client
        self.max_tracks = max_tracks

    def parse(self, url: str) -> Playlist:
        playlist_id = extract_playlist_id(url)
        try:
            data = self._client.playlist(playlist_id, fields=self.FIELDS)
            page = data.get('tracks') or {}
            items = list(page.get('items') or [])
            while page.get('next') and len(items) < self.max_tracks:
                page = self._client.next(page) or {}
                items.extend(page.get('items') or [])
        except Exception as e:
            mapped = map_spotify_error(e, 'playlist fetch')
            if isinstance(mapped, NotFound):
                raise NotFound(f"Spotify playlist {playlist_id} not found; it may be private or deleted") from e
            raise mapped from e

        if 'name' not in data:
            raise PlaylistParseError(f"Unexpected Spotify playlist response for {playlist_id}")

        songs = []
        for item in items[:self.max_tracks]:
            track = spotify_track_to_domain((item or {}).get('track'))
            if track is None:
                logger.warning(f"Skipping invalid track item in playlist {playlist_id}")
                continue
            songs.append(replace(track, platform_ref=None))

        logger.info(f"Parsed Spotify playlist '{data['name']}' with {len(songs)} songs")
        return Playlist(
            title=data['name'],
            description=data.get('description') or '',
            platform=SPOTIFY,
            original_url=url,
            songs=tuple(songs),
        )

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

import requests

from linkport.crosscutting.config import ConfigError, Settings
from linkport.domain.entities import Playlist, Track
from linkport.domain.errors import PlaylistParseError
from linkport.domain.platforms import SOUNDCLOUD
from linkport.infrastructure.providers.web_api import WebApiClient

logger = logging.getLogger(__name__)

API_BASE_URL = 'https://api.soundcloud.com'


def soundcloud_track_to_domain(data: Dict[str, Any]) -> Optional[Track]:
    """Convert a SoundCloud track resource to a domain Track; None for unusable items."""
    if not data or not data.get('title'):
        return None
    user = data.get('user') or {}
    duration_ms = data.get('duration')
    return Track(
        title=data['title'],
        artist=user.get('username') or 'Unknown Artist',
        album='SoundCloud',
        duration_seconds=round(duration_ms / 1000) if duration_ms else None,
        platform_ref=data.get('permalink_url'),
    )


def client_from_settings(settings: Settings, session: Optional[requests.Session] = None) -> WebApiClient:
    if not settings.soundcloud_client_id:
        raise ConfigError("SOUNDCLOUD_CLIENT_ID is required")
    return WebApiClient('SoundCloud', API_BASE_URL, {'client_id': settings.soundcloud_client_id},
                        timeout=settings.request_timeout, session=session)


class SoundCloudSearchSupplier:
    """Candidate supplier searching SoundCloud tracks."""

    def __init__(self, client: WebApiClient, limit: int = 5):
        self._client = client
        self.limit = limit

    def __call__(self, track: Track) -> List[Track]:
        query = f"{track.artist} {track.title}".strip()
        data = self._client.get('tracks', 'search', q=query, limit=self.limit)
        # Paginated responses wrap results in a collection
        items = data.get('collection') if isinstance(data, dict) else data
        candidates = [t for t in (soundcloud_track_to_domain(i) for i in items or []) if t is not None]
        logger.debug(f"SoundCloud search '{query}' returned {len(candidates)} candidates")
        return candidates


class SoundCloudPlaylistParser:
    """Resolves a SoundCloud set URL and reads its tracks."""

    def __init__(self, client: WebApiClient, max_tracks: int = 100):
        self._client = client
        self.max_tracks = max_tracks

    def parse(self, url: str) -> Playlist:
        data = self._client.get('resolve', 'playlist resolve', url=url) or {}
        if data.get('kind') != 'playlist':
            raise PlaylistParseError(f"URL does not point to a SoundCloud playlist: {url}")

        songs = []
        for item in (data.get('tracks') or [])[:self.max_tracks]:
            track = soundcloud_track_to_domain(item)
            if track is None:
                logger.warning(f"Skipping unavailable track in SoundCloud playlist {data.get('id')}")
                continue
            songs.append(replace(track, platform_ref=None))

        title = data.get('title') or 'SoundCloud playlist'
        logger.info(f"Parsed SoundCloud playlist '{title}' with {len(songs)} songs")
        return Playlist(
            title=title,
            description=data.get('description') or '',
            platform=SOUNDCLOUD,
            original_url=url,
            songs=tuple(songs),
        )

import logging
import re
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

import requests

from linkport.crosscutting.config import ConfigError, Settings
from linkport.domain.entities import Playlist, Track
from linkport.domain.errors import InvalidUrl, NotFound
from linkport.domain.normalization import strip_topic_suffix
from linkport.domain.platforms import YOUTUBE
from linkport.infrastructure.providers.web_api import WebApiClient

logger = logging.getLogger(__name__)

API_BASE_URL = 'https://www.googleapis.com/youtube/v3'
MUSIC_CATEGORY_ID = '10'
UNAVAILABLE_TITLES = ('Private video', 'Deleted video')

_PLAYLIST_ID_PATTERN = re.compile(r"[?&]list=([a-zA-Z0-9_-]+)")


def extract_playlist_id(url: str) -> str:
    """Return the ``list`` parameter of a YouTube or YouTube Music playlist URL.

    Raises:
        InvalidUrl: If the URL carries no playlist id
    """
    match = _PLAYLIST_ID_PATTERN.search(url or "")
    if not match:
        raise InvalidUrl("Invalid YouTube playlist URL. Use a URL with a list=... parameter")
    return match.group(1)


def split_video_title(title: str, channel: Optional[str]) -> Tuple[str, str]:
    """Split "Artist - Song" video titles; otherwise the channel is the artist."""
    parts = title.split(' - ')
    if len(parts) >= 2:
        return ' - '.join(parts[1:]).strip(), parts[0].strip()
    artist = strip_topic_suffix(channel or '') or 'Unknown Artist'
    return title.strip(), artist


def video_to_domain(video_id: Optional[str], snippet: Dict[str, Any]) -> Optional[Track]:
    title = snippet.get('title')
    if not title or title in UNAVAILABLE_TITLES:
        return None
    channel = snippet.get('videoOwnerChannelTitle') or snippet.get('channelTitle')
    song_title, artist = split_video_title(title, channel)
    return Track(
        title=song_title,
        artist=artist,
        album='YouTube',
        platform_ref=f"https://www.youtube.com/watch?v={video_id}" if video_id else None,
    )


def client_from_settings(settings: Settings, session: Optional[requests.Session] = None) -> WebApiClient:
    if not settings.youtube_api_key:
        raise ConfigError("YOUTUBE_API_KEY is required")
    return WebApiClient('YouTube', API_BASE_URL, {'key': settings.youtube_api_key},
                        timeout=settings.request_timeout, session=session)


class YouTubeSearchSupplier:
    """Candidate supplier searching YouTube videos in the Music category."""

    def __init__(self, client: WebApiClient, limit: int = 5):
        self._client = client
        self.limit = limit

    def __call__(self, track: Track) -> List[Track]:
        query = f"{track.artist} {track.title}".strip()
        data = self._client.get(
            'search', 'search',
            q=query, part='snippet', type='video',
            videoCategoryId=MUSIC_CATEGORY_ID, maxResults=self.limit,
        )
        candidates = []
        for item in (data or {}).get('items') or []:
            video_id = (item.get('id') or {}).get('videoId')
            candidate = video_to_domain(video_id, item.get('snippet') or {})
            if candidate is not None:
                candidates.append(candidate)
        logger.debug(f"YouTube search '{query}' returned {len(candidates)} candidates")
        return candidates


class YouTubePlaylistParser:
    """Reads a public YouTube playlist, following page tokens up to ``max_tracks``."""

    PAGE_SIZE = 50

    def __init__(self, client: WebApiClient, max_tracks: int = 100):
        self._client = client
        self.max_tracks = max_tracks

    def parse(self, url: str) -> Playlist:
        playlist_id = extract_playlist_id(url)

        data = self._client.get('playlists', 'playlist fetch', id=playlist_id, part='snippet')
        items = (data or {}).get('items') or []
        if not items:
            raise NotFound(f"YouTube playlist {playlist_id} not found; it may be private")
        snippet = items[0].get('snippet') or {}

        songs: List[Track] = []
        page_token = None
        while len(songs) < self.max_tracks:
            page = self._client.get(
                'playlistItems', 'playlist items fetch',
                playlistId=playlist_id, part='snippet',
                maxResults=self.PAGE_SIZE, pageToken=page_token,
            ) or {}
            for item in page.get('items') or []:
                item_snippet = item.get('snippet') or {}
                video_id = (item_snippet.get('resourceId') or {}).get('videoId')
                track = video_to_domain(video_id, item_snippet)
                if track is None:
                    logger.warning(f"Skipping unavailable video in playlist {playlist_id}")
                    continue
                songs.append(replace(track, platform_ref=None))
            page_token = page.get('nextPageToken')
            if not page_token:
                break

        songs = songs[:self.max_tracks]
        title = snippet.get('title') or playlist_id
        logger.info(f"Parsed YouTube playlist '{title}' with {len(songs)} songs")
        return Playlist(
            title=title,
            description=snippet.get('description') or '',
            platform=YOUTUBE,
            original_url=url,
            songs=tuple(songs),
        )

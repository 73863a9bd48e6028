from __future__ import annotations

from urllib.parse import urlparse

from .errors import InvalidUrl, UnsupportedPlatform


SPOTIFY = "spotify"
YOUTUBE = "youtube"
SOUNDCLOUD = "soundcloud"
APPLE = "apple"

SUPPORTED_PLATFORMS = (SPOTIFY, YOUTUBE, SOUNDCLOUD, APPLE)

_HOST_MARKERS = (
    (SPOTIFY, ("spotify.com",)),
    (YOUTUBE, ("youtube.com", "youtu.be", "music.youtube.com")),
    (SOUNDCLOUD, ("soundcloud.com",)),
    (APPLE, ("music.apple.com",)),
)


def validate_url(url: str) -> str:
    if not url or not isinstance(url, str):
        raise InvalidUrl("Please provide a valid playlist URL")
    parsed = urlparse(url.strip())
    if not parsed.scheme or not parsed.netloc:
        raise InvalidUrl(f"Invalid URL format: {url}")
    return url.strip()


def detect_platform(url: str) -> str:
    for platform, markers in _HOST_MARKERS:
        if any(marker in url for marker in markers):
            return platform
    raise UnsupportedPlatform("Unable to detect platform from URL")


def ensure_supported(platform: str) -> str:
    if platform not in SUPPORTED_PLATFORMS:
        raise UnsupportedPlatform(f"Unsupported platform: {platform}")
    return platform


def platform_playlist_url(playlist_id: str, platform: str, base_url: str) -> str:
    """URL of a playlist with the given id on the target platform."""
    if platform == YOUTUBE:
        return f"https://music.youtube.com/playlist?list=PLlinkport{playlist_id}"
    if platform == SPOTIFY:
        return f"https://open.spotify.com/playlist/linkport{playlist_id}"
    if platform == SOUNDCLOUD:
        return f"https://soundcloud.com/linkport/sets/playlist-{playlist_id}"
    if platform == APPLE:
        return f"https://music.apple.com/playlist/linkport-{playlist_id}"
    return f"{base_url.rstrip('/')}/pl/{playlist_id}"

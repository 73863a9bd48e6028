import logging
from typing import Callable, Dict, Optional

import spotipy

from linkport.application.pipeline import ConversionPipeline
from linkport.crosscutting.config import Settings
from linkport.domain.entities import Playlist
from linkport.domain.platforms import SOUNDCLOUD, SPOTIFY, YOUTUBE, detect_platform
from linkport.domain.ports import CandidateSupplier, PlaylistParser
from linkport.infrastructure.providers import soundcloud, youtube
from linkport.infrastructure.providers.assembler import LocalPlaylistAssembler
from linkport.infrastructure.providers.fixtures import FixturePlaylistParser, SeededSearchSupplier
from linkport.infrastructure.providers.spotify import (
    SpotifyPlaylistParser, SpotifySearchSupplier, client_from_settings
)
from linkport.infrastructure.providers.web_api import WebApiClient

logger = logging.getLogger(__name__)


class RoutingPlaylistParser:
    """Dispatches to a per-platform parser, falling back to the demo playlists."""

    def __init__(self, parsers: Dict[str, PlaylistParser], fallback: PlaylistParser):
        self.parsers = dict(parsers)
        self.fallback = fallback

    def parse(self, url: str) -> Playlist:
        platform = detect_platform(url)
        parser = self.parsers.get(platform)
        if parser is None:
            logger.warning(f"No {platform} API access configured; answering {url} with the "
                           f"{platform} demo playlist instead of its real contents")
            parser = self.fallback
        return parser.parse(url)


def create_spotify_client(settings: Settings, offline: bool = False) -> Optional[spotipy.Spotify]:
    """Spotify client when credentials are configured, None otherwise."""
    if offline or not settings.has_spotify_credentials:
        return None
    return client_from_settings(settings)


def create_web_api_clients(settings: Settings, offline: bool = False) -> Dict[str, WebApiClient]:
    """YouTube and SoundCloud API clients for the platforms that have keys configured."""
    if offline:
        return {}
    clients = {}
    if settings.youtube_api_key:
        clients[YOUTUBE] = youtube.client_from_settings(settings)
    if settings.soundcloud_client_id:
        clients[SOUNDCLOUD] = soundcloud.client_from_settings(settings)
    return clients


def create_parser(settings: Settings,
                  client: Optional[spotipy.Spotify] = None,
                  web_clients: Optional[Dict[str, WebApiClient]] = None) -> PlaylistParser:
    web_clients = web_clients or {}
    parsers: Dict[str, PlaylistParser] = {}
    if client is not None:
        parsers[SPOTIFY] = SpotifyPlaylistParser(client)
    if YOUTUBE in web_clients:
        parsers[YOUTUBE] = youtube.YouTubePlaylistParser(web_clients[YOUTUBE])
    if SOUNDCLOUD in web_clients:
        parsers[SOUNDCLOUD] = soundcloud.SoundCloudPlaylistParser(web_clients[SOUNDCLOUD])
    return RoutingPlaylistParser(parsers, FixturePlaylistParser())


def create_supplier_factory(settings: Settings,
                            client: Optional[spotipy.Spotify] = None,
                            seed: Optional[int] = None,
                            web_clients: Optional[Dict[str, WebApiClient]] = None
                            ) -> Callable[[str], CandidateSupplier]:
    """Return ``target_platform -> supplier``: live search when possible, seeded demo search otherwise."""
    mock_seed = settings.mock_seed if seed is None else seed
    web_clients = web_clients or {}

    def factory(target_platform: str) -> CandidateSupplier:
        if target_platform == SPOTIFY and client is not None:
            return SpotifySearchSupplier(client, limit=settings.search_limit)
        if target_platform == YOUTUBE and YOUTUBE in web_clients:
            return youtube.YouTubeSearchSupplier(web_clients[YOUTUBE], limit=settings.search_limit)
        if target_platform == SOUNDCLOUD and SOUNDCLOUD in web_clients:
            return soundcloud.SoundCloudSearchSupplier(web_clients[SOUNDCLOUD], limit=settings.search_limit)
        logger.info(f"Using demo search for {target_platform}")
        return SeededSearchSupplier(target_platform, seed=mock_seed)

    return factory


def build_pipeline(settings: Settings,
                   seed: Optional[int] = None,
                   offline: bool = False,
                   client: Optional[spotipy.Spotify] = None,
                   web_clients: Optional[Dict[str, WebApiClient]] = None) -> ConversionPipeline:
    """Wire parsers, suppliers and the assembler according to settings."""
    if client is None:
        client = create_spotify_client(settings, offline=offline)
    if web_clients is None:
        web_clients = create_web_api_clients(settings, offline=offline)
    live = sorted(([SPOTIFY] if client is not None else []) + list(web_clients))
    logger.debug(f"Building pipeline (live platforms: {', '.join(live) or 'none'})")
    return ConversionPipeline(
        parser=create_parser(settings, client, web_clients),
        supplier_factory=create_supplier_factory(settings, client, seed, web_clients),
        assembler=LocalPlaylistAssembler(share_base_url=settings.share_base_url),
        settings=settings,
    )

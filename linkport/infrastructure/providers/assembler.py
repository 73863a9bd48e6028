import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from linkport.domain.entities import MatchBatch, MirrorPlaylist, Playlist
from linkport.domain.platforms import ensure_supported, platform_playlist_url

logger = logging.getLogger(__name__)

# Average song length used when a matched track has no duration
ESTIMATED_SONG_SECONDS = 210


class LocalPlaylistAssembler:
    """Builds the mirror playlist and its shareable link without calling a platform API."""

    def __init__(self,
                 share_base_url: str = 'https://linkport.app',
                 id_factory: Optional[Callable[[], str]] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.share_base_url = share_base_url.rstrip('/')
        self.id_factory = id_factory or (lambda: uuid.uuid4().hex[:8])
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def assemble(self, source: Playlist, batch: MatchBatch, target_platform: str) -> MirrorPlaylist:
        ensure_supported(target_platform)
        playlist_id = self.id_factory()
        songs = batch.matched_tracks()
        total_duration = sum(
            s.duration_seconds if s.duration_seconds is not None else ESTIMATED_SONG_SECONDS
            for s in songs
        )

        mirror = MirrorPlaylist(
            id=playlist_id,
            title=source.title,
            description=f"Converted from {source.platform} by LinkPort",
            platform=target_platform,
            original_url=platform_playlist_url(playlist_id, target_platform, self.share_base_url),
            shareable_url=f"{self.share_base_url}/pl/{playlist_id}",
            created_at=self.clock().isoformat(),
            songs=songs,
            total_duration=total_duration,
        )
        logger.info(f"Created mirror playlist '{mirror.title}' on {target_platform} "
                    f"with {len(songs)} songs: {mirror.shareable_url}")
        return mirror

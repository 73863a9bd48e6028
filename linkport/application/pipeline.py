import logging
import threading
import time
import uuid
from typing import Any, Callable, Dict, Optional, Sequence

from linkport.application.matching import TrackMatcher
from linkport.crosscutting.config import Settings
from linkport.crosscutting.logging import (
    CorrelationContext, log_conversion_complete, log_conversion_start, log_error
)
from linkport.crosscutting.reporting import ConversionReport
from linkport.domain.entities import Track
from linkport.domain.errors import InvalidUrl
from linkport.domain.platforms import ensure_supported, validate_url
from linkport.domain.ports import CandidateSupplier, PlaylistAssembler, PlaylistParser


logger = logging.getLogger(__name__)

STAGES = ('extracting', 'matching', 'creating', 'finalizing')


class ProgressTracker:
    """Tracks conversion progress and logs periodic updates.

    Searches may run on worker threads, so counters are guarded by a lock.
    """

    def __init__(self, total_tracks: int, progress_interval_sec: int = 60):
        self.total_tracks = total_tracks
        self.processed_tracks = 0
        self.current_song: Optional[str] = None
        self.stage = STAGES[0]
        self.progress_interval_sec = progress_interval_sec
        self.start_time = time.time()
        self.last_progress_time = self.start_time
        self._lock = threading.Lock()

    def set_stage(self, stage: str) -> None:
        if stage not in STAGES:
            raise ValueError(f"Unknown stage: {stage}")
        with self._lock:
            self.stage = stage
        logger.info(f"Conversion stage: {stage}")

    def record_search(self, track: Track) -> None:
        with self._lock:
            self.processed_tracks += 1
            self.current_song = f"{track.title} - {track.artist}"
            processed = self.processed_tracks
            current_time = time.time()
            due = (processed % 10 == 0 or processed == self.total_tracks or
                   current_time - self.last_progress_time >= self.progress_interval_sec)
            if due:
                self.last_progress_time = current_time

        if due and self.total_tracks:
            progress_pct = (processed / self.total_tracks) * 100
            logger.info(f"Progress: {processed}/{self.total_tracks} tracks searched ({progress_pct:.1f}%) "
                        f"in {current_time - self.start_time:.1f}s")

    def track(self, supplier: CandidateSupplier) -> CandidateSupplier:
        """Wrap a supplier so each search is counted, whether it succeeds or not."""
        def tracked(track: Track) -> Sequence[Track]:
            try:
                return supplier(track)
            finally:
                self.record_search(track)
        return tracked

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "totalSongs": self.total_tracks,
                "processedSongs": self.processed_tracks,
                "currentSong": self.current_song,
                "stage": self.stage,
            }


class ConversionPipeline:
    """Parses a source playlist, matches it on the target platform, assembles the mirror."""

    def __init__(self,
                 parser: PlaylistParser,
                 supplier_factory: Callable[[str], CandidateSupplier],
                 assembler: PlaylistAssembler,
                 matcher: Optional[TrackMatcher] = None,
                 settings: Optional[Settings] = None,
                 id_factory: Callable[[], str] = lambda: uuid.uuid4().hex):
        """Initialize conversion pipeline.

        Args:
            parser: Source playlist parser
            supplier_factory: Returns the candidate supplier for a target platform
            assembler: Builds the mirror playlist from the matches
            matcher: Track matcher; built from settings when omitted
            settings: Runtime settings (concurrency, timeout, weights)
            id_factory: Produces conversion identifiers for log correlation
        """
        self.settings = settings or Settings()
        self.parser = parser
        self.supplier_factory = supplier_factory
        self.assembler = assembler
        self.matcher = matcher or TrackMatcher.from_settings(self.settings)
        self.id_factory = id_factory
        self.last_progress: Optional[ProgressTracker] = None

    def convert(self, source_url: str, target_platform: str) -> ConversionReport:
        """Convert a playlist URL into a mirror playlist on the target platform.

        Raises:
            InvalidUrl: If parameters are missing or the URL is malformed
            UnsupportedPlatform: If either platform is not supported
            Errors raised by the playlist parser propagate unchanged
        """
        if not source_url or not target_platform:
            raise InvalidUrl("Both sourceUrl and targetPlatform are required")
        source_url = validate_url(source_url)
        ensure_supported(target_platform)

        conversion_id = self.id_factory()
        log_conversion_start(logger, conversion_id, source_url, target_platform)

        with CorrelationContext(conversion_id=conversion_id, stage='extracting'):
            try:
                playlist = self.parser.parse(source_url)
            except Exception as e:
                log_error(logger, 'Failed to parse playlist', e, source_url=source_url)
                raise

        progress = ProgressTracker(len(playlist.songs))
        self.last_progress = progress

        with CorrelationContext(conversion_id=conversion_id, playlist_id=playlist.title, stage='matching'):
            progress.set_stage('matching')
            supplier = progress.track(self.supplier_factory(target_platform))
            batch = self.matcher.match_all(
                playlist.songs,
                supplier,
                max_workers=self.settings.max_workers,
                timeout_seconds=self.settings.supplier_timeout,
            )

        with CorrelationContext(conversion_id=conversion_id, stage='creating'):
            progress.set_stage('creating')
            mirror = self.assembler.assemble(playlist, batch, target_platform)

        progress.set_stage('finalizing')
        report = ConversionReport(source_playlist=playlist, target_playlist=mirror, batch=batch)
        log_conversion_complete(logger, conversion_id, report.stats,
                                shareable_url=mirror.shareable_url)
        return report

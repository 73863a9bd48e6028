import contextvars
import logging
import threading
import time
from concurrent.futures import (
    FIRST_COMPLETED, Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError, wait
)
from typing import Dict, List, Optional, Sequence

from linkport.crosscutting.config import Settings
from linkport.crosscutting.logging import log_with_fields
from linkport.domain.entities import Match, MatchBatch, MatchStatus, ScoredCandidate, Track
from linkport.domain.normalization import NOT_FOUND_NOTE, classify_variant, explain
from linkport.domain.ports import CandidateSupplier
from linkport.domain.similarity import similarity


logger = logging.getLogger(__name__)

_QUEUED_POLL_SECONDS = 0.05


class _SearchTask:
    """One supplier call that holds a worker slot until it returns or is abandoned."""

    def __init__(self, supplier: CandidateSupplier, track: Track, slots: threading.BoundedSemaphore):
        self.supplier = supplier
        self.track = track
        self.slots = slots
        self.started_at: Optional[float] = None
        self._holds_slot = False
        self._lock = threading.Lock()

    def run(self) -> List[Track]:
        self.slots.acquire()
        with self._lock:
            self._holds_slot = True
            self.started_at = time.monotonic()
        try:
            # Lazy suppliers fail while being consumed, so consume here
            return list(self.supplier(self.track) or [])
        finally:
            self._release()

    def expired(self, now: float, timeout_seconds: float) -> bool:
        with self._lock:
            return self.started_at is not None and now - self.started_at >= timeout_seconds

    def abandon(self) -> None:
        """Give the slot to a queued search while this call keeps running."""
        self._release()

    def _release(self) -> None:
        with self._lock:
            if self._holds_slot:
                self._holds_slot = False
                self.slots.release()


class TrackMatcher:
    """Song-matching engine: scores candidates, picks the best one, classifies it.

    Confidence is ``title_similarity * title_weight + artist_similarity * artist_weight``.
    Title weighs more because artist strings vary (featured artists, "- Topic"
    uploads) without indicating a different song.
    """

    def __init__(self,
                 title_weight: float = 0.7,
                 artist_weight: float = 0.3,
                 max_alternatives: int = 2):
        """Initialize the matcher.

        Args:
            title_weight: Weight of the title similarity
            artist_weight: Weight of the artist similarity
            max_alternatives: Maximum number of runner-up candidates kept per match

        Raises:
            ValueError: If weights are negative or do not sum to 1.0
        """
        if title_weight < 0 or artist_weight < 0:
            raise ValueError("weights must be non-negative")
        if abs(title_weight + artist_weight - 1.0) > 1e-9:
            raise ValueError("weights must sum to 1.0")
        if max_alternatives < 0:
            raise ValueError("max_alternatives must be non-negative")
        self.title_weight = title_weight
        self.artist_weight = artist_weight
        self.max_alternatives = max_alternatives

    @classmethod
    def from_settings(cls, settings: Settings) -> "TrackMatcher":
        return cls(
            title_weight=settings.title_weight,
            artist_weight=settings.artist_weight,
            max_alternatives=settings.max_alternatives,
        )

    def score(self, original: Track, candidate: Track) -> float:
        title_score = similarity(original.title, candidate.title)
        artist_score = similarity(original.artist, candidate.artist)
        combined = title_score * self.title_weight + artist_score * self.artist_weight
        return min(1.0, max(0.0, combined))

    def select_best(self, original: Track, candidates: Sequence[Track]) -> Match:
        """Pick the highest-scoring candidate for a source track.

        Ties go to the earliest candidate. The remaining candidates, in their
        original order, fill the alternatives.

        Args:
            original: Source track
            candidates: Candidate tracks in search-rank order

        Returns:
            Match verdict; never raises for empty or poor candidate lists
        """
        candidates = list(candidates or [])
        if not candidates:
            return Match(original_track=original, note=NOT_FOUND_NOTE)

        best_index = 0
        best_score = -1.0
        for index, candidate in enumerate(candidates):
            candidate_score = self.score(original, candidate)
            if candidate_score > best_score:
                best_index = index
                best_score = candidate_score

        winner = candidates[best_index]
        alternatives = [
            c for i, c in enumerate(candidates)
            if i != best_index and c != winner
        ][:self.max_alternatives]

        best = ScoredCandidate(track=winner, confidence=best_score)
        status = Match(original_track=original, best_candidate=best).status
        return Match(
            original_track=original,
            best_candidate=best,
            alternative_tracks=tuple(alternatives),
            note=explain(status, winner),
        )

    def match_all(self,
                  original_tracks: Sequence[Track],
                  candidate_supplier: CandidateSupplier,
                  max_workers: int = 1,
                  timeout_seconds: Optional[float] = None) -> MatchBatch:
        """Match every track of a playlist, preserving input order.

        A supplier that raises (also while its result is being iterated) or
        does not answer within ``timeout_seconds`` marks only that track as
        not found.

        The timeout counts from the moment a search starts, not from when it
        was queued. A timed-out search is abandoned: its slot goes to the next
        queued track but its thread runs on until the supplier returns, and the
        interpreter waits for it at exit. Suppliers should therefore carry their
        own request timeout (the Spotify, YouTube and SoundCloud adapters do).

        Args:
            original_tracks: Source tracks in playlist order
            candidate_supplier: Callable returning candidates for one track
            max_workers: Number of searches running at once; 1 without a timeout runs inline
            timeout_seconds: Per-search time limit; forces the threaded path

        Returns:
            MatchBatch with exactly one Match per source track
        """
        tracks = list(original_tracks)
        if max_workers > 1 or timeout_seconds is not None:
            matches = self._match_on_workers(tracks, candidate_supplier, max(1, max_workers), timeout_seconds)
        else:
            matches = [self._match_one(i, t, candidate_supplier) for i, t in enumerate(tracks)]

        batch = MatchBatch(matches)
        log_with_fields(logger, 'INFO', 'Batch matching completed', batch.stats())
        return batch

    def _match_one(self, index: int, track: Track, candidate_supplier: CandidateSupplier) -> Match:
        try:
            candidates = list(candidate_supplier(track) or [])
        except Exception as e:
            return self._failed_match(index, track, e)
        return self.select_best(track, candidates)

    def _match_on_workers(self,
                          tracks: List[Track],
                          candidate_supplier: CandidateSupplier,
                          max_workers: int,
                          timeout_seconds: Optional[float]) -> List[Match]:
        if not tracks:
            return []

        slots = threading.BoundedSemaphore(max_workers)
        tasks = [_SearchTask(candidate_supplier, track, slots) for track in tracks]
        # With a timeout, an abandoned search keeps its thread, so every task gets one
        pool_size = len(tasks) if timeout_seconds is not None else min(max_workers, len(tasks))
        executor = ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix='linkport-search')
        try:
            pending = {
                executor.submit(contextvars.copy_context().run, task.run): index
                for index, task in enumerate(tasks)
            }
            results: Dict[int, Match] = {}
            while pending:
                done, _ = wait(pending, timeout=self._poll_interval(tasks, pending, timeout_seconds),
                               return_when=FIRST_COMPLETED)
                for future in done:
                    index = pending.pop(future)
                    try:
                        results[index] = self.select_best(tracks[index], future.result())
                    except Exception as e:
                        results[index] = self._failed_match(index, tracks[index], e)

                if timeout_seconds is None:
                    continue
                now = time.monotonic()
                for future, index in list(pending.items()):
                    if tasks[index].expired(now, timeout_seconds):
                        tasks[index].abandon()
                        future.cancel()
                        del pending[future]
                        error = FutureTimeoutError(f"No answer within {timeout_seconds}s")
                        results[index] = self._failed_match(index, tracks[index], error)
            # Reassemble by original index; completion order is irrelevant
            return [results[index] for index in range(len(tracks))]
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    def _poll_interval(tasks: List["_SearchTask"],
                       pending: Dict[Future, int],
                       timeout_seconds: Optional[float]) -> Optional[float]:
        if timeout_seconds is None:
            return None
        now = time.monotonic()
        remaining = []
        for index in pending.values():
            started_at = tasks[index].started_at
            if started_at is None:
                # Queued tasks may start at any moment
                remaining.append(_QUEUED_POLL_SECONDS)
            else:
                remaining.append(started_at + timeout_seconds - now)
        return max(0.0, min(remaining))

    def _failed_match(self, index: int, track: Track, error: BaseException) -> Match:
        error_type = 'Timeout' if isinstance(error, FutureTimeoutError) else type(error).__name__
        log_with_fields(logger, 'WARNING', f"Candidate search failed for '{track.title}'", {
            'track_index': index,
            'title': track.title,
            'artist': track.artist,
            'error_type': error_type,
            'error_message': str(error),
        })
        return Match(original_track=track, note=f"Search failed: {error_type}")

    def get_match_statistics(self, batch: MatchBatch) -> Dict[str, object]:
        """Detailed statistics, including which variants the partial matches are."""
        by_variant: Dict[str, int] = {}
        for match in batch:
            if match.status is MatchStatus.PARTIAL:
                kind = classify_variant(match.matched_track.title, match.matched_track.artist)
                by_variant[kind.value] = by_variant.get(kind.value, 0) + 1

        return {
            "total": batch.total,
            "matched": batch.matched,
            "partial": batch.partial,
            "not_found": batch.not_found,
            "match_rate": batch.match_rate,
            "by_variant": by_variant,
        }


_default_matcher = TrackMatcher()


def score(original: Track, candidate: Track) -> float:
    return _default_matcher.score(original, candidate)


def select_best(original: Track, candidates: Sequence[Track]) -> Match:
    return _default_matcher.select_best(original, candidates)


def match_all(original_tracks: Sequence[Track], candidate_supplier: CandidateSupplier) -> MatchBatch:
    return _default_matcher.match_all(original_tracks, candidate_supplier)

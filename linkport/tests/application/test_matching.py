import logging
import threading
import time
from typing import List
from unittest.mock import Mock

import pytest

from linkport.application import matching
from linkport.application.matching import TrackMatcher
from linkport.crosscutting.config import Settings
from linkport.crosscutting.logging import CorrelationContext, conversion_id_var
from linkport.domain.entities import MatchStatus, Track
from linkport.domain.errors import TemporaryFailure
from linkport.domain.normalization import MATCHED_NOTE, NOT_FOUND_NOTE


class TestScore:
    """Tests for candidate scoring."""

    def setup_method(self):
        self.matcher = TrackMatcher()

    def test_identical_track_scores_one(self):
        track = Track("As It Was", "Harry Styles")
        assert self.matcher.score(track, Track("As It Was", "Harry Styles", album="Harry's House")) == 1.0

    def test_title_weighs_more_than_artist(self):
        original = Track("Imagine", "John Lennon")
        title_only = self.matcher.score(original, Track("Imagine", "Someone Else Entirely"))
        artist_only = self.matcher.score(original, Track("Totally Different", "John Lennon"))
        assert title_only > artist_only

    def test_weighted_combination(self):
        original = Track("Stairway to Heaven", "Led Zeppelin")
        candidate = Track("Stairway to Heaven (Remaster)", "Led Zeppelin")
        expected = (1 - 11 / 29) * 0.7 + 1.0 * 0.3
        assert self.matcher.score(original, candidate) == pytest.approx(expected)

    def test_custom_weights(self):
        matcher = TrackMatcher(title_weight=0.5, artist_weight=0.5)
        score = matcher.score(Track("Imagine", "John Lennon"), Track("Imagine", ""))
        assert score == pytest.approx(0.5)

    def test_empty_fields_are_full_match(self):
        assert self.matcher.score(Track("", ""), Track("", "")) == 1.0

    def test_score_in_range(self):
        original = Track("A", "B")
        for candidate in [Track("", ""), Track("xyz", "uvw"), Track("A (Live)", "B")]:
            assert 0.0 <= self.matcher.score(original, candidate) <= 1.0

    @pytest.mark.parametrize("title_weight,artist_weight", [(0.6, 0.6), (-0.1, 1.1), (1.0, 0.1)])
    def test_invalid_weights_rejected(self, title_weight, artist_weight):
        with pytest.raises(ValueError):
            TrackMatcher(title_weight=title_weight, artist_weight=artist_weight)

    def test_from_settings(self):
        matcher = TrackMatcher.from_settings(Settings(title_weight=0.6, artist_weight=0.4, max_alternatives=1))
        assert matcher.title_weight == 0.6
        assert matcher.artist_weight == 0.4
        assert matcher.max_alternatives == 1


class TestSelectBest:
    """Tests for best-candidate selection."""

    def setup_method(self):
        self.matcher = TrackMatcher()

    def test_exact_match(self):
        original = Track("As It Was", "Harry Styles")
        candidate = Track("As It Was", "Harry Styles", album="Harry's House")

        match = self.matcher.select_best(original, [candidate])

        assert match.confidence == 1.0
        assert match.status is MatchStatus.MATCHED
        assert match.matched_track == candidate
        assert match.alternative_tracks == ()
        assert match.note == MATCHED_NOTE

    def test_remastered_version_is_partial(self):
        original = Track("Stairway to Heaven", "Led Zeppelin")
        candidate = Track("Stairway to Heaven (Remaster)", "Led Zeppelin")

        match = self.matcher.select_best(original, [candidate])

        assert 0.7 < match.confidence <= 0.9
        assert match.status is MatchStatus.PARTIAL
        assert match.matched_track == candidate
        assert match.note == "Found remastered version"

    def test_no_candidates_is_not_found(self):
        match = self.matcher.select_best(Track("X", "Y"), [])

        assert match.status is MatchStatus.NOT_FOUND
        assert match.matched_track is None
        assert match.confidence is None
        assert match.best_candidate is None
        assert match.note == NOT_FOUND_NOTE

    def test_none_candidates_is_not_found(self):
        assert self.matcher.select_best(Track("X", "Y"), None).status is MatchStatus.NOT_FOUND

    def test_highest_score_wins_regardless_of_position(self):
        original = Track("Imagine", "John Lennon")
        weaker = Track("Imagine (Live)", "John Lennon Tribute")
        stronger = Track("Imagine", "John Lennon")

        match = self.matcher.select_best(original, [weaker, stronger])

        assert match.matched_track == stronger
        assert match.alternative_tracks == (weaker,)

    def test_tie_goes_to_first_candidate(self):
        original = Track("Imagine", "John Lennon")
        first = Track("Imagine", "John Lennon", album="Imagine")
        second = Track("Imagine", "John Lennon", album="Gimme Some Truth")

        match = self.matcher.select_best(original, [first, second])

        assert match.matched_track == first
        assert match.alternative_tracks == (second,)

    def test_at_most_two_alternatives_in_original_order(self):
        original = Track("Song", "Artist")
        candidates = [
            Track("Song (Live)", "Artist"),
            Track("Song", "Artist"),
            Track("Song (Acoustic)", "Artist"),
            Track("Song (Remix)", "Artist"),
        ]

        match = self.matcher.select_best(original, candidates)

        assert match.matched_track == candidates[1]
        assert match.alternative_tracks == (candidates[0], candidates[2])

    def test_duplicate_of_winner_not_an_alternative(self):
        original = Track("Song", "Artist")
        winner = Track("Song", "Artist")
        other = Track("Song (Live)", "Artist")

        match = self.matcher.select_best(original, [winner, winner, other])

        assert match.matched_track == winner
        assert match.alternative_tracks == (other,)

    def test_low_confidence_candidate_retained_without_match(self):
        original = Track("Bohemian Rhapsody", "Queen")
        candidate = Track("Totally Unrelated", "Someone")

        match = self.matcher.select_best(original, [candidate])

        assert match.status is MatchStatus.NOT_FOUND
        assert match.matched_track is None
        assert match.confidence is None
        assert match.best_candidate.track == candidate
        assert match.best_candidate.confidence <= 0.7

    def test_max_alternatives_configurable(self):
        matcher = TrackMatcher(max_alternatives=0)
        match = matcher.select_best(Track("A", "B"), [Track("A", "B"), Track("A (Live)", "B")])
        assert match.alternative_tracks == ()


class TestMatchAll:
    """Tests for batch matching."""

    def setup_method(self):
        self.matcher = TrackMatcher()
        self.tracks = [
            Track("As It Was", "Harry Styles"),
            Track("Anti-Hero", "Taylor Swift"),
            Track("Flowers", "Miley Cyrus"),
        ]

    @staticmethod
    def _echo(track: Track) -> List[Track]:
        return [Track(track.title, track.artist, platform_ref=f"ref:{track.title}")]

    def test_one_match_per_track_in_order(self):
        batch = self.matcher.match_all(self.tracks, self._echo)

        assert len(batch) == 3
        assert [m.original_track for m in batch] == self.tracks
        assert batch.matched == 3

    def test_supplier_failure_only_affects_that_track(self):
        def supplier(track):
            if track.title == "Anti-Hero":
                raise TemporaryFailure("search backend unavailable")
            return self._echo(track)

        batch = self.matcher.match_all(self.tracks, supplier)
        matches = list(batch)

        assert len(matches) == 3
        assert matches[0].status is MatchStatus.MATCHED
        assert matches[1].status is MatchStatus.NOT_FOUND
        assert matches[1].note == "Search failed: TemporaryFailure"
        assert matches[2].status is MatchStatus.MATCHED
        assert batch.not_found >= 1

    def test_supplier_failure_is_logged(self, caplog):
        supplier = Mock(side_effect=[[], RuntimeError("boom"), []])
        caplog.set_level(logging.WARNING, logger='linkport.application.matching')

        self.matcher.match_all(self.tracks, supplier)

        records = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(records) == 1
        assert records[0].fields['track_index'] == 1
        assert records[0].fields['title'] == "Anti-Hero"
        assert records[0].fields['error_type'] == "RuntimeError"

    def test_supplier_called_once_per_track(self):
        supplier = Mock(return_value=[])
        self.matcher.match_all(self.tracks, supplier)
        assert supplier.call_count == 3

    def test_empty_playlist(self):
        batch = self.matcher.match_all([], self._echo)
        assert len(batch) == 0
        assert batch.stats()["totalSongs"] == 0

    def test_empty_playlist_on_workers(self):
        assert len(self.matcher.match_all([], self._echo, max_workers=4)) == 0

    @pytest.mark.timeout(10)
    def test_concurrent_order_matches_sequential(self):
        tracks = [Track(f"Song {i}", f"Artist {i}") for i in range(12)]

        def slow_supplier(track):
            # Later tracks finish first
            index = int(track.title.split()[1])
            time.sleep(0.01 * (12 - index))
            return self._echo(track)

        sequential = self.matcher.match_all(tracks, slow_supplier)
        concurrent = self.matcher.match_all(tracks, slow_supplier, max_workers=4)

        assert list(concurrent) == list(sequential)

    @pytest.mark.timeout(10)
    def test_concurrent_failure_isolated(self):
        def supplier(track):
            if track.title == "Flowers":
                raise ValueError("bad response")
            return self._echo(track)

        batch = self.matcher.match_all(self.tracks, supplier, max_workers=3)
        statuses = [m.status for m in batch]

        assert statuses == [MatchStatus.MATCHED, MatchStatus.MATCHED, MatchStatus.NOT_FOUND]
        assert list(batch)[2].note == "Search failed: ValueError"

    @pytest.mark.timeout(10)
    def test_slow_supplier_times_out(self):
        release = threading.Event()

        def supplier(track):
            if track.title == "Anti-Hero":
                release.wait(5)
            return self._echo(track)

        try:
            batch = self.matcher.match_all(self.tracks, supplier, max_workers=3, timeout_seconds=0.2)
        finally:
            release.set()
        matches = list(batch)

        assert matches[0].status is MatchStatus.MATCHED
        assert matches[1].status is MatchStatus.NOT_FOUND
        assert matches[1].note == "Search failed: Timeout"
        assert matches[2].status is MatchStatus.MATCHED

    @pytest.mark.timeout(10)
    def test_hung_search_does_not_starve_queued_tracks(self):
        release = threading.Event()

        def supplier(track):
            if track.title == "As It Was":
                release.wait(3)
            return self._echo(track)

        started = time.monotonic()
        try:
            batch = self.matcher.match_all(self.tracks, supplier, max_workers=1, timeout_seconds=0.2)
        finally:
            release.set()
        matches = list(batch)

        assert [m.status for m in matches] == [MatchStatus.NOT_FOUND, MatchStatus.MATCHED, MatchStatus.MATCHED]
        assert matches[0].note == "Search failed: Timeout"
        assert time.monotonic() - started < 2.5

    @pytest.mark.timeout(10)
    def test_timeout_keeps_concurrency_limit(self):
        lock = threading.Lock()
        running = []
        peak = []

        def supplier(track):
            with lock:
                running.append(track)
                peak.append(len(running))
            time.sleep(0.05)
            with lock:
                running.remove(track)
            return self._echo(track)

        batch = self.matcher.match_all(self.tracks, supplier, max_workers=1, timeout_seconds=1.0)

        assert batch.matched == 3
        assert max(peak) == 1

    def test_lazy_supplier_failure_only_affects_that_track(self):
        def supplier(track):
            if track.title == "Anti-Hero":
                raise TemporaryFailure("page 2 unavailable")
            yield from self._echo(track)

        batch = self.matcher.match_all(self.tracks, supplier)
        matches = list(batch)

        assert len(matches) == 3
        assert [m.status for m in matches] == [MatchStatus.MATCHED, MatchStatus.NOT_FOUND, MatchStatus.MATCHED]
        assert matches[1].note == "Search failed: TemporaryFailure"

    @pytest.mark.timeout(10)
    def test_lazy_supplier_failure_on_workers(self):
        def supplier(track):
            yield from self._echo(track)
            if track.title == "Flowers":
                raise TemporaryFailure("page 2 unavailable")

        batch = self.matcher.match_all(self.tracks, supplier, max_workers=2)

        assert [m.status for m in batch] == [MatchStatus.MATCHED, MatchStatus.MATCHED, MatchStatus.NOT_FOUND]

    @pytest.mark.timeout(10)
    def test_workers_see_correlation_context(self):
        seen = []

        def supplier(track):
            seen.append(conversion_id_var.get())
            return self._echo(track)

        with CorrelationContext(conversion_id='conv-42', stage='matching'):
            self.matcher.match_all(self.tracks, supplier, max_workers=3)

        assert seen == ['conv-42'] * 3


class TestMatchStatistics:

    def test_partial_matches_grouped_by_variant(self):
        matcher = TrackMatcher()
        tracks = [Track("Stairway to Heaven", "Led Zeppelin"), Track("Imagine", "John Lennon"), Track("X", "Y")]
        candidates = {
            "Stairway to Heaven": [Track("Stairway to Heaven (Remaster)", "Led Zeppelin")],
            "Imagine": [Track("Imagine", "John Lennon")],
            "X": [],
        }

        batch = matcher.match_all(tracks, lambda t: candidates[t.title])
        stats = matcher.get_match_statistics(batch)

        assert stats["total"] == 3
        assert stats["matched"] == 1
        assert stats["partial"] == 1
        assert stats["not_found"] == 1
        assert stats["match_rate"] == pytest.approx(2 / 3)
        assert stats["by_variant"] == {"remastered": 1}


class TestModuleFunctions:
    """Module-level helpers use the default weights."""

    def test_score(self):
        assert matching.score(Track("A", "B"), Track("A", "B")) == 1.0

    def test_select_best(self):
        assert matching.select_best(Track("A", "B"), []).status is MatchStatus.NOT_FOUND

    def test_match_all(self):
        batch = matching.match_all([Track("A", "B")], lambda t: [t])
        assert batch.matched == 1

import pytest

from linkport.domain.similarity import edit_distance, similarity


class TestEditDistance:
    """Tests for the Levenshtein distance primitive."""

    def test_classic_example(self):
        assert edit_distance("kitten", "sitting") == 3

    def test_identical_strings(self):
        assert edit_distance("Imagine", "Imagine") == 0

    def test_against_empty_string_is_length(self):
        assert edit_distance("", "abc") == 3
        assert edit_distance("abcd", "") == 4

    def test_case_sensitive(self):
        assert edit_distance("ABC", "abc") == 3


class TestSimilarity:
    """Tests for the normalized, case-insensitive similarity ratio."""

    def test_identical_strings_score_one(self):
        assert similarity("As It Was", "As It Was") == 1.0

    def test_case_is_ignored(self):
        assert similarity("HARRY STYLES", "harry styles") == 1.0

    def test_both_empty_is_full_match(self):
        assert similarity("", "") == 1.0

    def test_one_empty_scores_zero(self):
        assert similarity("", "Queen") == 0.0
        assert similarity("Queen", "") == 0.0

    def test_none_is_treated_as_empty(self):
        assert similarity(None, None) == 1.0
        assert similarity(None, "abc") == 0.0

    def test_ratio_uses_longer_length(self):
        assert similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)

    def test_symmetric(self):
        assert similarity("Stairway to Heaven", "Stairway to Heaven (Remaster)") == \
            similarity("Stairway to Heaven (Remaster)", "Stairway to Heaven")

    def test_suffix_lowers_score(self):
        score = similarity("Stairway to Heaven", "Stairway to Heaven (Remaster)")
        assert score == pytest.approx(1 - 11 / 29)
        assert 0.0 < score < 1.0

    def test_range(self):
        for a, b in [("a", "b"), ("abc", "xyz123"), ("Song", "Song (Live)")]:
            assert 0.0 <= similarity(a, b) <= 1.0

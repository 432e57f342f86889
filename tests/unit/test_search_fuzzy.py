"""Unit tests for fuzzy matching / typo correction."""

import pytest

from sci_docs_mcp.search.fuzzy import closest_term, get_max_edit_distance, levenshtein_distance


@pytest.mark.unit
class TestLevenshteinDistance:
    """Tests for levenshtein_distance function."""

    def test_identical_strings(self):
        assert levenshtein_distance("linspace", "linspace") == 0

    def test_empty_strings(self):
        assert levenshtein_distance("", "") == 0
        assert levenshtein_distance("fft", "") == 3
        assert levenshtein_distance("", "fft") == 3

    def test_single_edits(self):
        assert levenshtein_distance("zeros", "zeroes") == 1
        assert levenshtein_distance("zeroes", "zeros") == 1
        assert levenshtein_distance("array", "arrays") == 1

    def test_transposition_counts_two(self):
        assert levenshtein_distance("linspace", "linspcae") == 2

    def test_multiple_edits(self):
        assert levenshtein_distance("kitten", "sitting") == 3

    def test_max_distance_short_circuits(self):
        assert levenshtein_distance("abcdef", "uvwxyz", max_distance=1) == 2
        assert levenshtein_distance("a", "abcdef", max_distance=2) == 3


@pytest.mark.unit
class TestGetMaxEditDistance:
    def test_short_terms_exact_only(self):
        assert get_max_edit_distance(1) == 0
        assert get_max_edit_distance(3) == 0

    def test_medium_terms_one_edit(self):
        assert get_max_edit_distance(4) == 1
        assert get_max_edit_distance(6) == 1

    def test_long_terms_two_edits(self):
        assert get_max_edit_distance(7) == 2
        assert get_max_edit_distance(20) == 2


@pytest.mark.unit
class TestClosestTerm:
    def test_finds_closest(self):
        assert closest_term("lnspace", ["linspace", "logspace"]) == ("linspace", 1)

    def test_short_terms_never_fuzzy(self):
        assert closest_term("fft", ["fftn", "ifft"]) is None

    def test_outside_budget(self):
        assert closest_term("zeros", ["arange"]) is None

    def test_identical_term_is_skipped(self):
        assert closest_term("zeros", ["zeros"]) is None

    def test_ties_resolve_lexically(self):
        assert closest_term("cat", ["hat", "bat"], max_distance=1) == ("bat", 1)

    def test_empty_query(self):
        assert closest_term("", ["array"]) is None

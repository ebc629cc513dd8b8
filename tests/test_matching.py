"""Tests for name similarity and confidence tiers."""

import pytest

from kabala.matching import MatchTier, compute_similarity, confidence_tier, normalize, should_save_alias
from kabala.matching.policy import fuzzy_confidence
from kabala.models import MatchedItem


class TestNormalize:
    def test_lowercase_and_trim(self):
        assert normalize("  Coca  COLA ") == "coca cola"

    def test_collapses_tabs_and_newlines(self):
        assert normalize("חלב\t תנובה\n") == "חלב תנובה"


class TestComputeSimilarity:
    def test_identical(self):
        assert compute_similarity("במבה", "במבה") == 1.0

    def test_empty(self):
        assert compute_similarity("", "במבה") == 0.0
        assert compute_similarity("במבה", "") == 0.0

    def test_candidate_contained_in_query(self):
        score = compute_similarity("במבה פריכיות", "במבה")
        assert score == pytest.approx(0.6 + 0.3 * 4 / 12)

    def test_query_contained_in_candidate(self):
        score = compute_similarity("במבה", "במבה פריכיות")
        assert score == pytest.approx(0.5 + 0.3 * 4 / 12)

    def test_containment_prefers_shorter_candidate(self):
        """A candidate inside the query scores above one that wraps it."""
        assert compute_similarity("במבה פריכיות", "במבה") > compute_similarity(
            "במבה", "במבה פריכיות"
        )

    def test_reordered_words(self):
        assert compute_similarity("חלב תנובה", "תנובה חלב") == pytest.approx(0.8)

    def test_partial_word_overlap(self):
        assert compute_similarity("חלב תנובה", "חלב טרה") == pytest.approx(0.4)

    def test_overlap_counts_against_shorter_name(self):
        score = compute_similarity("גבינה לבנה", "לבנה 5% תנובה גבינה רכה")
        assert score == pytest.approx(0.8)

    def test_single_letter_words_ignored(self):
        assert compute_similarity("a b", "c d") == 0.0

    def test_no_overlap(self):
        assert compute_similarity("עגבניות", "לחם אחיד") == 0.0

    def test_score_bounds(self):
        pairs = [("x y", "y z"), ("abc", "abcd"), ("שמן זית", "שמן קנולה")]
        for a, b in pairs:
            assert 0.0 <= compute_similarity(a, b) <= 1.0


class TestFuzzyConfidence:
    def test_scaled_to_eighty(self):
        assert fuzzy_confidence(1.0) == 80

    def test_rounds_half_up(self):
        assert fuzzy_confidence(0.03125) == 3  # 2.5

    def test_suggested_example(self):
        assert fuzzy_confidence(0.7) == 56


class TestConfidenceTier:
    def test_confirmed_needs_flag_and_confidence(self):
        item = MatchedItem("x", "X", confidence=100, is_confirmed=True)
        assert confidence_tier(item) is MatchTier.CONFIRMED

    def test_unconfirmed_alias_is_suggested(self):
        item = MatchedItem("x", "X", confidence=90, is_confirmed=False)
        assert confidence_tier(item) is MatchTier.SUGGESTED

    def test_suggested_lower_bound(self):
        assert confidence_tier(MatchedItem("x", "X", confidence=50)) is MatchTier.SUGGESTED
        assert confidence_tier(MatchedItem("x", "X", confidence=49)) is MatchTier.NO_MATCH

    def test_no_name_is_no_match(self):
        assert confidence_tier(MatchedItem("x", None, confidence=80)) is MatchTier.NO_MATCH


class TestShouldSaveAlias:
    def test_saves_confident_mapping(self):
        assert should_save_alias(MatchedItem("x", "X", confidence=56))

    def test_skips_low_confidence(self):
        assert not should_save_alias(MatchedItem("x", "X", confidence=39))

    def test_skips_unmatched(self):
        assert not should_save_alias(MatchedItem("x", None, confidence=100))

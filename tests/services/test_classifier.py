"""Tests for match tier classification."""
import pytest
from pydantic import ValidationError

from facematch.domain.value_objects.matching import ComparisonOutcome, MatchThresholds, MatchTier
from facematch.services.classifier import classify, classify_similarity


@pytest.fixture
def thresholds():
    return MatchThresholds(weak=0.6, strong=0.8)


@pytest.mark.parametrize(
    "similarity, expected",
    [
        (0.0, MatchTier.NONE),
        (0.59, MatchTier.NONE),
        (0.6, MatchTier.WEAK),
        (0.79, MatchTier.WEAK),
        (0.8, MatchTier.STRONG),
        (1.0, MatchTier.STRONG),
    ],
)
def test_tier_boundaries_are_inclusive(thresholds, similarity, expected):
    outcome = ComparisonOutcome(photo_id="p", similarity=similarity)
    assert classify(outcome, thresholds) is expected


def test_failed_outcome_is_never_a_match(thresholds):
    outcome = ComparisonOutcome.failure("p", "ImageFetchError: timed out")
    assert classify(outcome, thresholds) is MatchTier.NONE


def test_classification_is_monotonic(thresholds):
    scores = [i / 100 for i in range(101)]
    ranks = [classify_similarity(s, thresholds).rank for s in scores]
    assert ranks == sorted(ranks)


def test_classification_is_repeatable(thresholds):
    outcome = ComparisonOutcome(photo_id="p", similarity=0.7)
    assert {classify(outcome, thresholds) for _ in range(5)} == {MatchTier.WEAK}


def test_custom_thresholds():
    thresholds = MatchThresholds(weak=0.5, strong=0.9)
    assert classify_similarity(0.55, thresholds) is MatchTier.WEAK
    assert classify_similarity(0.85, thresholds) is MatchTier.WEAK
    assert classify_similarity(0.9, thresholds) is MatchTier.STRONG


def test_equal_thresholds_skip_weak_tier():
    thresholds = MatchThresholds(weak=0.7, strong=0.7)
    assert classify_similarity(0.69, thresholds) is MatchTier.NONE
    assert classify_similarity(0.7, thresholds) is MatchTier.STRONG


def test_non_monotonic_thresholds_are_rejected():
    with pytest.raises(ValidationError):
        MatchThresholds(weak=0.8, strong=0.6)


def test_thresholds_must_be_in_unit_range():
    with pytest.raises(ValidationError):
        MatchThresholds(weak=-0.1, strong=0.8)
    with pytest.raises(ValidationError):
        MatchThresholds(weak=0.6, strong=1.5)


def test_tier_ordering():
    assert MatchTier.NONE.rank < MatchTier.WEAK.rank < MatchTier.STRONG.rank
    assert not MatchTier.NONE.is_match
    assert MatchTier.WEAK.is_match and MatchTier.STRONG.is_match

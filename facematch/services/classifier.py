"""Map comparison outcomes onto match tiers."""
from typing import Optional

from facematch.domain.value_objects.matching import ComparisonOutcome, MatchThresholds, MatchTier


def classify_similarity(similarity: Optional[float], thresholds: MatchThresholds) -> MatchTier:
    """Classify a raw similarity score. Both thresholds are inclusive."""
    if similarity is None or similarity < thresholds.weak:
        return MatchTier.NONE
    if similarity < thresholds.strong:
        return MatchTier.WEAK
    return MatchTier.STRONG


def classify(outcome: ComparisonOutcome, thresholds: MatchThresholds) -> MatchTier:
    """Classify a comparison outcome; failed comparisons are always ``none``."""
    if outcome.failed:
        return MatchTier.NONE
    return classify_similarity(outcome.similarity, thresholds)

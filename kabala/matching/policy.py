"""Confidence thresholds for identity resolution and the UI tiers they drive."""

from __future__ import annotations

import enum
import math
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..models import MatchedItem

# Similarity (0..1)
MIN_CANDIDATE_SIMILARITY = 0.3  # below this a candidate is discarded
MIN_ACCEPT_SIMILARITY = 0.4  # best candidate must reach this to be suggested
PERSONAL_GOOD_ENOUGH = 0.5  # skip the global catalog above this
GLOBAL_SCORE_FACTOR = 0.7
IMAGE_BONUS = 0.1
WORD_OVERLAP_FACTOR = 0.8
MAX_CANDIDATES = 5
GLOBAL_SAMPLE_LIMIT = 500

# Confidence (0..100)
FUZZY_CONFIDENCE_SCALE = 80  # fuzzy matches never reach the confirmed tier
CONFIRMED_ALIAS_CONFIDENCE = 100
UNCONFIRMED_ALIAS_CONFIDENCE = 90
CONFIRMED_TIER_MIN = 90
SUGGESTED_TIER_MIN = 50
ALIAS_SAVE_MIN = 50
USER_CONFIRMED_CONFIDENCE = 100


class MatchTier(str, enum.Enum):
    CONFIRMED = "confirmed"
    SUGGESTED = "suggested"
    NO_MATCH = "no_match"


def fuzzy_confidence(score: float) -> int:
    """Map a similarity score to confidence, rounding halves up."""
    return int(math.floor(score * FUZZY_CONFIDENCE_SCALE + 0.5))


def confidence_tier(item: MatchedItem) -> MatchTier:
    if item.confidence >= CONFIRMED_TIER_MIN and item.is_confirmed:
        return MatchTier.CONFIRMED
    if item.matched_canonical_name and item.confidence >= SUGGESTED_TIER_MIN:
        return MatchTier.SUGGESTED
    return MatchTier.NO_MATCH


def should_save_alias(item: MatchedItem) -> bool:
    return bool(item.matched_canonical_name) and item.confidence >= ALIAS_SAVE_MIN

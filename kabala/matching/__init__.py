"""Item identity resolution: aliases, fuzzy matching, confidence tiers."""

from .policy import MatchTier, confidence_tier, should_save_alias
from .resolver import AliasStore, Candidate, CatalogStore, ItemResolver
from .similarity import compute_similarity, normalize

__all__ = [
    "AliasStore",
    "Candidate",
    "CatalogStore",
    "ItemResolver",
    "MatchTier",
    "compute_similarity",
    "confidence_tier",
    "normalize",
    "should_save_alias",
]

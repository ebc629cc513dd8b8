"""Resolve receipt item names to per-owner canonical identities."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Protocol

from ..models import CatalogItem, ItemAlias, MatchedItem, ParsedItem
from .policy import (
    CONFIRMED_ALIAS_CONFIDENCE,
    GLOBAL_SAMPLE_LIMIT,
    GLOBAL_SCORE_FACTOR,
    IMAGE_BONUS,
    MAX_CANDIDATES,
    MIN_ACCEPT_SIMILARITY,
    MIN_CANDIDATE_SIMILARITY,
    PERSONAL_GOOD_ENOUGH,
    UNCONFIRMED_ALIAS_CONFIDENCE,
    fuzzy_confidence,
)
from .similarity import compute_similarity, normalize

logger = logging.getLogger(__name__)


class AliasStore(Protocol):
    def find_alias_exact(self, owner_id: str, alias_name: str) -> ItemAlias | None: ...

    def list_aliases(self, owner_id: str) -> list[ItemAlias]: ...

    def upsert_alias(
        self,
        owner_id: str,
        alias_name: str,
        canonical_name: str,
        store_name: str | None = None,
    ) -> None: ...


class CatalogStore(Protocol):
    def personal_items(self, owner_id: str) -> list[CatalogItem]: ...

    def global_catalog_sample(self, limit: int) -> list[CatalogItem]: ...


@dataclass(frozen=True)
class Candidate:
    canonical_name: str
    similarity: float
    image_url: str | None = None


class _CatalogView:
    """Per-call cache so each catalog is read at most once per batch."""

    def __init__(self, catalog: CatalogStore, owner_id: str, sample_limit: int) -> None:
        self._catalog = catalog
        self._owner_id = owner_id
        self._sample_limit = sample_limit
        self._personal: list[CatalogItem] | None = None
        self._global: list[CatalogItem] | None = None

    @property
    def personal(self) -> list[CatalogItem]:
        if self._personal is None:
            self._personal = self._catalog.personal_items(self._owner_id)
        return self._personal

    @property
    def global_sample(self) -> list[CatalogItem]:
        if self._global is None:
            self._global = self._catalog.global_catalog_sample(self._sample_limit)
        return self._global

    def image_for(self, canonical_name: str) -> str | None:
        key = normalize(canonical_name)
        for item in self.personal:
            if item.image_url and normalize(item.name) == key:
                return item.image_url
        return None


class ItemResolver:
    """Alias lookup, then fuzzy matching against personal then global items."""

    def __init__(
        self,
        aliases: AliasStore,
        catalog: CatalogStore,
        global_sample_limit: int = GLOBAL_SAMPLE_LIMIT,
    ) -> None:
        self._aliases = aliases
        self._catalog = catalog
        self._global_sample_limit = global_sample_limit

    def match_items(
        self,
        owner_id: str,
        items: Iterable[ParsedItem],
        store_name: str | None = None,
    ) -> list[MatchedItem]:
        """Resolve each item; the result is parallel to ``items``.

        ``store_name`` is recorded for logging only: aliases are shared
        across stores.
        """
        view = self._view(owner_id)
        results = [self._match_one(owner_id, item, view) for item in items]
        logger.debug(
            "Matched %d items for %s (store=%s): %d resolved",
            len(results),
            owner_id,
            store_name,
            sum(1 for r in results if r.matched_canonical_name),
        )
        return results

    def find_candidates(
        self, owner_id: str, name: str, limit: int = MAX_CANDIDATES
    ) -> list[Candidate]:
        return self._candidates(name, self._view(owner_id), limit)

    def suggest(self, owner_id: str, query: str, limit: int = MAX_CANDIDATES) -> list[str]:
        """Canonical names ranked by similarity, for picking a replacement."""
        return [c.canonical_name for c in self.find_candidates(owner_id, query, limit)]

    def resolve_display_names(
        self, owner_id: str, names: Iterable[str]
    ) -> dict[str, str]:
        """Map raw purchase names to canonical names where one is known."""
        by_alias = {
            normalize(a.alias_name): a.canonical_name
            for a in self._aliases.list_aliases(owner_id)
        }
        by_personal = {
            normalize(p.name): p.name for p in self._catalog.personal_items(owner_id)
        }

        resolved: dict[str, str] = {}
        for name in names:
            key = normalize(name)
            if key in by_alias:
                resolved[name] = by_alias[key]
            elif key in by_personal:
                resolved[name] = by_personal[key]
        return resolved

    def unmatched_names(self, owner_id: str, names: Iterable[str]) -> list[str]:
        """Distinct names that neither an alias nor a personal item covers."""
        known = {normalize(a.alias_name) for a in self._aliases.list_aliases(owner_id)}
        known.update(normalize(p.name) for p in self._catalog.personal_items(owner_id))

        unmatched = {
            name.strip()
            for name in names
            if name and name.strip() and normalize(name) not in known
        }
        return sorted(unmatched)

    def _view(self, owner_id: str) -> _CatalogView:
        return _CatalogView(self._catalog, owner_id, self._global_sample_limit)

    def _match_one(
        self, owner_id: str, item: ParsedItem, view: _CatalogView
    ) -> MatchedItem:
        base = MatchedItem(
            original_name=item.name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total_price=item.total_price,
        )
        if not item.name or not item.name.strip():
            return base

        alias = self._aliases.find_alias_exact(owner_id, item.name)
        if alias is not None:
            return MatchedItem(
                original_name=item.name,
                matched_canonical_name=alias.canonical_name,
                confidence=(
                    CONFIRMED_ALIAS_CONFIDENCE
                    if alias.confirmed
                    else UNCONFIRMED_ALIAS_CONFIDENCE
                ),
                is_confirmed=alias.confirmed,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=item.total_price,
                matched_image_url=view.image_for(alias.canonical_name),
            )

        candidates = self._candidates(item.name, view, MAX_CANDIDATES)
        if candidates and candidates[0].similarity >= MIN_ACCEPT_SIMILARITY:
            best = candidates[0]
            return MatchedItem(
                original_name=item.name,
                matched_canonical_name=best.canonical_name,
                confidence=fuzzy_confidence(best.similarity),
                is_confirmed=False,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=item.total_price,
                matched_image_url=best.image_url,
            )

        return base

    @staticmethod
    def _candidates(name: str, view: _CatalogView, limit: int) -> list[Candidate]:
        query = normalize(name)
        if len(query) < 2:
            return []

        seen: set[str] = set()
        results: list[Candidate] = []

        for item in view.personal:
            key = normalize(item.name)
            if not key or key in seen:
                continue
            seen.add(key)
            score = compute_similarity(query, key)
            if score >= MIN_CANDIDATE_SIMILARITY:
                if item.image_url:
                    score = min(score + IMAGE_BONUS, 1.0)
                results.append(Candidate(item.name, score, item.image_url))

        results.sort(key=lambda c: c.similarity, reverse=True)
        if results and results[0].similarity >= PERSONAL_GOOD_ENOUGH:
            return results[:limit]

        for item in view.global_sample:
            key = normalize(item.name)
            if not key or key in seen:
                continue
            seen.add(key)
            score = compute_similarity(query, key)
            if score >= MIN_CANDIDATE_SIMILARITY:
                results.append(
                    Candidate(item.name, score * GLOBAL_SCORE_FACTOR, item.image_url)
                )

        results.sort(key=lambda c: c.similarity, reverse=True)
        return results[:limit]

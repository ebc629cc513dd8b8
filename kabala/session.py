"""Receipt import session: parse, match, confirm, save, learn.

Steps run ``input -> matching -> parsed -> saving``. While parsed, each
matched item can be approved, rejected or changed; saving stores the
purchase record and records every sufficiently confident mapping as an
alias, so the same raw name resolves directly next time.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
from typing import Iterable, Protocol

from .matching.policy import (
    USER_CONFIRMED_CONFIDENCE,
    MatchTier,
    confidence_tier,
    should_save_alias,
)
from .matching.resolver import AliasStore, ItemResolver
from .models import MatchedItem, ParsedItem, ParsedReceipt, SaveResult
from .pipeline import ParseResult, ReceiptPipeline

logger = logging.getLogger(__name__)


class ImportStep(str, enum.Enum):
    INPUT = "input"
    MATCHING = "matching"
    PARSED = "parsed"
    SAVING = "saving"


class ItemState(str, enum.Enum):
    UNCONFIRMED = "unconfirmed"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    CHANGED = "changed"


class PurchaseStore(Protocol):
    def create_purchase_record(
        self, owner_id: str, items: Iterable[ParsedItem], **kwargs
    ) -> int: ...

    def record_prices(
        self, owner_id: str, items: Iterable[ParsedItem], **kwargs
    ) -> int: ...


class ReceiptImportSession:
    """State for importing one receipt on behalf of one owner."""

    def __init__(
        self,
        owner_id: str,
        pipeline: ReceiptPipeline,
        resolver: ItemResolver,
        aliases: AliasStore,
        purchases: PurchaseStore,
        list_id: str | None = None,
    ) -> None:
        self._owner_id = owner_id
        self._pipeline = pipeline
        self._resolver = resolver
        self._aliases = aliases
        self._purchases = purchases
        self._list_id = list_id
        self.reset()

    def reset(self) -> None:
        self.step = ImportStep.INPUT
        self.parse_result: ParseResult | None = None
        self.matched: list[MatchedItem] = []
        self.states: list[ItemState] = []
        self.raw_text: str | None = None
        self.source = "copy_paste"

    @property
    def receipt(self) -> ParsedReceipt:
        if self.parse_result is None:
            return ParsedReceipt.empty()
        return self.parse_result.receipt

    async def load_text(self, raw_text: str, source: str = "copy_paste") -> ParseResult:
        self._require(ImportStep.INPUT)
        self.raw_text = raw_text
        self.source = source
        result = await self._pipeline.parse_text(raw_text)
        self._apply(result)
        return result

    async def load_document(
        self, data: bytes, mime_type: str, source: str = "photo_ocr"
    ) -> ParseResult:
        self._require(ImportStep.INPUT)
        self.source = source
        result = await self._pipeline.parse_document(data, mime_type)
        self._apply(result)
        return result

    def _apply(self, result: ParseResult) -> None:
        self.parse_result = result
        if result.needs_manual_entry:
            logger.info("No items found in receipt; manual entry needed")
            self.step = ImportStep.PARSED
            return

        self.step = ImportStep.MATCHING
        items = result.receipt.items
        try:
            self.matched = self._resolver.match_items(
                self._owner_id, items, result.receipt.store_name
            )
        except Exception:
            logger.exception("Item matching failed; leaving items unmatched")
            self.matched = [
                MatchedItem(
                    original_name=i.name,
                    quantity=i.quantity,
                    unit_price=i.unit_price,
                    total_price=i.total_price,
                )
                for i in items
            ]
        self.states = [
            ItemState.CONFIRMED if m.is_confirmed else ItemState.UNCONFIRMED
            for m in self.matched
        ]
        self.step = ImportStep.PARSED

    # -- Per-item actions ---------------------------------------------------

    def approve(self, index: int) -> MatchedItem:
        """Accept the suggested canonical name as is.

        Raises:
            ValueError: If the item has no suggestion to accept.
        """
        self._require(ImportStep.PARSED)
        current = self.matched[index]
        if not current.matched_canonical_name:
            raise ValueError(
                f"No suggested name to approve for {current.original_name!r}"
            )
        item = dataclasses.replace(
            current,
            is_confirmed=True,
            confidence=USER_CONFIRMED_CONFIDENCE,
        )
        return self._set(index, item, ItemState.CONFIRMED)

    def reject(self, index: int) -> MatchedItem:
        self._require(ImportStep.PARSED)
        item = dataclasses.replace(
            self.matched[index],
            matched_canonical_name=None,
            matched_image_url=None,
            confidence=0,
            is_confirmed=False,
        )
        return self._set(index, item, ItemState.REJECTED)

    def change(self, index: int, canonical_name: str) -> MatchedItem:
        """Override the canonical name; the user's choice counts as confirmed."""
        self._require(ImportStep.PARSED)
        if not canonical_name or not canonical_name.strip():
            raise ValueError("Canonical name cannot be empty")
        item = dataclasses.replace(
            self.matched[index],
            matched_canonical_name=canonical_name.strip(),
            matched_image_url=None,
            confidence=USER_CONFIRMED_CONFIDENCE,
            is_confirmed=True,
        )
        return self._set(index, item, ItemState.CHANGED)

    def tier(self, index: int) -> MatchTier:
        return confidence_tier(self.matched[index])

    def _set(self, index: int, item: MatchedItem, state: ItemState) -> MatchedItem:
        self.matched[index] = item
        self.states[index] = state
        return item

    # -- Saving -------------------------------------------------------------

    def save(self) -> SaveResult:
        """Store the purchase, then learn aliases and record prices.

        A failure to store the purchase record is raised and the session
        returns to the parsed step. Alias and price failures are logged
        and reported but never undo the saved record.
        """
        self._require(ImportStep.PARSED)
        self.step = ImportStep.SAVING
        receipt = self.receipt
        final_items = self._final_items()

        try:
            record_id = self._purchases.create_purchase_record(
                self._owner_id,
                final_items,
                store_name=receipt.store_name,
                purchase_date=receipt.purchase_date,
                total_amount=receipt.total_amount,
                source=self.source,
                list_id=self._list_id,
                raw_text=self.raw_text,
            )
        except Exception:
            self.step = ImportStep.PARSED
            raise

        result = SaveResult(record_id=record_id)
        for item in self.matched:
            if not should_save_alias(item):
                continue
            try:
                self._aliases.upsert_alias(
                    self._owner_id,
                    item.original_name,
                    item.matched_canonical_name,
                    receipt.store_name,
                )
                result.aliases_saved += 1
            except Exception:
                logger.exception("Failed to save alias for %r", item.original_name)
                result.alias_failures.append(item.original_name)

        try:
            result.prices_recorded = self._purchases.record_prices(
                self._owner_id,
                final_items,
                store_name=receipt.store_name,
                purchase_date=receipt.purchase_date,
                purchase_record_id=record_id,
            )
        except Exception:
            logger.exception("Failed to record prices for purchase %d", record_id)

        logger.info(
            "Saved purchase %d: %d items, %d aliases",
            record_id,
            len(final_items),
            result.aliases_saved,
        )
        self.reset()
        return result

    def _final_items(self) -> list[ParsedItem]:
        if not self.matched:
            return list(self.receipt.items)
        return [
            ParsedItem(
                name=m.matched_canonical_name or m.original_name,
                quantity=m.quantity,
                unit_price=m.unit_price,
                total_price=m.total_price,
            )
            for m in self.matched
        ]

    def _require(self, step: ImportStep) -> None:
        if self.step is not step:
            raise RuntimeError(
                f"Session is in step {self.step.value!r}, expected {step.value!r}"
            )

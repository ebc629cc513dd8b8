"""Deterministic receipt parser based on ordered pattern tables."""

from __future__ import annotations

import logging

from ..models import ParsedItem, ParsedReceipt
from .rules import DEFAULT_RULES, DMY_DATE, ISO_DATE, PROMOTION_HEADER, ReceiptRules, parse_number

logger = logging.getLogger(__name__)


class StructuralParser:
    """Extracts store, date, items and total from raw receipt text.

    Never raises: anything it cannot recognize comes back as None or an
    empty item list, which callers treat as "needs manual entry".
    """

    def __init__(self, rules: ReceiptRules = DEFAULT_RULES) -> None:
        self._rules = rules

    def parse(self, raw_text: str) -> ParsedReceipt:
        text = raw_text or ""
        lines = text.splitlines()

        items: list[ParsedItem] = []
        for line in lines:
            if self._should_skip(line):
                continue
            item = self.parse_item_line(line)
            if item is not None:
                items.append(item)

        receipt = ParsedReceipt(
            store_name=self.detect_store(text),
            purchase_date=self.extract_date(lines),
            items=tuple(items),
            total_amount=self.extract_total(lines),
        )
        logger.debug(
            "Structural parse: store=%s date=%s items=%d total=%s",
            receipt.store_name,
            receipt.purchase_date,
            len(receipt.items),
            receipt.total_amount,
        )
        return receipt

    def detect_store(self, text: str) -> str | None:
        for pattern, name in self._rules.store_patterns:
            if pattern.search(text):
                return name
        return None

    @staticmethod
    def extract_date(lines: list[str]) -> str | None:
        """Return the first valid date as YYYY-MM-DD, scanning top-down."""
        for line in lines:
            m = ISO_DATE.search(line)
            if m:
                year, month, day = m.groups()
                if _valid_day(month, day):
                    return f"{year}-{month.zfill(2)}-{day.zfill(2)}"
            m = DMY_DATE.search(line)
            if m:
                day, month, year = m.groups()
                if len(year) == 2:
                    year = f"20{year}"
                if _valid_day(month, day):
                    return f"{year}-{month.zfill(2)}-{day.zfill(2)}"
        return None

    def extract_total(self, lines: list[str]) -> float | None:
        """Return the lowest labelled total on the receipt."""
        for line in reversed(lines):
            for pattern in self._rules.total_patterns:
                m = pattern.search(line)
                if m is None:
                    continue
                value = parse_number(m.group(1))
                if value is not None and value > 0:
                    return value
        return None

    def parse_item_line(self, line: str) -> ParsedItem | None:
        """Try each line shape in order; the first one that fits wins."""
        trimmed = line.strip()
        if not trimmed or self._is_discount(trimmed):
            return None
        for shape in self._rules.item_line_shapes:
            item = shape(trimmed)
            if item is not None:
                return item
        return None

    def _should_skip(self, line: str) -> bool:
        trimmed = line.strip()
        if not trimmed:
            return True
        if any(p.search(trimmed) for p in self._rules.skip_patterns):
            return True
        # Totals are extracted separately
        return any(p.search(trimmed) for p in self._rules.total_patterns)

    def _is_discount(self, line: str) -> bool:
        if any(p.search(line) for p in self._rules.discount_patterns):
            return True
        return bool(PROMOTION_HEADER.search(line)) and not any(
            c.isdigit() for c in line
        )


def _valid_day(month: str, day: str) -> bool:
    return 1 <= int(month) <= 12 and 1 <= int(day) <= 31


_default_parser = StructuralParser()


def parse_receipt(raw_text: str, rules: ReceiptRules | None = None) -> ParsedReceipt:
    """Parse receipt text with the default (or the given) rule set."""
    if rules is None:
        return _default_parser.parse(raw_text)
    return StructuralParser(rules).parse(raw_text)

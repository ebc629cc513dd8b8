"""Pattern tables for the structural receipt parser.

Every table is ordered: the first entry that matches wins. The tables are
bundled into an immutable :class:`ReceiptRules` value so a parser can be
built with a different rule set (for another chain's layout, or in tests).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

from ..models import ParsedItem

_NUMBER_PREFIX = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)")


def parse_number(text: str | None) -> float | None:
    """Read the leading number of ``text``, ignoring thousands commas.

    Returns None when the text doesn't start with a number.
    """
    if not text:
        return None
    m = _NUMBER_PREFIX.match(text.strip().replace(",", ""))
    if m is None:
        return None
    return float(m.group(0))


# Common Israeli chains. Order is priority.
STORE_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"שופרסל", re.I), "שופרסל"),
    (re.compile(r"shufersal", re.I), "שופרסל"),
    (re.compile(r"רמי\s*לוי", re.I), "רמי לוי"),
    (re.compile(r"rami\s*levy", re.I), "רמי לוי"),
    (re.compile(r"יוחננוף", re.I), "יוחננוף"),
    (re.compile(r"מגא", re.I), "מגא"),
    (re.compile(r"ויקטורי", re.I), "ויקטורי"),
    (re.compile(r"victory", re.I), "ויקטורי"),
    (re.compile(r"חצי\s*חינם", re.I), "חצי חינם"),
    (re.compile(r"אושר\s*עד", re.I), "אושר עד"),
    (re.compile(r"osher\s*ad", re.I), "אושר עד"),
    (re.compile(r"טיב\s*טעם", re.I), "טיב טעם"),
    (re.compile(r"tiv\s*taam", re.I), "טיב טעם"),
    (re.compile(r"יינות\s*ביתן", re.I), "יינות ביתן"),
    (re.compile(r"זול\s*ו?בגדול", re.I), "זול ובגדול"),
    (re.compile(r"am[:\s]*pm", re.I), "AM:PM"),
    (re.compile(r"קרפור", re.I), "קרפור"),
)

# Headers, footers and payment lines. Matched against the stripped line.
SKIP_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^[-=_*]+$"),  # separators
    re.compile(r"מע[\"״]מ"),  # VAT
    re.compile(r"עוסק\s*מורשה"),
    re.compile(r"ח\.?פ\.?\s*\d"),  # company registration
    re.compile(r"טלפון|טל[:.]|פקס"),
    re.compile(r"כתובת|רחוב"),
    re.compile(r"סניף"),
    re.compile(r"קופ[הא]"),
    re.compile(r"מזומן|אשראי|ויזה|מסטרקארד|ישראכרט|visa|mastercard", re.I),
    re.compile(r"שינוי|החזר"),  # change / refund
    re.compile(r"תודה|thank", re.I),
    re.compile(r"^\d{2}[/:]\d{2}[/:]\d{2}\s*$"),  # HH:MM:SS
)

# Group 1 is the amount.
TOTAL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"סה[\"״]?כ\s*(?:לתשלום|כולל|הכל)?[:\s]*([0-9,.]+)"),
    re.compile(r"סכום\s*(?:לתשלום|כולל)?[:\s]*([0-9,.]+)"),
    re.compile(r"לתשלום[:\s]*([0-9,.]+)"),
    re.compile(r"total[:\s]*([0-9,.]+)", re.I),
)

DISCOUNT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"הנחה|הנח[הת]|discount", re.I),
)

# "מבצע" (promotion) alone is a header; with digits it can be a real item.
PROMOTION_HEADER = re.compile(r"מבצע", re.I)

ISO_DATE = re.compile(r"(\d{4})-(\d{1,2})-(\d{1,2})")
DMY_DATE = re.compile(r"(\d{1,2})[/.](\d{1,2})[/.](\d{4}|\d{2})")


# -- Item line shapes -------------------------------------------------------

_WEIGHT_LINE = re.compile(
    r"^(.+?)\s+([\d.]+)\s*(?:ק[\"״]ג|קג|kg)\s*[xX×*]\s*([\d.]+)\s+([\d.]+)\s*$"
)
_COUNT_LINE = re.compile(r"^(.+?)\s+(\d+)\s*[xX×*]\s*([\d.]+)\s+([\d.]+)\s*$")
_THREE_NUMBERS_LINE = re.compile(r"^(.+?)\s+(\d+)\s+([\d.]+)\s+([\d.]+)\s*$")
_TRAILING_PRICE_LINE = re.compile(r"^(.+?)\s{2,}([\d,.]+)\s*$")


def weight_line(line: str) -> ParsedItem | None:
    """``name 0.450 ק"ג X 7.90 3.56``: quantity is the weight in kg."""
    m = _WEIGHT_LINE.match(line)
    if m is None:
        return None
    name, qty, unit, total = m.groups()
    quantity = parse_number(qty)
    total_price = parse_number(total)
    if quantity is None or total_price is None or not name.strip():
        return None
    return ParsedItem(
        name=name.strip(),
        quantity=quantity,
        unit_price=parse_number(unit),
        total_price=total_price,
    )


def count_line(line: str) -> ParsedItem | None:
    """``name 2 X 5.90 11.80``"""
    m = _COUNT_LINE.match(line)
    if m is None:
        return None
    name, qty, unit, total = m.groups()
    total_price = parse_number(total)
    if total_price is None or not name.strip():
        return None
    return ParsedItem(
        name=name.strip(),
        quantity=int(qty),
        unit_price=parse_number(unit),
        total_price=total_price,
    )


def three_numbers_line(line: str) -> ParsedItem | None:
    """``name 2 5.90 11.80``, only for plausible counts (1..99)."""
    m = _THREE_NUMBERS_LINE.match(line)
    if m is None:
        return None
    name, qty, unit, total = m.groups()
    quantity = int(qty)
    total_price = parse_number(total)
    if not 1 <= quantity < 100 or total_price is None or not name.strip():
        return None
    return ParsedItem(
        name=name.strip(),
        quantity=quantity,
        unit_price=parse_number(unit),
        total_price=total_price,
    )


def trailing_price_line(line: str) -> ParsedItem | None:
    """``name    6.90``: a single unit separated by a wide gap."""
    m = _TRAILING_PRICE_LINE.match(line)
    if m is None:
        return None
    name, raw_price = m.groups()
    price = parse_number(raw_price)
    name = name.strip()
    if price is None or not 0 < price < 10000 or len(name) <= 1:
        return None
    return ParsedItem(name=name, quantity=1, unit_price=price, total_price=price)


def tab_delimited_line(line: str) -> ParsedItem | None:
    """``name<TAB>qty<TAB>price`` as copied from online orders.

    With a quantity column the unit price is derived as price / qty and
    rounded to 2 decimal places (agorot).
    """
    fields = [f.strip() for f in line.split("\t") if f.strip()]
    if len(fields) < 2:
        return None
    name = fields[0]
    price = parse_number(fields[-1])
    if price is None or price <= 0 or len(name) <= 1:
        return None

    quantity: float = 1
    unit_price = price
    if len(fields) >= 3:
        qty = parse_number(fields[-2])
        if qty is not None and 0 < qty < 100:
            quantity = qty
            unit_price = round(price / qty, 2)
    return ParsedItem(
        name=name, quantity=quantity, unit_price=unit_price, total_price=price
    )


LineShape = Callable[[str], "ParsedItem | None"]

ITEM_LINE_SHAPES: tuple[LineShape, ...] = (
    weight_line,
    count_line,
    three_numbers_line,
    trailing_price_line,
    tab_delimited_line,
)


@dataclass(frozen=True)
class ReceiptRules:
    """The ordered pattern tables used by :class:`StructuralParser`."""

    store_patterns: tuple[tuple[re.Pattern[str], str], ...] = STORE_PATTERNS
    skip_patterns: tuple[re.Pattern[str], ...] = SKIP_PATTERNS
    total_patterns: tuple[re.Pattern[str], ...] = TOTAL_PATTERNS
    discount_patterns: tuple[re.Pattern[str], ...] = DISCOUNT_PATTERNS
    item_line_shapes: tuple[LineShape, ...] = ITEM_LINE_SHAPES


DEFAULT_RULES = ReceiptRules()

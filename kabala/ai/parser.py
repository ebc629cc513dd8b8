"""AI-assisted receipt parsing: prompt, response cleanup, and coercion."""

from __future__ import annotations

import asyncio
import enum
import json
import logging
import math
import re
from dataclasses import dataclass

from ..models import ParsedItem, ParsedReceipt
from . import GenerativeBackend, InlineData

logger = logging.getLogger(__name__)

RECEIPT_PROMPT = """\
You are a Hebrew supermarket receipt parser. You receive either raw text or a visual document (PDF/image) from an Israeli supermarket receipt or online grocery order, and extract structured data.

Return ONLY valid JSON with this exact structure (no markdown, no explanation, no code fences):
{
  "storeName": "store name or null",
  "purchaseDate": "YYYY-MM-DD or null",
  "items": [
    {
      "name": "item name in Hebrew",
      "quantity": 1,
      "unitPrice": 5.90,
      "totalPrice": 5.90
    }
  ],
  "totalAmount": 123.45
}

Rules:
- Extract ONLY actual purchased grocery/food/household products
- For weight items (e.g. "0.532 ק"ג X 12.90"), use the weight as quantity and the price per kg as unitPrice
- Ignore discount lines (הנחה), but if a discount applies to a specific item, subtract it from that item's totalPrice
- Ignore VAT (מע"מ), payment method lines, change lines
- Store name: look for known chains (שופרסל, רמי לוי, יוחננוף, ויקטורי, מגא, חצי חינם, אושר עד, טיב טעם, יינות ביתן) or any store name at the top
- Date: purchase date in YYYY-MM-DD format (Israeli dates are usually DD/MM/YYYY)
- totalAmount: the final amount paid (סה"כ לתשלום / סכום לתשלום)
- If a field cannot be determined, use null
- Always return valid JSON, nothing else"""

DOCUMENT_RULES = """

CRITICAL - Ignore all of the following (these are NOT items):
- Delivery addresses, street names, apartment/floor info, city names, zip codes
- Phone numbers, email addresses, customer names
- Order numbers, transaction IDs, reference numbers
- Branch info, cashier info, register numbers
- Headers, footers, logos, barcodes
- Delivery time slots, shipping details
- Terms and conditions, return policy text"""

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*\n?", re.I)
_FENCE_CLOSE = re.compile(r"\n?```\s*$")


class FallbackReason(str, enum.Enum):
    """Why the AI stage produced no receipt."""

    MISSING_CREDENTIALS = "missing_credentials"
    REQUEST_FAILED = "request_failed"
    TIMEOUT = "timeout"
    EMPTY_RESPONSE = "empty_response"
    INVALID_JSON = "invalid_json"


@dataclass(frozen=True)
class AIParseOutcome:
    """Result of one AI attempt: a receipt, or the reason there is none."""

    receipt: ParsedReceipt | None = None
    reason: FallbackReason | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.receipt is not None


class AIReceiptParser:
    """Single-attempt receipt extraction through a generative backend.

    No retries: a failed attempt is reported back immediately so the
    caller can fall back.
    """

    def __init__(
        self,
        backend: GenerativeBackend,
        timeout: float = 30.0,
        max_output_tokens: int = 4096,
        multimodal_max_output_tokens: int = 8192,
    ) -> None:
        self._backend = backend
        self._timeout = timeout
        self._max_output_tokens = max_output_tokens
        self._multimodal_max_output_tokens = multimodal_max_output_tokens

    async def parse_text(self, raw_text: str) -> AIParseOutcome:
        parts = [RECEIPT_PROMPT, f"Here is the receipt text to parse:\n\n{raw_text}"]
        return await self._attempt(parts, self._max_output_tokens)

    async def parse_document(self, data: bytes, mime_type: str) -> AIParseOutcome:
        parts = [
            RECEIPT_PROMPT + DOCUMENT_RULES,
            InlineData(mime_type=mime_type, data=data),
        ]
        return await self._attempt(parts, self._multimodal_max_output_tokens)

    async def _attempt(self, parts: list, max_output_tokens: int) -> AIParseOutcome:
        if not self._backend.is_configured:
            return AIParseOutcome(reason=FallbackReason.MISSING_CREDENTIALS)

        try:
            text = await asyncio.wait_for(
                self._backend.generate(parts, max_output_tokens),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("AI receipt request timed out after %.1fs", self._timeout)
            return AIParseOutcome(
                reason=FallbackReason.TIMEOUT,
                detail=f"no response within {self._timeout:g}s",
            )
        except Exception as e:
            logger.warning("AI receipt request failed: %s", e)
            return AIParseOutcome(reason=FallbackReason.REQUEST_FAILED, detail=str(e))

        if not text or not text.strip():
            logger.warning("AI receipt response contained no text")
            return AIParseOutcome(reason=FallbackReason.EMPTY_RESPONSE)

        try:
            data = json.loads(clean_json_response(text))
        except (ValueError, RecursionError) as e:
            # Also covers digit-limit and nesting-depth failures
            logger.warning("AI receipt response is not valid JSON: %s", e)
            return AIParseOutcome(reason=FallbackReason.INVALID_JSON, detail=str(e))
        if not isinstance(data, dict):
            logger.warning("AI receipt response is not a JSON object")
            return AIParseOutcome(
                reason=FallbackReason.INVALID_JSON,
                detail=f"expected an object, got {type(data).__name__}",
            )

        return AIParseOutcome(receipt=coerce_receipt(data))


def clean_json_response(text: str) -> str:
    """Strip optional markdown code fences around a JSON payload."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_OPEN.sub("", cleaned)
        cleaned = _FENCE_CLOSE.sub("", cleaned)
    return cleaned.strip()


def coerce_receipt(data: dict) -> ParsedReceipt:
    """Build a ParsedReceipt from untrusted model output.

    Each field is type-checked on its own; wrong types become None (or the
    default quantity of 1) and items without a name are dropped.
    """
    items: list[ParsedItem] = []
    raw_items = data.get("items")
    if isinstance(raw_items, list):
        for raw in raw_items:
            if not isinstance(raw, dict):
                continue
            name = raw.get("name")
            if not isinstance(name, str) or not name.strip():
                continue
            quantity = _number(raw.get("quantity"))
            items.append(
                ParsedItem(
                    name=name.strip(),
                    quantity=quantity if quantity is not None else 1,
                    unit_price=_number(raw.get("unitPrice")),
                    total_price=_number(raw.get("totalPrice")),
                )
            )

    return ParsedReceipt(
        store_name=_string(data.get("storeName")),
        purchase_date=_string(data.get("purchaseDate")),
        items=tuple(items),
        total_amount=_number(data.get("totalAmount")),
    )


def _number(value) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        if not math.isfinite(value):
            return None
    except OverflowError:
        return None
    return value


def _string(value) -> str | None:
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()

"""Tests for AI receipt extraction and response coercion."""

import json

import pytest

from kabala.ai import InlineData
from kabala.ai.parser import (
    DOCUMENT_RULES,
    RECEIPT_PROMPT,
    AIReceiptParser,
    FallbackReason,
    clean_json_response,
    coerce_receipt,
)
from kabala.models import ParsedItem

GOOD_RESPONSE = json.dumps({
    "storeName": "רמי לוי",
    "purchaseDate": "2024-05-01",
    "items": [
        {"name": "חלב", "quantity": 2, "unitPrice": 6.9, "totalPrice": 13.8},
        {"name": "לחם", "quantity": 1, "unitPrice": 8.5, "totalPrice": 8.5},
    ],
    "totalAmount": 22.3,
}, ensure_ascii=False)


class TestCleanJsonResponse:
    def test_plain_json_untouched(self):
        assert clean_json_response('{"a": 1}') == '{"a": 1}'

    def test_json_fence(self):
        assert clean_json_response('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence(self):
        assert clean_json_response('```\n{"a": 1}\n```\n') == '{"a": 1}'


class TestCoerceReceipt:
    def test_full_receipt(self):
        receipt = coerce_receipt(json.loads(GOOD_RESPONSE))
        assert receipt.store_name == "רמי לוי"
        assert receipt.purchase_date == "2024-05-01"
        assert receipt.total_amount == 22.3
        assert receipt.items[0] == ParsedItem("חלב", 2, 6.9, 13.8)

    def test_wrong_types_become_none(self):
        receipt = coerce_receipt({
            "storeName": 42,
            "purchaseDate": "",
            "totalAmount": "22.30",
            "items": "not a list",
        })
        assert receipt.store_name is None
        assert receipt.purchase_date is None
        assert receipt.total_amount is None
        assert receipt.items == ()

    def test_items_without_name_dropped(self):
        receipt = coerce_receipt({
            "items": [
                {"name": "", "totalPrice": 1},
                {"totalPrice": 2},
                "garbage",
                {"name": "  ביצים  ", "totalPrice": 12},
            ]
        })
        assert [i.name for i in receipt.items] == ["ביצים"]

    def test_quantity_defaults_to_one(self):
        receipt = coerce_receipt({"items": [{"name": "במבה", "quantity": None}]})
        assert receipt.items[0].quantity == 1
        assert receipt.items[0].unit_price is None

    def test_booleans_are_not_numbers(self):
        receipt = coerce_receipt({"items": [{"name": "x", "quantity": True}]})
        assert receipt.items[0].quantity == 1

    def test_empty_object(self):
        receipt = coerce_receipt({})
        assert receipt.items == ()
        assert receipt.store_name is None


class TestAIReceiptParser:
    @pytest.mark.asyncio
    async def test_parse_text_success(self, make_backend):
        backend = make_backend(response=GOOD_RESPONSE)
        parser = AIReceiptParser(backend, max_output_tokens=1000)

        outcome = await parser.parse_text("raw receipt")

        assert outcome.ok
        assert len(outcome.receipt.items) == 2
        parts, max_tokens = backend.calls[0]
        assert parts[0] == RECEIPT_PROMPT
        assert parts[1].endswith("raw receipt")
        assert max_tokens == 1000

    @pytest.mark.asyncio
    async def test_parse_text_with_fences(self, make_backend):
        backend = make_backend(response=f"```json\n{GOOD_RESPONSE}\n```")
        outcome = await AIReceiptParser(backend).parse_text("x")
        assert outcome.ok
        assert outcome.receipt.store_name == "רמי לוי"

    @pytest.mark.asyncio
    async def test_parse_document_uses_multimodal_budget(self, make_backend):
        backend = make_backend(response=GOOD_RESPONSE)
        parser = AIReceiptParser(backend, multimodal_max_output_tokens=9000)

        outcome = await parser.parse_document(b"%PDF", "application/pdf")

        assert outcome.ok
        parts, max_tokens = backend.calls[0]
        assert parts[0].endswith(DOCUMENT_RULES)
        assert parts[1] == InlineData("application/pdf", b"%PDF")
        assert max_tokens == 9000

    @pytest.mark.asyncio
    async def test_missing_credentials(self, make_backend):
        backend = make_backend(response=GOOD_RESPONSE, configured=False)
        outcome = await AIReceiptParser(backend).parse_text("x")
        assert not outcome.ok
        assert outcome.reason is FallbackReason.MISSING_CREDENTIALS
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_request_failed(self, make_backend):
        backend = make_backend(error=RuntimeError("503 overloaded"))
        outcome = await AIReceiptParser(backend).parse_text("x")
        assert outcome.reason is FallbackReason.REQUEST_FAILED
        assert "503" in outcome.detail

    @pytest.mark.asyncio
    async def test_timeout(self, make_backend):
        backend = make_backend(response=GOOD_RESPONSE, delay=1.0)
        outcome = await AIReceiptParser(backend, timeout=0.01).parse_text("x")
        assert outcome.reason is FallbackReason.TIMEOUT

    @pytest.mark.asyncio
    async def test_empty_response(self, make_backend):
        outcome = await AIReceiptParser(make_backend(response="  ")).parse_text("x")
        assert outcome.reason is FallbackReason.EMPTY_RESPONSE

    @pytest.mark.asyncio
    async def test_invalid_json(self, make_backend):
        backend = make_backend(response="Sorry, I can't read this receipt.")
        outcome = await AIReceiptParser(backend).parse_text("x")
        assert outcome.reason is FallbackReason.INVALID_JSON

    @pytest.mark.asyncio
    async def test_non_object_json(self, make_backend):
        outcome = await AIReceiptParser(make_backend(response="[1, 2]")).parse_text("x")
        assert outcome.reason is FallbackReason.INVALID_JSON
        assert "list" in outcome.detail

    @pytest.mark.asyncio
    async def test_zero_items_is_still_success(self, make_backend):
        backend = make_backend(response='{"items": []}')
        outcome = await AIReceiptParser(backend).parse_text("x")
        assert outcome.ok
        assert outcome.receipt.items == ()


class TestMalformedNumbers:
    @pytest.mark.asyncio
    async def test_huge_integers_become_none(self, make_backend):
        huge = "9" * 400
        backend = make_backend(
            response=f'{{"totalAmount": {huge}, "items": [{{"name": "חלב", "quantity": {huge}}}]}}'
        )

        outcome = await AIReceiptParser(backend).parse_text("x")

        assert outcome.ok
        assert outcome.receipt.total_amount is None
        assert outcome.receipt.items[0].quantity == 1

    def test_coerce_overflowing_price(self):
        receipt = coerce_receipt({"items": [{"name": "x", "unitPrice": 10 ** 400}]})
        assert receipt.items[0].unit_price is None

    @pytest.mark.asyncio
    async def test_integer_over_digit_limit(self, make_backend):
        """Rejected by json on interpreters with a digit limit, dropped otherwise."""
        backend = make_backend(response='{"totalAmount": ' + "9" * 5000 + "}")

        outcome = await AIReceiptParser(backend).parse_text("x")

        if outcome.ok:
            assert outcome.receipt.total_amount is None
        else:
            assert outcome.reason is FallbackReason.INVALID_JSON

    @pytest.mark.asyncio
    async def test_deeply_nested_json(self, make_backend):
        backend = make_backend(response="[" * 100000 + "]" * 100000)

        outcome = await AIReceiptParser(backend).parse_text("x")

        assert outcome.reason is FallbackReason.INVALID_JSON

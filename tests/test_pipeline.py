"""Tests for the AI-then-structural parse pipeline."""

import json

import pytest

from kabala.acquire import ReceiptSource
from kabala.ai.parser import AIReceiptParser, FallbackReason
from kabala.config import load_config
from kabala.pipeline import ParserUsed, ReceiptPipeline

RECEIPT_TEXT = "שופרסל\nחלב תנובה    6.90\nסה\"כ 6.90"

AI_RESPONSE = json.dumps({
    "storeName": "שופרסל",
    "purchaseDate": None,
    "items": [{"name": "חלב תנובה 3%", "quantity": 1, "totalPrice": 6.9}],
    "totalAmount": 6.9,
}, ensure_ascii=False)


def _pipeline(backend, **kwargs):
    return ReceiptPipeline(ai_parser=AIReceiptParser(backend, **kwargs))


class TestParseText:
    @pytest.mark.asyncio
    async def test_ai_success(self, make_backend):
        result = await _pipeline(make_backend(response=AI_RESPONSE)).parse_text(
            RECEIPT_TEXT
        )
        assert result.parser_used is ParserUsed.AI
        assert result.fallback_reason is None
        assert result.receipt.items[0].name == "חלב תנובה 3%"

    @pytest.mark.asyncio
    async def test_no_ai_parser_falls_back(self):
        result = await ReceiptPipeline().parse_text(RECEIPT_TEXT)
        assert result.parser_used is ParserUsed.STRUCTURAL
        assert result.fallback_reason is FallbackReason.MISSING_CREDENTIALS
        assert result.receipt.store_name == "שופרסל"
        assert [i.name for i in result.receipt.items] == ["חלב תנובה"]

    @pytest.mark.asyncio
    async def test_request_failure_falls_back(self, make_backend):
        backend = make_backend(error=ConnectionError("boom"))
        result = await _pipeline(backend).parse_text(RECEIPT_TEXT)
        assert result.parser_used is ParserUsed.STRUCTURAL
        assert result.fallback_reason is FallbackReason.REQUEST_FAILED
        assert result.receipt.total_amount == 6.9

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self, make_backend):
        backend = make_backend(response=AI_RESPONSE, delay=1.0)
        result = await _pipeline(backend, timeout=0.01).parse_text(RECEIPT_TEXT)
        assert result.parser_used is ParserUsed.STRUCTURAL
        assert result.fallback_reason is FallbackReason.TIMEOUT

    @pytest.mark.asyncio
    async def test_invalid_json_falls_back(self, make_backend):
        result = await _pipeline(make_backend(response="nope")).parse_text(RECEIPT_TEXT)
        assert result.parser_used is ParserUsed.STRUCTURAL
        assert result.fallback_reason is FallbackReason.INVALID_JSON

    @pytest.mark.asyncio
    async def test_deeply_nested_response_falls_back(self, make_backend):
        backend = make_backend(response="[" * 100000 + "]" * 100000)
        result = await _pipeline(backend).parse_text(RECEIPT_TEXT)
        assert result.parser_used is ParserUsed.STRUCTURAL
        assert result.fallback_reason is FallbackReason.INVALID_JSON
        assert result.receipt.items[0].name == "חלב תנובה"

    @pytest.mark.asyncio
    async def test_oversized_number_never_raises(self, make_backend):
        backend = make_backend(response='{"totalAmount": ' + "9" * 5000 + "}")
        result = await _pipeline(backend).parse_text(RECEIPT_TEXT)
        assert result.receipt.total_amount in (None, 6.9)

    @pytest.mark.asyncio
    async def test_single_attempt_only(self, make_backend):
        backend = make_backend(error=RuntimeError("fail"))
        await _pipeline(backend).parse_text(RECEIPT_TEXT)
        assert len(backend.calls) == 1

    @pytest.mark.asyncio
    async def test_unrecognized_text_needs_manual_entry(self):
        result = await ReceiptPipeline().parse_text("hello world")
        assert result.needs_manual_entry


class TestParseDocument:
    @pytest.mark.asyncio
    async def test_document_success(self, make_backend):
        result = await _pipeline(make_backend(response=AI_RESPONSE)).parse_document(
            b"\xff\xd8", "image/jpeg"
        )
        assert result.parser_used is ParserUsed.AI
        assert len(result.receipt.items) == 1

    @pytest.mark.asyncio
    async def test_document_failure_is_empty(self, make_backend):
        backend = make_backend(error=RuntimeError("fail"))
        result = await _pipeline(backend).parse_document(b"\xff\xd8", "image/jpeg")
        assert result.parser_used is ParserUsed.VISION_FAILED
        assert result.fallback_reason is FallbackReason.REQUEST_FAILED
        assert result.receipt.items == ()
        assert result.receipt.store_name is None
        assert result.needs_manual_entry

    @pytest.mark.asyncio
    async def test_document_without_ai(self):
        result = await ReceiptPipeline().parse_document(b"png", "image/png")
        assert result.parser_used is ParserUsed.VISION_FAILED
        assert result.fallback_reason is FallbackReason.MISSING_CREDENTIALS


class TestParseSource:
    @pytest.mark.asyncio
    async def test_text_source(self):
        result = await ReceiptPipeline().parse_source(ReceiptSource.from_text(RECEIPT_TEXT))
        assert result.parser_used is ParserUsed.STRUCTURAL

    @pytest.mark.asyncio
    async def test_binary_source(self, make_backend):
        source = ReceiptSource(mime_type="image/png", data=b"png", origin="photo_ocr")
        result = await _pipeline(make_backend(response=AI_RESPONSE)).parse_source(source)
        assert result.parser_used is ParserUsed.AI


class TestParseResult:
    @pytest.mark.asyncio
    async def test_to_dict_reports_parser(self):
        result = await ReceiptPipeline().parse_text(RECEIPT_TEXT)
        data = result.to_dict()
        assert data["parserUsed"] == "regex"
        assert data["parserError"] == "missing_credentials"
        assert data["storeName"] == "שופרסל"
        assert data["items"][0]["totalPrice"] == 6.9

    @pytest.mark.asyncio
    async def test_to_dict_without_error(self, make_backend):
        result = await _pipeline(make_backend(response=AI_RESPONSE)).parse_text("x")
        assert "parserError" not in result.to_dict()


def test_from_config_builds_ai_stage(monkeypatch):
    monkeypatch.setenv("GOOGLE_GEMINI_API_KEY", "k")
    pipeline = ReceiptPipeline.from_config(load_config())
    assert pipeline._ai is not None

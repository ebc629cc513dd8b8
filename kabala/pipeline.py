"""Two-stage receipt parsing: AI first, deterministic parser as safety net."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .ai.parser import AIParseOutcome, AIReceiptParser, FallbackReason
from .models import ParsedReceipt
from .parser import StructuralParser

if TYPE_CHECKING:
    from .acquire import ReceiptSource
    from .config import KabalaConfig

logger = logging.getLogger(__name__)


class ParserUsed(str, enum.Enum):
    AI = "ai"
    STRUCTURAL = "regex"
    VISION_FAILED = "vision_failed"


@dataclass(frozen=True)
class ParseResult:
    receipt: ParsedReceipt
    parser_used: ParserUsed
    fallback_reason: FallbackReason | None = None
    detail: str = ""

    @property
    def needs_manual_entry(self) -> bool:
        return not self.receipt.items

    def to_dict(self) -> dict:
        data = self.receipt.to_dict()
        data["parserUsed"] = self.parser_used.value
        if self.fallback_reason is not None:
            data["parserError"] = self.detail or self.fallback_reason.value
        return data


class ReceiptPipeline:
    """Parse entry point. Never raises for unrecognized input or AI failures."""

    def __init__(
        self,
        ai_parser: AIReceiptParser | None = None,
        structural: StructuralParser | None = None,
    ) -> None:
        self._ai = ai_parser
        self._structural = structural or StructuralParser()

    @classmethod
    def from_config(cls, config: KabalaConfig) -> ReceiptPipeline:
        from .ai import create_backend

        ai_parser = AIReceiptParser(
            create_backend(config),
            timeout=config.ai.timeout,
            max_output_tokens=config.ai.max_output_tokens,
            multimodal_max_output_tokens=config.ai.multimodal_max_output_tokens,
        )
        return cls(ai_parser=ai_parser)

    async def parse_text(self, raw_text: str) -> ParseResult:
        outcome = await self._try_ai_text(raw_text)
        if outcome.ok:
            return ParseResult(receipt=outcome.receipt, parser_used=ParserUsed.AI)

        logger.info(
            "Falling back to structural parser (%s)", outcome.reason.value
        )
        return ParseResult(
            receipt=self._structural.parse(raw_text),
            parser_used=ParserUsed.STRUCTURAL,
            fallback_reason=outcome.reason,
            detail=outcome.detail,
        )

    async def parse_document(self, data: bytes, mime_type: str) -> ParseResult:
        """Parse an image or PDF. Images can't be pattern-parsed, so a
        failed attempt yields an empty receipt for manual entry."""
        if self._ai is None:
            outcome = AIParseOutcome(reason=FallbackReason.MISSING_CREDENTIALS)
        else:
            outcome = await self._ai.parse_document(data, mime_type)
        if outcome.ok:
            return ParseResult(receipt=outcome.receipt, parser_used=ParserUsed.AI)

        logger.warning("Document parse failed (%s)", outcome.reason.value)
        return ParseResult(
            receipt=ParsedReceipt.empty(),
            parser_used=ParserUsed.VISION_FAILED,
            fallback_reason=outcome.reason,
            detail=outcome.detail,
        )

    async def parse_source(self, source: ReceiptSource) -> ParseResult:
        if source.text is not None:
            return await self.parse_text(source.text)
        return await self.parse_document(source.data or b"", source.mime_type)

    async def _try_ai_text(self, raw_text: str) -> AIParseOutcome:
        if self._ai is None:
            return AIParseOutcome(reason=FallbackReason.MISSING_CREDENTIALS)
        return await self._ai.parse_text(raw_text)

"""Israeli supermarket receipt parsing and item identity resolution."""

from .acquire import ReceiptSource, read_receipt
from .config import AIConfig, DatabaseConfig, KabalaConfig, MatchingConfig, load_config
from .matching import ItemResolver, MatchTier, compute_similarity, confidence_tier
from .models import (
    CatalogItem,
    ItemAlias,
    MatchedItem,
    ParsedItem,
    ParsedReceipt,
    PersonalItem,
    SaveResult,
)
from .parser import ReceiptRules, StructuralParser, parse_receipt
from .pipeline import ParseResult, ParserUsed, ReceiptPipeline
from .session import ImportStep, ItemState, ReceiptImportSession

__all__ = [
    "ParsedItem",
    "ParsedReceipt",
    "ItemAlias",
    "CatalogItem",
    "PersonalItem",
    "MatchedItem",
    "SaveResult",
    "StructuralParser",
    "ReceiptRules",
    "parse_receipt",
    "ReceiptPipeline",
    "ParseResult",
    "ParserUsed",
    "ItemResolver",
    "MatchTier",
    "compute_similarity",
    "confidence_tier",
    "ReceiptImportSession",
    "ImportStep",
    "ItemState",
    "ReceiptSource",
    "read_receipt",
    "KabalaConfig",
    "AIConfig",
    "DatabaseConfig",
    "MatchingConfig",
    "load_config",
]

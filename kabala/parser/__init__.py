"""Deterministic (pattern-based) receipt parsing."""

from .rules import DEFAULT_RULES, ReceiptRules, parse_number
from .structural import StructuralParser, parse_receipt

__all__ = [
    "DEFAULT_RULES",
    "ReceiptRules",
    "StructuralParser",
    "parse_number",
    "parse_receipt",
]

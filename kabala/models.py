"""Data models for parsed receipts and resolved item identities."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ParsedItem:
    """A single purchased line extracted from a receipt."""

    name: str
    quantity: float = 1
    unit_price: float | None = None
    total_price: float | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "quantity": self.quantity,
            "unitPrice": self.unit_price,
            "totalPrice": self.total_price,
        }


@dataclass(frozen=True)
class ParsedReceipt:
    """Structured result of one parse call. Every field may be empty."""

    store_name: str | None = None
    purchase_date: str | None = None  # YYYY-MM-DD
    items: tuple[ParsedItem, ...] = ()
    total_amount: float | None = None

    @classmethod
    def empty(cls) -> ParsedReceipt:
        return cls()

    def to_dict(self) -> dict:
        return {
            "storeName": self.store_name,
            "purchaseDate": self.purchase_date,
            "items": [item.to_dict() for item in self.items],
            "totalAmount": self.total_amount,
        }


@dataclass(frozen=True)
class ItemAlias:
    """A raw receipt string known to refer to a canonical name."""

    id: int
    owner_id: str
    canonical_name: str
    alias_name: str
    store_name: str | None = None
    confirmed: bool = True
    created_at: str = ""


@dataclass(frozen=True)
class CatalogItem:
    """A canonical name with an optional image.

    Personal items come from the owner's own list history, global items
    from the shared catalog.
    """

    name: str
    image_url: str | None = None


PersonalItem = CatalogItem


@dataclass(frozen=True)
class MatchedItem:
    """Identity resolution for one ParsedItem."""

    original_name: str
    matched_canonical_name: str | None = None
    confidence: int = 0  # 0..100
    is_confirmed: bool = False
    quantity: float = 1
    unit_price: float | None = None
    total_price: float | None = None
    matched_image_url: str | None = None

    def to_dict(self) -> dict:
        return {
            "originalName": self.original_name,
            "matchedCanonicalName": self.matched_canonical_name,
            "matchedImageUrl": self.matched_image_url,
            "confidence": self.confidence,
            "isConfirmed": self.is_confirmed,
            "quantity": self.quantity,
            "unitPrice": self.unit_price,
            "totalPrice": self.total_price,
        }


@dataclass
class SaveResult:
    """Outcome of saving a confirmed receipt."""

    record_id: int
    aliases_saved: int = 0
    alias_failures: list[str] = field(default_factory=list)
    prices_recorded: int = 0

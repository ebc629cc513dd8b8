"""SQLite storage for aliases, catalogs and purchase records."""

from .aliases import AliasDB
from .catalog import CatalogDB
from .purchases import PurchaseDB
from .schema import ensure_schema

__all__ = [
    "AliasDB",
    "CatalogDB",
    "PurchaseDB",
    "ensure_schema",
]

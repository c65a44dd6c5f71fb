"""Database layer for CardVerse."""

from cardverse.db.connection import close_connection, get_connection, get_db_path
from cardverse.db.models import (
    CatalogRepository,
    DeckRepository,
    InventoryRepository,
    SettingsRepository,
)
from cardverse.db.schema import SCHEMA_VERSION, init_db

__all__ = [
    "get_db_path",
    "get_connection",
    "close_connection",
    "init_db",
    "SCHEMA_VERSION",
    "CatalogRepository",
    "InventoryRepository",
    "DeckRepository",
    "SettingsRepository",
]

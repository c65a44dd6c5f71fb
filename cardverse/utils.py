"""Shared utilities for CardVerse."""

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

# WUBRG order used for colour identity strings ("WU", "BRG", ...)
COLOR_ORDER = "WUBRG"

DEFAULT_USER = "local"

# Flag values read as "yes" in CSV cells and foreign finish columns
TRUTHY_VALUES = ("foil", "etched", "yes", "y", "true", "t", "1", "x")


def get_cardverse_home() -> Path:
    """Return the CardVerse home directory (CARDVERSE_HOME env or ~/.cardverse)."""
    if "CARDVERSE_HOME" in os.environ:
        return Path(os.environ["CARDVERSE_HOME"])
    return Path.home() / ".cardverse"


def get_user_id(override: Optional[str] = None) -> str:
    """Return the user that owns inventory rows and decks.

    Priority: explicit override, CARDVERSE_USER env, "local".
    """
    if override:
        return override
    return os.environ.get("CARDVERSE_USER") or DEFAULT_USER


def now_iso() -> str:
    """Return current time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_json_array(value: Optional[str]) -> list:
    """Parse a JSON array string, returning empty list for None/empty."""
    if not value:
        return []
    try:
        return json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return []


def to_json_array(value: Optional[list]) -> Optional[str]:
    """Convert a list to JSON string, returning None for empty/None."""
    if not value:
        return None
    return json.dumps(value)


def parse_bool(value) -> bool:
    """Interpret CSV/DB flag values ("foil", "yes", 1, ...) as a bool."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in TRUTHY_VALUES


def color_identity_string(colors: Iterable[str]) -> str:
    """Order a collection of colour letters as a WUBRG string.

    Non-WUBRG values (e.g. "Colorless") are dropped.
    """
    present = {c.upper() for c in colors if c}
    return "".join(c for c in COLOR_ORDER if c in present)


def format_box(title: str, width: int = 50) -> str:
    """Format a box title for CLI output."""
    return f"{'=' * width}\n{title.center(width)}\n{'=' * width}"


# Deck/inventory grouping: first type-line match wins, so artifact creatures
# land in Creature and enchantment artifacts in Enchantment.
CATEGORY_ORDER = [
    "Creature",
    "Instant",
    "Sorcery",
    "Enchantment",
    "Artifact",
    "Planeswalker",
    "Land",
]
OTHER_CATEGORY = "Other"


def primary_category(type_line: Optional[str]) -> str:
    """Return the display category for a type line."""
    type_line = type_line or ""
    for category in CATEGORY_ORDER:
        if category in type_line:
            return category
    return OTHER_CATEGORY

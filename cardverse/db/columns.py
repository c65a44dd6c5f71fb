"""Column-name detection for inventory tables and CSV headers.

Inventory data comes from tables and spreadsheets we did not create, so the
column holding e.g. the card quantity may be called "quantity", "qty",
"Count" or "Number Owned". detect_columns() maps a fixed set of canonical
fields onto whatever columns are actually present.
"""

import re
import sqlite3
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

# Canonical field -> candidate column names, best first (already normalized)
COLUMN_CANDIDATES: Dict[str, List[str]] = {
    "name": ["name", "card_name", "cardname", "card", "title"],
    "quantity": ["quantity", "qty", "count", "amount", "copies", "number_owned", "owned"],
    "scryfall_id": ["scryfall_id", "scryfallid", "scryfall_uuid"],
    "set_code": ["set_code", "setcode", "set", "edition", "edition_code"],
    "set_name": ["set_name", "setname", "edition_name", "expansion"],
    "collector_number": ["collector_number", "collectornumber", "number", "cn", "card_number"],
    "foil": ["foil", "is_foil", "foiled", "finish", "printing"],
    "user_id": ["user_id", "userid", "owner_id", "owner", "user"],
    "price": ["price", "purchase_price", "price_usd", "usd", "value"],
}

# Substring fallbacks for headers like "Card Name (EN)" or "Qty Owned"
_SUBSTRING_HINTS: Dict[str, List[str]] = {
    "name": ["name"],
    "quantity": ["quantity", "qty", "count"],
    "scryfall_id": ["scryfall"],
    "set_code": ["set_code", "edition"],
    "set_name": ["set_name"],
    "collector_number": ["collector"],
    "foil": ["foil"],
    "user_id": ["user", "owner"],
    "price": ["price"],
}


class ColumnDetectionError(ValueError):
    """Required columns could not be found."""

    def __init__(self, missing: Sequence[str], columns: Sequence[str]):
        self.missing = list(missing)
        self.columns = list(columns)
        super().__init__(
            f"Could not detect column(s) for {', '.join(self.missing)}; "
            f"available columns: {', '.join(self.columns) or '(none)'}"
        )


@dataclass
class ColumnMap:
    """Canonical field -> actual column name, for the fields that were found."""
    mapping: Dict[str, str] = field(default_factory=dict)
    columns: List[str] = field(default_factory=list)

    def get(self, canonical: str) -> Optional[str]:
        return self.mapping.get(canonical)

    def has(self, canonical: str) -> bool:
        return canonical in self.mapping

    def __getitem__(self, canonical: str) -> str:
        return self.mapping[canonical]


def normalize_column(name: str) -> str:
    """Lower-case a column name and collapse spaces/dashes/dots to underscores."""
    name = name.strip().lower()
    name = re.sub(r"[\s\-.]+", "_", name)
    return name.strip("_")


def detect_columns(
    columns: Iterable[str],
    required: Sequence[str] = ("name", "quantity"),
) -> ColumnMap:
    """
    Detect which of the given columns hold each canonical field.

    Exact (normalized) candidate matches are assigned for every field before
    any substring fallback runs, and no column is ever assigned to two
    fields.

    Raises:
        ColumnDetectionError: if any field in `required` is not found
    """
    columns = [c for c in columns if c is not None]
    normalized = {normalize_column(c): c for c in columns}
    claimed = set()
    mapping: Dict[str, str] = {}

    # Pass 1: exact candidate matches
    for canonical, candidates in COLUMN_CANDIDATES.items():
        for candidate in candidates:
            actual = normalized.get(candidate)
            if actual is not None and actual not in claimed:
                mapping[canonical] = actual
                claimed.add(actual)
                break

    # Pass 2: substring hints for whatever is still missing
    for canonical, hints in _SUBSTRING_HINTS.items():
        if canonical in mapping:
            continue
        for hint in hints:
            match = next(
                (actual for norm, actual in normalized.items()
                 if hint in norm and actual not in claimed),
                None,
            )
            if match is not None:
                mapping[canonical] = match
                claimed.add(match)
                break

    missing = [r for r in required if r not in mapping]
    if missing:
        raise ColumnDetectionError(missing, columns)

    return ColumnMap(mapping=mapping, columns=columns)


def quote_identifier(name: str) -> str:
    """Quote a SQLite identifier."""
    return '"' + name.replace('"', '""') + '"'


def _table_info(conn: sqlite3.Connection, table: str) -> list:
    row = conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?",
        (table,),
    ).fetchone()
    if row is None:
        raise ValueError(f"Unknown table: {table}")

    return conn.execute(f"PRAGMA table_info({quote_identifier(table)})").fetchall()


def table_columns(conn: sqlite3.Connection, table: str) -> List[str]:
    """
    Return the column names of an existing table.

    The table name is checked against sqlite_master before it is
    interpolated into PRAGMA table_info.

    Raises:
        ValueError: if the table does not exist
    """
    return [r[1] for r in _table_info(conn, table)]


def table_column_types(conn: sqlite3.Connection, table: str) -> Dict[str, str]:
    """Map each column of an existing table to its declared type, upper-cased ("" if untyped)."""
    return {r[1]: (r[2] or "").upper() for r in _table_info(conn, table)}


def detect_table_columns(
    conn: sqlite3.Connection,
    table: str,
    required: Sequence[str] = ("name", "quantity"),
) -> ColumnMap:
    """Detect canonical columns for an existing SQLite table."""
    return detect_columns(table_columns(conn, table), required=required)

"""Merge resolved cards into an inventory table.

The target can be the managed `inventory` table or any existing SQLite table
with recognisable name/quantity columns. Each card either bumps the quantity
of a matching row or inserts a new one.
"""

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from cardverse.db.columns import ColumnMap, detect_table_columns, quote_identifier, table_column_types
from cardverse.db.models import CatalogRepository, VariantFlags
from cardverse.services.scryfall import card_colors, card_image_urls, card_price, to_catalog_card
from cardverse.utils import TRUTHY_VALUES, now_iso

log = logging.getLogger(__name__)

MANAGED_TABLE = "inventory"

# Variant flag columns matched by exact name; foil also via detected column
FLAG_COLUMNS = ("borderless", "showcase", "extended_art")

# Untyped foil columns with these names hold 0/1; others hold text
_BOOLEAN_FOIL_COLUMNS = {"foil", "is_foil", "foiled"}

# Spellings of a non-foil printing in text finish columns
NONFOIL_VALUES = ("", "nonfoil", "normal", "no", "n", "false", "f", "0")


@dataclass
class ReconcileItem:
    """A resolved Scryfall card and the copies to add."""
    card: Dict
    count: int
    flags: VariantFlags = field(default_factory=VariantFlags)
    set_name: Optional[str] = None
    images: Optional[Tuple[str, str]] = None

    @property
    def name(self) -> str:
        return self.card.get("name", "?")


@dataclass
class ReconcileResult:
    """Outcome of a reconcile run (rows inserted/updated, copies added)."""
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    copies: int = 0
    errors: List[str] = field(default_factory=list)
    dry_run: bool = False


class InventoryReconciler:
    """Insert-or-update cards into an inventory table with detected columns."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        user_id: Optional[str] = None,
        table: str = MANAGED_TABLE,
        dry_run: bool = False,
        update_catalog: Optional[bool] = None,
    ):
        self.conn = conn
        self.user_id = user_id
        self.table = table
        self.dry_run = dry_run
        self.columns: ColumnMap = detect_table_columns(conn, table)
        self.table_columns = set(self.columns.columns)
        self.update_catalog = (table == MANAGED_TABLE) if update_catalog is None else update_catalog
        self.catalog = CatalogRepository(conn)
        self._planned: set = set()
        self._text_foil, self._nonfoil_text = self._inspect_foil_column()

        if self.columns.has("user_id") and not user_id:
            raise ValueError(f"Table {table} has a user column; a user ID is required")

        log.debug("Detected columns for %s: %s", table, self.columns.mapping)

    def _inspect_foil_column(self) -> Tuple[bool, str]:
        """
        Work out how the table stores the foil flag.

        Returns (text, nonfoil): whether the column holds text rather than
        0/1, and the text written for non-foil rows. The declared type
        decides; untyped columns go by name. A text column keeps the
        non-foil spelling most of its rows already use ("" for Deckbox-style
        exports), else "" for a column named like a flag and "nonfoil" for
        finish-style columns.
        """
        column = self.columns.get("foil")
        if not column:
            return False, ""

        declared = table_column_types(self.conn, self.table).get(column, "")
        if "INT" in declared:
            text = False
        elif any(t in declared for t in ("CHAR", "CLOB", "TEXT")):
            text = True
        elif declared and "BLOB" not in declared:
            text = False
        else:
            text = column.lower() not in _BOOLEAN_FOIL_COLUMNS
        if not text:
            return False, ""

        default = "" if column.lower() in _BOOLEAN_FOIL_COLUMNS else "nonfoil"
        quoted = quote_identifier(column)
        rows = self.conn.execute(
            f"SELECT LOWER(TRIM(COALESCE({quoted}, ''))), COUNT(*) "
            f"FROM {quote_identifier(self.table)} GROUP BY 1 ORDER BY 2 DESC"
        ).fetchall()
        used = [r[0] for r in rows if r[0] in NONFOIL_VALUES]
        return True, used[0] if used else default

    def _foil_value(self, foil: bool):
        if not self._text_foil:
            return 1 if foil else 0
        return "foil" if foil else self._nonfoil_text

    def build_row(self, item: ReconcileItem) -> Dict[str, Any]:
        """Map an item onto the columns this table actually has."""
        card = item.card
        front, back = item.images or card_image_urls(card)
        face = (card.get("card_faces") or [{}])[0]

        canonical = {
            "name": card.get("name"),
            "scryfall_id": card.get("id"),
            "set_code": (card.get("set") or "").upper() or None,
            "set_name": item.set_name or card.get("set_name"),
            "collector_number": card.get("collector_number"),
            "foil": self._foil_value(item.flags.foil),
            "user_id": self.user_id,
            "price": card_price(card),
        }
        extra = {
            "image_url": front or None,
            "back_image_url": back or None,
            "scryfall_uri": card.get("scryfall_uri"),
            "type_line": card.get("type_line") or face.get("type_line"),
            "colors": json.dumps(card_colors(card)),
            "rarity": card.get("rarity") or face.get("rarity"),
            "cmc": card["cmc"] if card.get("cmc") is not None else face.get("cmc"),
            "oracle_text": card.get("oracle_text") or face.get("oracle_text"),
            "borderless": 1 if item.flags.borderless else 0,
            "showcase": 1 if item.flags.showcase else 0,
            "extended_art": 1 if item.flags.extended_art else 0,
            "created_at": now_iso(),
            "updated_at": now_iso(),
        }

        row: Dict[str, Any] = {}
        for key, value in canonical.items():
            column = self.columns.get(key)
            if column:
                row[column] = value
        claimed = set(self.columns.mapping.values())
        for column, value in extra.items():
            if column in self.table_columns and column not in claimed:
                row[column] = value
        return row

    def _match_clause(self, item: ReconcileItem) -> Tuple[str, List[Any]]:
        card = item.card
        clauses: List[str] = []
        params: List[Any] = []

        if self.columns.has("user_id"):
            clauses.append(f"{quote_identifier(self.columns['user_id'])} = ?")
            params.append(self.user_id)

        if self.columns.has("scryfall_id") and card.get("id"):
            clauses.append(f"{quote_identifier(self.columns['scryfall_id'])} = ?")
            params.append(card["id"])
        else:
            clauses.append(f"{quote_identifier(self.columns['name'])} = ? COLLATE NOCASE")
            params.append(card.get("name"))
            if self.columns.has("set_code") and card.get("set"):
                clauses.append(f"{quote_identifier(self.columns['set_code'])} = ? COLLATE NOCASE")
                params.append(card["set"])

        foil_column = self.columns.get("foil")
        if foil_column:
            quoted = quote_identifier(foil_column)
            if self._text_foil:
                values = TRUTHY_VALUES if item.flags.foil else NONFOIL_VALUES
                placeholders = ", ".join("?" for _ in values)
                clauses.append(f"LOWER(TRIM(COALESCE({quoted}, ''))) IN ({placeholders})")
                params.extend(values)
            else:
                clauses.append(f"COALESCE({quoted}, 0) = ?")
                params.append(1 if item.flags.foil else 0)

        for flag in FLAG_COLUMNS:
            if flag in self.table_columns:
                clauses.append(f"COALESCE({quote_identifier(flag)}, 0) = ?")
                params.append(1 if getattr(item.flags, flag) else 0)

        return " AND ".join(clauses), params

    def _row_key_column(self) -> str:
        return quote_identifier("id") if "id" in self.table_columns else "rowid"

    def find_existing(self, item: ReconcileItem) -> Optional[Any]:
        """Return the key (id or rowid) of the row this item merges into."""
        where, params = self._match_clause(item)
        key = self._row_key_column()
        row = self.conn.execute(
            f"SELECT {key} FROM {quote_identifier(self.table)} WHERE {where} ORDER BY {key} LIMIT 1",
            params,
        ).fetchone()
        return row[0] if row else None

    def _plan_key(self, item: ReconcileItem) -> tuple:
        _, params = self._match_clause(item)
        return tuple(params)

    def _update(self, row_key: Any, item: ReconcileItem) -> None:
        quantity = quote_identifier(self.columns["quantity"])
        payload = self.build_row(item)
        for column in ("created_at", self.columns.get("user_id")):
            payload.pop(column, None)

        sets = [f"{quantity} = COALESCE({quantity}, 0) + ?"]
        params: List[Any] = [item.count]
        for column, value in payload.items():
            sets.append(f"{quote_identifier(column)} = ?")
            params.append(value)
        params.append(row_key)

        self.conn.execute(
            f"UPDATE {quote_identifier(self.table)} SET {', '.join(sets)} WHERE {self._row_key_column()} = ?",
            params,
        )

    def _insert(self, item: ReconcileItem) -> None:
        payload = self.build_row(item)
        payload[self.columns["quantity"]] = item.count
        columns = ", ".join(quote_identifier(c) for c in payload)
        placeholders = ", ".join("?" for _ in payload)
        self.conn.execute(
            f"INSERT INTO {quote_identifier(self.table)} ({columns}) VALUES ({placeholders})",
            list(payload.values()),
        )

    def reconcile(self, items: List[ReconcileItem]) -> ReconcileResult:
        """
        Merge items into the table.

        Per-item failures are logged and recorded in the result; they never
        abort the batch. In dry-run mode nothing is written, and an item
        repeating an earlier item of the same batch counts as an update.
        """
        result = ReconcileResult(dry_run=self.dry_run)

        for item in items:
            try:
                if item.count < 1:
                    raise ValueError(f"invalid quantity {item.count}")

                if self.update_catalog and not self.dry_run:
                    self.catalog.upsert(to_catalog_card(item.card))

                existing = self.find_existing(item)
                if self.dry_run:
                    key = self._plan_key(item)
                    if existing is not None or key in self._planned:
                        result.updated += 1
                    else:
                        self._planned.add(key)
                        result.inserted += 1
                elif existing is not None:
                    self._update(existing, item)
                    result.updated += 1
                else:
                    self._insert(item)
                    result.inserted += 1

                result.copies += item.count
            except (sqlite3.Error, ValueError, KeyError, TypeError) as e:
                log.warning("Failed to reconcile %s: %s", item.name, e)
                result.errors.append(f"{item.name}: {e}")
                result.skipped += 1

        if not self.dry_run:
            self.conn.commit()

        return result


def add_card(
    api,
    reconciler: InventoryReconciler,
    name: str,
    quantity: int = 1,
    set_name: Optional[str] = None,
    flags: Optional[VariantFlags] = None,
) -> ReconcileResult:
    """
    Add copies of a card by name, optionally from a given set.

    The set may be a code or a set name. Images are picked to match the
    variant flags.

    Raises:
        ValueError: for a quantity below 1, an unknown set, or a card that
            Scryfall cannot find
    """
    if quantity < 1:
        raise ValueError("Quantity must be at least 1.")
    name = (name or "").strip()
    if not name:
        raise ValueError("Card name is required.")

    set_code = None
    if set_name:
        set_code = api.normalize_set_code(set_name)
        if not set_code:
            raise ValueError(f"Unknown set: {set_name}")

    card, error = api.get_card_named(name, set_code)
    if card is None and error is None and not set_code:
        card, error = api.get_card_named(name, fuzzy=True)
    if error:
        raise ValueError(f"Scryfall lookup failed: {error}")
    if card is None:
        raise ValueError("Card not found on Scryfall for that set." if set_code else f"Card not found: {name}")

    flags = flags or VariantFlags()
    images = api.pick_print_image(card, flags, set_code)
    item = ReconcileItem(card=card, count=quantity, flags=flags, images=images)
    return reconciler.reconcile([item])

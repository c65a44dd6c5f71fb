"""Database models and repositories."""

import json
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from cardverse.utils import now_iso, parse_json_array, primary_category, to_json_array


@dataclass
class CatalogCard:
    """A card printing cached from Scryfall."""
    scryfall_id: str
    name: str
    set_code: Optional[str] = None
    number: Optional[str] = None
    rarity: Optional[str] = None
    type_line: Optional[str] = None
    colors: List[str] = field(default_factory=list)
    color_identity: List[str] = field(default_factory=list)
    cmc: Optional[float] = None
    oracle_text: Optional[str] = None
    image_url: Optional[str] = None
    back_image_url: Optional[str] = None
    scryfall_uri: Optional[str] = None
    price_usd: Optional[float] = None
    raw_json: Optional[str] = None
    updated_at: Optional[str] = None

    def get_scryfall_data(self) -> Optional[Dict]:
        """Parse and return the full Scryfall API response as a dict."""
        if self.raw_json:
            return json.loads(self.raw_json)
        return None


@dataclass
class InventoryEntry:
    """A card (and variant) the user owns, with a quantity."""
    id: Optional[int]
    user_id: str
    name: str
    quantity: int = 1
    price: Optional[float] = None
    image_url: Optional[str] = None
    back_image_url: Optional[str] = None
    set_name: Optional[str] = None
    set_code: Optional[str] = None
    scryfall_uri: Optional[str] = None
    scryfall_id: Optional[str] = None
    type_line: Optional[str] = None
    colors: List[str] = field(default_factory=list)
    rarity: Optional[str] = None
    cmc: Optional[float] = None
    oracle_text: Optional[str] = None
    borderless: bool = False
    showcase: bool = False
    extended_art: bool = False
    foil: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class VariantFlags:
    """Printing treatments that make two copies of the same card distinct rows."""
    borderless: bool = False
    showcase: bool = False
    extended_art: bool = False
    foil: bool = False

    def any(self) -> bool:
        return self.borderless or self.showcase or self.extended_art or self.foil


@dataclass
class Deck:
    """A saved deck."""
    id: Optional[int]
    user_id: str
    title: str
    cards: List[Dict[str, Any]] = field(default_factory=list)  # [{name, count, section}]
    commander_name: Optional[str] = None
    color_identity: Optional[str] = None
    mtg_type: Optional[str] = None
    is_public: bool = False
    created_at: Optional[str] = None

    @property
    def card_count(self) -> int:
        return sum(c.get("count", 0) or 0 for c in self.cards)


@dataclass
class InventoryFilter:
    """Inventory list filters. Empty/None values are ignored."""
    name: Optional[str] = None
    set_name: Optional[str] = None
    min_quantity: Optional[int] = None
    max_quantity: Optional[int] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    colors: List[str] = field(default_factory=list)
    types: List[str] = field(default_factory=list)


class CatalogRepository:
    """CRUD operations for card_catalog table."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def upsert(self, card: CatalogCard) -> None:
        """Insert or update a catalog card keyed on scryfall_id."""
        self.conn.execute(
            """
            INSERT INTO card_catalog
            (scryfall_id, name, set_code, number, rarity, type_line, colors,
             color_identity, cmc, oracle_text, image_url, back_image_url,
             scryfall_uri, price_usd, raw_json, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(scryfall_id) DO UPDATE SET
                name = excluded.name,
                set_code = excluded.set_code,
                number = excluded.number,
                rarity = excluded.rarity,
                type_line = excluded.type_line,
                colors = excluded.colors,
                color_identity = excluded.color_identity,
                cmc = excluded.cmc,
                oracle_text = excluded.oracle_text,
                image_url = excluded.image_url,
                back_image_url = excluded.back_image_url,
                scryfall_uri = excluded.scryfall_uri,
                price_usd = excluded.price_usd,
                raw_json = excluded.raw_json,
                updated_at = excluded.updated_at
            """,
            (
                card.scryfall_id,
                card.name,
                card.set_code,
                card.number,
                card.rarity,
                card.type_line,
                to_json_array(card.colors),
                to_json_array(card.color_identity),
                card.cmc,
                card.oracle_text,
                card.image_url,
                card.back_image_url,
                card.scryfall_uri,
                card.price_usd,
                card.raw_json,
                card.updated_at or now_iso(),
            ),
        )

    def get(self, scryfall_id: str) -> Optional[CatalogCard]:
        """Get a catalog card by scryfall_id."""
        cursor = self.conn.execute(
            "SELECT * FROM card_catalog WHERE scryfall_id = ?", (scryfall_id,)
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return self._row_to_card(row)

    def get_by_name(self, name: str) -> Optional[CatalogCard]:
        """Find a card by name (case-insensitive, handles DFCs).

        Handles double-faced cards where the catalog stores "Front // Back"
        but the search term is just "Front".
        """
        cursor = self.conn.execute(
            "SELECT * FROM card_catalog WHERE name COLLATE NOCASE = ? "
            "ORDER BY updated_at DESC LIMIT 1",
            (name,),
        )
        row = cursor.fetchone()
        if row:
            return self._row_to_card(row)

        cursor = self.conn.execute(
            "SELECT * FROM card_catalog WHERE name LIKE ? "
            "ORDER BY updated_at DESC LIMIT 1",
            (name + " // %",),
        )
        row = cursor.fetchone()
        if row:
            return self._row_to_card(row)

        return None

    def count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM card_catalog").fetchone()[0]

    def _row_to_card(self, row: sqlite3.Row) -> CatalogCard:
        return CatalogCard(
            scryfall_id=row["scryfall_id"],
            name=row["name"],
            set_code=row["set_code"],
            number=row["number"],
            rarity=row["rarity"],
            type_line=row["type_line"],
            colors=parse_json_array(row["colors"]),
            color_identity=parse_json_array(row["color_identity"]),
            cmc=row["cmc"],
            oracle_text=row["oracle_text"],
            image_url=row["image_url"],
            back_image_url=row["back_image_url"],
            scryfall_uri=row["scryfall_uri"],
            price_usd=row["price_usd"],
            raw_json=row["raw_json"],
            updated_at=row["updated_at"],
        )


class InventoryRepository:
    """Read and decrement operations for the inventory table.

    Adding cards goes through InventoryReconciler, which merges into
    existing rows.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get(self, entry_id: int, user_id: Optional[str] = None) -> Optional[InventoryEntry]:
        """Get an inventory row by ID, optionally scoped to a user."""
        query = "SELECT * FROM inventory WHERE id = ?"
        params: List[Any] = [entry_id]
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)
        row = self.conn.execute(query, params).fetchone()
        if row is None:
            return None
        return self._row_to_entry(row)

    def list_all(
        self,
        user_id: str,
        filters: Optional[InventoryFilter] = None,
        page: int = 1,
        page_size: int = 25,
    ) -> List[InventoryEntry]:
        """
        List a user's inventory, newest first, with optional filters.

        Colour filter semantics:
          - only "Colorless": rows whose colours contain Colorless
          - only real colours: rows whose colours contain all of them
          - mixed: rows that are Colorless or contain any of the colours
        Every type in filters.types must appear in the type line.
        """
        query = "SELECT * FROM inventory WHERE user_id = ?"
        params: List[Any] = [user_id]
        f = filters or InventoryFilter()

        if f.name and f.name.strip():
            query += " AND name LIKE ?"
            params.append(f"%{f.name.strip()}%")

        if f.set_name:
            query += " AND set_name = ?"
            params.append(f.set_name)

        if f.min_quantity is not None:
            query += " AND quantity >= ?"
            params.append(f.min_quantity)

        if f.max_quantity is not None:
            query += " AND quantity <= ?"
            params.append(f.max_quantity)

        if f.min_price is not None:
            query += " AND price >= ?"
            params.append(f.min_price)

        if f.max_price is not None:
            query += " AND price <= ?"
            params.append(f.max_price)

        if f.colors:
            clause, color_params = self._color_clause(f.colors)
            query += clause
            params.extend(color_params)

        for type_name in f.types:
            if type_name.strip():
                query += " AND type_line LIKE ?"
                params.append(f"%{type_name.strip()}%")

        query += " ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?"
        page = max(page, 1)
        params.extend([page_size, (page - 1) * page_size])

        cursor = self.conn.execute(query, params)
        return [self._row_to_entry(row) for row in cursor]

    @staticmethod
    def _color_clause(colors: List[str]):
        has_color = "EXISTS (SELECT 1 FROM json_each(inventory.colors) WHERE value = ?)"
        has_colorless = any(c.lower() == "colorless" for c in colors)
        colored = [c.upper() for c in colors if c.lower() != "colorless"]

        if has_colorless and not colored:
            return f" AND {has_color}", ["Colorless"]
        if colored and not has_colorless:
            return "".join(f" AND {has_color}" for _ in colored), colored

        any_of = " OR ".join(has_color for _ in colored)
        return f" AND ({has_color} OR {any_of})", ["Colorless", *colored]

    def remove_one(self, entry_id: int, user_id: str) -> Optional[int]:
        """Remove one copy of an inventory row.

        Decrements the quantity, deleting the row when the last copy goes.
        Returns the remaining quantity, or None if the row was not found.
        """
        entry = self.get(entry_id, user_id)
        if entry is None:
            return None

        if entry.quantity > 1:
            self.conn.execute(
                "UPDATE inventory SET quantity = ?, updated_at = ? WHERE id = ?",
                (entry.quantity - 1, now_iso(), entry_id),
            )
            return entry.quantity - 1

        self.conn.execute("DELETE FROM inventory WHERE id = ?", (entry_id,))
        return 0

    def count(self, user_id: str) -> int:
        """Total number of copies a user owns."""
        cursor = self.conn.execute(
            "SELECT COALESCE(SUM(quantity), 0) FROM inventory WHERE user_id = ?",
            (user_id,),
        )
        return cursor.fetchone()[0]

    def set_names(self, user_id: str) -> List[str]:
        """Distinct set names present in a user's inventory."""
        cursor = self.conn.execute(
            "SELECT DISTINCT set_name FROM inventory "
            "WHERE user_id = ? AND set_name IS NOT NULL ORDER BY set_name",
            (user_id,),
        )
        return [row[0] for row in cursor]

    def stats(self, user_id: str) -> Dict[str, Any]:
        """Collection statistics, counted in copies."""
        stats: Dict[str, Any] = {}

        row = self.conn.execute(
            """
            SELECT COALESCE(SUM(quantity), 0) AS total,
                   COUNT(DISTINCT name) AS unique_cards,
                   COUNT(*) AS row_count,
                   COALESCE(SUM(price * quantity), 0) AS total_value
            FROM inventory WHERE user_id = ?
            """,
            (user_id,),
        ).fetchone()
        stats["total_cards"] = row["total"]
        stats["unique_cards"] = row["unique_cards"]
        stats["rows"] = row["row_count"]
        stats["total_value"] = row["total_value"]

        by_color: Dict[str, int] = {}
        by_type: Dict[str, int] = {}
        by_set: Dict[str, int] = {}
        by_rarity: Dict[str, int] = {}
        cursor = self.conn.execute(
            "SELECT quantity, colors, type_line, set_name, rarity FROM inventory WHERE user_id = ?",
            (user_id,),
        )
        for r in cursor:
            qty = r["quantity"]
            for color in parse_json_array(r["colors"]) or ["Colorless"]:
                by_color[color] = by_color.get(color, 0) + qty
            category = primary_category(r["type_line"])
            by_type[category] = by_type.get(category, 0) + qty
            set_name = r["set_name"] or "Unknown"
            by_set[set_name] = by_set.get(set_name, 0) + qty
            rarity = r["rarity"] or "unknown"
            by_rarity[rarity] = by_rarity.get(rarity, 0) + qty

        stats["by_color"] = by_color
        stats["by_type"] = by_type
        stats["by_set"] = by_set
        stats["by_rarity"] = by_rarity
        return stats

    def _row_to_entry(self, row: sqlite3.Row) -> InventoryEntry:
        return InventoryEntry(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            quantity=row["quantity"],
            price=row["price"],
            image_url=row["image_url"],
            back_image_url=row["back_image_url"],
            set_name=row["set_name"],
            set_code=row["set_code"],
            scryfall_uri=row["scryfall_uri"],
            scryfall_id=row["scryfall_id"],
            type_line=row["type_line"],
            colors=parse_json_array(row["colors"]),
            rarity=row["rarity"],
            cmc=row["cmc"],
            oracle_text=row["oracle_text"],
            borderless=bool(row["borderless"]),
            showcase=bool(row["showcase"]),
            extended_art=bool(row["extended_art"]),
            foil=bool(row["foil"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


class DeckRepository:
    """CRUD operations for decks table."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def add(self, deck: Deck) -> int:
        """Save a deck. Returns the new ID."""
        if deck.created_at is None:
            deck.created_at = now_iso()

        cursor = self.conn.execute(
            """
            INSERT INTO decks
            (user_id, title, commander_name, color_identity, mtg_type, decklist, is_public, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                deck.user_id,
                deck.title,
                deck.commander_name,
                deck.color_identity,
                deck.mtg_type,
                json.dumps(deck.cards),
                1 if deck.is_public else 0,
                deck.created_at,
            ),
        )
        deck.id = cursor.lastrowid
        return deck.id

    def get(self, deck_id: int, user_id: Optional[str] = None) -> Optional[Deck]:
        """Get a deck by ID, optionally scoped to a user."""
        query = "SELECT * FROM decks WHERE id = ?"
        params: List[Any] = [deck_id]
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)
        row = self.conn.execute(query, params).fetchone()
        if row is None:
            return None
        return self._row_to_deck(row)

    def list_for_user(self, user_id: str) -> List[Deck]:
        """A user's decks, newest first."""
        cursor = self.conn.execute(
            "SELECT * FROM decks WHERE user_id = ? ORDER BY created_at DESC, id DESC",
            (user_id,),
        )
        return [self._row_to_deck(row) for row in cursor]

    def delete(self, deck_id: int, user_id: str) -> bool:
        """Delete a deck. Returns True if deleted."""
        cursor = self.conn.execute(
            "DELETE FROM decks WHERE id = ? AND user_id = ?", (deck_id, user_id)
        )
        return cursor.rowcount > 0

    def _row_to_deck(self, row: sqlite3.Row) -> Deck:
        # A malformed decklist shows as an empty deck rather than failing the listing
        try:
            cards = json.loads(row["decklist"] or "[]")
        except json.JSONDecodeError:
            cards = []

        return Deck(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            cards=cards,
            commander_name=row["commander_name"],
            color_identity=row["color_identity"],
            mtg_type=row["mtg_type"],
            is_public=bool(row["is_public"]),
            created_at=row["created_at"],
        )


class SettingsRepository:
    """Key-value access to the settings table."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        row = self.conn.execute(
            "SELECT value FROM settings WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else default

    def get_int(self, key: str, default: int) -> int:
        value = self.get(key)
        try:
            return int(value) if value is not None else default
        except ValueError:
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key)
        if value is None:
            return default
        return value.strip().lower() in ("1", "true", "yes", "on")

    def set(self, key: str, value: str) -> None:
        self.conn.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, str(value)),
        )

    def all(self) -> Dict[str, str]:
        cursor = self.conn.execute("SELECT key, value FROM settings ORDER BY key")
        return {row["key"]: row["value"] for row in cursor}

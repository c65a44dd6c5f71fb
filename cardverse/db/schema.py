"""Database schema."""

import sqlite3

SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Card data cached from Scryfall (one row per printing)
CREATE TABLE IF NOT EXISTS card_catalog (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    scryfall_id TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    set_code TEXT,
    number TEXT,              -- collector number
    rarity TEXT,
    type_line TEXT,
    colors TEXT,              -- JSON array: ["R", "G"] or ["Colorless"]
    color_identity TEXT,      -- JSON array
    cmc REAL,
    oracle_text TEXT,
    image_url TEXT,
    back_image_url TEXT,
    scryfall_uri TEXT,
    price_usd REAL,
    raw_json TEXT,            -- Full Scryfall API response
    updated_at TEXT NOT NULL
);

-- User inventory (one row per card + variant, with a quantity)
CREATE TABLE IF NOT EXISTS inventory (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    quantity INTEGER NOT NULL DEFAULT 1 CHECK(quantity >= 0),
    price REAL,
    image_url TEXT,
    back_image_url TEXT,
    set_name TEXT,
    set_code TEXT,
    scryfall_uri TEXT,
    scryfall_id TEXT,
    type_line TEXT,
    colors TEXT,              -- JSON array
    rarity TEXT,
    cmc REAL,
    oracle_text TEXT,
    borderless INTEGER NOT NULL DEFAULT 0,
    showcase INTEGER NOT NULL DEFAULT 0,
    extended_art INTEGER NOT NULL DEFAULT 0,
    foil INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT
);

-- Saved decks
CREATE TABLE IF NOT EXISTS decks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL,
    commander_name TEXT,
    color_identity TEXT,      -- WUBRG string, e.g. "WUB"
    mtg_type TEXT,            -- 'Commander', 'Constructed', 'Limited', 'Casual'
    decklist TEXT NOT NULL,   -- JSON array of {name, count, section}
    is_public INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);

-- Global settings (key-value pairs)
CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_catalog_name ON card_catalog(name);
CREATE INDEX IF NOT EXISTS idx_inventory_user ON inventory(user_id);
CREATE INDEX IF NOT EXISTS idx_inventory_scryfall ON inventory(user_id, scryfall_id);
CREATE INDEX IF NOT EXISTS idx_decks_user ON decks(user_id, created_at);
"""


def get_current_version(conn: sqlite3.Connection) -> int:
    """Get the current schema version, or 0 if not initialized."""
    try:
        cursor = conn.execute(
            "SELECT MAX(version) FROM schema_version"
        )
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0
    except sqlite3.OperationalError:
        # Table doesn't exist
        return 0


def init_db(conn: sqlite3.Connection, force: bool = False) -> bool:
    """
    Create the database schema and default settings.

    Args:
        conn: Database connection
        force: If True, re-run the schema script even when up to date

    Returns:
        True if schema was created/updated, False if already up to date
    """
    from cardverse.utils import now_iso

    current = get_current_version(conn)

    if current >= SCHEMA_VERSION and not force:
        return False

    conn.executescript(SCHEMA_SQL)
    _seed_default_settings(conn)

    conn.execute(
        "INSERT OR REPLACE INTO schema_version (version, applied_at) VALUES (?, ?)",
        (SCHEMA_VERSION, now_iso())
    )
    conn.commit()

    return True


def _seed_default_settings(conn: sqlite3.Connection):
    """Insert default settings values (idempotent)."""
    for key, value in [
        ("fetch_workers", "5"),
        ("notify_discord", "false"),
        ("page_size", "25"),
    ]:
        conn.execute(
            "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?)",
            (key, value),
        )

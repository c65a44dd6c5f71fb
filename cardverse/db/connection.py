"""Database connection management."""

import logging
import os
import sqlite3
from pathlib import Path
from typing import Dict, Optional

from cardverse.utils import get_cardverse_home

log = logging.getLogger(__name__)

DB_FILENAME = "cardverse.sqlite"

# Seconds to wait on a locked database; inventory tables may belong to
# another application writing to the same file.
BUSY_TIMEOUT = 10.0

_connections: Dict[str, sqlite3.Connection] = {}


def get_db_path(override: Optional[str] = None) -> str:
    """
    Get the database path.

    Priority:
    1. Explicit override parameter
    2. CARDVERSE_DB environment variable
    3. Default: $CARDVERSE_HOME/cardverse.sqlite (~/.cardverse)
    """
    if override:
        return override
    return os.environ.get("CARDVERSE_DB") or str(get_cardverse_home() / DB_FILENAME)


def get_connection(db_path: Optional[str] = None) -> sqlite3.Connection:
    """
    Open (or reuse) the connection for a database path.

    Connections are cached per path for the life of the process. Rows come
    back as sqlite3.Row so columns can be read by name.
    """
    path = get_db_path(db_path)
    conn = _connections.get(path)
    if conn is not None:
        return conn

    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    log.debug("Opening database %s", path)
    conn = sqlite3.connect(path, timeout=BUSY_TIMEOUT)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    _connections[path] = conn
    return conn


def close_connection(db_path: Optional[str] = None):
    """Close the cached connection for a path, or every cached connection."""
    paths = [get_db_path(db_path)] if db_path else list(_connections)
    for path in paths:
        conn = _connections.pop(path, None)
        if conn is not None:
            conn.close()

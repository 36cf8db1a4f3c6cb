from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Optional, Tuple

import orjson


# ──────────────────────────────────────────────────────────────
# Connections
# ──────────────────────────────────────────────────────────────

def connect_sqlite(path: str) -> sqlite3.Connection:
    """
    Open a RW SQLite connection with sane pragmas.

    IMPORTANT:
    - SQLite will NOT create parent directories.
    - WAL mode requires the directory to be writable (creates -wal/-shm).
    """
    if path != ":memory:":
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(path, check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    return conn


# ──────────────────────────────────────────────────────────────
# Schema
# ──────────────────────────────────────────────────────────────

def ensure_schema(conn: sqlite3.Connection) -> None:
    # Upstream place lists, one row per source URL
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS place_lists (
            list_key TEXT PRIMARY KEY,
            source_url TEXT NOT NULL,
            fetched_at TEXT NOT NULL,
            item_count INTEGER NOT NULL,
            list_json BLOB NOT NULL
        );
        """
    )
    conn.commit()


# ──────────────────────────────────────────────────────────────
# Place lists
# ──────────────────────────────────────────────────────────────

def put_place_list(
    conn: sqlite3.Connection,
    *,
    list_key: str,
    source_url: str,
    fetched_at: str,
    items: list[dict[str, Any]],
) -> None:
    conn.execute(
        """
        INSERT INTO place_lists (list_key, source_url, fetched_at, item_count, list_json)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(list_key) DO UPDATE SET
          source_url=excluded.source_url,
          fetched_at=excluded.fetched_at,
          item_count=excluded.item_count,
          list_json=excluded.list_json
        """,
        (list_key, source_url, fetched_at, len(items), orjson.dumps(items)),
    )
    conn.commit()


def get_place_list(conn: sqlite3.Connection, list_key: str) -> Optional[Tuple[str, list[dict[str, Any]]]]:
    """Return (fetched_at, items) or None."""
    cur = conn.execute("SELECT fetched_at, list_json FROM place_lists WHERE list_key=?;", (list_key,))
    row = cur.fetchone()
    if not row:
        return None
    fetched_at, blob = row
    try:
        items = orjson.loads(blob)
    except orjson.JSONDecodeError:
        return None
    if not isinstance(items, list):
        return None
    return str(fetched_at), items

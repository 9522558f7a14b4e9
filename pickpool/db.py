"""
Pick Pool Persistence Layer
===========================

SQLite-backed JSON blob store.

Design:
  - Each save is a JSON document stored in a single row
  - Rows are keyed by (pool_id, save_type, save_key)
  - No ORM: sqlite3 + json only
  - Connection-per-call with WAL mode for concurrent readers

Save types:
  - "prediction_cache" → cached pick / bracket overrides (PredictionStore)
  - "leaderboard"      → published leaderboard snapshots
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Optional

_log = logging.getLogger("pickpool.db")

_DEFAULT_DB_PATH = Path(__file__).parent.parent / "data" / "pickpool.db"

_db_path: Path = _DEFAULT_DB_PATH

PREDICTION_CACHE = "prediction_cache"
LEADERBOARD = "leaderboard"
LATEST_KEY = "latest"


def set_db_path(path: str | Path):
    """Override the database file path (e.g. for testing)."""
    global _db_path
    _db_path = Path(path)


def get_db_path() -> Path:
    return _db_path


def _connect() -> sqlite3.Connection:
    _db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(_db_path), timeout=10)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.row_factory = sqlite3.Row
    return conn


def init_db():
    """Create tables if they don't exist. Safe to call multiple times."""
    conn = _connect()
    try:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS saves (
                id          INTEGER PRIMARY KEY AUTOINCREMENT,
                pool_id     TEXT    NOT NULL DEFAULT 'default',
                save_type   TEXT    NOT NULL,
                save_key    TEXT    NOT NULL,
                data        TEXT    NOT NULL,
                created_at  REAL    NOT NULL,
                updated_at  REAL    NOT NULL,
                UNIQUE(pool_id, save_type, save_key)
            );

            CREATE INDEX IF NOT EXISTS idx_saves_pool_type
                ON saves(pool_id, save_type);
        """)
        conn.commit()
        _log.info(f"Database initialized at {_db_path}")
    finally:
        conn.close()


# ═══════════════════════════════════════════════════════════════
# CORE CRUD
# ═══════════════════════════════════════════════════════════════

def save_text(save_type: str, save_key: str, text: str, pool_id: str = "default"):
    """Upsert raw text under (pool_id, save_type, save_key)."""
    now = time.time()
    conn = _connect()
    try:
        conn.execute(
            """
            INSERT INTO saves (pool_id, save_type, save_key, data, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(pool_id, save_type, save_key)
            DO UPDATE SET data=excluded.data, updated_at=excluded.updated_at
            """,
            (pool_id, save_type, save_key, text, now, now),
        )
        conn.commit()
        _log.debug(f"Saved {save_type}/{save_key} for pool={pool_id} ({len(text)} bytes)")
    finally:
        conn.close()


def load_text(save_type: str, save_key: str, pool_id: str = "default") -> Optional[str]:
    conn = _connect()
    try:
        row = conn.execute(
            "SELECT data FROM saves WHERE pool_id=? AND save_type=? AND save_key=?",
            (pool_id, save_type, save_key),
        ).fetchone()
        return None if row is None else row["data"]
    finally:
        conn.close()


def save_blob(save_type: str, save_key: str, data: dict, pool_id: str = "default"):
    save_text(save_type, save_key, json.dumps(data, default=str), pool_id=pool_id)


def load_blob(save_type: str, save_key: str, pool_id: str = "default") -> Optional[dict]:
    """Load a JSON blob. Returns None if not found."""
    text = load_text(save_type, save_key, pool_id=pool_id)
    return None if text is None else json.loads(text)


# ═══════════════════════════════════════════════════════════════
# PREDICTION CACHE
# ═══════════════════════════════════════════════════════════════

class SqlitePredictionStore:
    """Persistent ``PredictionStore`` over the saves table."""

    def __init__(self, pool_id: str = "default"):
        self.pool_id = pool_id
        init_db()

    def get(self, key: str) -> Optional[str]:
        return load_text(PREDICTION_CACHE, key, pool_id=self.pool_id)

    def set(self, key: str, value: str) -> None:
        save_text(PREDICTION_CACHE, key, value, pool_id=self.pool_id)


# ═══════════════════════════════════════════════════════════════
# LEADERBOARD SNAPSHOTS
# ═══════════════════════════════════════════════════════════════

def save_leaderboard(snapshot: dict, pool_id: str = "default"):
    """Store a leaderboard snapshot dict as the pool's latest."""
    init_db()
    save_blob(LEADERBOARD, LATEST_KEY, snapshot, pool_id=pool_id)
    _log.info(f"Leaderboard saved for pool={pool_id} ({len(snapshot.get('entries', []))} entries)")


def load_leaderboard(pool_id: str = "default") -> Optional[dict]:
    init_db()
    return load_blob(LEADERBOARD, LATEST_KEY, pool_id=pool_id)

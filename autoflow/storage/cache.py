"""
TTL cache storage operations.

Entries carry an absolute expiry. Expired entries are never returned; a
read that finds one deletes it on the spot.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Any


DEFAULT_TTL_SECONDS = 86400


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_expired(expires_at: str | None, now: datetime) -> bool:
    if expires_at is None:
        return False
    return datetime.fromisoformat(expires_at) <= now


def set_cache_value(
    conn: sqlite3.Connection,
    key: str,
    value: Any,
    ttl_seconds: float | None = DEFAULT_TTL_SECONDS,
    *,
    now: datetime | None = None,
) -> None:
    """
    Insert or replace a cache entry.

    Args:
        conn: Database connection
        key: Cache key
        value: JSON-serializable payload
        ttl_seconds: Lifetime in seconds; None stores an entry that never expires
        now: Override the current time (tests)
    """
    now = now or _utcnow()
    expires_at = (now + timedelta(seconds=ttl_seconds)).isoformat() if ttl_seconds is not None else None

    conn.execute(
        """
        INSERT INTO cache (key, value, created_at, expires_at) VALUES (?, ?, ?, ?)
        ON CONFLICT(key) DO UPDATE SET
            value = excluded.value,
            created_at = excluded.created_at,
            expires_at = excluded.expires_at
        """,
        (key, json.dumps(value, default=str), now.isoformat(), expires_at),
    )
    conn.commit()


def get_cache_value(
    conn: sqlite3.Connection,
    key: str,
    *,
    now: datetime | None = None,
) -> Any | None:
    """Read a cache entry, evicting it if it has expired."""
    now = now or _utcnow()

    cursor = conn.execute("SELECT value, expires_at FROM cache WHERE key = ?", (key,))
    row = cursor.fetchone()
    if row is None:
        return None

    if _is_expired(row["expires_at"], now):
        conn.execute("DELETE FROM cache WHERE key = ?", (key,))
        conn.commit()
        return None

    return json.loads(row["value"])


def delete_cache_value(conn: sqlite3.Connection, key: str) -> bool:
    """Delete a cache entry. Returns True if deleted, False if not found."""
    cursor = conn.execute("DELETE FROM cache WHERE key = ?", (key,))
    conn.commit()
    return cursor.rowcount > 0


def clear_expired_cache(conn: sqlite3.Connection, *, now: datetime | None = None) -> int:
    """Delete every expired entry. Returns the number removed."""
    now = now or _utcnow()

    cursor = conn.execute("SELECT key, expires_at FROM cache WHERE expires_at IS NOT NULL")
    expired = [row["key"] for row in cursor.fetchall() if _is_expired(row["expires_at"], now)]
    if expired:
        conn.executemany("DELETE FROM cache WHERE key = ?", [(k,) for k in expired])
        conn.commit()
    return len(expired)

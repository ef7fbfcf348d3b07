"""KWOTD Notifier — Database Query Operations.

All async database read/write operations. Every function:
  - Uses parameterized queries (? placeholders, never f-strings for SQL)
  - Handles connection via the Database instance
  - Commits after writes
  - Returns clean dictionaries (converts Row objects)
  - Logs operations at DEBUG level
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from kwotd.database.db import Database
from kwotd.database.models import ReferenceEntry
from kwotd.utils.logger import get_logger

logger = get_logger(__name__)


def _row_to_dict(row: Any) -> dict[str, Any]:
    """Convert an aiosqlite Row to a plain dictionary."""
    return dict(row)


# ═══════════════════════════════════════════════════════════
# Sync State
# ═══════════════════════════════════════════════════════════


async def get_state_value(db: Database, key: str) -> Optional[str]:
    """Read a value from the sync_state table.

    Args:
        db: Active database instance.
        key: State key.

    Returns:
        The stored string, or None if the key was never written.
    """
    conn = await db.get_connection()
    cursor = await conn.execute(
        "SELECT value FROM sync_state WHERE key = ?",
        (key,),
    )
    row = await cursor.fetchone()
    logger.debug("get_state_value(%s) found=%s", key, row is not None)
    return row["value"] if row else None


async def set_state_value(db: Database, key: str, value: str) -> None:
    """Insert or replace a value in the sync_state table."""
    conn = await db.get_connection()
    await conn.execute(
        """
        INSERT INTO sync_state (key, value, updated_at)
        VALUES (?, ?, datetime('now', 'localtime'))
        ON CONFLICT(key) DO UPDATE SET
            value = excluded.value,
            updated_at = excluded.updated_at
        """,
        (key, value),
    )
    await conn.commit()
    logger.debug("set_state_value(%s) (%d chars)", key, len(value))


# ═══════════════════════════════════════════════════════════
# Dictionary Entries
# ═══════════════════════════════════════════════════════════


async def get_entries_by_name(db: Database, entry_name: str) -> list[dict[str, Any]]:
    """Fetch all entries whose name matches exactly, in store order.

    The comparison is case-sensitive: in Klingon orthography "q" and
    "Q" are different letters.

    Args:
        db: Active database instance.
        entry_name: Exact entry name.

    Returns:
        List of row dicts ordered by id.
    """
    conn = await db.get_connection()
    cursor = await conn.execute(
        """
        SELECT id, entry_name, part_of_speech, definition
        FROM entries
        WHERE entry_name = ?
        ORDER BY id
        """,
        (entry_name.strip(),),
    )
    rows = await cursor.fetchall()
    logger.debug("get_entries_by_name(%s) → %d rows", entry_name, len(rows))
    return [_row_to_dict(r) for r in rows]


async def get_entry_by_id(db: Database, entry_id: int) -> Optional[dict[str, Any]]:
    """Fetch a single entry by id.

    Returns:
        The row dict, or None if no such entry exists.
    """
    conn = await db.get_connection()
    cursor = await conn.execute(
        "SELECT id, entry_name, part_of_speech, definition FROM entries WHERE id = ?",
        (entry_id,),
    )
    row = await cursor.fetchone()
    return _row_to_dict(row) if row else None


async def insert_entries(db: Database, entries: Iterable[ReferenceEntry]) -> int:
    """Bulk-insert dictionary entries.

    Entries with an id keep it; entries without one get the next
    autoincrement id.

    Args:
        db: Active database instance.
        entries: Entries to insert.

    Returns:
        Number of rows inserted.
    """
    conn = await db.get_connection()
    rows = [
        (d["id"], d["entry_name"], d["part_of_speech"], d["definition"])
        for d in (e.to_db_dict() for e in entries)
    ]
    await conn.executemany(
        """
        INSERT INTO entries (id, entry_name, part_of_speech, definition)
        VALUES (?, ?, ?, ?)
        """,
        rows,
    )
    await conn.commit()
    logger.debug("Inserted %d dictionary entries", len(rows))
    return len(rows)


async def clear_entries(db: Database) -> int:
    """Delete all dictionary entries.

    Returns:
        Number of rows deleted.
    """
    conn = await db.get_connection()
    cursor = await conn.execute("DELETE FROM entries")
    await conn.commit()
    return cursor.rowcount


async def count_entries(db: Database) -> int:
    """Return the number of dictionary entries."""
    conn = await db.get_connection()
    cursor = await conn.execute("SELECT COUNT(*) AS n FROM entries")
    row = await cursor.fetchone()
    return row["n"] if row else 0


# ═══════════════════════════════════════════════════════════
# Notification Channels & Slots
# ═══════════════════════════════════════════════════════════


async def register_channel(
    db: Database,
    channel_id: str,
    display_name: str,
    importance: str,
    lights_enabled: bool,
    light_color: str,
    silent: bool,
) -> bool:
    """Register a notification channel unless it already exists.

    Uses INSERT OR IGNORE so an existing row, including any settings
    the user changed since, is left untouched.

    Returns:
        True if the channel was newly created.
    """
    conn = await db.get_connection()
    cursor = await conn.execute(
        """
        INSERT OR IGNORE INTO notification_channels (
            id, display_name, importance, lights_enabled, light_color, silent
        ) VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            channel_id, display_name, importance,
            int(lights_enabled), light_color, int(silent),
        ),
    )
    await conn.commit()
    created = cursor.rowcount > 0
    logger.debug("register_channel(%s) created=%s", channel_id, created)
    return created


async def get_channel(db: Database, channel_id: str) -> Optional[dict[str, Any]]:
    """Fetch a registered channel, or None."""
    conn = await db.get_connection()
    cursor = await conn.execute(
        "SELECT * FROM notification_channels WHERE id = ?",
        (channel_id,),
    )
    row = await cursor.fetchone()
    return _row_to_dict(row) if row else None


async def set_channel_silent(db: Database, channel_id: str, silent: bool) -> bool:
    """Change whether a channel posts silently (a user customization).

    Returns:
        True if the channel exists and was updated.
    """
    conn = await db.get_connection()
    cursor = await conn.execute(
        "UPDATE notification_channels SET silent = ? WHERE id = ?",
        (int(silent), channel_id),
    )
    await conn.commit()
    logger.debug("set_channel_silent(%s, %s)", channel_id, silent)
    return cursor.rowcount > 0


async def get_slot_message(db: Database, slot_id: int) -> Optional[str]:
    """Return the message id currently occupying a slot, or None."""
    conn = await db.get_connection()
    cursor = await conn.execute(
        "SELECT message_id FROM notification_slots WHERE slot_id = ?",
        (slot_id,),
    )
    row = await cursor.fetchone()
    return row["message_id"] if row else None


async def set_slot_message(db: Database, slot_id: int, message_id: str) -> None:
    """Record the message now occupying a slot."""
    conn = await db.get_connection()
    await conn.execute(
        """
        INSERT INTO notification_slots (slot_id, message_id, posted_at)
        VALUES (?, ?, datetime('now', 'localtime'))
        ON CONFLICT(slot_id) DO UPDATE SET
            message_id = excluded.message_id,
            posted_at = excluded.posted_at
        """,
        (slot_id, message_id),
    )
    await conn.commit()
    logger.debug("Slot %d now holds message %s", slot_id, message_id)

"""KWOTD Notifier — SQLite Connection Manager.

Provides async SQLite connection management using aiosqlite. One file
holds both the persisted sync state and the dictionary the resolver
queries, plus the bookkeeping for notification channels and slots.
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite

from kwotd.utils.logger import get_logger

logger = get_logger(__name__)

# ── Schema Definitions ────────────────────────────────────
SCHEMA_SQL = """
-- ═══ Sync State Table ═══
-- Small key/value store; holds the last-seen canonical feed payload.
CREATE TABLE IF NOT EXISTS sync_state (
    key         TEXT    PRIMARY KEY,
    value       TEXT,
    updated_at  DATETIME DEFAULT (datetime('now', 'localtime'))
);

-- ═══ Entries Table ═══
-- Dictionary entries. part_of_speech uses the "base[:attr,attr]" form.
CREATE TABLE IF NOT EXISTS entries (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    entry_name      TEXT    NOT NULL,
    part_of_speech  TEXT    DEFAULT '',
    definition      TEXT    DEFAULT ''
);

-- ═══ Notification Channels Table ═══
-- Registered once; later registrations never overwrite user edits.
CREATE TABLE IF NOT EXISTS notification_channels (
    id              TEXT    PRIMARY KEY,
    display_name    TEXT    NOT NULL,
    importance      TEXT    NOT NULL,
    lights_enabled  INTEGER DEFAULT 0,
    light_color     TEXT    DEFAULT '',
    silent          INTEGER DEFAULT 0,
    created_at      DATETIME DEFAULT (datetime('now', 'localtime'))
);

-- ═══ Notification Slots Table ═══
-- The message currently occupying each fixed notification slot.
CREATE TABLE IF NOT EXISTS notification_slots (
    slot_id     INTEGER PRIMARY KEY,
    message_id  TEXT    NOT NULL,
    posted_at   DATETIME DEFAULT (datetime('now', 'localtime'))
);

-- ═══ Performance Indexes ═══
CREATE INDEX IF NOT EXISTS idx_entries_entry_name ON entries(entry_name);
"""


class Database:
    """Async SQLite database connection manager.

    Manages the database lifecycle including initialization, schema
    creation, and a persistent connection with WAL mode enabled.

    Attributes:
        db_path: Resolved absolute path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        """Initialize the database manager.

        Args:
            db_path: Relative or absolute path to the SQLite database file.
                     Parent directories are created on initialize().
        """
        self.db_path = Path(db_path).resolve()
        self._connection: aiosqlite.Connection | None = None
        logger.debug("Database manager initialized with path: %s", self.db_path)

    async def initialize(self) -> None:
        """Open the connection, set pragmas and create all tables."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        logger.info("Connecting to database: %s", self.db_path)
        self._connection = await aiosqlite.connect(str(self.db_path))

        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.execute("PRAGMA foreign_keys=ON")
        self._connection.row_factory = aiosqlite.Row

        await self._connection.executescript(SCHEMA_SQL)
        await self._connection.commit()

        logger.info("Database initialized — all tables ready")

    async def get_connection(self) -> aiosqlite.Connection:
        """Get the active connection, initializing it if necessary."""
        if self._connection is None:
            await self.initialize()
        return self._connection

    async def close(self) -> None:
        """Close the connection. Safe to call when already closed."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("Database connection closed")

    async def __aenter__(self) -> "Database":
        await self.initialize()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

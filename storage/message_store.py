"""
storage/message_store.py — Local message + log store

SQLite-backed store for what passed through the forwarder, kept only for a
short retention window (see storage/cleanup.py).

Tables:
  - messages : incoming SMS (sender, content, timestamp, type)
  - app_logs : forwarding outcomes (timestamp, level, tag, message)

Usage:
    store = MessageStore("./data/sqlite/forwarder.db")
    await store.init()
    await store.record_message(sender="+15551234567", content="Hi")
    await store.record_log("INFO", "SmsForwarder", "Successfully sent to Telegram")
    await store.delete_older_than(time.time() - 30 * 60)
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import aiosqlite

from exceptions import StoreError
from observability.logger import get_logger

log = get_logger(__name__)

# ── Schema DDL ────────────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS messages (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    sender      TEXT NOT NULL,
    content     TEXT NOT NULL,
    timestamp   REAL NOT NULL,
    type        TEXT NOT NULL DEFAULT 'SMS'
);

CREATE TABLE IF NOT EXISTS app_logs (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp   REAL NOT NULL,
    level       TEXT NOT NULL,   -- 'DEBUG' | 'INFO' | 'ERROR'
    tag         TEXT NOT NULL,
    message     TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_messages_timestamp ON messages(timestamp);
CREATE INDEX IF NOT EXISTS idx_app_logs_timestamp ON app_logs(timestamp);
"""


# ── Data classes ──────────────────────────────────────────────────────────────

@dataclass
class StoredMessage:
    id: int
    sender: str
    content: str
    timestamp: float
    type: str = "SMS"


@dataclass
class LogEntry:
    id: int
    timestamp: float
    level: str
    tag: str
    message: str


# ── Main class ────────────────────────────────────────────────────────────────

class MessageStore:
    def __init__(self, db_path: str = "./data/sqlite/forwarder.db"):
        self.db_path = db_path
        self._db: Optional[aiosqlite.Connection] = None

    async def init(self) -> None:
        """Create the database file and tables if they don't exist."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._db = await aiosqlite.connect(self.db_path)
            self._db.row_factory = aiosqlite.Row
            await self._db.executescript(_SCHEMA)
            await self._db.commit()
        except aiosqlite.Error as e:
            raise StoreError(f"Could not open message store at {self.db_path}: {e}") from e
        log.info("message_store.initialized", db_path=self.db_path)

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    def _require_db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StoreError(
                "MessageStore is not initialised (or has been closed). "
                "Call `await store.init()` before use."
            )
        return self._db

    # ── Messages ──────────────────────────────────────────────────────────────

    async def record_message(
        self,
        sender: str,
        content: str,
        type: str = "SMS",
        timestamp: Optional[float] = None,
    ) -> int:
        db = self._require_db()
        try:
            cursor = await db.execute(
                "INSERT INTO messages (sender, content, timestamp, type) VALUES (?, ?, ?, ?)",
                (sender, content, timestamp if timestamp is not None else time.time(), type),
            )
            await db.commit()
        except aiosqlite.Error as e:
            raise StoreError(f"Failed to save message: {e}") from e
        log.debug("message_store.message_saved", message_id=cursor.lastrowid, type=type)
        return cursor.lastrowid

    async def recent_messages(self, n: int = 50) -> list[StoredMessage]:
        db = self._require_db()
        cursor = await db.execute(
            "SELECT * FROM messages ORDER BY timestamp DESC, id DESC LIMIT ?", (n,)
        )
        rows = await cursor.fetchall()
        return [
            StoredMessage(
                id=r["id"],
                sender=r["sender"],
                content=r["content"],
                timestamp=r["timestamp"],
                type=r["type"],
            )
            for r in rows
        ]

    # ── Logs ──────────────────────────────────────────────────────────────────

    async def record_log(
        self,
        level: str,
        tag: str,
        message: str,
        timestamp: Optional[float] = None,
    ) -> int:
        db = self._require_db()
        try:
            cursor = await db.execute(
                "INSERT INTO app_logs (timestamp, level, tag, message) VALUES (?, ?, ?, ?)",
                (timestamp if timestamp is not None else time.time(), level.upper(), tag, message),
            )
            await db.commit()
        except aiosqlite.Error as e:
            raise StoreError(f"Failed to save log entry: {e}") from e
        return cursor.lastrowid

    async def recent_logs(self, n: int = 100) -> list[LogEntry]:
        db = self._require_db()
        cursor = await db.execute(
            "SELECT * FROM app_logs ORDER BY timestamp DESC, id DESC LIMIT ?", (n,)
        )
        rows = await cursor.fetchall()
        return [
            LogEntry(
                id=r["id"],
                timestamp=r["timestamp"],
                level=r["level"],
                tag=r["tag"],
                message=r["message"],
            )
            for r in rows
        ]

    # ── Retention ─────────────────────────────────────────────────────────────

    async def delete_older_than(self, cutoff: float) -> tuple[int, int]:
        """Delete rows with timestamp < cutoff. Returns (messages, logs) removed."""
        db = self._require_db()
        try:
            logs = await db.execute("DELETE FROM app_logs WHERE timestamp < ?", (cutoff,))
            messages = await db.execute("DELETE FROM messages WHERE timestamp < ?", (cutoff,))
            await db.commit()
        except aiosqlite.Error as e:
            raise StoreError(f"Retention sweep failed: {e}") from e
        return messages.rowcount, logs.rowcount

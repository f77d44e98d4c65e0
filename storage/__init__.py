"""
storage/ — Short-retention SQLite store for messages and forwarding logs
"""

from storage.cleanup import RetentionSweeper
from storage.message_store import LogEntry, MessageStore, StoredMessage

__all__ = ["RetentionSweeper", "LogEntry", "MessageStore", "StoredMessage"]

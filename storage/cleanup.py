"""
storage/cleanup.py — Periodic retention sweep for the message store
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

from observability.logger import get_logger
from storage.message_store import MessageStore

log = get_logger(__name__)


class RetentionSweeper:
    """Every `interval_minutes`, delete rows older than `retention_minutes`."""

    def __init__(
        self,
        store: MessageStore,
        retention_minutes: float = 30.0,
        interval_minutes: float = 15.0,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._store = store
        self._retention_s = retention_minutes * 60
        self._interval_s = interval_minutes * 60
        self._clock = clock
        self._sleep = sleep

    async def sweep_once(self) -> tuple[int, int]:
        cutoff = self._clock() - self._retention_s
        messages, logs = await self._store.delete_older_than(cutoff)
        if messages or logs:
            log.info("retention.swept", messages=messages, logs=logs)
        return messages, logs

    async def run(self) -> None:
        while True:
            try:
                await self.sweep_once()
            except Exception as e:
                log.error("retention.sweep_failed", error=str(e))
            await self._sleep(self._interval_s)

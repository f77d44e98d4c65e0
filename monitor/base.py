"""
monitor/base.py — Base class for device event listeners

Each listener owns one queue from the EventRouter and runs as its own task.
A failure while handling one event is logged and the listener moves on to
the next event; only cancellation stops it.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any

from config.runtime import ConfigStore
from dispatch.dispatcher import NotificationDispatcher
from observability.logger import get_logger

log = get_logger(__name__)


class Listener(ABC):
    """
    Subclasses set `name` and implement handle(). Configuration is read from
    `self._config.current` on every event so toggles apply immediately.
    """

    name: str = "listener"

    def __init__(self, config: ConfigStore, dispatcher: NotificationDispatcher):
        self._config = config
        self._dispatcher = dispatcher

    @abstractmethod
    async def handle(self, event: Any) -> None:
        ...

    async def run(self, queue: asyncio.Queue) -> None:
        log.debug("monitor.started", listener=self.name)
        while True:
            event = await queue.get()
            try:
                await self.handle(event)
            except Exception as e:
                log.error(
                    "monitor.handle_failed",
                    listener=self.name,
                    event_type=type(event).__name__,
                    error=str(e),
                    exc_info=True,
                )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"

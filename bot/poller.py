"""
bot/poller.py — Update Poller

Long-polls getUpdates forever:

  Disabled (no token or polling switched off)
      sleep idle_interval, re-read the config snapshot
  Enabled
      fetch_updates(cursor + 1)
        ok     → reset backoff, hand each new update to the handler in API
                 order, pause briefly
        failed → sleep `backoff`, then double it (capped); never give up

The cursor lives in memory only, so a restart replays whatever Telegram
still holds. Updates whose id is not above the cursor are skipped, and any
update from a chat other than the configured one is dropped before it
reaches the handler.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from config.runtime import ConfigStore, RuntimeConfig
from observability.logger import bind_update, clear_update, get_logger
from remote.client import TelegramClient
from remote.types import Update

log = get_logger(__name__)

UpdateHandler = Callable[[Update], Awaitable[None]]


class Backoff:
    """Exponential delay between failed polls, reset on the first success."""

    def __init__(self, floor: float = 2.0, ceiling: float = 60.0):
        if floor <= 0 or ceiling < floor:
            raise ValueError("backoff needs 0 < floor <= ceiling")
        self.floor = floor
        self.ceiling = ceiling
        self._current = floor

    @property
    def current(self) -> float:
        return self._current

    def next_delay(self) -> float:
        """Return the delay to sleep now and double the next one."""
        delay = self._current
        self._current = min(self._current * 2, self.ceiling)
        return delay

    def reset(self) -> None:
        self._current = self.floor


class UpdatePoller:
    def __init__(
        self,
        client: TelegramClient,
        config: ConfigStore,
        handler: UpdateHandler,
        long_poll_timeout: int = 30,
        idle_interval: float = 10.0,
        batch_pause: float = 0.5,
        backoff: Optional[Backoff] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._client = client
        self._config = config
        self._handler = handler
        self._long_poll_timeout = long_poll_timeout
        self._idle_interval = idle_interval
        self._batch_pause = batch_pause
        self._backoff = backoff or Backoff()
        self._sleep = sleep
        self._cursor = 0

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def backoff(self) -> Backoff:
        return self._backoff

    async def run(self) -> None:
        """Poll until cancelled."""
        log.info("poller.started")
        while True:
            delay = await self.poll_once()
            await self._sleep(delay)

    async def poll_once(self) -> float:
        """
        One iteration of the loop. Returns how long to sleep before the next.
        """
        cfg = self._config.current
        if not cfg.polling_enabled:
            return self._idle_interval

        result = await self._client.fetch_updates(
            cfg.credentials.bot_token, self._cursor + 1, self._long_poll_timeout
        )
        if not result.ok:
            delay = self._backoff.next_delay()
            log.warning(
                "poller.fetch_failed",
                error=str(result.error),
                error_type=type(result.error).__name__,
                backoff_s=delay,
            )
            return delay

        self._backoff.reset()
        updates = result.value or []
        if updates:
            log.debug("poller.batch", count=len(updates), cursor=self._cursor)
        for update in updates:
            await self._process(update, cfg)
        return self._batch_pause

    async def _process(self, update: Update, cfg: RuntimeConfig) -> None:
        if update.update_id <= self._cursor:
            log.debug("poller.duplicate", update_id=update.update_id, cursor=self._cursor)
            return
        self._cursor = update.update_id

        if update.payload is None:
            return
        if update.chat_id is None or update.chat_id != cfg.credentials.chat_id:
            log.debug("poller.unauthorized", update_id=update.update_id, chat_id=update.chat_id)
            return

        bind_update(update.update_id, update.chat_id)
        try:
            await self._handler(update)
        except Exception as e:
            log.error("poller.handler_failed", error=str(e), exc_info=True)
        finally:
            clear_update()

"""
dispatch/dispatcher.py — Notification Dispatcher

The single funnel between the forwarder and the Telegram client. Both the
conversation runner (replies) and every device listener (alerts) go through
here, and every path checks the current credentials first: with either the
bot token or the chat id missing, nothing is sent.

Two ways in:

  notify(text)       fire-and-forget. Enqueued onto one queue drained by a
                     single worker task, so alerts reach the chat in the order
                     they were raised. The delivery result is logged and
                     dropped.

  send(text, ...)    awaited. Returns the client's Result so the caller can
                     react (the SMS forwarder logs success/failure, the
                     `verify` command prints it).
"""

from __future__ import annotations

import asyncio
from typing import Optional

from config.runtime import ConfigStore
from exceptions import MissingCredentialsError
from observability.logger import get_logger
from remote.client import TelegramClient
from remote.keyboard import InlineKeyboard
from remote.types import Result

log = get_logger(__name__)


class NotificationDispatcher:
    def __init__(self, client: TelegramClient, config: ConfigStore):
        self._client = client
        self._config = config
        self._queue: asyncio.Queue[str] = asyncio.Queue()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    # ── Fire-and-forget ───────────────────────────────────────────────────────

    def notify(self, text: str) -> bool:
        """
        Queue `text` for delivery to the configured chat.

        Returns False (and queues nothing) when credentials are missing.
        """
        if not self._config.current.credentials.complete:
            log.debug("dispatch.dropped", reason="missing_credentials")
            return False
        self._queue.put_nowait(text)
        return True

    async def run(self) -> None:
        """Worker loop: drain the notify() queue until cancelled."""
        while True:
            text = await self._queue.get()
            try:
                result = await self.send(text)
                if result.ok:
                    log.debug("dispatch.delivered", length=len(text))
            except Exception as e:
                log.error("dispatch.worker_error", error=str(e), exc_info=True)
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        """Wait until every queued notification has been attempted."""
        await self._queue.join()

    # ── Awaited ───────────────────────────────────────────────────────────────

    async def send(
        self,
        text: str,
        markup: Optional[InlineKeyboard] = None,
        chat_id: Optional[str] = None,
    ) -> Result[dict]:
        creds = self._config.current.credentials
        if not creds.complete:
            return Result.failure(MissingCredentialsError())

        result = await self._client.send_message(
            creds.bot_token, chat_id or creds.chat_id, text, markup
        )
        if not result.ok:
            log.warning(
                "dispatch.send_failed",
                error=str(result.error),
                error_type=type(result.error).__name__,
            )
        return result

    async def answer_callback(self, callback_id: str, text: Optional[str] = None) -> Result[bool]:
        creds = self._config.current.credentials
        if not creds.complete:
            return Result.failure(MissingCredentialsError())

        result = await self._client.answer_callback(creds.bot_token, callback_id, text)
        if not result.ok:
            log.warning("dispatch.ack_failed", callback_id=callback_id, error=str(result.error))
        return result

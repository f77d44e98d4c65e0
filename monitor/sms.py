"""
monitor/sms.py — Incoming SMS forwarder

For every SmsReceived, when forwarding is on:
  1. save the message to the local store (a store failure is logged, the
     message is still forwarded)
  2. resolve the sender's contact name
  3. send "📩 New SMS / From: … / body" to the chat, HTML-escaped
  4. record the outcome in app_logs

The send is awaited (not queued) so its result can be logged per message.
"""

from __future__ import annotations

import html
from typing import Optional

from config.runtime import ConfigStore
from device.contacts import ContactBook
from device.events import SmsReceived
from dispatch.dispatcher import NotificationDispatcher
from exceptions import DeviceError, MissingCredentialsError, StoreError
from monitor.base import Listener
from observability.logger import get_logger
from storage.message_store import MessageStore

log = get_logger(__name__)

_TAG = "SmsForwarder"


def format_sms(sender: str, name: Optional[str], body: str, kind: str = "SMS") -> str:
    display = f"{name} ({sender})" if name else sender
    return (
        f"📩 <b>New {kind}</b>\n\n"
        f"<b>From:</b> {html.escape(display)}\n\n"
        f"{html.escape(body)}"
    )


class SmsForwarder(Listener):
    name = "sms"

    def __init__(
        self,
        config: ConfigStore,
        dispatcher: NotificationDispatcher,
        contacts: ContactBook,
        store: Optional[MessageStore] = None,
    ):
        super().__init__(config, dispatcher)
        self._contacts = contacts
        self._store = store

    async def handle(self, event: SmsReceived) -> None:
        if not self._config.current.sms_forwarding:
            await self._record("INFO", "SMS received but forwarding is disabled in settings.")
            return

        sender = event.sender or "Unknown"
        await self._record("INFO", f"Processing SMS from {sender}")
        if self._store is not None:
            try:
                await self._store.record_message(sender, event.body, "SMS", event.timestamp)
            except StoreError as e:
                log.warning("sms.store_failed", error=str(e))

        try:
            name = await self._contacts.name_for_number(sender)
        except DeviceError as e:
            log.warning("sms.name_lookup_failed", error=str(e))
            name = None

        result = await self._dispatcher.send(format_sms(sender, name, event.body))
        if result.ok:
            log.info("sms.forwarded", sender=sender)
            await self._record("INFO", "Successfully sent to Telegram")
        elif isinstance(result.error, MissingCredentialsError):
            await self._record("ERROR", str(result.error))
        else:
            await self._record("ERROR", f"Failed to send to Telegram: {result.error}")

    async def _record(self, level: str, message: str) -> None:
        if self._store is None:
            return
        try:
            await self._store.record_log(level, _TAG, message)
        except StoreError as e:
            log.warning("sms.log_store_failed", error=str(e))

"""
monitor/calls.py — Missed call detection

Heuristic: a call that goes RINGING → IDLE without passing through OFFHOOK
was not answered. The idle event often carries no number, so the number
seen while ringing is remembered and used instead. Rejected calls look the
same and are reported too.

The state is tracked even while the feature is off, so switching it on in
the middle of a ringing call still reports that call correctly.
"""

from __future__ import annotations

import html
from typing import Optional

from config.runtime import ConfigStore
from device.contacts import ContactBook
from device.events import CallState, CallStateChanged
from dispatch.dispatcher import NotificationDispatcher
from exceptions import DeviceError
from monitor.base import Listener
from observability.logger import get_logger

log = get_logger(__name__)


def missed_call_text(number: str, name: Optional[str]) -> str:
    display = f"{name} ({number})" if name else number
    return f"📞 <b>Missed Call</b> from: {html.escape(display)}"


class CallMonitor(Listener):
    name = "calls"

    def __init__(self, config: ConfigStore, dispatcher: NotificationDispatcher, contacts: ContactBook):
        super().__init__(config, dispatcher)
        self._contacts = contacts
        self._last_state = CallState.IDLE
        self._last_incoming: Optional[str] = None

    async def handle(self, event: CallStateChanged) -> None:
        number = self.observe(event)
        if number is None:
            return

        cfg = self._config.current
        if not (cfg.missed_calls and cfg.credentials.complete):
            return

        try:
            name = await self._contacts.name_for_number(number)
        except DeviceError as e:
            log.warning("calls.name_lookup_failed", error=str(e))
            name = None
        log.info("calls.missed", number=number, known=name is not None)
        self._dispatcher.notify(missed_call_text(number, name))

    def observe(self, event: CallStateChanged) -> Optional[str]:
        """Advance the tracked state. Returns the caller's number on a missed call."""
        missed: Optional[str] = None
        if self._last_state is CallState.RINGING and event.state is CallState.IDLE:
            missed = (event.number or "").strip() or self._last_incoming

        if event.state is CallState.RINGING:
            self._last_incoming = (event.number or "").strip() or None

        self._last_state = event.state
        return missed

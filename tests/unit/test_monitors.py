"""
tests/unit/test_monitors.py — Connectivity, missed-call, SMS and system listeners

Covers:
  - Connectivity: one alert per edge, per-direction switches, repeats ignored
  - Missed calls: RINGING → IDLE reports the remembered number with the
    contact name; answered calls (via OFFHOOK) are not reported
  - SMS forwarding: stored, formatted, HTML-escaped, outcome logged;
    disabled / missing credentials paths
  - Boot completed and app updated alerts, each behind its own switch
  - Listener.run() survives a failing handle()
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from config.runtime import ConfigStore, Credentials, RuntimeConfig
from device.contacts import Contact, InMemoryContactBook
from device.events import (
    AirplaneModeChanged,
    BluetoothChanged,
    CallState,
    CallStateChanged,
    SmsReceived,
    SystemEvent,
    SystemEventKind,
    WifiChanged,
)
from exceptions import ApiError, DeviceActionError, MissingCredentialsError, StoreError
from monitor.calls import CallMonitor, missed_call_text
from monitor.connectivity import (
    AIRPLANE_ON,
    BLUETOOTH_DISCONNECTED,
    WIFI_CONNECTED,
    WIFI_DISCONNECTED,
    ConnectivityMonitor,
)
from monitor.sms import SmsForwarder, format_sms
from monitor.system import APP_UPDATED, BOOT_COMPLETED, SystemMonitor
from remote.types import Result

BOOK = InMemoryContactBook([Contact("1", "Alice", "+1 555 123 4567")])


def _config(creds: bool = True, **flags) -> ConfigStore:
    return ConfigStore(RuntimeConfig(
        credentials=Credentials("t", "42") if creds else Credentials(),
        **flags,
    ))


# ── Connectivity ──────────────────────────────────────────────────────────────

class TestConnectivity:
    def test_wifi_edges(self):
        m = ConnectivityMonitor(
            _config(notify_wifi_connected=True, notify_wifi_disconnected=True), MagicMock()
        )
        assert m.evaluate(WifiChanged(True)) == WIFI_CONNECTED
        assert m.evaluate(WifiChanged(True)) is None
        assert m.evaluate(WifiChanged(False)) == WIFI_DISCONNECTED

    def test_direction_switches_are_independent(self):
        m = ConnectivityMonitor(_config(notify_bluetooth_disconnected=True), MagicMock())
        assert m.evaluate(BluetoothChanged(True)) is None
        assert m.evaluate(BluetoothChanged(False)) == BLUETOOTH_DISCONNECTED

    def test_kinds_tracked_separately(self):
        m = ConnectivityMonitor(
            _config(notify_wifi_connected=True, notify_airplane_mode_on=True), MagicMock()
        )
        assert m.evaluate(WifiChanged(True)) == WIFI_CONNECTED
        assert m.evaluate(AirplaneModeChanged(True)) == AIRPLANE_ON

    @pytest.mark.asyncio
    async def test_handle_notifies(self):
        dispatcher = MagicMock()
        m = ConnectivityMonitor(_config(notify_wifi_disconnected=True), dispatcher)
        await m.handle(WifiChanged(False))
        dispatcher.notify.assert_called_once_with(WIFI_DISCONNECTED)

    @pytest.mark.asyncio
    async def test_all_switches_off_sends_nothing(self):
        dispatcher = MagicMock()
        m = ConnectivityMonitor(_config(), dispatcher)
        for event in (WifiChanged(True), BluetoothChanged(True), AirplaneModeChanged(True)):
            await m.handle(event)
        dispatcher.notify.assert_not_called()


# ── Missed calls ──────────────────────────────────────────────────────────────

class TestMissedCalls:
    def _monitor(self, contacts=BOOK, **flags):
        dispatcher = MagicMock()
        flags.setdefault("missed_calls", True)
        return CallMonitor(_config(**flags), dispatcher, contacts), dispatcher

    @pytest.mark.asyncio
    async def test_ring_then_idle_is_missed(self):
        m, dispatcher = self._monitor()
        await m.handle(CallStateChanged(CallState.RINGING, "+15551234567"))
        await m.handle(CallStateChanged(CallState.IDLE))
        dispatcher.notify.assert_called_once_with(
            "📞 <b>Missed Call</b> from: Alice (+15551234567)"
        )

    @pytest.mark.asyncio
    async def test_answered_call_not_reported(self):
        m, dispatcher = self._monitor()
        for state in (CallState.RINGING, CallState.OFFHOOK, CallState.IDLE):
            await m.handle(CallStateChanged(state, "+15551234567"))
        dispatcher.notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_caller_shows_number(self):
        m, dispatcher = self._monitor()
        await m.handle(CallStateChanged(CallState.RINGING, "+19990001111"))
        await m.handle(CallStateChanged(CallState.IDLE))
        dispatcher.notify.assert_called_once_with(missed_call_text("+19990001111", None))

    @pytest.mark.asyncio
    async def test_disabled_feature_still_tracks_state(self):
        store = _config(missed_calls=False)
        dispatcher = MagicMock()
        m = CallMonitor(store, dispatcher, BOOK)

        await m.handle(CallStateChanged(CallState.RINGING, "+15551234567"))
        store.update(missed_calls=True)
        await m.handle(CallStateChanged(CallState.IDLE))

        dispatcher.notify.assert_called_once()

    @pytest.mark.asyncio
    async def test_lookup_failure_falls_back_to_number(self):
        contacts = AsyncMock()
        contacts.name_for_number = AsyncMock(side_effect=DeviceActionError("boom"))
        m, dispatcher = self._monitor(contacts=contacts)
        await m.handle(CallStateChanged(CallState.RINGING, "+1555"))
        await m.handle(CallStateChanged(CallState.IDLE))
        dispatcher.notify.assert_called_once_with(missed_call_text("+1555", None))

    def test_name_is_escaped(self):
        assert missed_call_text("1", "A<b>") == "📞 <b>Missed Call</b> from: A&lt;b&gt; (1)"


# ── SMS forwarding ────────────────────────────────────────────────────────────

class TestSmsForwarder:
    def _forwarder(self, send_result=None, **flags):
        dispatcher = MagicMock()
        dispatcher.send = AsyncMock(return_value=send_result or Result.success({}))
        store = AsyncMock()
        forwarder = SmsForwarder(_config(**flags), dispatcher, BOOK, store)
        return forwarder, dispatcher, store

    def test_format_escapes_body(self):
        text = format_sms("+1555", "Alice", "1 < 2 & 3")
        assert text == "📩 <b>New SMS</b>\n\n<b>From:</b> Alice (+1555)\n\n1 &lt; 2 &amp; 3"

    @pytest.mark.asyncio
    async def test_forwards_with_contact_name(self):
        forwarder, dispatcher, store = self._forwarder()
        await forwarder.handle(SmsReceived("+15551234567", "Hello", timestamp=1.0))

        dispatcher.send.assert_awaited_once_with(
            format_sms("+15551234567", "Alice", "Hello")
        )
        store.record_message.assert_awaited_once_with("+15551234567", "Hello", "SMS", 1.0)
        messages = [c.args[2] for c in store.record_log.await_args_list]
        assert messages == ["Processing SMS from +15551234567", "Successfully sent to Telegram"]

    @pytest.mark.asyncio
    async def test_disabled_only_logs(self):
        forwarder, dispatcher, store = self._forwarder(sms_forwarding=False)
        await forwarder.handle(SmsReceived("+1555", "Hello"))
        dispatcher.send.assert_not_awaited()
        store.record_message.assert_not_awaited()
        store.record_log.assert_awaited_once_with(
            "INFO", "SmsForwarder", "SMS received but forwarding is disabled in settings."
        )

    @pytest.mark.asyncio
    async def test_missing_credentials_logged(self):
        forwarder, _, store = self._forwarder(
            send_result=Result.failure(MissingCredentialsError())
        )
        await forwarder.handle(SmsReceived("+1555", "Hello"))
        store.record_message.assert_awaited_once()
        last = store.record_log.await_args_list[-1].args
        assert last[0] == "ERROR"
        assert "credentials" in last[2]

    @pytest.mark.asyncio
    async def test_send_failure_logged(self):
        forwarder, _, store = self._forwarder(send_result=Result.failure(ApiError("Forbidden", 403)))
        await forwarder.handle(SmsReceived("+1555", "Hello"))
        last = store.record_log.await_args_list[-1].args
        assert last[0] == "ERROR"
        assert last[2].startswith("Failed to send to Telegram: ")

    @pytest.mark.asyncio
    async def test_store_failure_still_forwards(self):
        forwarder, dispatcher, store = self._forwarder()
        store.record_message = AsyncMock(side_effect=StoreError("disk full"))
        await forwarder.handle(SmsReceived("+1555", "Hello"))
        dispatcher.send.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_empty_sender_is_unknown(self):
        forwarder, dispatcher, _ = self._forwarder()
        await forwarder.handle(SmsReceived("", "Hello"))
        assert "<b>From:</b> Unknown" in dispatcher.send.await_args.args[0]


# ── System + listener loop ────────────────────────────────────────────────────

class TestSystem:
    @pytest.mark.asyncio
    async def test_boot_alert(self):
        dispatcher = MagicMock()
        await SystemMonitor(_config(), dispatcher).handle(SystemEvent(SystemEventKind.BOOT_COMPLETED))
        dispatcher.notify.assert_called_once_with(BOOT_COMPLETED)

    @pytest.mark.asyncio
    async def test_boot_alert_disabled(self):
        dispatcher = MagicMock()
        monitor = SystemMonitor(_config(notify_boot_completed=False), dispatcher)
        await monitor.handle(SystemEvent(SystemEventKind.BOOT_COMPLETED))
        dispatcher.notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_app_updated_alert(self):
        dispatcher = MagicMock()
        await SystemMonitor(_config(), dispatcher).handle(SystemEvent(SystemEventKind.APP_UPDATED))
        dispatcher.notify.assert_called_once_with(APP_UPDATED)
        assert APP_UPDATED == "✨ <b>App Updated</b>\nTelegram Forwarder was updated."

    @pytest.mark.asyncio
    async def test_app_updated_alert_disabled(self):
        dispatcher = MagicMock()
        monitor = SystemMonitor(_config(notify_app_updated=False), dispatcher)
        await monitor.handle(SystemEvent(SystemEventKind.APP_UPDATED))
        dispatcher.notify.assert_not_called()


class TestListenerLoop:
    @pytest.mark.asyncio
    async def test_failing_event_does_not_stop_listener(self):
        dispatcher = MagicMock()
        dispatcher.notify.side_effect = [RuntimeError("boom"), True]
        monitor = SystemMonitor(_config(), dispatcher)

        queue: asyncio.Queue = asyncio.Queue()
        queue.put_nowait(SystemEvent(SystemEventKind.BOOT_COMPLETED))
        queue.put_nowait(SystemEvent(SystemEventKind.BOOT_COMPLETED))

        task = asyncio.create_task(monitor.run(queue))
        for _ in range(10):
            await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert dispatcher.notify.call_count == 2

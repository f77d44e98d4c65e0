"""
monitor/connectivity.py — Wi-Fi, Bluetooth and airplane-mode alerts

One alert per edge. A repeated event with the same state as the last one
seen is not an edge and is ignored. Each direction has its own switch.
"""

from __future__ import annotations

from typing import Optional, Union

from device.events import AirplaneModeChanged, BluetoothChanged, WifiChanged
from monitor.base import Listener
from observability.logger import get_logger

log = get_logger(__name__)

WIFI_CONNECTED = "📶 <b>WiFi Connected</b>"
WIFI_DISCONNECTED = "📶 <b>WiFi Disconnected</b>"
BLUETOOTH_CONNECTED = "🔵 <b>Bluetooth Device Connected</b>"
BLUETOOTH_DISCONNECTED = "🔵 <b>Bluetooth Device Disconnected</b>"
AIRPLANE_ON = "✈️ <b>Airplane Mode Enabled</b>"
AIRPLANE_OFF = "✈️ <b>Airplane Mode Disabled</b>"

ConnectivityEvent = Union[WifiChanged, BluetoothChanged, AirplaneModeChanged]


class ConnectivityMonitor(Listener):
    name = "connectivity"

    def __init__(self, config, dispatcher):
        super().__init__(config, dispatcher)
        self._last: dict[type, bool] = {}

    async def handle(self, event: ConnectivityEvent) -> None:
        text = self.evaluate(event)
        if text is not None:
            self._dispatcher.notify(text)

    def evaluate(self, event: ConnectivityEvent) -> Optional[str]:
        if isinstance(event, AirplaneModeChanged):
            on = event.enabled
        else:
            on = event.connected

        kind = type(event)
        if self._last.get(kind) == on:
            return None
        self._last[kind] = on
        log.info("connectivity.changed", kind=kind.__name__, on=on)

        cfg = self._config.current
        if isinstance(event, WifiChanged):
            if on and cfg.notify_wifi_connected:
                return WIFI_CONNECTED
            if not on and cfg.notify_wifi_disconnected:
                return WIFI_DISCONNECTED
        elif isinstance(event, BluetoothChanged):
            if on and cfg.notify_bluetooth_connected:
                return BLUETOOTH_CONNECTED
            if not on and cfg.notify_bluetooth_disconnected:
                return BLUETOOTH_DISCONNECTED
        elif isinstance(event, AirplaneModeChanged):
            if on and cfg.notify_airplane_mode_on:
                return AIRPLANE_ON
            if not on and cfg.notify_airplane_mode_off:
                return AIRPLANE_OFF
        return None

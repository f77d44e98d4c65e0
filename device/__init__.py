"""
device/ — Device capability surface (contacts, SMS, events) and backends
"""

from device.actions import SmsSender, UnavailableSmsSender
from device.contacts import Contact, ContactBook, InMemoryContactBook, normalize_number
from device.events import (
    AirplaneModeChanged,
    BatterySample,
    BatteryStatus,
    BluetoothChanged,
    CallState,
    CallStateChanged,
    EventRouter,
    SmsReceived,
    SystemEvent,
    SystemEventKind,
    WifiChanged,
)

__all__ = [
    "SmsSender",
    "UnavailableSmsSender",
    "Contact",
    "ContactBook",
    "InMemoryContactBook",
    "normalize_number",
    "AirplaneModeChanged",
    "BatterySample",
    "BatteryStatus",
    "BluetoothChanged",
    "CallState",
    "CallStateChanged",
    "EventRouter",
    "SmsReceived",
    "SystemEvent",
    "SystemEventKind",
    "WifiChanged",
]

"""
device/events.py — Device event types + fan-out router

Whatever observes the device (the Termux source, a host integration, a test)
publishes events to one EventRouter. Each listener subscribes to the event
types it cares about and gets its own queue, so a slow listener never delays
another.

    router = EventRouter()
    battery_q = router.subscribe(BatterySample)
    router.publish(BatterySample(level=42, scale=100, status=BatteryStatus.CHARGING))
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from observability.logger import get_logger

log = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────────────────────────────────────


class BatteryStatus(str, Enum):
    CHARGING = "charging"
    DISCHARGING = "discharging"
    FULL = "full"
    NOT_CHARGING = "not_charging"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "BatteryStatus":
        try:
            return cls((raw or "").strip().lower())
        except ValueError:
            return cls.UNKNOWN


class CallState(str, Enum):
    IDLE = "idle"
    RINGING = "ringing"
    OFFHOOK = "offhook"


class SystemEventKind(str, Enum):
    BOOT_COMPLETED = "boot_completed"
    APP_UPDATED = "app_updated"


# ─────────────────────────────────────────────────────────────────────────────
# Events
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class BatterySample:
    level: int
    scale: int
    status: BatteryStatus

    @property
    def percentage(self) -> float:
        if self.scale <= 0:
            return 0.0
        return self.level * 100 / self.scale

    @property
    def charging(self) -> bool:
        return self.status in (BatteryStatus.CHARGING, BatteryStatus.FULL)


@dataclass(frozen=True)
class WifiChanged:
    connected: bool


@dataclass(frozen=True)
class BluetoothChanged:
    connected: bool


@dataclass(frozen=True)
class AirplaneModeChanged:
    enabled: bool


@dataclass(frozen=True)
class CallStateChanged:
    state: CallState
    number: Optional[str] = None


@dataclass(frozen=True)
class SmsReceived:
    sender: str
    body: str
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class SystemEvent:
    kind: SystemEventKind


DeviceEvent = Union[
    BatterySample,
    WifiChanged,
    BluetoothChanged,
    AirplaneModeChanged,
    CallStateChanged,
    SmsReceived,
    SystemEvent,
]


# ─────────────────────────────────────────────────────────────────────────────
# Router
# ─────────────────────────────────────────────────────────────────────────────


class EventRouter:
    """Fan device events out to per-listener queues by event type."""

    def __init__(self) -> None:
        self._subscribers: list[tuple[tuple[type, ...], asyncio.Queue]] = []

    def subscribe(self, *event_types: type) -> asyncio.Queue:
        """Return a new unbounded queue receiving every event of `event_types`."""
        if not event_types:
            raise ValueError("subscribe() needs at least one event type")
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.append((event_types, queue))
        return queue

    def publish(self, event: DeviceEvent) -> int:
        """Deliver `event` to every matching queue. Returns the delivery count."""
        delivered = 0
        for types, queue in self._subscribers:
            if isinstance(event, types):
                queue.put_nowait(event)
                delivered += 1
        if delivered == 0:
            log.debug("events.unrouted", event_type=type(event).__name__)
        return delivered

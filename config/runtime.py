"""
config/runtime.py — Live Configuration Snapshot + Broadcast

Every long-running task (poller, listeners, dispatcher) reads configuration
from one ConfigStore. The store holds an immutable RuntimeConfig that is
replaced atomically on every change, so a reader always sees a consistent
snapshot and never waits on a writer.

Usage:
    store = ConfigStore(RuntimeConfig.from_settings(settings))
    cfg = store.current                    # non-blocking read
    store.update(bot_polling=False)        # single writer publishes
    async for cfg in store.watch():        # react to changes
        ...
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from typing import AsyncIterator, Optional

from config.settings import Settings
from observability.logger import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class Credentials:
    """Bot token + the single authorized chat identity."""
    bot_token: Optional[str] = None
    chat_id: Optional[str] = None

    @property
    def complete(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    def __repr__(self) -> str:
        token = "set" if self.bot_token else "unset"
        return f"Credentials(bot_token=<{token}>, chat_id={self.chat_id!r})"


@dataclass(frozen=True)
class RuntimeConfig:
    """Immutable view of everything the running tasks consult."""

    credentials: Credentials = field(default_factory=Credentials)

    bot_polling: bool = False
    sms_forwarding: bool = True
    missed_calls: bool = False

    battery_notify: bool = False
    enhanced_battery_alerts: bool = True
    battery_low_threshold: float = 20.0
    battery_high_threshold: float = 90.0

    notify_boot_completed: bool = True
    notify_app_updated: bool = True
    notify_power_connected: bool = False
    notify_power_disconnected: bool = False
    notify_airplane_mode_on: bool = False
    notify_airplane_mode_off: bool = False
    notify_wifi_connected: bool = False
    notify_wifi_disconnected: bool = False
    notify_bluetooth_connected: bool = False
    notify_bluetooth_disconnected: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "RuntimeConfig":
        f = settings.features
        return cls(
            credentials=Credentials(
                bot_token=settings.telegram_bot_token,
                chat_id=settings.telegram_chat_id,
            ),
            bot_polling=f.bot_polling,
            sms_forwarding=f.sms_forwarding,
            missed_calls=f.missed_calls,
            battery_notify=f.battery_notify,
            enhanced_battery_alerts=f.enhanced_battery_alerts,
            battery_low_threshold=settings.battery.low_threshold,
            battery_high_threshold=settings.battery.high_threshold,
            notify_boot_completed=f.notify_boot_completed,
            notify_app_updated=f.notify_app_updated,
            notify_power_connected=f.notify_power_connected,
            notify_power_disconnected=f.notify_power_disconnected,
            notify_airplane_mode_on=f.notify_airplane_mode_on,
            notify_airplane_mode_off=f.notify_airplane_mode_off,
            notify_wifi_connected=f.notify_wifi_connected,
            notify_wifi_disconnected=f.notify_wifi_disconnected,
            notify_bluetooth_connected=f.notify_bluetooth_connected,
            notify_bluetooth_disconnected=f.notify_bluetooth_disconnected,
        )

    @property
    def polling_enabled(self) -> bool:
        return self.bot_polling and bool(self.credentials.bot_token)


class ConfigStore:
    """
    Single-writer, multi-reader broadcast of RuntimeConfig snapshots.

    `current` is a plain attribute read. `watch()` yields the snapshot at
    subscription time and then every published snapshot; a slow watcher
    skips intermediate versions and always lands on the latest.
    """

    def __init__(self, initial: Optional[RuntimeConfig] = None):
        self._current = initial or RuntimeConfig()
        self._version = 0
        self._changed = asyncio.Event()

    @property
    def current(self) -> RuntimeConfig:
        return self._current

    @property
    def version(self) -> int:
        return self._version

    def publish(self, config: RuntimeConfig) -> None:
        """Replace the snapshot and wake every watcher."""
        self._current = config
        self._version += 1
        # Swap the event first so watchers that wake re-arm on a fresh one
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()
        log.info(
            "config.published",
            version=self._version,
            credentials=repr(config.credentials),
            bot_polling=config.bot_polling,
        )

    def update(self, **changes) -> RuntimeConfig:
        """Publish a copy of the current snapshot with `changes` applied."""
        new = replace(self._current, **changes)
        self.publish(new)
        return new

    async def watch(self) -> AsyncIterator[RuntimeConfig]:
        seen = self._version
        yield self._current
        while True:
            if self._version == seen:
                await self._changed.wait()
            seen = self._version
            yield self._current

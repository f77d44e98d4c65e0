"""
monitor/system.py — System lifecycle alerts (boot completed, app updated)
"""

from __future__ import annotations

from device.events import SystemEvent, SystemEventKind
from monitor.base import Listener
from observability.logger import get_logger

log = get_logger(__name__)

BOOT_COMPLETED = "🚀 <b>System Boot Completed</b>\nTelegram Forwarder is active."
APP_UPDATED = "✨ <b>App Updated</b>\nTelegram Forwarder was updated."


class SystemMonitor(Listener):
    name = "system"

    async def handle(self, event: SystemEvent) -> None:
        cfg = self._config.current
        if event.kind is SystemEventKind.BOOT_COMPLETED:
            log.info("system.boot_completed")
            if cfg.notify_boot_completed:
                self._dispatcher.notify(BOOT_COMPLETED)
        elif event.kind is SystemEventKind.APP_UPDATED:
            log.info("system.app_updated")
            if cfg.notify_app_updated:
                self._dispatcher.notify(APP_UPDATED)

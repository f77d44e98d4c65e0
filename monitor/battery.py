"""
monitor/battery.py — Battery level + charging transition alerts

Every BatterySample is checked for two independent things:

  1. Charging transitions (plugged ↔ unplugged). The first sample only
     establishes the baseline. Gated by notify_power_connected /
     notify_power_disconnected.

  2. Level alerts, only when battery notifications are on and credentials
     are configured. Two modes:

     Simple (enhanced_battery_alerts = False)
       sticky flags: one "Battery Low" at or below the low threshold, one
       "Battery Charged" at or above the high threshold; each flag clears
       once the level leaves its zone.

     Enhanced (enhanced_battery_alerts = True)
       charging:    alert when the level first equals 90, 95 or 100 and is
                    above the last reported level ("recommended to unplug"
                    from 95), then a reminder every 10 minutes at 100.
       discharging: alert when the level first equals 20, 15, 10 or 5.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional

from config.runtime import ConfigStore, RuntimeConfig
from device.events import BatterySample
from dispatch.dispatcher import NotificationDispatcher
from monitor.base import Listener
from observability.logger import get_logger

log = get_logger(__name__)

CHARGING_STEPS = (90, 95, 100)
DISCHARGING_STEPS = (20, 15, 10, 5)
UNPLUG_RECOMMENDED_FROM = 95
FULL_REMINDER_SECONDS = 10 * 60

POWER_CONNECTED = "🔌 <b>Power Connected</b>"
POWER_DISCONNECTED = "🔌 <b>Power Disconnected</b>"
FULL_REMINDER = "🔋 <b>Battery Fully Charged:</b> 100%\nIt is recommended to unplug."


def low_alert(level: int) -> str:
    return f"⚠️ <b>Battery Low:</b> {level}%"


def charged_alert(level: int, unplug_hint: bool = False) -> str:
    text = f"🔋 <b>Battery Charged:</b> {level}%"
    if unplug_hint:
        text += "\nIt is recommended to unplug."
    return text


@dataclass
class BatteryMonitorState:
    """In-memory only; a restart starts from a blank state."""
    last_reported_level: int = -1
    last_report_at: float = 0.0
    charging: Optional[bool] = None     # None until the first sample
    notified_low: bool = False
    notified_high: bool = False


class BatteryMonitor(Listener):
    name = "battery"

    def __init__(
        self,
        config: ConfigStore,
        dispatcher: NotificationDispatcher,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(config, dispatcher)
        self._clock = clock
        self.state = BatteryMonitorState()

    async def handle(self, event: BatterySample) -> None:
        for text in self.evaluate(event):
            self._dispatcher.notify(text)

    def evaluate(self, sample: BatterySample) -> list[str]:
        """Update state from one sample and return the alerts it raises."""
        cfg = self._config.current
        alerts = self._power_transition(sample.charging, cfg)

        if sample.level < 0 or sample.scale <= 0:
            return alerts
        if not (cfg.battery_notify and cfg.credentials.complete):
            return alerts

        pct = sample.percentage
        if cfg.enhanced_battery_alerts:
            alerts.extend(self._enhanced(int(pct), sample.charging))
        else:
            alerts.extend(self._simple(pct, cfg))
        return alerts

    # ── Charging transitions ─────────────────────────────────────────────────

    def _power_transition(self, charging: bool, cfg: RuntimeConfig) -> list[str]:
        was_charging, self.state.charging = self.state.charging, charging
        if was_charging is None or was_charging == charging:
            return []
        log.info("battery.power_changed", charging=charging)
        if charging and cfg.notify_power_connected:
            return [POWER_CONNECTED]
        if not charging and cfg.notify_power_disconnected:
            return [POWER_DISCONNECTED]
        return []

    # ── Simple threshold mode ────────────────────────────────────────────────

    def _simple(self, pct: float, cfg: RuntimeConfig) -> list[str]:
        alerts: list[str] = []
        st = self.state

        if pct <= cfg.battery_low_threshold:
            if not st.notified_low:
                alerts.append(low_alert(int(pct)))
                st.notified_low = True
        else:
            st.notified_low = False

        if pct >= cfg.battery_high_threshold:
            if not st.notified_high:
                alerts.append(charged_alert(int(pct)))
                st.notified_high = True
        else:
            st.notified_high = False

        return alerts

    # ── Enhanced step mode ───────────────────────────────────────────────────

    def _enhanced(self, level: int, charging: bool) -> list[str]:
        st = self.state
        now = self._clock()

        if charging:
            if level in CHARGING_STEPS and level > st.last_reported_level:
                st.last_reported_level = level
                st.last_report_at = now
                return [charged_alert(level, unplug_hint=level >= UNPLUG_RECOMMENDED_FROM)]
            if level == 100 and now - st.last_report_at >= FULL_REMINDER_SECONDS:
                st.last_report_at = now
                return [FULL_REMINDER]
            return []

        if level in DISCHARGING_STEPS and level != st.last_reported_level:
            st.last_reported_level = level
            return [low_alert(level)]
        return []

"""
device/termux.py — Termux:API device backend

Runs the forwarder directly on an Android phone inside Termux, using the
Termux:API command-line tools:

  termux-contact-list          → TermuxContactBook
  termux-sms-send              → TermuxSmsSender
  termux-battery-status        ┐
  termux-wifi-connectioninfo   ├ TermuxEventSource (sampled, published to the router)
  termux-sms-list              ┘

Each tool prints JSON on stdout. Missing tools raise DeviceUnavailableError,
a non-zero exit raises DeviceActionError (or PermissionDeniedError when the
tool reports a permission problem), and a command that hangs past its
timeout is killed.

Termux:API has no broadcast hook for call state, Bluetooth or airplane mode,
so this backend never produces CallStateChanged, BluetoothChanged or
AirplaneModeChanged. Host integrations (a Tasker or termux-job-scheduler hook,
for example) report those through ForwarderService.publish().
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Awaitable, Callable, Optional

from device.contacts import Contact, InMemoryContactBook
from device.events import (
    BatterySample,
    BatteryStatus,
    EventRouter,
    SmsReceived,
    WifiChanged,
)
from exceptions import DeviceActionError, DeviceUnavailableError, PermissionDeniedError
from observability.logger import get_logger

log = get_logger(__name__)

_PERMISSION_MARKERS = ("permission", "not granted", "securityexception")

Runner = Callable[..., Awaitable[str]]


# ─────────────────────────────────────────────────────────────────────────────
# Command runner
# ─────────────────────────────────────────────────────────────────────────────


async def run_termux(*args: str, timeout: float = 20.0, capability: str = "device") -> str:
    """
    Run one Termux:API command and return its decoded stdout.

    Raises:
        DeviceUnavailableError: the command is not installed.
        PermissionDeniedError:  the tool reported a missing Android permission.
        DeviceActionError:      could not start, non-zero exit, or timeout.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        raise DeviceUnavailableError(f"{args[0]} not found. Install the termux-api package.")
    except OSError as e:
        raise DeviceActionError(f"{args[0]} could not be started: {e}")

    try:
        stdout_b, stderr_b = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.communicate()
        raise DeviceActionError(f"{args[0]} timed out after {timeout} seconds")

    stdout = stdout_b.decode("utf-8", errors="replace")
    stderr = stderr_b.decode("utf-8", errors="replace").strip()

    error = _reported_error(stdout)
    if proc.returncode != 0 or error is not None:
        message = error or stderr or f"{args[0]} exited with code {proc.returncode}"
        if any(marker in message.lower() for marker in _PERMISSION_MARKERS):
            raise PermissionDeniedError(capability, message)
        raise DeviceActionError(message)
    return stdout


def _reported_error(stdout: str) -> Optional[str]:
    """Termux:API tools exit 0 and print {"error": "..."} for some failures."""
    text = stdout.strip()
    if not text.startswith("{"):
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return None


def _parse_json(raw: str, command: str) -> Any:
    raw = raw.strip()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise DeviceActionError(f"{command} printed invalid JSON: {e}")


# ─────────────────────────────────────────────────────────────────────────────
# Contacts + SMS
# ─────────────────────────────────────────────────────────────────────────────


class TermuxContactBook:
    """
    ContactBook backed by `termux-contact-list`.

    The full list is loaded once and reused for `cache_seconds`, so paging
    through 20-entry pages doesn't re-run the command for every button press.
    """

    def __init__(
        self,
        timeout: float = 20.0,
        cache_seconds: float = 60.0,
        runner: Runner = run_termux,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._timeout = timeout
        self._cache_seconds = cache_seconds
        self._runner = runner
        self._clock = clock
        self._book: Optional[InMemoryContactBook] = None
        self._loaded_at = 0.0

    async def _load(self) -> InMemoryContactBook:
        now = self._clock()
        if self._book is not None and now - self._loaded_at < self._cache_seconds:
            return self._book

        raw = await self._runner(
            "termux-contact-list", timeout=self._timeout, capability="contacts"
        )
        entries = _parse_json(raw, "termux-contact-list") or []
        contacts = [
            Contact(
                id=str(i),
                display_name=str(e.get("name") or e.get("number") or ""),
                phone_number=str(e.get("number") or ""),
            )
            for i, e in enumerate(entries)
            if isinstance(e, dict) and e.get("number")
        ]
        self._book = InMemoryContactBook(contacts)
        self._loaded_at = now
        log.debug("termux.contacts_loaded", count=len(contacts))
        return self._book

    async def name_for_number(self, number: str) -> Optional[str]:
        return await (await self._load()).name_for_number(number)

    async def search(self, query: str) -> list[Contact]:
        return await (await self._load()).search(query)

    async def page(self, offset: int, limit: int) -> list[Contact]:
        return await (await self._load()).page(offset, limit)


class TermuxSmsSender:
    def __init__(self, timeout: float = 20.0, runner: Runner = run_termux):
        self._timeout = timeout
        self._runner = runner

    async def send_sms(self, number: str, body: str) -> None:
        await self._runner(
            "termux-sms-send", "-n", number, body,
            timeout=self._timeout, capability="sms",
        )
        log.info("termux.sms_sent", number=number, length=len(body))


# ─────────────────────────────────────────────────────────────────────────────
# Event source
# ─────────────────────────────────────────────────────────────────────────────


class TermuxEventSource:
    """
    Samples battery, Wi-Fi and the SMS inbox on fixed intervals and publishes
    the results to an EventRouter.

      - battery: every readable sample is published; the battery monitor does
        its own edge detection. A reading without a percentage is skipped.
      - wifi: published only when the connection state changes. The first
        sample is a baseline.
      - sms: inbox messages not seen before are published as SmsReceived.
        Messages already in the inbox at startup are the baseline and are
        never forwarded.
    """

    def __init__(
        self,
        router: EventRouter,
        battery_interval: float = 60.0,
        wifi_interval: float = 30.0,
        sms_interval: float = 15.0,
        timeout: float = 20.0,
        runner: Runner = run_termux,
    ):
        self._router = router
        self._battery_interval = battery_interval
        self._wifi_interval = wifi_interval
        self._sms_interval = sms_interval
        self._timeout = timeout
        self._runner = runner

        self._wifi_connected: Optional[bool] = None
        self._seen_sms: Optional[set[str]] = None

    # ── Samplers (one pass each, used directly by tests) ─────────────────────

    async def sample_battery(self) -> Optional[BatterySample]:
        raw = await self._runner("termux-battery-status", timeout=self._timeout, capability="battery")
        data = _parse_json(raw, "termux-battery-status")
        raw_level = data.get("percentage") if isinstance(data, dict) else None
        try:
            level = int(raw_level)
        except (TypeError, ValueError):
            log.warning("termux.battery_unreadable", percentage=raw_level)
            return None
        sample = BatterySample(
            level=level,
            scale=100,
            status=BatteryStatus.parse(data.get("status")),
        )
        self._router.publish(sample)
        return sample

    async def sample_wifi(self) -> Optional[WifiChanged]:
        raw = await self._runner("termux-wifi-connectioninfo", timeout=self._timeout, capability="wifi")
        data = _parse_json(raw, "termux-wifi-connectioninfo") or {}
        connected = str(data.get("supplicant_state", "")).upper() == "COMPLETED"

        previous, self._wifi_connected = self._wifi_connected, connected
        if previous is None or previous == connected:
            return None
        event = WifiChanged(connected=connected)
        self._router.publish(event)
        return event

    async def sample_sms(self) -> list[SmsReceived]:
        raw = await self._runner(
            "termux-sms-list", "-t", "inbox", "-l", "50",
            timeout=self._timeout, capability="sms",
        )
        entries = [e for e in (_parse_json(raw, "termux-sms-list") or []) if isinstance(e, dict)]

        keys = [self._sms_key(e) for e in entries]
        if self._seen_sms is None:
            self._seen_sms = set(keys)
            log.debug("termux.sms_baseline", count=len(keys))
            return []

        fresh: list[SmsReceived] = []
        # termux-sms-list prints oldest first
        for key, entry in zip(keys, entries):
            if key in self._seen_sms:
                continue
            self._seen_sms.add(key)
            event = SmsReceived(
                sender=str(entry.get("number") or ""),
                body=str(entry.get("body") or ""),
            )
            self._router.publish(event)
            fresh.append(event)
        # Only the current listing can repeat, so older keys are dropped
        self._seen_sms = set(keys)
        return fresh

    @staticmethod
    def _sms_key(entry: dict) -> str:
        if entry.get("_id") is not None:
            return str(entry["_id"])
        return f"{entry.get('number')}|{entry.get('received')}|{entry.get('body')}"

    # ── Loops ────────────────────────────────────────────────────────────────

    async def run(self) -> None:
        """Run all three samplers until cancelled."""
        await asyncio.gather(
            self._loop("battery", self.sample_battery, self._battery_interval),
            self._loop("wifi", self.sample_wifi, self._wifi_interval),
            self._loop("sms", self.sample_sms, self._sms_interval),
        )

    async def _loop(self, name: str, sample: Callable[[], Awaitable[Any]], interval: float) -> None:
        while True:
            try:
                await sample()
            except DeviceUnavailableError as e:
                log.warning("termux.sampler_stopped", sampler=name, reason=str(e))
                return
            except Exception as e:
                log.warning("termux.sample_failed", sampler=name, error=str(e))
            await asyncio.sleep(interval)

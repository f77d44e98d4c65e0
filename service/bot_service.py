"""
service/bot_service.py — Forwarder service wiring + lifecycle

Builds every component from Settings and runs them as sibling asyncio tasks:

  poller        getUpdates long-poll → conversation runner
  dispatcher    drains notify() queue → Telegram
  listeners     battery, connectivity, calls, sms, system (one task each,
                each reading its own EventRouter queue)
  event source  Termux samplers publishing into the router (termux backend)
  sweeper       retention cleanup of the message store
  config watch  logs every new configuration snapshot

stop() cancels all of them together; in-flight calls are abandoned.
SIGHUP reloads settings from disk and publishes a new snapshot; SIGINT and
SIGTERM stop the service.
"""

from __future__ import annotations

import asyncio
import signal
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from bot.poller import Backoff, UpdatePoller
from bot.runner import ConversationRunner
from config.runtime import ConfigStore, RuntimeConfig
from config.settings import ConfigError, Settings, load_settings
from device.actions import SmsSender, UnavailableSmsSender
from device.contacts import ContactBook, InMemoryContactBook
from device.events import (
    AirplaneModeChanged,
    BatterySample,
    BluetoothChanged,
    CallStateChanged,
    DeviceEvent,
    EventRouter,
    SmsReceived,
    SystemEvent,
    SystemEventKind,
    WifiChanged,
)
from device.termux import TermuxContactBook, TermuxEventSource, TermuxSmsSender
from dispatch.dispatcher import NotificationDispatcher
from monitor.battery import BatteryMonitor
from monitor.calls import CallMonitor
from monitor.connectivity import ConnectivityMonitor
from monitor.sms import SmsForwarder
from monitor.system import SystemMonitor
from observability.logger import get_logger
from remote.client import TelegramClient
from storage.cleanup import RetentionSweeper
from storage.message_store import MessageStore

log = get_logger(__name__)


class ForwarderService:
    """
    Owns every long-running task of the forwarder.

    Collaborators can be injected (tests pass a client over
    httpx.MockTransport, an in-memory contact book and a fake SMS sender);
    anything not given is built from `settings`.
    """

    def __init__(
        self,
        settings: Settings,
        config_path: str | Path | None = None,
        env_path: str | Path | None = None,
        client: Optional[TelegramClient] = None,
        contacts: Optional[ContactBook] = None,
        sms: Optional[SmsSender] = None,
        store: Optional[MessageStore] = None,
        event_source: Optional[TermuxEventSource] = None,
    ):
        self._settings = settings
        self._config_path = config_path
        self._env_path = env_path
        self.config = ConfigStore(RuntimeConfig.from_settings(settings))
        self.router = EventRouter()

        self.client = client or TelegramClient(timeout=settings.polling.http_timeout_seconds)
        self.store = store or MessageStore(settings.storage.sqlite_path)

        device = settings.device
        if device.backend == "termux":
            self.contacts = (
                contacts if contacts is not None
                else TermuxContactBook(timeout=device.command_timeout_seconds)
            )
            self.sms = sms if sms is not None else TermuxSmsSender(timeout=device.command_timeout_seconds)
            self.event_source = event_source or TermuxEventSource(
                self.router,
                battery_interval=device.battery_sample_seconds,
                wifi_interval=device.wifi_sample_seconds,
                sms_interval=device.sms_sample_seconds,
                timeout=device.command_timeout_seconds,
            )
        else:
            self.contacts = contacts if contacts is not None else InMemoryContactBook()
            self.sms = sms if sms is not None else UnavailableSmsSender()
            self.event_source = event_source

        self.dispatcher = NotificationDispatcher(self.client, self.config)
        self.runner = ConversationRunner(self.contacts, self.sms, self.dispatcher)

        polling = settings.polling
        self.poller = UpdatePoller(
            self.client,
            self.config,
            self.runner.handle,
            long_poll_timeout=polling.long_poll_timeout_seconds,
            idle_interval=polling.idle_interval_seconds,
            batch_pause=polling.batch_pause_seconds,
            backoff=Backoff(polling.backoff_floor_seconds, polling.backoff_ceiling_seconds),
        )
        self.sweeper = RetentionSweeper(
            self.store,
            retention_minutes=settings.storage.retention_minutes,
            interval_minutes=settings.storage.cleanup_interval_minutes,
        )

        self.battery = BatteryMonitor(self.config, self.dispatcher)
        self.connectivity = ConnectivityMonitor(self.config, self.dispatcher)
        self.calls = CallMonitor(self.config, self.dispatcher, self.contacts)
        self.sms_forwarder = SmsForwarder(self.config, self.dispatcher, self.contacts, self.store)
        self.system = SystemMonitor(self.config, self.dispatcher)

        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def start(self) -> None:
        if self._tasks:
            return
        await self.store.init()

        # Subscribe before any task runs so no early event is lost
        subscriptions = [
            (self.battery, self.router.subscribe(BatterySample)),
            (self.connectivity, self.router.subscribe(WifiChanged, BluetoothChanged, AirplaneModeChanged)),
            (self.calls, self.router.subscribe(CallStateChanged)),
            (self.sms_forwarder, self.router.subscribe(SmsReceived)),
            (self.system, self.router.subscribe(SystemEvent)),
        ]

        self._spawn("dispatcher", self.dispatcher.run())
        self._spawn("poller", self.poller.run())
        self._spawn("sweeper", self.sweeper.run())
        self._spawn("config_watch", self._watch_config())
        for listener, queue in subscriptions:
            self._spawn(f"listener.{listener.name}", listener.run(queue))
        if self.event_source is not None:
            self._spawn("event_source", self.event_source.run())

        cfg = self.config.current
        log.info(
            "service.started",
            tasks=len(self._tasks),
            backend=self._settings.device.backend,
            polling=cfg.polling_enabled,
            credentials=cfg.credentials.complete,
        )

    async def stop(self) -> None:
        """Cancel every task together and release connections."""
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        await self.client.aclose()
        await self.store.close()
        log.info("service.stopped")

    async def serve_forever(self, boot: bool = False, updated: bool = False) -> None:
        """Start, optionally announce boot / update, and run until SIGINT/SIGTERM."""
        await self.start()
        stop_requested = asyncio.Event()
        self._install_signal_handlers(stop_requested)
        if boot:
            self.publish(SystemEvent(SystemEventKind.BOOT_COMPLETED))
        if updated:
            self.publish(SystemEvent(SystemEventKind.APP_UPDATED))
        try:
            await stop_requested.wait()
        finally:
            await self.stop()

    # ── Events + configuration ───────────────────────────────────────────────

    def publish(self, event: DeviceEvent) -> int:
        """Entry point for host integrations reporting device events."""
        return self.router.publish(event)

    def reload(self, settings: Optional[Settings] = None) -> RuntimeConfig:
        """
        Publish a new configuration snapshot. Without `settings`, re-read the
        .env file, the config file and the environment; an invalid file keeps
        the old snapshot.
        """
        if settings is None:
            try:
                if self._env_path is not None:
                    # .env values were copied into os.environ at startup and
                    # environment variables outrank the env file, so re-apply it
                    load_dotenv(self._env_path, override=True)
                settings = load_settings(self._config_path)
                settings.validate_all()
            except (ConfigError, ValueError, OSError) as e:
                log.error("service.reload_failed", error=str(e))
                return self.config.current
        self._settings = settings
        new = RuntimeConfig.from_settings(settings)
        self.config.publish(new)
        return new

    async def _watch_config(self) -> None:
        async for cfg in self.config.watch():
            log.info(
                "service.config_applied",
                version=self.config.version,
                polling=cfg.polling_enabled,
                sms_forwarding=cfg.sms_forwarding,
                battery_notify=cfg.battery_notify,
                missed_calls=cfg.missed_calls,
                credentials=cfg.credentials.complete,
            )

    # ── Internals ─────────────────────────────────────────────────────────────

    def _spawn(self, name: str, coro) -> None:
        task = asyncio.create_task(coro, name=name)
        task.add_done_callback(self._on_task_done)
        self._tasks.append(task)

    @staticmethod
    def _on_task_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("service.task_crashed", task=task.get_name(), error=str(exc), exc_info=exc)
        else:
            log.debug("service.task_finished", task=task.get_name())

    def _install_signal_handlers(self, stop_requested: asyncio.Event) -> None:
        loop = asyncio.get_running_loop()
        handlers = {
            signal.SIGINT: stop_requested.set,
            signal.SIGTERM: stop_requested.set,
        }
        if hasattr(signal, "SIGHUP"):
            handlers[signal.SIGHUP] = lambda: self.reload()
        for sig, handler in handlers.items():
            try:
                loop.add_signal_handler(sig, handler)
            except (NotImplementedError, RuntimeError):
                # Not supported on this platform/loop (e.g. Windows)
                log.debug("service.signal_unsupported", signal=sig.name)

"""
exceptions.py — Telegram Forwarder Unified Error Hierarchy

All forwarder-specific exceptions live here. Every layer raises typed
subclasses of ForwarderError — never bare Exception.

Import from here, not from individual modules:
    from exceptions import NetworkError, PermissionDeniedError

Hierarchy:
    ForwarderError
    ├── RemoteError
    │   ├── NetworkError
    │   └── ApiError
    ├── MissingCredentialsError
    ├── DeviceError
    │   ├── PermissionDeniedError
    │   ├── DeviceActionError
    │   └── DeviceUnavailableError
    ├── ContactsNotFoundError
    └── StoreError

ConfigError lives in config/settings.py next to the validation that raises it.
"""

from __future__ import annotations

from typing import Optional


# ─────────────────────────────────────────────────────────────────────────────
# Root
# ─────────────────────────────────────────────────────────────────────────────

class ForwarderError(Exception):
    """Base class for all Telegram Forwarder exceptions."""


# ─────────────────────────────────────────────────────────────────────────────
# Remote (Bot API) layer
# ─────────────────────────────────────────────────────────────────────────────

class RemoteError(ForwarderError):
    """Base for failures talking to the Telegram Bot API."""


class NetworkError(RemoteError):
    """Transport-level failure: DNS, connect, TLS, read timeout."""


class ApiError(RemoteError):
    """The API was reachable but answered with an error or a non-ok payload."""

    def __init__(self, message: str, error_code: Optional[int] = None) -> None:
        self.message = message
        self.error_code = error_code
        super().__init__(message)


class MissingCredentialsError(ForwarderError):
    """Bot token or chat id is not configured, so nothing can be sent."""

    def __init__(self, message: str = "Telegram credentials not set (bot token or chat id missing).") -> None:
        super().__init__(message)


# ─────────────────────────────────────────────────────────────────────────────
# Device layer
# ─────────────────────────────────────────────────────────────────────────────

class DeviceError(ForwarderError):
    """Base for device capability failures."""


class PermissionDeniedError(DeviceError):
    """The device refused the action because a permission is missing."""

    def __init__(self, capability: str, message: str = "") -> None:
        self.capability = capability
        super().__init__(message or f"Permission for '{capability}' has not been granted.")


class DeviceActionError(DeviceError):
    """The device accepted the request but the action itself failed."""


class DeviceUnavailableError(DeviceError):
    """No backend is available for the requested capability."""


class ContactsNotFoundError(ForwarderError):
    """A contact search matched nothing."""

    def __init__(self, query: str) -> None:
        self.query = query
        super().__init__(f"No contacts found for '{query}'.")


# ─────────────────────────────────────────────────────────────────────────────
# Storage layer
# ─────────────────────────────────────────────────────────────────────────────

class StoreError(ForwarderError):
    """A message/log store operation failed or the store is not initialised."""


__all__ = [
    "ForwarderError",
    # Remote
    "RemoteError",
    "NetworkError",
    "ApiError",
    "MissingCredentialsError",
    # Device
    "DeviceError",
    "PermissionDeniedError",
    "DeviceActionError",
    "DeviceUnavailableError",
    "ContactsNotFoundError",
    # Storage
    "StoreError",
]

"""
device/actions.py — Device actions the bot can trigger

SmsSender.send_sms() either returns (the platform accepted the message) or
raises one of:

  PermissionDeniedError   SMS permission not granted
  DeviceActionError       the send itself failed
  DeviceUnavailableError  no backend can send SMS on this host
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from exceptions import DeviceUnavailableError


@runtime_checkable
class SmsSender(Protocol):
    async def send_sms(self, number: str, body: str) -> None:
        ...


class UnavailableSmsSender:
    """SmsSender for hosts without a device backend."""

    async def send_sms(self, number: str, body: str) -> None:
        raise DeviceUnavailableError("No SMS backend is configured on this host.")

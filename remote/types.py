"""
remote/types.py — Bot API Data Models

Incoming updates are normalised into two immutable shapes the rest of the
forwarder understands: TextMessage and CallbackEvent. Anything else the API
sends (stickers, edited messages, messages without text) still becomes an
Update so the poller can advance its cursor past it, but with no payload.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict

from exceptions import ForwarderError

T = TypeVar("T")


# ─────────────────────────────────────────────────────────────────────────────
# Update payloads
# ─────────────────────────────────────────────────────────────────────────────


class TextMessage(BaseModel):
    """A plain text message typed into the chat."""
    model_config = ConfigDict(frozen=True)

    chat_id: str
    text: str


class CallbackEvent(BaseModel):
    """An inline keyboard button press."""
    model_config = ConfigDict(frozen=True)

    chat_id: Optional[str] = None      # None for callbacks from inline-mode messages
    id: str
    data: str = ""


Payload = Union[TextMessage, CallbackEvent]


class Update(BaseModel):
    """
    One entry from getUpdates.

    `payload` is None for update kinds the forwarder does not act on.
    """
    model_config = ConfigDict(frozen=True)

    update_id: int
    payload: Optional[Payload] = None

    @property
    def chat_id(self) -> Optional[str]:
        return self.payload.chat_id if self.payload is not None else None

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "Update":
        """
        Map a raw Bot API update dict into an Update.

        Raises KeyError/TypeError/ValueError if `update_id` is missing or
        not an integer; the client treats that as a malformed response.
        """
        update_id = int(raw["update_id"])

        callback = raw.get("callback_query")
        if isinstance(callback, dict):
            message = callback.get("message") or {}
            chat = message.get("chat") or {}
            chat_id = chat.get("id")
            return cls(
                update_id=update_id,
                payload=CallbackEvent(
                    chat_id=str(chat_id) if chat_id is not None else None,
                    id=str(callback.get("id", "")),
                    data=callback.get("data") or "",
                ),
            )

        message = raw.get("message")
        if isinstance(message, dict) and isinstance(message.get("text"), str):
            chat = message.get("chat") or {}
            chat_id = chat.get("id")
            if chat_id is not None:
                return cls(
                    update_id=update_id,
                    payload=TextMessage(chat_id=str(chat_id), text=message["text"]),
                )

        return cls(update_id=update_id)


# ─────────────────────────────────────────────────────────────────────────────
# Call result
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of one Bot API round trip.

    Exactly one of `value` / `error` is meaningful: `ok` is True when
    `error` is None. Remote failures never raise past the client.
    """
    value: Optional[T] = None
    error: Optional[ForwarderError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ForwarderError) -> "Result[T]":
        return cls(error=error)

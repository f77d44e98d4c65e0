"""
remote/client.py — Telegram Bot API Client

Thin request/response wrapper over three Bot API methods:

  sendMessage          → send_message()
  getUpdates           → fetch_updates()   (long poll)
  answerCallbackQuery  → answer_callback()

Every call is one POST to https://api.telegram.org/bot<token>/<method> with a
JSON body. Failures never raise past this class: each call returns a Result
carrying either the decoded `result` field or a typed error:

  NetworkError   transport failure or timeout
  ApiError       non-2xx status, `ok: false`, or a body that isn't JSON

One httpx.AsyncClient is kept per token so connections are reused across
polls. The HTTP timeout must stay above the long-poll timeout, otherwise an
idle poll is reported as a network failure.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from exceptions import ApiError, NetworkError
from observability.logger import get_logger
from remote.keyboard import InlineKeyboard
from remote.types import Result, Update

log = get_logger(__name__)

_DEFAULT_BASE_URL = "https://api.telegram.org"
_ALLOWED_UPDATES = ["message", "callback_query"]


class TelegramClient:
    """
    Bot API client with a per-token connection cache.

    Args:
        base_url:   API root (override for a local Bot API server).
        timeout:    HTTP timeout in seconds; keep above the long-poll timeout.
        transport:  Optional httpx transport (tests pass httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str = _DEFAULT_BASE_URL,
        timeout: float = 40.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._clients: dict[str, httpx.AsyncClient] = {}

    # ── Public API ────────────────────────────────────────────────────────────

    async def send_message(
        self,
        token: str,
        chat_id: str,
        text: str,
        markup: Optional[InlineKeyboard] = None,
    ) -> Result[dict]:
        payload: dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": "HTML",
        }
        if markup is not None:
            payload["reply_markup"] = markup.to_dict()
        return await self._call(token, "sendMessage", payload)

    async def fetch_updates(
        self,
        token: str,
        since_id: int,
        timeout_seconds: int = 30,
    ) -> Result[list[Update]]:
        result = await self._call(
            token,
            "getUpdates",
            {
                "offset": since_id,
                "timeout": timeout_seconds,
                "allowed_updates": _ALLOWED_UPDATES,
            },
        )
        if not result.ok:
            return result  # type: ignore[return-value]

        raw = result.value
        if not isinstance(raw, list):
            return Result.failure(ApiError("getUpdates result is not a list"))
        try:
            updates = [Update.from_api(item) for item in raw]
        except (KeyError, TypeError, ValueError) as e:
            return Result.failure(ApiError(f"malformed update: {e}"))
        return Result.success(updates)

    async def answer_callback(
        self,
        token: str,
        callback_id: str,
        text: Optional[str] = None,
    ) -> Result[bool]:
        payload: dict[str, Any] = {"callback_query_id": callback_id}
        if text is not None:
            payload["text"] = text
        return await self._call(token, "answerCallbackQuery", payload)

    async def aclose(self) -> None:
        """Close every cached connection pool."""
        clients, self._clients = list(self._clients.values()), {}
        for client in clients:
            await client.aclose()

    # ── Internals ─────────────────────────────────────────────────────────────

    def _client_for(self, token: str) -> httpx.AsyncClient:
        client = self._clients.get(token)
        if client is None:
            client = httpx.AsyncClient(
                base_url=f"{self._base_url}/bot{token}/",
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
            self._clients[token] = client
        return client

    async def _call(self, token: str, method: str, payload: dict[str, Any]) -> Result[Any]:
        client = self._client_for(token)
        try:
            response = await client.post(method, json=payload)
        except httpx.TimeoutException as e:
            log.debug("telegram.timeout", method=method, error=type(e).__name__)
            return Result.failure(NetworkError(f"{method} timed out"))
        except httpx.HTTPError as e:
            # str(e) can embed the request URL, which contains the token
            log.debug("telegram.transport_error", method=method, error=type(e).__name__)
            return Result.failure(NetworkError(f"{method} failed: {type(e).__name__}"))

        try:
            body = response.json()
        except ValueError:
            return Result.failure(
                ApiError(
                    f"{method} returned a non-JSON body (HTTP {response.status_code})",
                    error_code=response.status_code,
                )
            )

        if not isinstance(body, dict):
            return Result.failure(ApiError(f"{method} returned an unexpected body"))

        if response.is_error or not body.get("ok"):
            description = body.get("description") or f"HTTP {response.status_code}"
            error_code = body.get("error_code", response.status_code)
            log.debug("telegram.api_error", method=method, error_code=error_code, description=description)
            return Result.failure(ApiError(description, error_code=error_code))

        return Result.success(body.get("result"))

"""
tests/unit/test_remote_client.py — Telegram Bot API client

Covers:
  - sendMessage body: chat_id, text, parse_mode=HTML, reply_markup
  - getUpdates body: offset, timeout, allowed_updates; updates parsed in order
  - answerCallbackQuery body
  - Failures never raise: transport error / timeout → NetworkError,
    non-2xx / ok:false / non-JSON → ApiError
  - One pooled client per token, released by aclose()
  - Update.from_api mapping for text, callback and ignored kinds
"""

from __future__ import annotations

import json

import httpx
import pytest

from exceptions import ApiError, NetworkError
from remote.client import TelegramClient
from remote.keyboard import Button, InlineKeyboard
from remote.types import CallbackEvent, TextMessage, Update

TOKEN = "123456:TEST"


# ── Helpers ───────────────────────────────────────────────────────────────────

def _client(handler) -> tuple[TelegramClient, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    return TelegramClient(transport=httpx.MockTransport(record)), seen


def _ok(result) -> httpx.Response:
    return httpx.Response(200, json={"ok": True, "result": result})


def _text_update(update_id: int, chat_id: int, text: str) -> dict:
    return {
        "update_id": update_id,
        "message": {"message_id": update_id, "chat": {"id": chat_id}, "text": text},
    }


# ── sendMessage ───────────────────────────────────────────────────────────────

class TestSendMessage:
    @pytest.mark.asyncio
    async def test_request_shape(self):
        client, seen = _client(lambda r: _ok({"message_id": 1}))
        markup = InlineKeyboard.of([[Button("A", "cmd_a")]])

        result = await client.send_message(TOKEN, "42", "<b>hi</b>", markup)

        assert result.ok
        req = seen[0]
        assert req.method == "POST"
        assert str(req.url) == f"https://api.telegram.org/bot{TOKEN}/sendMessage"
        body = json.loads(req.content)
        assert body == {
            "chat_id": "42",
            "text": "<b>hi</b>",
            "parse_mode": "HTML",
            "reply_markup": {"inline_keyboard": [[{"text": "A", "callback_data": "cmd_a"}]]},
        }
        await client.aclose()

    @pytest.mark.asyncio
    async def test_no_markup_omits_reply_markup(self):
        client, seen = _client(lambda r: _ok({"message_id": 1}))
        await client.send_message(TOKEN, "42", "plain")
        assert "reply_markup" not in json.loads(seen[0].content)
        await client.aclose()


# ── getUpdates ────────────────────────────────────────────────────────────────

class TestFetchUpdates:
    @pytest.mark.asyncio
    async def test_request_and_parse(self):
        raw = [_text_update(5, 42, "/start"), _text_update(6, 42, "hello")]
        client, seen = _client(lambda r: _ok(raw))

        result = await client.fetch_updates(TOKEN, since_id=5, timeout_seconds=30)

        assert result.ok
        assert [u.update_id for u in result.value] == [5, 6]
        assert result.value[0].payload == TextMessage(chat_id="42", text="/start")
        body = json.loads(seen[0].content)
        assert body == {"offset": 5, "timeout": 30, "allowed_updates": ["message", "callback_query"]}
        await client.aclose()

    @pytest.mark.asyncio
    async def test_empty_result(self):
        client, _ = _client(lambda r: _ok([]))
        result = await client.fetch_updates(TOKEN, 1)
        assert result.ok and result.value == []
        await client.aclose()

    @pytest.mark.asyncio
    async def test_result_not_a_list_is_api_error(self):
        client, _ = _client(lambda r: _ok({"weird": True}))
        result = await client.fetch_updates(TOKEN, 1)
        assert isinstance(result.error, ApiError)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_update_without_id_is_api_error(self):
        client, _ = _client(lambda r: _ok([{"message": {}}]))
        result = await client.fetch_updates(TOKEN, 1)
        assert isinstance(result.error, ApiError)
        await client.aclose()


# ── answerCallbackQuery ──────────────────────────────────────────────────────

class TestAnswerCallback:
    @pytest.mark.asyncio
    async def test_request_shape(self):
        client, seen = _client(lambda r: _ok(True))
        result = await client.answer_callback(TOKEN, "cb-1")
        assert result.ok
        assert seen[0].url.path.endswith("/answerCallbackQuery")
        assert json.loads(seen[0].content) == {"callback_query_id": "cb-1"}
        await client.aclose()

    @pytest.mark.asyncio
    async def test_text_included_when_given(self):
        client, seen = _client(lambda r: _ok(True))
        await client.answer_callback(TOKEN, "cb-1", text="Done")
        assert json.loads(seen[0].content)["text"] == "Done"
        await client.aclose()


# ── Failure mapping ──────────────────────────────────────────────────────────

class TestFailures:
    @pytest.mark.asyncio
    async def test_connect_error_is_network_error(self):
        def boom(request):
            raise httpx.ConnectError("no route", request=request)

        client, _ = _client(boom)
        result = await client.send_message(TOKEN, "42", "x")
        assert not result.ok
        assert isinstance(result.error, NetworkError)
        assert TOKEN not in str(result.error)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_timeout_is_network_error(self):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client, _ = _client(slow)
        result = await client.fetch_updates(TOKEN, 1)
        assert isinstance(result.error, NetworkError)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_ok_false_is_api_error(self):
        client, _ = _client(lambda r: httpx.Response(
            400, json={"ok": False, "error_code": 400, "description": "Bad Request: chat not found"}
        ))
        result = await client.send_message(TOKEN, "42", "x")
        assert isinstance(result.error, ApiError)
        assert result.error.error_code == 400
        assert "chat not found" in result.error.message
        await client.aclose()

    @pytest.mark.asyncio
    async def test_ok_false_with_200_is_api_error(self):
        client, _ = _client(lambda r: httpx.Response(200, json={"ok": False, "description": "nope"}))
        result = await client.send_message(TOKEN, "42", "x")
        assert isinstance(result.error, ApiError)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_non_json_body_is_api_error(self):
        client, _ = _client(lambda r: httpx.Response(502, text="<html>Bad Gateway</html>"))
        result = await client.send_message(TOKEN, "42", "x")
        assert isinstance(result.error, ApiError)
        assert result.error.error_code == 502
        await client.aclose()


# ── Connection cache ─────────────────────────────────────────────────────────

class TestClientCache:
    @pytest.mark.asyncio
    async def test_one_client_per_token(self):
        client, _ = _client(lambda r: _ok(True))
        a = client._client_for("t1")
        b = client._client_for("t1")
        c = client._client_for("t2")
        assert a is b
        assert a is not c
        await client.aclose()
        assert client._clients == {}
        assert a.is_closed and c.is_closed


# ── Update mapping ───────────────────────────────────────────────────────────

class TestUpdateFromApi:
    def test_callback(self):
        u = Update.from_api({
            "update_id": 9,
            "callback_query": {
                "id": "cb-9",
                "data": "page_1",
                "message": {"chat": {"id": 42}},
            },
        })
        assert u.payload == CallbackEvent(chat_id="42", id="cb-9", data="page_1")
        assert u.chat_id == "42"

    def test_callback_without_message_has_no_chat(self):
        u = Update.from_api({"update_id": 9, "callback_query": {"id": "cb", "data": "x"}})
        assert u.chat_id is None

    def test_message_without_text_has_no_payload(self):
        u = Update.from_api({"update_id": 3, "message": {"chat": {"id": 42}, "sticker": {}}})
        assert u.update_id == 3
        assert u.payload is None

    def test_other_kinds_have_no_payload(self):
        u = Update.from_api({"update_id": 4, "edited_message": {"text": "x"}})
        assert u.payload is None

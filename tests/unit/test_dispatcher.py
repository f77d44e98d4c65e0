"""
tests/unit/test_dispatcher.py — Notification dispatcher

Covers:
  - notify() refuses (and queues nothing) without complete credentials
  - Queued alerts are delivered in order to the configured chat
  - A failing delivery is logged; the worker keeps draining
  - send() returns MissingCredentialsError as a failed Result
  - send() targets an explicit chat_id when given
  - Credentials are re-read on every call (live config)
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from config.runtime import ConfigStore, Credentials, RuntimeConfig
from dispatch.dispatcher import NotificationDispatcher
from exceptions import MissingCredentialsError, NetworkError
from remote.types import Result


def _dispatcher(token="t", chat_id="42"):
    client = AsyncMock()
    client.send_message = AsyncMock(return_value=Result.success({"message_id": 1}))
    client.answer_callback = AsyncMock(return_value=Result.success(True))
    store = ConfigStore(RuntimeConfig(credentials=Credentials(token, chat_id)))
    return NotificationDispatcher(client, store), client, store


async def _drain(dispatcher: NotificationDispatcher) -> None:
    worker = asyncio.create_task(dispatcher.run())
    try:
        await asyncio.wait_for(dispatcher.drain(), timeout=2)
    finally:
        worker.cancel()
        await asyncio.gather(worker, return_exceptions=True)


# ── notify() ──────────────────────────────────────────────────────────────────

class TestNotify:
    @pytest.mark.asyncio
    async def test_missing_chat_id_queues_nothing(self):
        dispatcher, client, _ = _dispatcher(chat_id=None)
        assert dispatcher.notify("hello") is False
        assert dispatcher.pending == 0
        client.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_token_queues_nothing(self):
        dispatcher, _, _ = _dispatcher(token=None)
        assert dispatcher.notify("hello") is False
        assert dispatcher.pending == 0

    @pytest.mark.asyncio
    async def test_delivered_in_order(self):
        dispatcher, client, _ = _dispatcher()
        for text in ("one", "two", "three"):
            assert dispatcher.notify(text)
        assert dispatcher.pending == 3

        await _drain(dispatcher)

        sent = [c.args for c in client.send_message.await_args_list]
        assert sent == [("t", "42", text, None) for text in ("one", "two", "three")]

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_worker(self):
        dispatcher, client, _ = _dispatcher()
        client.send_message = AsyncMock(side_effect=[
            Result.failure(NetworkError("down")),
            RuntimeError("unexpected"),
            Result.success({}),
        ])
        for text in ("a", "b", "c"):
            dispatcher.notify(text)

        await _drain(dispatcher)
        assert client.send_message.await_count == 3


# ── send() / answer_callback() ────────────────────────────────────────────────

class TestSend:
    @pytest.mark.asyncio
    async def test_missing_credentials_result(self):
        dispatcher, client, _ = _dispatcher(token=None)
        result = await dispatcher.send("x")
        assert not result.ok
        assert isinstance(result.error, MissingCredentialsError)
        client.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_explicit_chat_id(self):
        dispatcher, client, _ = _dispatcher()
        await dispatcher.send("x", chat_id="77")
        assert client.send_message.await_args.args[1] == "77"

    @pytest.mark.asyncio
    async def test_credentials_read_live(self):
        dispatcher, client, store = _dispatcher(chat_id=None)
        assert not (await dispatcher.send("x")).ok
        store.update(credentials=Credentials("t2", "99"))
        assert (await dispatcher.send("x")).ok
        client.send_message.assert_awaited_once_with("t2", "99", "x", None)

    @pytest.mark.asyncio
    async def test_answer_callback(self):
        dispatcher, client, _ = _dispatcher()
        result = await dispatcher.answer_callback("cb-1")
        assert result.ok
        client.answer_callback.assert_awaited_once_with("t", "cb-1", None)

"""
tests/unit/test_runner.py — Conversation runner (state table + effects)

Covers:
  - Callback ack goes out before any reply
  - Replies are addressed to the originating chat
  - SendSms: success / permission denied / other device failure texts,
    unexpected sender errors reported as a failed send
  - State is committed even when sending the reply fails
  - reset() returns every chat to Idle
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from bot import menus
from bot.conversation import ConversationContext, ConversationState as S
from bot.runner import ConversationRunner
from device.contacts import InMemoryContactBook
from exceptions import DeviceActionError, NetworkError, PermissionDeniedError
from remote.types import CallbackEvent, Result, TextMessage, Update


def _runner(sms=None, send_result=None):
    dispatcher = MagicMock()
    calls: list[tuple] = []

    async def send(text, markup=None, chat_id=None):
        calls.append(("send", text, chat_id))
        return send_result or Result.success({})

    async def answer(callback_id, text=None):
        calls.append(("ack", callback_id))
        return Result.success(True)

    dispatcher.send = AsyncMock(side_effect=send)
    dispatcher.answer_callback = AsyncMock(side_effect=answer)
    sms = sms or AsyncMock()
    return ConversationRunner(InMemoryContactBook(), sms, dispatcher), calls, sms


def _text(update_id: int, text: str) -> Update:
    return Update(update_id=update_id, payload=TextMessage(chat_id="42", text=text))


def _cb(update_id: int, data: str) -> Update:
    return Update(update_id=update_id, payload=CallbackEvent(chat_id="42", id=f"cb{update_id}", data=data))


async def _to_body_state(runner) -> None:
    await runner.handle(_cb(1, menus.CMD_SMS_NUMBER))
    await runner.handle(_text(2, "+15551234567"))


class TestEffects:
    @pytest.mark.asyncio
    async def test_ack_before_reply(self):
        runner, calls, _ = _runner()
        await runner.handle(_cb(1, menus.CMD_SMS_NUMBER))
        assert calls == [("ack", "cb1"), ("send", menus.NUMBER_PROMPT, "42")]
        assert runner.state_of("42") is S.AWAITING_NUMBER

    @pytest.mark.asyncio
    async def test_sms_success(self):
        runner, calls, sms = _runner()
        await _to_body_state(runner)
        await runner.handle(_text(3, "Hello"))

        sms.send_sms.assert_awaited_once_with("+15551234567", "Hello")
        assert calls[-1] == ("send", "✅ SMS sent to +15551234567", "42")
        assert runner.state_of("42") is S.IDLE

    @pytest.mark.asyncio
    async def test_sms_permission_denied(self):
        sms = AsyncMock()
        sms.send_sms = AsyncMock(side_effect=PermissionDeniedError("sms"))
        runner, calls, _ = _runner(sms=sms)
        await _to_body_state(runner)
        await runner.handle(_text(3, "Hello"))
        assert calls[-1][1] == menus.SMS_PERMISSION_TEXT
        assert runner.state_of("42") is S.IDLE

    @pytest.mark.asyncio
    async def test_sms_device_failure(self):
        sms = AsyncMock()
        sms.send_sms = AsyncMock(side_effect=DeviceActionError("radio off"))
        runner, calls, _ = _runner(sms=sms)
        await _to_body_state(runner)
        await runner.handle(_text(3, "Hello"))
        assert calls[-1][1].startswith("❌")
        assert "radio off" in calls[-1][1]

    @pytest.mark.asyncio
    async def test_sms_unexpected_error_reported(self):
        sms = AsyncMock()
        sms.send_sms = AsyncMock(side_effect=PermissionError(13, "Permission denied"))
        runner, calls, _ = _runner(sms=sms)
        await _to_body_state(runner)
        await runner.handle(_text(3, "Hello"))
        assert calls[-1][0] == "send"
        assert calls[-1][1].startswith("❌ Failed to send SMS")
        assert "Permission denied" in calls[-1][1]
        assert runner.state_of("42") is S.IDLE

    @pytest.mark.asyncio
    async def test_state_committed_when_reply_fails(self):
        runner, _, _ = _runner(send_result=Result.failure(NetworkError("down")))
        await runner.handle(_cb(1, menus.CMD_SMS_NUMBER))
        assert runner.state_of("42") is S.AWAITING_NUMBER


class TestTable:
    @pytest.mark.asyncio
    async def test_reset_forgets_conversations(self):
        runner, _, _ = _runner()
        await _to_body_state(runner)
        assert runner.context_of("42").pending_number == "+15551234567"

        runner.reset()

        assert runner.state_of("42") is S.IDLE
        assert runner.context_of("42") == ConversationContext()

    @pytest.mark.asyncio
    async def test_replayed_update_after_reset_is_harmless(self):
        runner, _, sms = _runner()
        await _to_body_state(runner)
        runner.reset()
        await runner.handle(_text(3, "Hello"))
        sms.send_sms.assert_not_awaited()
        assert runner.state_of("42") is S.IDLE

    @pytest.mark.asyncio
    async def test_payloadless_update_ignored(self):
        runner, calls, _ = _runner()
        await runner.handle(Update(update_id=1))
        assert calls == []

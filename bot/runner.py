"""
bot/runner.py — Conversation Runner

Holds the one conversation table (chat id → state + context), feeds each
authorized update through transition(), stores the result, then applies the
effects in order through the dispatcher and the SMS capability.

The poller drains updates one at a time, so the table is only ever touched
by one coroutine and needs no lock.
"""

from __future__ import annotations

from bot import menus
from bot.conversation import (
    AnswerCallback,
    ConversationContext,
    ConversationState,
    Effect,
    Reply,
    SendSms,
    transition,
)
from device.actions import SmsSender
from device.contacts import ContactBook
from dispatch.dispatcher import NotificationDispatcher
from exceptions import DeviceError, PermissionDeniedError
from observability.logger import get_logger
from remote.types import Update

log = get_logger(__name__)


class ConversationRunner:
    def __init__(
        self,
        contacts: ContactBook,
        sms: SmsSender,
        dispatcher: NotificationDispatcher,
    ):
        self._contacts = contacts
        self._sms = sms
        self._dispatcher = dispatcher
        self._table: dict[str, tuple[ConversationState, ConversationContext]] = {}

    def state_of(self, chat_id: str) -> ConversationState:
        return self._table.get(chat_id, (ConversationState.IDLE, None))[0]

    def context_of(self, chat_id: str) -> ConversationContext:
        return self._table.get(chat_id, (None, ConversationContext()))[1]

    def reset(self) -> None:
        """Forget every conversation (every chat goes back to Idle)."""
        self._table.clear()

    async def handle(self, update: Update) -> None:
        payload = update.payload
        if payload is None or payload.chat_id is None:
            return
        chat_id = payload.chat_id

        state, context = self._table.get(
            chat_id, (ConversationState.IDLE, ConversationContext())
        )
        result = await transition(state, context, payload, self._contacts)

        # Commit before applying effects so a failed send can't leave the
        # chat in a stale state.
        self._table[chat_id] = (result.state, result.context)
        if result.state is not state:
            log.info(
                "conversation.transition",
                from_state=state.value,
                to_state=result.state.value,
            )

        for effect in result.effects:
            await self._apply(chat_id, effect)

    async def _apply(self, chat_id: str, effect: Effect) -> None:
        if isinstance(effect, AnswerCallback):
            await self._dispatcher.answer_callback(effect.callback_id)
        elif isinstance(effect, Reply):
            await self._dispatcher.send(effect.text, effect.markup, chat_id=chat_id)
        elif isinstance(effect, SendSms):
            await self._dispatcher.send(await self._send_sms(effect), chat_id=chat_id)

    async def _send_sms(self, effect: SendSms) -> str:
        """Send the SMS and return the text to report back to the chat."""
        try:
            await self._sms.send_sms(effect.number, effect.body)
        except PermissionDeniedError as e:
            log.warning("conversation.sms_permission_denied", capability=e.capability)
            return menus.SMS_PERMISSION_TEXT
        except DeviceError as e:
            log.warning("conversation.sms_failed", number=effect.number, error=str(e))
            return menus.sms_failed(e)
        except Exception as e:
            log.error("conversation.sms_crashed", number=effect.number, error=str(e), exc_info=True)
            return menus.sms_failed(e)

        log.info("conversation.sms_sent", number=effect.number, length=len(effect.body))
        return menus.sms_sent(effect.recipient)

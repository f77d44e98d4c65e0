"""
bot/conversation.py — Conversation State Machine

transition() maps (state, context, incoming event) to the next state, the
next context and an ordered list of effects. It only *reads* the contact
book; every write (replies, callback acknowledgements, SMS) is returned as an
effect for the runner to apply, which keeps the machine testable without a
network or a phone.

    Idle ──cmd_sms_number──▶ AwaitingNumber ──number──▶ AwaitingSmsBodyForNumber ──body──▶ Idle
    Idle ──cmd_sms_contact─▶ BrowsingContacts ──c:<n>──▶ AwaitingSmsBodyForContact ──body──▶ Idle
                             BrowsingContacts ──cmd_search_contact──▶ SearchingContacts ──query──▶ …

Reset words (/start…, help, menu) return any state to Idle with the menu.
Callbacks are honoured in every state: their buttons only exist on messages
the bot sent itself. Callback acknowledgement is always the first effect.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from bot import menus
from device.contacts import ContactBook
from exceptions import ContactsNotFoundError, DeviceError
from observability.logger import get_logger
from remote.keyboard import InlineKeyboard
from remote.types import CallbackEvent, TextMessage

log = get_logger(__name__)

_RESET_WORDS = {"help", "menu", "/help", "/menu"}
_HAS_DIGIT = re.compile(r"\d")


# ─────────────────────────────────────────────────────────────────────────────
# State
# ─────────────────────────────────────────────────────────────────────────────


class ConversationState(str, Enum):
    IDLE = "idle"
    AWAITING_NUMBER = "awaiting_number"
    AWAITING_SMS_BODY_FOR_NUMBER = "awaiting_sms_body_for_number"
    BROWSING_CONTACTS = "browsing_contacts"
    SEARCHING_CONTACTS = "searching_contacts"
    AWAITING_SMS_BODY_FOR_CONTACT = "awaiting_sms_body_for_contact"


@dataclass(frozen=True)
class ConversationContext:
    """Per-chat scratch carried between steps."""
    pending_number: Optional[str] = None
    pending_name: Optional[str] = None


# ─────────────────────────────────────────────────────────────────────────────
# Effects
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Reply:
    text: str
    markup: Optional[InlineKeyboard] = None


@dataclass(frozen=True)
class AnswerCallback:
    callback_id: str


@dataclass(frozen=True)
class SendSms:
    number: str
    body: str
    recipient: str      # what the confirmation names: contact name or number


Effect = Union[Reply, AnswerCallback, SendSms]


@dataclass(frozen=True)
class Transition:
    state: ConversationState
    context: ConversationContext = field(default_factory=ConversationContext)
    effects: tuple[Effect, ...] = ()


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────


def is_reset_command(text: str) -> bool:
    lowered = text.strip().lower()
    return lowered.startswith("/start") or lowered in _RESET_WORDS


def _menu(*before: Effect) -> Transition:
    text, markup = menus.main_menu()
    return Transition(ConversationState.IDLE, ConversationContext(), (*before, Reply(text, markup)))


async def _show_page(page: int, contacts: ContactBook, *before: Effect) -> Transition:
    try:
        entries = await contacts.page(page * menus.PAGE_SIZE, menus.PAGE_SIZE + 1)
    except DeviceError as e:
        log.warning("conversation.contacts_failed", page=page, error=str(e))
        return _menu(*before, Reply(menus.contacts_failed(e)))

    if not entries:
        if page == 0:
            return _menu(*before, Reply(menus.NO_CONTACTS_TEXT))
        return _menu(*before)

    has_next = len(entries) > menus.PAGE_SIZE
    text, markup = menus.contact_page(entries[:menus.PAGE_SIZE], page, has_next)
    return Transition(
        ConversationState.BROWSING_CONTACTS,
        ConversationContext(),
        (*before, Reply(text, markup)),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Transition function
# ─────────────────────────────────────────────────────────────────────────────


async def transition(
    state: ConversationState,
    context: ConversationContext,
    event: Union[TextMessage, CallbackEvent],
    contacts: ContactBook,
) -> Transition:
    if isinstance(event, CallbackEvent):
        return await _on_callback(event, contacts)
    return await _on_text(state, context, event.text, contacts)


async def _on_callback(event: CallbackEvent, contacts: ContactBook) -> Transition:
    ack = AnswerCallback(event.id)
    data = event.data

    if data == menus.CMD_SMS_NUMBER:
        return Transition(
            ConversationState.AWAITING_NUMBER,
            ConversationContext(),
            (ack, Reply(menus.NUMBER_PROMPT)),
        )

    if data == menus.CMD_SMS_CONTACT:
        return await _show_page(0, contacts, ack)

    if data == menus.CMD_SEARCH_CONTACT:
        return Transition(
            ConversationState.SEARCHING_CONTACTS,
            ConversationContext(),
            (ack, Reply(menus.SEARCH_PROMPT)),
        )

    if data.startswith(menus.PAGE_PREFIX):
        page = menus.parse_page(data)
        if page is None:
            log.debug("conversation.bad_page", data=data)
            return _menu(ack)
        return await _show_page(page, contacts, ack)

    if data.startswith(menus.CONTACT_PREFIX):
        number = data[len(menus.CONTACT_PREFIX):].strip()
        if not number:
            return _menu(ack)
        try:
            name = await contacts.name_for_number(number)
        except DeviceError as e:
            log.warning("conversation.name_lookup_failed", error=str(e))
            name = None
        return Transition(
            ConversationState.AWAITING_SMS_BODY_FOR_CONTACT,
            ConversationContext(pending_number=number, pending_name=name),
            (ack, Reply(menus.body_prompt_for_contact(name, number))),
        )

    log.debug("conversation.unknown_callback", data=data)
    return _menu(ack)


async def _on_text(
    state: ConversationState,
    context: ConversationContext,
    text: str,
    contacts: ContactBook,
) -> Transition:
    if is_reset_command(text):
        return _menu()

    if state is ConversationState.AWAITING_NUMBER:
        number = text.strip()
        if not _HAS_DIGIT.search(number):
            return Transition(state, context, (Reply(menus.NUMBER_PROMPT),))
        return Transition(
            ConversationState.AWAITING_SMS_BODY_FOR_NUMBER,
            ConversationContext(pending_number=number),
            (Reply(menus.body_prompt_for_number(number)),),
        )

    if state is ConversationState.AWAITING_SMS_BODY_FOR_NUMBER and context.pending_number:
        number = context.pending_number
        return Transition(
            ConversationState.IDLE,
            ConversationContext(),
            (SendSms(number=number, body=text, recipient=number),),
        )

    if state is ConversationState.AWAITING_SMS_BODY_FOR_CONTACT and context.pending_number:
        number = context.pending_number
        return Transition(
            ConversationState.IDLE,
            ConversationContext(),
            (SendSms(number=number, body=text, recipient=context.pending_name or number),),
        )

    if state is ConversationState.SEARCHING_CONTACTS:
        return await _search(text.strip(), contacts)

    # Idle, BrowsingContacts, or a body state that lost its number
    return _menu()


async def _search(query: str, contacts: ContactBook) -> Transition:
    if not query:
        return _menu()
    try:
        found = await contacts.search(query)
    except ContactsNotFoundError:
        found = []
    except DeviceError as e:
        log.warning("conversation.search_failed", error=str(e))
        return _menu(Reply(menus.contacts_failed(e)))

    if not found:
        return _menu(Reply(menus.no_results(query)))

    text, markup = menus.search_results(query, found[:menus.SEARCH_LIMIT])
    return Transition(
        ConversationState.SEARCHING_CONTACTS,
        ConversationContext(),
        (Reply(text, markup),),
    )

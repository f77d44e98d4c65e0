"""
bot/menus.py — Bot screens: texts, inline keyboards and callback payloads

All user-facing wording for the remote-control conversation lives here so
the state machine only decides *which* screen comes next.
"""

from __future__ import annotations

import html
from typing import Optional, Sequence

from device.contacts import Contact
from remote.keyboard import Button, InlineKeyboard

# ── Callback payloads ────────────────────────────────────────────────────────

CMD_SMS_NUMBER = "cmd_sms_number"
CMD_SMS_CONTACT = "cmd_sms_contact"
CMD_SEARCH_CONTACT = "cmd_search_contact"
PAGE_PREFIX = "page_"
CONTACT_PREFIX = "c:"

PAGE_SIZE = 20
SEARCH_LIMIT = 20

# ── Texts ────────────────────────────────────────────────────────────────────

MENU_TEXT = "<b>🤖 Bot Remote Control</b>\n\nSelect an action:"
NUMBER_PROMPT = "Please enter the phone number (e.g., +972...):"
SEARCH_PROMPT = "Enter name to search:"
NO_CONTACTS_TEXT = "No contacts found."
SMS_PERMISSION_TEXT = (
    "❌ SMS permission not granted. Please open the app and allow SMS permissions."
)


def main_menu() -> tuple[str, InlineKeyboard]:
    return MENU_TEXT, InlineKeyboard.of([
        [Button("📨 Send SMS to Number", CMD_SMS_NUMBER)],
        [Button("👤 Send SMS to Contact", CMD_SMS_CONTACT)],
    ])


def body_prompt_for_number(number: str) -> str:
    return f"Enter the message to send to {html.escape(number)}:"


def body_prompt_for_contact(name: Optional[str], number: str) -> str:
    return f"Enter message for {html.escape(name or number)}:"


def sms_sent(recipient: str) -> str:
    return f"✅ SMS sent to {html.escape(recipient)}"


def sms_failed(error: Exception) -> str:
    return f"❌ Failed to send SMS: {html.escape(str(error))}"


def contacts_failed(error: Exception) -> str:
    return f"❌ Could not read contacts: {html.escape(str(error))}"


def no_results(query: str) -> str:
    return f"No contacts found for '{html.escape(query)}'."


# ── Contact lists ────────────────────────────────────────────────────────────


def contact_button(contact: Contact) -> Optional[Button]:
    """
    Button selecting `contact`, or None when the contact has no number or its
    payload would not fit in callback_data.
    """
    number = "".join(contact.phone_number.split())
    if not number:
        return None
    button = Button(contact.display_name or number, CONTACT_PREFIX + number)
    return button if button.fits() else None


def _contact_rows(contacts: Sequence[Contact]) -> list[list[Button]]:
    rows = []
    for contact in contacts:
        button = contact_button(contact)
        if button is not None:
            rows.append([button])
    return rows


def contact_page(contacts: Sequence[Contact], page: int, has_next: bool) -> tuple[str, InlineKeyboard]:
    """One page of the address book with a Prev / Search / Next row."""
    nav: list[Button] = []
    if page > 0:
        nav.append(Button("⬅️ Prev", f"{PAGE_PREFIX}{page - 1}"))
    nav.append(Button("🔍 Search", CMD_SEARCH_CONTACT))
    if has_next:
        nav.append(Button("Next ➡️", f"{PAGE_PREFIX}{page + 1}"))

    text = f"<b>Select a Contact (Page {page + 1}):</b>"
    return text, InlineKeyboard.of(_contact_rows(contacts) + [nav])


def search_results(query: str, contacts: Sequence[Contact]) -> tuple[str, InlineKeyboard]:
    text = f"<b>Search Results for '{html.escape(query)}':</b>"
    rows = _contact_rows(contacts[:SEARCH_LIMIT])
    rows.append([Button("🔙 Back to Menu", CMD_SMS_CONTACT)])
    return text, InlineKeyboard.of(rows)


def parse_page(data: str) -> Optional[int]:
    """`page_3` → 3. None for anything malformed or negative."""
    if not data.startswith(PAGE_PREFIX):
        return None
    raw = data[len(PAGE_PREFIX):]
    if not (raw.isascii() and raw.isdigit()):
        return None
    return int(raw)

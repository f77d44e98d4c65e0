"""
device/contacts.py — Contact Lookup

The ContactBook protocol is the only way the conversation layer reads the
address book: name resolution for a phone number, a filtered search, and
offset/limit pages sorted by display name.

InMemoryContactBook implements the protocol over a list already held in
memory; backends that load contacts from the device (see device/termux.py)
fetch the list and delegate to it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol, runtime_checkable

from exceptions import ContactsNotFoundError

_NON_DIAL_CHARS = re.compile(r"[^\d+]")

# Numbers shorter than this must match exactly; longer ones may differ in
# their country/trunk prefix ("+44 7700 900123" vs "07700 900123").
_SUFFIX_MATCH_MIN_DIGITS = 7


@dataclass(frozen=True)
class Contact:
    id: str
    display_name: str
    phone_number: str


def normalize_number(number: str) -> str:
    """Strip everything but digits and '+' from a phone number."""
    return _NON_DIAL_CHARS.sub("", number or "")


def numbers_match(a: str, b: str) -> bool:
    da = normalize_number(a).lstrip("+")
    db = normalize_number(b).lstrip("+")
    if not da or not db:
        return False
    if da == db:
        return True
    shorter, longer = sorted((da, db), key=len)
    if len(shorter) < _SUFFIX_MATCH_MIN_DIGITS:
        return False
    return longer.endswith(shorter.lstrip("0"))


@runtime_checkable
class ContactBook(Protocol):
    async def name_for_number(self, number: str) -> Optional[str]:
        ...

    async def search(self, query: str) -> list[Contact]:
        """Contacts whose name or number contains the query.

        Raises:
            ContactsNotFoundError: nothing matched (including a blank query).
        """
        ...

    async def page(self, offset: int, limit: int) -> list[Contact]:
        ...


class InMemoryContactBook:
    """ContactBook over a fixed list, sorted case-insensitively by name."""

    def __init__(self, contacts: Iterable[Contact] = ()):
        self._contacts = sorted(contacts, key=lambda c: (c.display_name.casefold(), c.id))

    def __len__(self) -> int:
        return len(self._contacts)

    async def name_for_number(self, number: str) -> Optional[str]:
        for contact in self._contacts:
            if numbers_match(contact.phone_number, number):
                return contact.display_name
        return None

    async def search(self, query: str) -> list[Contact]:
        needle = query.strip().casefold()
        if not needle:
            raise ContactsNotFoundError(query)
        # Digit matching only for number-like queries ("555 12"), not "Room 101"
        digits = "" if any(ch.isalpha() for ch in needle) else normalize_number(needle).lstrip("+")
        found = [
            c for c in self._contacts
            if needle in c.display_name.casefold()
            or needle in c.phone_number
            or (digits and digits in normalize_number(c.phone_number))
        ]
        if not found:
            raise ContactsNotFoundError(query)
        return found

    async def page(self, offset: int, limit: int) -> list[Contact]:
        if offset < 0 or limit <= 0:
            return []
        return self._contacts[offset:offset + limit]

"""
remote/keyboard.py — Inline keyboard markup

Buttons are built as immutable rows and serialised to the Bot API's
`{"inline_keyboard": [[{text, callback_data}]]}` shape only when sent.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

# Bot API limit on callback_data, in bytes
MAX_CALLBACK_DATA_BYTES = 64


@dataclass(frozen=True)
class Button:
    text: str
    callback_data: str

    def fits(self) -> bool:
        return len(self.callback_data.encode("utf-8")) <= MAX_CALLBACK_DATA_BYTES

    def to_dict(self) -> dict[str, str]:
        return {"text": self.text, "callback_data": self.callback_data}


@dataclass(frozen=True)
class InlineKeyboard:
    rows: tuple[tuple[Button, ...], ...] = ()

    @classmethod
    def of(cls, rows: Iterable[Iterable[Button]]) -> "InlineKeyboard":
        return cls(rows=tuple(tuple(row) for row in rows if row))

    @property
    def buttons(self) -> list[Button]:
        return [b for row in self.rows for b in row]

    def callback_data(self) -> list[str]:
        return [b.callback_data for b in self.buttons]

    def to_dict(self) -> dict[str, Any]:
        return {"inline_keyboard": [[b.to_dict() for b in row] for row in self.rows]}

"""
remote/ — Telegram Bot API client and update types
"""

from remote.client import TelegramClient
from remote.keyboard import Button, InlineKeyboard
from remote.types import CallbackEvent, Result, TextMessage, Update

__all__ = [
    "TelegramClient",
    "Button",
    "InlineKeyboard",
    "CallbackEvent",
    "Result",
    "TextMessage",
    "Update",
]

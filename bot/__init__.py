"""
bot/ — Bot session manager: update poller, conversation state machine, runner
"""

from bot.conversation import ConversationContext, ConversationState, Transition, transition
from bot.poller import Backoff, UpdatePoller
from bot.runner import ConversationRunner

__all__ = [
    "ConversationContext",
    "ConversationState",
    "Transition",
    "transition",
    "Backoff",
    "UpdatePoller",
    "ConversationRunner",
]

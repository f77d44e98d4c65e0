"""
dispatch/ — Outbound notification funnel
"""

from dispatch.dispatcher import NotificationDispatcher

__all__ = ["NotificationDispatcher"]

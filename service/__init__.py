"""
service/ — Forwarder service wiring and lifecycle
"""

from service.bot_service import ForwarderService

__all__ = ["ForwarderService"]

"""Configurações centralizadas do hotelmate_sync.

Uso típico:
    from hotelmate_sync.config import get_settings
"""

from hotelmate_sync.config.settings import (
    CONVERSATION_CHANNEL_TEMPLATE,
    NOTIFICATIONS_CHANNEL_TEMPLATE,
    Settings,
    get_settings,
)

__all__ = [
    "Settings",
    "get_settings",
    "CONVERSATION_CHANNEL_TEMPLATE",
    "NOTIFICATIONS_CHANNEL_TEMPLATE",
]

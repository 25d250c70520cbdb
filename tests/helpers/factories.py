"""Fábricas de mensagens e payloads usadas pelos testes."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from hotelmate_sync.domain.enums import SenderClass
from hotelmate_sync.domain.models import Message

HOTEL = "hotel-killarney"
CONVERSATION_ID = 42
BASE_TIME = datetime(2026, 1, 10, 12, 0, tzinfo=UTC)


def at(seconds: float) -> datetime:
    """Timestamp relativo a BASE_TIME."""
    return BASE_TIME + timedelta(seconds=seconds)


def make_message(
    message_id: int | None,
    body: str = "Olá",
    sender: SenderClass = SenderClass.GUEST,
    seconds: float = 0,
    **fields: Any,
) -> Message:
    """Mensagem confirmada de teste."""
    return Message(
        id=message_id,
        sender_class=sender,
        body=body,
        created_at=at(seconds),
        **fields,
    )


def message_payload(message_id: int, body: str = "Olá", **fields: Any) -> dict[str, Any]:
    """Payload no formato do backend (nomes de wire)."""
    payload: dict[str, Any] = {
        "id": message_id,
        "conversation_id": CONVERSATION_ID,
        "sender_type": "guest",
        "message": body,
        "timestamp": "2026-01-10T12:00:00Z",
        "attachments": [],
    }
    payload.update(fields)
    return payload

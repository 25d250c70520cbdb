"""Resolução de vínculo de resposta (mensagem citada)."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from hotelmate_sync.domain.enums import SenderClass
from hotelmate_sync.domain.models import Message, ReplyPreview

ATTACHMENT_SNIPPET = "Attachment"


@dataclass(slots=True, frozen=True)
class ReplyDisplay:
    """Dados para renderizar o preview de resposta."""

    sender_label: str
    snippet: str
    in_window: bool


def format_reply_reference(message: Message | None) -> int | None:
    """Id a enviar como `reply_to` (None se não há mensagem ou ainda é otimista)."""
    if message is None:
        return None
    return message.id


def _find(messages: Iterable[Message], message_id: int) -> Message | None:
    for message in messages:
        if message.id == message_id:
            return message
    return None


def _sender_label(
    sender_class: SenderClass | None,
    original: Message | None,
    preview: ReplyPreview | None,
) -> str:
    if sender_class == SenderClass.STAFF:
        for name in (
            preview and preview.sender_name,
            preview and preview.staff_name,
            original and original.sender_name,
            original and original.staff_name,
        ):
            if name:
                return name
        return "Staff"

    if sender_class == SenderClass.SYSTEM:
        return "System"

    for name in (
        original and original.guest_name,
        preview and preview.sender_name,
        preview and preview.guest_name,
    ):
        if name:
            return name
    return "Guest"


def resolve_reply_display(
    reply_to_id: int | None,
    messages: Iterable[Message],
    preview: ReplyPreview | None = None,
) -> ReplyDisplay | None:
    """Resolve rótulo do remetente e trecho da mensagem citada.

    Quando a original está fora da janela carregada, usa os metadados do
    próprio payload de resposta; referências pendentes caem no fallback de anexo.
    """
    if reply_to_id is None:
        return None

    original = _find(messages, reply_to_id)
    if original is not None:
        sender_class = original.sender_class
    else:
        sender_class = preview.sender_class if preview else None
    label = _sender_label(sender_class, original, preview)

    if original is not None:
        snippet = original.body or ATTACHMENT_SNIPPET
    else:
        snippet = (preview.body if preview else None) or ATTACHMENT_SNIPPET
    return ReplyDisplay(sender_label=label, snippet=snippet, in_window=original is not None)

"""Portas para os colaboradores externos (REST e canal push).

O engine depende apenas destes contratos; implementações ficam em infra/.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Protocol

from hotelmate_sync.domain.models import EngineContext, Message, OutgoingAttachment

EventHandler = Callable[[Any], None]


class ChatApi(Protocol):
    """Porta REST do chat. Erros chegam como subclasses de SyncError."""

    async def send_message(
        self,
        ctx: EngineContext,
        text: str,
        client_message_id: str,
        attachments: Sequence[OutgoingAttachment] = (),
        reply_to_id: int | None = None,
    ) -> Message:
        """Envia mensagem e retorna a versão canônica."""

    async def delete_message(self, ctx: EngineContext, message_id: int) -> Message | None:
        """Deleta (soft) e retorna a mensagem atualizada, se o backend devolver."""

    async def mark_read(self, ctx: EngineContext) -> None:
        """Marca a conversa como lida e propaga evento ao outro lado."""

    async def get_messages(
        self,
        ctx: EngineContext,
        limit: int,
        before: int | None = None,
    ) -> list[Message]:
        """Retorna uma página do histórico."""


class PushClient(Protocol):
    """Porta do canal push (at-least-once, sem ordem garantida)."""

    def subscribe(self, channel: str) -> None:
        """Garante inscrição no canal (idempotente)."""

    def bind(self, channel: str, event: str, handler: EventHandler) -> None:
        """Associa handler a um evento do canal."""

    def unbind(self, channel: str, event: str, handler: EventHandler) -> None:
        """Remove apenas este handler (o canal continua inscrito)."""

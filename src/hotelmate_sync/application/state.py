"""Estado de uma conversa aberta, de propriedade exclusiva do engine.

Componentes (envio otimista, reconciliador, deleção, read receipts)
recebem o mesmo ConversationState e aplicam operações sobre ele; nenhum
guarda cópia da lista entre pontos de suspensão.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace

from hotelmate_sync.application.store import MessageStore, UpsertOutcome, UpsertResult
from hotelmate_sync.domain.enums import MessageStatus, NoticeLevel
from hotelmate_sync.domain.models import ConversationAggregate, EngineContext, Message, Notice
from hotelmate_sync.domain.status import StatusMap
from hotelmate_sync.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


def read_flag(role: str) -> str:
    """Nome do campo `read_by_<papel>` da mensagem."""
    return f"read_by_{role}"


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Visão somente-leitura entregue à camada de UI."""

    messages: tuple[Message, ...]
    statuses: StatusMap
    aggregate: ConversationAggregate
    highlighted_id: int | None = None
    notices: tuple[Notice, ...] = ()


@dataclass
class ConversationState:
    """Store + mapa de status + agregados + notificações de uma conversa."""

    store: MessageStore = field(default_factory=MessageStore)
    statuses: StatusMap = field(default_factory=StatusMap)
    aggregate: ConversationAggregate = field(default_factory=ConversationAggregate)
    notices: list[Notice] = field(default_factory=list)
    on_notice: Callable[[Notice], None] | None = None

    def reset(self) -> None:
        """Descarta todo estado transitório (troca de conversa)."""
        self.store = MessageStore()
        self.statuses = StatusMap()
        self.aggregate = ConversationAggregate()
        self.notices.clear()

    def notify(
        self,
        level: NoticeLevel,
        code: str,
        text: str,
        message_id: int | str | None = None,
    ) -> Notice:
        """Registra notificação visível ao usuário e repassa ao callback."""
        notice = Notice(level=level, code=code, text=text, message_id=message_id)
        self.notices.append(notice)
        logger.info(
            "Notificação ao usuário",
            extra={"notice_level": level.value, "code": code, "message_id": message_id},
        )
        if self.on_notice is not None:
            self.on_notice(notice)
        return notice

    def set_status(self, key: int | str, status: MessageStatus) -> bool:
        """Aplica transição monotônica; retorna True se o mapa mudou."""
        updated = self.statuses.advance(key, status)
        changed = updated is not self.statuses
        self.statuses = updated
        return changed

    def failed_keys(self) -> frozenset[str]:
        """local_keys de envios failed (ficam fora do casamento por fingerprint)."""
        return frozenset(
            key
            for key, status in self.statuses.items()
            if isinstance(key, str) and status == MessageStatus.FAILED
        )

    def record_confirmed(self, ctx: EngineContext, result: UpsertResult) -> None:
        """Atualiza status e agregados após uma mensagem confirmada entrar no store."""
        message = result.message
        if message.id is None:
            return
        if result.replaced_key is not None:
            self.statuses = self.statuses.rekey(result.replaced_key, message.id)
        if message.is_deleted:
            self.statuses = self.statuses.discard(message.id)
            return

        self.set_status(message.id, MessageStatus.DELIVERED)
        own = ctx.is_own(message)
        if own and getattr(message, read_flag(ctx.peer_role.value), False):
            self.set_status(message.id, MessageStatus.READ)

        aggregate = self.aggregate
        if result.outcome == UpsertOutcome.APPENDED and not own:
            if not getattr(message, read_flag(ctx.viewer_role.value), False):
                aggregate = replace(aggregate, unread_count=aggregate.unread_count + 1)
        if aggregate.last_message_at is None or message.created_at > aggregate.last_message_at:
            aggregate = replace(aggregate, last_message_at=message.created_at)
        self.aggregate = aggregate

    def recount_unread(self, ctx: EngineContext) -> int:
        """Recalcula mensagens do outro lado ainda não lidas pelo viewer."""
        flag = read_flag(ctx.viewer_role.value)
        unread = sum(
            1
            for m in self.store
            if m.id is not None
            and not m.is_deleted
            and not ctx.is_own(m)
            and not getattr(m, flag, False)
        )
        self.aggregate = replace(self.aggregate, unread_count=unread)
        return unread

    def snapshot(self, highlighted_id: int | None = None) -> Snapshot:
        return Snapshot(
            messages=self.store.messages,
            statuses=self.statuses,
            aggregate=self.aggregate,
            highlighted_id=highlighted_id,
            notices=tuple(self.notices),
        )

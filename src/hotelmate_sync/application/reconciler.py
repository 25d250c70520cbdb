"""Reconciliador de eventos push.

Entrega do canal push é at-least-once e sem ordem garantida entre canais.
Cada evento é idempotente sobre o estado: reaplicar não muda nada.
Nenhuma exceção escapa de `handle`; eventos inválidos são registrados e
descartados.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from hotelmate_sync.application.deletion import DeletionService
from hotelmate_sync.application.read_receipts import ReadReceiptTracker
from hotelmate_sync.application.state import ConversationState
from hotelmate_sync.domain.enums import MessageStatus
from hotelmate_sync.domain.errors import MalformedEvent
from hotelmate_sync.domain.events import (
    AttachmentDeletedEvent,
    ChatEvent,
    MessageDeletedEvent,
    MessageDeliveredEvent,
    MessageEditedEvent,
    MessagesReadEvent,
    NewMessageEvent,
    StaffAssignedEvent,
    SubscriptionSucceededEvent,
    parse_event,
)
from hotelmate_sync.domain.models import EngineContext
from hotelmate_sync.infra.dedupe import DedupeStore
from hotelmate_sync.observability.logging import get_logger, log_dropped_event

logger: logging.Logger = get_logger(__name__)


class EventReconciler:
    """Aplica eventos push ao estado da conversa aberta."""

    def __init__(
        self,
        state: ConversationState,
        deletion: DeletionService,
        receipts: ReadReceiptTracker,
        dedupe: DedupeStore,
        on_resync: Callable[[], None] | None = None,
    ) -> None:
        self._state = state
        self._deletion = deletion
        self._receipts = receipts
        self._dedupe = dedupe
        self._on_resync = on_resync
        self._handlers: dict[type, Callable[[EngineContext, Any], bool]] = {
            NewMessageEvent: self._on_new_message,
            MessageDeliveredEvent: self._on_delivered,
            MessagesReadEvent: self._on_read,
            MessageDeletedEvent: self._on_deleted,
            AttachmentDeletedEvent: self._on_attachment_deleted,
            MessageEditedEvent: self._on_edited,
            StaffAssignedEvent: self._on_staff_assigned,
            SubscriptionSucceededEvent: self._on_subscription_succeeded,
        }

    def handle(self, ctx: EngineContext, name: str, payload: Any) -> bool:
        """Entrada bruta do canal push. Retorna True se o estado mudou."""
        try:
            event = parse_event(name, payload)
        except MalformedEvent as exc:
            logger.warning("Evento push malformado", extra={"event_name": name, "error": str(exc)})
            log_dropped_event(logger, name, reason="malformed")
            return False
        if event is None:
            log_dropped_event(logger, name, reason="unknown_event")
            return False
        return self.apply(ctx, event)

    def apply(self, ctx: EngineContext, event: ChatEvent) -> bool:
        """Aplica evento já tipado (filtros de conversa e dedupe inclusos)."""
        if event.conversation_id is not None and event.conversation_id != ctx.conversation_id:
            log_dropped_event(logger, event.name, reason="other_conversation")
            return False
        if event.event_id and not self._dedupe.mark_if_new(f"event:{event.event_id}"):
            log_dropped_event(logger, event.name, reason="duplicate_event_id")
            return False

        handler = self._handlers[type(event)]
        try:
            return handler(ctx, event)
        except Exception:
            logger.exception("Falha ao aplicar evento push", extra={"event_name": event.name})
            log_dropped_event(logger, event.name, reason="handler_error")
            return False

    # ------------------------------------------------------------------
    # Handlers por variante
    # ------------------------------------------------------------------

    def _on_new_message(self, ctx: EngineContext, event: NewMessageEvent) -> bool:
        message = event.message
        if message.id is not None and self._state.store.contains(message.id):
            log_dropped_event(logger, event.name, reason="duplicate_message", message_id=message.id)
            return False
        result = self._state.store.upsert(message, exclude=self._state.failed_keys())
        self._state.record_confirmed(ctx, result)
        logger.info(
            "Mensagem recebida via push",
            extra={"message_id": message.id, "outcome": result.outcome.value},
        )
        return True

    def _on_delivered(self, ctx: EngineContext, event: MessageDeliveredEvent) -> bool:
        # Antes da resposta REST o pending vive sob o local_key, achado pelo token ecoado.
        # Só promove pending; delivered tardio nunca rebaixa read.
        for key in (event.message_id, event.client_message_id):
            if key is not None and self._state.statuses.get(key) == MessageStatus.PENDING:
                return self._state.set_status(key, MessageStatus.DELIVERED)
        return False

    def _on_read(self, ctx: EngineContext, event: MessagesReadEvent) -> bool:
        return self._receipts.apply_remote_read(event.peer, event.message_ids)

    def _on_deleted(self, ctx: EngineContext, event: MessageDeletedEvent) -> bool:
        return self._deletion.apply(ctx, event.to_deletion())

    def _on_attachment_deleted(self, ctx: EngineContext, event: AttachmentDeletedEvent) -> bool:
        updated = self._state.store.remove_attachment(event.message_id, event.attachment_id)
        return updated is not None

    def _on_edited(self, ctx: EngineContext, event: MessageEditedEvent) -> bool:
        current = self._state.store.get(event.message_id)
        if current is None or current.is_deleted or current.body == event.body:
            return False
        self._state.store.update(event.message_id, body=event.body)
        return True

    def _on_staff_assigned(self, ctx: EngineContext, event: StaffAssignedEvent) -> bool:
        aggregate = self._state.aggregate
        if (
            aggregate.current_handler_id == event.staff_id
            and aggregate.current_handler_name == event.staff_name
        ):
            return False
        self._state.aggregate = replace(
            aggregate,
            current_handler_id=event.staff_id,
            current_handler_name=event.staff_name,
        )
        logger.info("Atendente da conversa alterado", extra={"staff_id": event.staff_id})
        return True

    def _on_subscription_succeeded(
        self, ctx: EngineContext, event: SubscriptionSucceededEvent
    ) -> bool:
        # Reconexão: eventos perdidos durante a queda são recuperados via REST.
        if self._on_resync is not None:
            self._on_resync()
        return False

"""Deleção de mensagens (ação local e eventos push)."""

from __future__ import annotations

import logging

from hotelmate_sync.application.state import ConversationState
from hotelmate_sync.domain.deletion import GENERIC_DELETION_TEXT, resolve_deletion_display
from hotelmate_sync.domain.enums import NoticeLevel
from hotelmate_sync.domain.errors import NotFound, PermissionDenied, SyncError
from hotelmate_sync.domain.models import DeletionEvent, EngineContext
from hotelmate_sync.domain.protocols import ChatApi
from hotelmate_sync.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

DELETE_FAILED_TEXT = "Failed to delete message. Please try again."


class DeletionService:
    """Aplica soft/hard delete no store e traduz falhas em notificações.

    Aplicar a mesma deleção duas vezes produz o mesmo estado.
    """

    def __init__(self, state: ConversationState, api: ChatApi) -> None:
        self._state = state
        self._api = api

    def apply(self, ctx: EngineContext, event: DeletionEvent) -> bool:
        """Aplica deleção já decidida pelo backend; retorna True se o store mudou."""
        state = self._state
        current = state.store.get(event.message_id)
        state.statuses = state.statuses.discard(event.message_id)
        if current is None:
            logger.debug(
                "Deleção de mensagem fora da janela",
                extra={"message_id": event.message_id},
            )
            return False

        if not event.is_soft_delete:
            state.store.remove(event.message_id)
            logger.info("Mensagem removida (hard)", extra={"message_id": event.message_id})
            return True

        text = resolve_deletion_display(event, ctx.is_guest_viewer)
        if current.is_deleted and current.body == text and not current.attachments:
            return False
        state.store.mark_deleted(
            event.message_id,
            text,
            deleted_by=event.deleted_by,
            original_sender=event.original_sender,
        )
        logger.info(
            "Mensagem marcada como deletada",
            extra={
                "message_id": event.message_id,
                "deleted_by": event.deleted_by,
                "original_sender": event.original_sender,
            },
        )
        return True

    async def delete(self, ctx: EngineContext, message_id: int) -> bool:
        """Deleção iniciada pelo viewer.

        - 403: uma notificação com o texto do backend; mensagem intacta
        - 404: já removida em outro lugar; soft delete com texto genérico
        - demais falhas: notificação de erro; mensagem intacta
        """
        current = self._state.store.get(message_id)
        if current is None:
            logger.debug("Delete ignorado: mensagem ausente", extra={"message_id": message_id})
            return False

        try:
            updated = await self._api.delete_message(ctx, message_id)
        except PermissionDenied as exc:
            self._state.notify(NoticeLevel.ERROR, exc.code, str(exc), message_id)
            return False
        except NotFound:
            logger.info("Delete 404: mensagem já removida", extra={"message_id": message_id})
            return self.apply(
                ctx,
                DeletionEvent(
                    message_id=message_id,
                    original_sender=current.sender_class,
                    backend_text=GENERIC_DELETION_TEXT,
                ),
            )
        except SyncError as exc:
            logger.warning(
                "Delete falhou",
                extra={"message_id": message_id, "error_code": exc.code},
            )
            self._state.notify(NoticeLevel.ERROR, exc.code, DELETE_FAILED_TEXT, message_id)
            return False

        backend_text = None
        if updated is not None and updated.is_deleted and updated.body:
            backend_text = updated.body
        return self.apply(
            ctx,
            DeletionEvent(
                message_id=message_id,
                deleted_by=ctx.viewer_role,
                original_sender=current.sender_class,
                staff_name=None if ctx.is_guest_viewer else ctx.viewer_name,
                backend_text=backend_text,
            ),
        )

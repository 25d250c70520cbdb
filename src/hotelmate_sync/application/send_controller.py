"""Envio otimista: a mensagem aparece antes da confirmação do servidor.

Fluxo:
1. Entrada provisória (local_key, status pending) entra no store
2. Chamada REST em background (o local_key vai como client_message_id)
3. Sucesso → a confirmada substitui a provisória (exatamente uma entrada)
4. Falha → status failed; nada de retry automático

A confirmação pode chegar primeiro pelo push; nesse caso o upsert do
resultado REST encontra o id já presente e apenas remove a provisória.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import datetime

from hotelmate_sync.application.state import ConversationState
from hotelmate_sync.domain.enums import MessageStatus, SenderClass
from hotelmate_sync.domain.errors import NetworkFailure, SyncError
from hotelmate_sync.domain.identity import new_local_key
from hotelmate_sync.domain.models import (
    Attachment,
    Draft,
    EngineContext,
    Message,
    OutgoingAttachment,
    ReplyPreview,
    utc_now,
)
from hotelmate_sync.domain.protocols import ChatApi
from hotelmate_sync.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


class OptimisticSendController:
    """Controla o ciclo de vida das mensagens enviadas pelo viewer."""

    def __init__(
        self,
        state: ConversationState,
        api: ChatApi,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._state = state
        self._api = api
        self._clock = clock
        self._drafts: dict[str, Draft] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    def _provisional(self, ctx: EngineContext, local_key: str, draft: Draft) -> Message:
        preview = None
        if draft.reply_to_id is not None:
            original = self._state.store.get(draft.reply_to_id)
            if original is not None:
                preview = ReplyPreview(
                    id=original.id,
                    sender_class=original.sender_class,
                    sender_name=original.sender_name,
                    staff_name=original.staff_name,
                    guest_name=original.guest_name,
                    body=original.body,
                )
        is_staff = ctx.viewer_role == SenderClass.STAFF
        return Message(
            local_key=local_key,
            client_message_id=local_key,
            sender_class=ctx.viewer_role,
            sender_ref=ctx.viewer_ref,
            body=draft.text,
            attachments=tuple(
                Attachment(name=a.filename, kind=a.content_type, size=len(a.content))
                for a in draft.attachments
            ),
            reply_to_id=draft.reply_to_id,
            reply_preview=preview,
            created_at=self._clock(),
            is_optimistic=True,
            sender_name=ctx.viewer_name,
            staff_name=ctx.viewer_name if is_staff else None,
            guest_name=None if is_staff else ctx.viewer_name,
        )

    def send(
        self,
        ctx: EngineContext,
        text: str,
        attachments: Sequence[OutgoingAttachment] = (),
        reply_to_id: int | None = None,
    ) -> str | None:
        """Cria a entrada provisória e agenda o envio.

        Deve ser chamado com event loop em execução.

        Returns:
            local_key da entrada provisória, ou None se não há conteúdo.
        """
        text = text or ""
        if not text.strip() and not attachments:
            logger.debug("Envio ignorado: sem texto nem anexos")
            return None

        local_key = new_local_key()
        draft = Draft(text=text, attachments=tuple(attachments), reply_to_id=reply_to_id)
        self._state.store.append_provisional(self._provisional(ctx, local_key, draft))
        self._state.set_status(local_key, MessageStatus.PENDING)
        self._drafts[local_key] = draft

        task = asyncio.get_running_loop().create_task(self._deliver(ctx, local_key, draft))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info(
            "Mensagem otimista criada",
            extra={
                "local_key": local_key,
                "attachments": len(draft.attachments),
                "reply_to_id": reply_to_id,
            },
        )
        return local_key

    async def _deliver(self, ctx: EngineContext, local_key: str, draft: Draft) -> None:
        try:
            confirmed = await self._api.send_message(
                ctx,
                draft.text,
                local_key,
                draft.attachments,
                draft.reply_to_id,
            )
        except SyncError as exc:
            self._on_failure(local_key, exc)
            return
        except Exception as exc:
            logger.exception("Erro inesperado no envio", extra={"local_key": local_key})
            self._on_failure(local_key, NetworkFailure(str(exc)))
            return
        self._on_success(ctx, local_key, confirmed)

    def _on_success(self, ctx: EngineContext, local_key: str, confirmed: Message) -> None:
        self._drafts.pop(local_key, None)
        result = self._state.store.upsert(
            confirmed, local_key=local_key, exclude=self._state.failed_keys()
        )
        if result.replaced_key is None:
            # Provisória já tinha sido reconciliada via push.
            self._state.statuses = self._state.statuses.discard(local_key)
        self._state.record_confirmed(ctx, result)
        logger.info(
            "Envio confirmado",
            extra={
                "local_key": local_key,
                "message_id": confirmed.id,
                "outcome": result.outcome.value,
            },
        )

    def _on_failure(self, local_key: str, exc: SyncError) -> None:
        if self._state.store.get(local_key) is None:
            # Push já entregou a confirmada (ou o usuário descartou a entrada).
            self._drafts.pop(local_key, None)
            logger.info(
                "Falha REST após reconciliação; ignorada",
                extra={"local_key": local_key, "error_code": exc.code},
            )
            return
        self._state.set_status(local_key, MessageStatus.FAILED)
        logger.warning(
            "Envio falhou",
            extra={
                "local_key": local_key,
                "error_code": exc.code,
                "status_code": exc.status_code,
            },
        )

    def _take_failed(self, local_key: str) -> Draft | None:
        if self._state.statuses.get(local_key) != MessageStatus.FAILED:
            return None
        draft = self._drafts.pop(local_key, None)
        self._state.store.remove(local_key)
        self._state.statuses = self._state.statuses.discard(local_key)
        return draft

    def retry(self, ctx: EngineContext, local_key: str) -> str | None:
        """Descarta a entrada failed e envia o mesmo conteúdo como nova provisória."""
        draft = self._take_failed(local_key)
        if draft is None:
            logger.debug("Retry ignorado: entrada não failed", extra={"local_key": local_key})
            return None
        return self.send(ctx, draft.text, draft.attachments, draft.reply_to_id)

    def recall(self, local_key: str) -> Draft | None:
        """Remove a entrada failed e devolve o conteúdo ao compositor."""
        return self._take_failed(local_key)

    def discard(self, local_key: str) -> bool:
        """Deleção local de entrada nunca confirmada (somente failed)."""
        return self._take_failed(local_key) is not None

    async def drain(self) -> None:
        """Aguarda todos os envios em andamento."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def reset(self) -> None:
        """Troca de conversa: envios pendentes e rascunhos são descartados."""
        self.cancel_all()
        self._drafts.clear()

    def cancel_all(self) -> list[asyncio.Task[None]]:
        """Cancela envios em andamento; retorna as tasks para aguardar."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        return tasks

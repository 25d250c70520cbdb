"""ChatSyncEngine: fachada de sincronização de uma conversa aberta.

Mantém a lista de mensagens correta diante de:
- envio otimista local
- resposta REST autoritativa do envio
- eventos push at-least-once, fora de ordem e duplicados
- ações de terceiros (deleções, respostas, leituras)

Todo estado vive no event loop; a UI lê `get_snapshot()`.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import datetime
from typing import Any

from hotelmate_sync.application.deletion import DeletionService
from hotelmate_sync.application.read_receipts import ReadReceiptTracker
from hotelmate_sync.application.reconciler import EventReconciler
from hotelmate_sync.application.reply_navigation import ReplyNavigator
from hotelmate_sync.application.send_controller import OptimisticSendController
from hotelmate_sync.application.state import ConversationState, Snapshot
from hotelmate_sync.config.settings import Settings, get_settings
from hotelmate_sync.domain.enums import EventKind
from hotelmate_sync.domain.errors import SyncError
from hotelmate_sync.domain.models import (
    Draft,
    EngineContext,
    Message,
    Notice,
    OutgoingAttachment,
    utc_now,
)
from hotelmate_sync.domain.protocols import ChatApi, EventHandler, PushClient
from hotelmate_sync.domain.reply import ReplyDisplay, resolve_reply_display
from hotelmate_sync.infra.dedupe import DedupeStore, create_dedupe_store
from hotelmate_sync.observability.context import conversation_scope
from hotelmate_sync.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

# Canal de notificações do viewer só carrega o que afeta a conversa aberta.
NOTIFICATION_EVENTS: tuple[str, ...] = (
    EventKind.NEW_MESSAGE,
    EventKind.STAFF_ASSIGNED,
)
CONVERSATION_EVENTS: tuple[str, ...] = tuple(EventKind)

Binding = tuple[str, str, EventHandler]


class ChatSyncEngine:
    """Superfície de operações do chat para uma conversa."""

    def __init__(
        self,
        ctx: EngineContext,
        api: ChatApi,
        push: PushClient,
        settings: Settings | None = None,
        dedupe: DedupeStore | None = None,
        on_notice: Callable[[Notice], None] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._ctx = ctx
        self._api = api
        self._push = push
        self._settings = settings or get_settings()
        self._state = ConversationState(on_notice=on_notice)
        self._sender = OptimisticSendController(self._state, api, clock)
        self._deletion = DeletionService(self._state, api)
        self._receipts = ReadReceiptTracker(
            self._state,
            api,
            visibility_threshold=self._settings.visibility_threshold,
            debounce_seconds=self._settings.mark_read_debounce_seconds,
        )
        self._dedupe = dedupe or create_dedupe_store(self._settings)
        self._reconciler = EventReconciler(
            self._state,
            self._deletion,
            self._receipts,
            self._dedupe,
            on_resync=self._schedule_resync,
        )
        self._navigator = ReplyNavigator(self._state, self._settings.highlight_seconds)
        self._bindings: dict[int, list[Binding]] = {}
        self._background: set[asyncio.Task[Any]] = set()
        self._has_more_history = True

    # ------------------------------------------------------------------
    # Estado
    # ------------------------------------------------------------------

    @property
    def context(self) -> EngineContext:
        return self._ctx

    @property
    def notices(self) -> list[Notice]:
        """Notificações visíveis ao usuário, em ordem de emissão."""
        return self._state.notices

    @property
    def has_more_history(self) -> bool:
        return self._has_more_history

    def get_snapshot(self) -> Snapshot:
        return self._state.snapshot(highlighted_id=self._navigator.highlighted())

    def reply_display(self, message: Message) -> ReplyDisplay | None:
        """Rótulo e trecho da mensagem citada por `message`."""
        return resolve_reply_display(
            message.reply_to_id, self._state.store.messages, message.reply_preview
        )

    # ------------------------------------------------------------------
    # Envio
    # ------------------------------------------------------------------

    def send_message(
        self,
        text: str,
        attachments: Sequence[OutgoingAttachment] = (),
        reply_to_id: int | None = None,
    ) -> str | None:
        with conversation_scope(self._ctx.conversation_id):
            return self._sender.send(self._ctx, text, attachments, reply_to_id)

    def retry_message(self, local_key: str) -> str | None:
        with conversation_scope(self._ctx.conversation_id):
            return self._sender.retry(self._ctx, local_key)

    def recall_message(self, local_key: str) -> Draft | None:
        with conversation_scope(self._ctx.conversation_id):
            return self._sender.recall(local_key)

    # ------------------------------------------------------------------
    # Deleção e leitura
    # ------------------------------------------------------------------

    async def delete_message(self, message_id: int | str) -> bool:
        """Deleta mensagem do viewer (ou descarta entrada otimista failed)."""
        with conversation_scope(self._ctx.conversation_id):
            if isinstance(message_id, str):
                return self._sender.discard(message_id)
            return await self._deletion.delete(self._ctx, message_id)

    async def mark_conversation_read(self) -> bool:
        with conversation_scope(self._ctx.conversation_id):
            return await self._receipts.mark_conversation_read(self._ctx)

    def on_message_visible(self, key: int | str, ratio: float) -> bool:
        with conversation_scope(self._ctx.conversation_id):
            return self._receipts.on_visibility(self._ctx, key, ratio)

    def on_composer_focus(self) -> None:
        with conversation_scope(self._ctx.conversation_id):
            self._receipts.on_composer_focus(self._ctx)

    def jump_to_reply(self, message_id: int) -> int | None:
        return self._navigator.jump_to(message_id)

    # ------------------------------------------------------------------
    # Canal push
    # ------------------------------------------------------------------

    def _channels(self) -> list[tuple[str, tuple[str, ...]]]:
        ctx = self._ctx
        return [
            (
                self._settings.conversation_channel(ctx.hotel_slug, ctx.conversation_id),
                CONVERSATION_EVENTS,
            ),
            (
                self._settings.notifications_channel(
                    ctx.hotel_slug, ctx.viewer_role.value, ctx.viewer_ref
                ),
                NOTIFICATION_EVENTS,
            ),
        ]

    def _switch_conversation(self, conversation_id: int) -> None:
        for bound_id in list(self._bindings):
            self.unsubscribe(bound_id)
        self._sender.reset()
        self._receipts.reset()
        self._navigator.clear()
        self._state.reset()
        self._dedupe.clear()
        self._has_more_history = True
        self._ctx = replace(self._ctx, conversation_id=conversation_id)
        logger.info("Conversa trocada", extra={"conversation_id": conversation_id})

    def subscribe(self, conversation_id: int) -> None:
        """Associa os handlers da conversa aos canais push.

        Chamadas repetidas não acumulam handlers. Um id diferente do atual
        troca de conversa (estado transitório descartado).
        """
        if conversation_id != self._ctx.conversation_id:
            self._switch_conversation(conversation_id)
        if conversation_id in self._bindings:
            return

        bindings: list[Binding] = []
        for channel, events in self._channels():
            self._push.subscribe(channel)
            for event in events:
                name = str(event)
                handler = functools.partial(self.handle_push_event, name)
                self._push.bind(channel, name, handler)
                bindings.append((channel, name, handler))
        self._bindings[conversation_id] = bindings
        logger.info(
            "Handlers push associados",
            extra={"conversation_id": conversation_id, "bindings": len(bindings)},
        )

    def unsubscribe(self, conversation_id: int) -> None:
        """Remove só os handlers deste engine; o canal continua inscrito."""
        bindings = self._bindings.pop(conversation_id, [])
        for channel, event, handler in bindings:
            self._push.unbind(channel, event, handler)
        if bindings:
            logger.info(
                "Handlers push removidos",
                extra={"conversation_id": conversation_id, "bindings": len(bindings)},
            )

    def handle_push_event(self, name: str, payload: Any) -> bool:
        """Entrada de eventos push (também usada diretamente em integrações)."""
        with conversation_scope(self._ctx.conversation_id):
            return self._reconciler.handle(self._ctx, name, payload)

    # ------------------------------------------------------------------
    # Histórico
    # ------------------------------------------------------------------

    def _apply_history(self, page: list[Message]) -> int:
        before = len(self._state.store)
        for result in self._state.store.merge(page, exclude=self._state.failed_keys()):
            self._state.record_confirmed(self._ctx, result)
        self._state.recount_unread(self._ctx)
        return len(self._state.store) - before

    async def load_initial(self) -> int:
        """Carrega a página mais recente (mantém entradas otimistas pendentes)."""
        with conversation_scope(self._ctx.conversation_id):
            limit = self._settings.history_page_size
            page = await self._api.get_messages(self._ctx, limit=limit)
            self._has_more_history = len(page) >= limit
            added = self._apply_history(page)
            logger.info("Histórico inicial carregado", extra={"messages": len(page)})
            return added

    async def load_older(self) -> int:
        """Carrega a página anterior à mensagem mais antiga da janela."""
        with conversation_scope(self._ctx.conversation_id):
            before = self._state.store.oldest_id
            if before is None or not self._has_more_history:
                return 0
            limit = self._settings.history_page_size
            page = await self._api.get_messages(self._ctx, limit=limit, before=before)
            self._has_more_history = len(page) >= limit
            added = self._apply_history(page)
            logger.info(
                "Página antiga carregada",
                extra={"before": before, "messages": len(page), "added": added},
            )
            return added

    async def resync(self) -> int:
        """Recupera eventos perdidos (reconexão) relendo a página mais recente."""
        with conversation_scope(self._ctx.conversation_id):
            try:
                page = await self._api.get_messages(
                    self._ctx, limit=self._settings.history_page_size
                )
            except SyncError as exc:
                logger.warning("Resync falhou", extra={"error_code": exc.code})
                return 0
            added = self._apply_history(page)
            logger.info("Resync concluído", extra={"messages": len(page), "added": added})
            return added

    def _schedule_resync(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("Resync não agendado: sem event loop")
            return
        task = loop.create_task(self.resync())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    async def drain(self) -> None:
        """Aguarda envios, mark-reads e resyncs em andamento."""
        await self._sender.drain()
        await self._receipts.drain()
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def close(self) -> None:
        """Desassocia handlers e cancela tarefas pendentes."""
        for conversation_id in list(self._bindings):
            self.unsubscribe(conversation_id)
        tasks: list[asyncio.Task[Any]] = [
            *self._sender.cancel_all(),
            *self._receipts.cancel_all(),
            *self._background,
        ]
        for task in self._background:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Engine encerrado", extra={"conversation_id": self._ctx.conversation_id})

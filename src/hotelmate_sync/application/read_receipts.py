"""Read receipts: visibilidade local → mark-read no servidor.

Guest: cada mensagem nova do staff que fica visível agenda um mark-read
com debounce (várias mensagens viram uma única chamada).
Staff: mark-read é explícito (foco no compositor ou chamada direta).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import replace

from hotelmate_sync.application.state import ConversationState, read_flag
from hotelmate_sync.domain.enums import MessageStatus, NoticeLevel, SenderClass
from hotelmate_sync.domain.errors import SyncError
from hotelmate_sync.domain.models import EngineContext
from hotelmate_sync.domain.protocols import ChatApi
from hotelmate_sync.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

MARK_READ_FAILED_TEXT = "Could not mark messages as read."


class ReadReceiptTracker:
    """Rastreia mensagens vistas e sincroniza leitura com o backend."""

    def __init__(
        self,
        state: ConversationState,
        api: ChatApi,
        visibility_threshold: float = 0.5,
        debounce_seconds: float = 1.0,
    ) -> None:
        self._state = state
        self._api = api
        self._threshold = visibility_threshold
        self._debounce = debounce_seconds
        self._seen: set[int | str] = set()
        self._pending: asyncio.Task[bool] | None = None
        self._tasks: set[asyncio.Task[bool]] = set()

    def reset(self) -> None:
        self.cancel_all()
        self._seen.clear()

    def on_visibility(self, ctx: EngineContext, key: int | str, ratio: float) -> bool:
        """Registra que a mensagem ficou visível; retorna True se contou como vista."""
        if ratio < self._threshold:
            return False
        message = self._state.store.get(key)
        if message is None or message.is_deleted or ctx.is_own(message):
            return False
        if key in self._seen:
            return False

        self._seen.add(key)
        self._state.set_status(key, MessageStatus.READ)
        logger.debug("Mensagem vista", extra={"message_id": key})

        if ctx.is_guest_viewer and not getattr(message, read_flag(ctx.viewer_role.value)):
            self._schedule(ctx, delay=self._debounce)
        return True

    def on_composer_focus(self, ctx: EngineContext) -> asyncio.Task[bool] | None:
        """Staff: foco no compositor dispara mark-read imediato."""
        if ctx.viewer_role != SenderClass.STAFF:
            return None
        return self._schedule(ctx, delay=0.0)

    def _schedule(self, ctx: EngineContext, delay: float) -> asyncio.Task[bool]:
        # `_pending` só aponta para a task enquanto ela ainda está no debounce.
        if self._pending is not None:
            self._pending.cancel()
        task = asyncio.get_running_loop().create_task(self._delayed_mark_read(ctx, delay))
        self._pending = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _delayed_mark_read(self, ctx: EngineContext, delay: float) -> bool:
        if delay > 0:
            await asyncio.sleep(delay)
        if self._pending is asyncio.current_task():
            self._pending = None
        return await self.mark_conversation_read(ctx)

    async def mark_conversation_read(self, ctx: EngineContext) -> bool:
        """Chama mark-read; no sucesso, mensagens do outro lado viram read e unread=0."""
        try:
            await self._api.mark_read(ctx)
        except SyncError as exc:
            logger.warning("Mark-read falhou", extra={"error_code": exc.code})
            self._state.notify(NoticeLevel.ERROR, exc.code, MARK_READ_FAILED_TEXT)
            return False

        state = self._state
        flag = read_flag(ctx.viewer_role.value)
        peer_ids = [m.id for m in state.store if m.id is not None and not ctx.is_own(m)]
        for message_id in peer_ids:
            state.store.update(message_id, **{flag: True})
        state.statuses = state.statuses.advance_many(list(peer_ids), MessageStatus.READ)
        state.aggregate = replace(state.aggregate, unread_count=0)
        logger.info("Conversa marcada como lida", extra={"messages": len(peer_ids)})
        return True

    def apply_remote_read(self, peer: SenderClass, message_ids: Iterable[int]) -> bool:
        """Evento messages-read-by-<peer>: leitura confirmada pelo outro lado."""
        state = self._state
        flag = read_flag(peer.value)
        changed = False
        for message_id in message_ids:
            message = state.store.get(message_id)
            if message is None:
                continue
            if not getattr(message, flag):
                state.store.update(message_id, **{flag: True})
                changed = True
            changed = state.set_status(message_id, MessageStatus.READ) or changed
        return changed

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel_all(self) -> list[asyncio.Task[bool]]:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        self._pending = None
        return tasks

"""Navegação até a mensagem citada (destaque temporário)."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from hotelmate_sync.application.state import ConversationState
from hotelmate_sync.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


class ReplyNavigator:
    """Destaca a mensagem original por um intervalo fixo.

    O destaque expira pelo relógio, sem timer: `highlighted()` limpa o
    estado quando o prazo passou.
    """

    def __init__(
        self,
        state: ConversationState,
        highlight_seconds: float = 1.5,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._state = state
        self._seconds = highlight_seconds
        self._clock = clock
        self._highlighted: int | None = None
        self._expires_at = 0.0

    def jump_to(self, message_id: int) -> int | None:
        """Destaca a original se estiver na janela carregada; senão no-op."""
        if not self._state.store.contains(message_id):
            logger.debug("Original fora da janela", extra={"message_id": message_id})
            return None
        self._highlighted = message_id
        self._expires_at = self._clock() + self._seconds
        return message_id

    def highlighted(self) -> int | None:
        if self._highlighted is not None and self._clock() >= self._expires_at:
            self._highlighted = None
        return self._highlighted

    def clear(self) -> None:
        self._highlighted = None

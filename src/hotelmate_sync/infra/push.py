"""Canal push em memória (desenvolvimento, testes e integração local).

Semântica espelha o transporte real: handlers são associados por
(canal, evento); `unbind` remove apenas o handler informado, de modo que
outras conversas que compartilham o canal continuam recebendo eventos.
Eventos só são entregues a canais inscritos.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any

from hotelmate_sync.domain.protocols import EventHandler
from hotelmate_sync.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


class InMemoryPushClient:
    """Implementação da porta PushClient em memória."""

    def __init__(self) -> None:
        self._subscribed: set[str] = set()
        self._handlers: dict[str, dict[str, list[EventHandler]]] = defaultdict(
            lambda: defaultdict(list)
        )

    def subscribe(self, channel: str) -> None:
        if channel in self._subscribed:
            return
        self._subscribed.add(channel)
        logger.debug("Canal push inscrito", extra={"channel": channel})

    def unsubscribe(self, channel: str) -> None:
        """Cancela a inscrição do canal inteiro (todos os handlers)."""
        self._subscribed.discard(channel)
        self._handlers.pop(channel, None)
        logger.debug("Canal push desinscrito", extra={"channel": channel})

    def is_subscribed(self, channel: str) -> bool:
        return channel in self._subscribed

    def bind(self, channel: str, event: str, handler: EventHandler) -> None:
        self._handlers[channel][event].append(handler)

    def unbind(self, channel: str, event: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(channel, {}).get(event)
        if not handlers:
            return
        handlers[:] = [h for h in handlers if h != handler]

    def handler_count(self, channel: str, event: str | None = None) -> int:
        """Quantidade de handlers associados (útil para detectar acúmulo)."""
        events = self._handlers.get(channel, {})
        if event is not None:
            return len(events.get(event, []))
        return sum(len(handlers) for handlers in events.values())

    def emit(self, channel: str, event: str, payload: Any = None) -> int:
        """Entrega evento aos handlers do canal; retorna quantos foram chamados."""
        if channel not in self._subscribed:
            logger.debug(
                "Evento para canal não inscrito ignorado",
                extra={"channel": channel, "event_name": event},
            )
            return 0
        handlers = list(self._handlers.get(channel, {}).get(event, []))
        for handler in handlers:
            handler(payload)
        return len(handlers)

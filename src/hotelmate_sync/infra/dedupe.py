"""Dedupe de eventos push por `meta.event_id`.

O canal push entrega at-least-once: o mesmo evento pode chegar duas vezes
(ex.: canal da conversa + canal de notificações). Este store lembra os
event_ids já processados por uma janela de TTL.

InMemoryDedupeStore basta: o estado é transitório e local à conversa aberta.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from hotelmate_sync.observability.logging import get_logger

if TYPE_CHECKING:
    from hotelmate_sync.config.settings import Settings

logger: logging.Logger = get_logger(__name__)


class DedupeStore(ABC):
    """Contrato abstrato para stores de deduplicação de eventos."""

    @abstractmethod
    def mark_if_new(self, key: str) -> bool:
        """Marca chave se não existir (set-if-not-exists).

        Returns:
            True se a chave foi marcada agora (evento novo)
            False se a chave já existia (duplicado)
        """
        ...

    @abstractmethod
    def is_duplicate(self, key: str) -> bool:
        """Apenas verifica se chave existe, sem marcar."""
        ...

    @abstractmethod
    def clear(self, key: str | None = None) -> bool:
        """Remove uma chave (ou todas, se None)."""
        ...


@dataclass(slots=True)
class InMemoryDedupeStore(DedupeStore):
    """Dedupe em memória com TTL simulado."""

    ttl_seconds: int = 300
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    _seen: dict[str, float] = field(default_factory=dict)

    def _now(self) -> float:
        return self.clock()

    def mark_if_new(self, key: str) -> bool:
        """Marca chave se não existir; retorna True se evento é novo."""
        self._cleanup_expired()

        if key in self._seen:
            logger.debug(
                "Dedupe hit (in-memory)",
                extra={"key": key[:24], "is_duplicate": True},
            )
            return False

        self._seen[key] = self._now()
        logger.debug(
            "Dedupe miss (in-memory)",
            extra={"key": key[:24], "is_duplicate": False},
        )
        return True

    def is_duplicate(self, key: str) -> bool:
        """Verifica sem marcar."""
        self._cleanup_expired()
        return key in self._seen

    def clear(self, key: str | None = None) -> bool:
        """Remove chave do store (ou esvazia tudo)."""
        if key is None:
            had_keys = bool(self._seen)
            self._seen.clear()
            return had_keys
        if key in self._seen:
            del self._seen[key]
            return True
        return False

    def _cleanup_expired(self) -> None:
        """Remove chaves expiradas (TTL simulado)."""
        now = self._now()
        expired = [k for k, ts in self._seen.items() if now - ts > self.ttl_seconds]
        for k in expired:
            del self._seen[k]


def create_dedupe_store(settings: Settings | None = None) -> DedupeStore:
    """Factory do store de dedupe de eventos conforme settings."""
    if settings is None:
        from hotelmate_sync.config.settings import get_settings

        settings = get_settings()
    return InMemoryDedupeStore(ttl_seconds=settings.event_dedupe_ttl_seconds)

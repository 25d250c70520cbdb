"""Message Store: coleção ordenada e deduplicada de uma conversa.

Invariantes:
- No máximo uma mensagem por id canônico
- Mensagens provisórias são endereçadas apenas por local_key
- Após qualquer merge, ordem visível é por created_at (sort estável:
  empates preservam ordem de chegada)

Todas as operações são totais: ids desconhecidos são ignorados
(deleção concorrente em outro lugar é corrida esperada, não erro).
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterable, Iterator
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from hotelmate_sync.domain.enums import SenderClass
from hotelmate_sync.domain.identity import find_optimistic_match
from hotelmate_sync.domain.models import Message
from hotelmate_sync.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

MessageKey = int | str


class UpsertOutcome(StrEnum):
    """Como a mensagem confirmada entrou no store."""

    REPLACED = "replaced"  # mesmo id canônico já existia
    RECONCILED = "reconciled"  # substituiu uma entrada otimista
    APPENDED = "appended"  # mensagem nova


@dataclass(slots=True, frozen=True)
class UpsertResult:
    """Resultado de upsert; `replaced_key` é o local_key da provisória removida."""

    outcome: UpsertOutcome
    message: Message
    replaced_key: str | None = None


class MessageStore:
    """Coleção em memória de mensagens de uma única conversa."""

    def __init__(self, messages: Iterable[Message] = ()) -> None:
        self._messages: list[Message] = []
        self.load(messages)

    # ------------------------------------------------------------------
    # Leitura
    # ------------------------------------------------------------------

    @property
    def messages(self) -> tuple[Message, ...]:
        """Snapshot imutável da ordem atual."""
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    def _index_of(self, key: MessageKey | None) -> int | None:
        if key is None:
            return None
        for index, message in enumerate(self._messages):
            if isinstance(key, str):
                if message.id is None and message.local_key == key:
                    return index
            elif message.id == key:
                return index
        return None

    def get(self, key: MessageKey | None) -> Message | None:
        """Busca por id canônico (int) ou local_key (str)."""
        index = self._index_of(key)
        return None if index is None else self._messages[index]

    def contains(self, message_id: int) -> bool:
        return self._index_of(message_id) is not None

    @property
    def oldest_id(self) -> int | None:
        """Menor posição com id canônico (cursor de paginação)."""
        for message in self._messages:
            if message.id is not None:
                return message.id
        return None

    # ------------------------------------------------------------------
    # Escrita
    # ------------------------------------------------------------------

    def load(self, messages: Iterable[Message]) -> None:
        """Substitui a janela carregada mantendo a ordem do servidor."""
        loaded: list[Message] = []
        positions: dict[int, int] = {}
        for message in messages:
            if message.id is not None and message.id in positions:
                loaded[positions[message.id]] = message
                continue
            if message.id is not None:
                positions[message.id] = len(loaded)
            loaded.append(message)
        self._messages = loaded

    def _sort(self) -> None:
        self._messages.sort(key=lambda m: m.created_at)

    def _upsert_one(
        self, message: Message, local_key: str | None, exclude: Collection[str]
    ) -> UpsertResult:
        if message.id is not None:
            index = self._index_of(message.id)
            if index is not None:
                self._messages[index] = message
                # Confirmada chegou antes via push: a provisória ficou redundante.
                stale = self._index_of(local_key)
                if stale is not None:
                    del self._messages[stale]
                    return UpsertResult(UpsertOutcome.REPLACED, message, local_key)
                return UpsertResult(UpsertOutcome.REPLACED, message)

        index = self._index_of(local_key)
        if index is None:
            match = find_optimistic_match(self._messages, message, exclude)
            index = None if match is None else self._index_of(match.local_key)

        if index is not None:
            replaced = self._messages[index].local_key
            self._messages[index] = message
            return UpsertResult(UpsertOutcome.RECONCILED, message, replaced)

        self._messages.append(message)
        return UpsertResult(UpsertOutcome.APPENDED, message)

    def upsert(
        self,
        message: Message,
        local_key: str | None = None,
        exclude: Collection[str] = (),
    ) -> UpsertResult:
        """Insere ou substitui mensagem.

        Ordem de resolução:
        1. Mesmo id canônico → substitui (e remove a provisória `local_key`, se ainda existir)
        2. Provisória indicada por `local_key` → substitui
        3. Casamento otimista (token ecoado ou fingerprint; `exclude` fica fora do
           fingerprint) → substitui
        4. Caso contrário → append
        """
        result = self._upsert_one(message, local_key, exclude)
        self._sort()
        logger.debug(
            "Mensagem aplicada ao store",
            extra={"message_id": message.id, "outcome": result.outcome.value},
        )
        return result

    def append_provisional(self, message: Message) -> None:
        """Adiciona mensagem otimista (sempre visível imediatamente)."""
        self._messages.append(message)
        self._sort()

    def merge(
        self, batch: Iterable[Message], exclude: Collection[str] = ()
    ) -> list[UpsertResult]:
        """Merge multi-fonte (resync, páginas antigas): dedupe por id e sort."""
        results = [self._upsert_one(message, None, exclude) for message in batch]
        self._sort()
        return results

    def remove(self, key: MessageKey) -> Message | None:
        """Hard delete: remove a entrada inteira."""
        index = self._index_of(key)
        if index is None:
            return None
        return self._messages.pop(index)

    def update(self, key: MessageKey, **fields: Any) -> Message | None:
        """Substitui campos de uma mensagem (cópia imutável)."""
        index = self._index_of(key)
        if index is None:
            return None
        updated = self._messages[index].model_copy(update=fields)
        self._messages[index] = updated
        return updated

    def mark_deleted(
        self,
        message_id: int,
        display_text: str,
        *,
        deleted_by: SenderClass | None = None,
        original_sender: SenderClass | None = None,
    ) -> Message | None:
        """Soft delete: mantém a entrada com texto de deleção e sem anexos."""
        current = self.get(message_id)
        if current is None:
            return None
        return self.update(
            message_id,
            is_deleted=True,
            body=display_text,
            attachments=(),
            deleted_by=deleted_by or current.deleted_by,
            original_sender=original_sender or current.original_sender or current.sender_class,
        )

    def remove_attachment(self, message_id: int, attachment_id: int | str) -> Message | None:
        """Remove um anexo de uma mensagem; no-op se algum dos dois não existe."""
        current = self.get(message_id)
        if current is None:
            return None
        remaining = tuple(a for a in current.attachments if str(a.id) != str(attachment_id))
        if len(remaining) == len(current.attachments):
            return None
        return self.update(message_id, attachments=remaining)

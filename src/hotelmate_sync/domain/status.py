"""Mapa persistente de status de mensagens.

Cada atualização retorna um novo mapa; o anterior permanece intacto.
Regras de transição:
- pending → delivered → read é monotônico (nunca rebaixa)
- failed é terminal; só um retry explícito (nova mensagem provisória) sai dele
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping

from hotelmate_sync.domain.enums import MessageStatus

StatusKey = int | str

_RANK: dict[MessageStatus, int] = {
    MessageStatus.PENDING: 0,
    MessageStatus.DELIVERED: 1,
    MessageStatus.READ: 2,
}


def can_transition(current: MessageStatus | None, target: MessageStatus) -> bool:
    """Valida transição de status sem efeitos colaterais."""
    if current is None:
        return True
    if current == MessageStatus.FAILED:
        return False
    if target == MessageStatus.FAILED:
        # Falha só faz sentido enquanto o envio está pendente.
        return current == MessageStatus.PENDING
    return _RANK[target] > _RANK[current]


class StatusMap(Mapping[StatusKey, MessageStatus]):
    """Mapa imutável chave → status."""

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[StatusKey, MessageStatus] | None = None) -> None:
        self._data: dict[StatusKey, MessageStatus] = dict(data or {})

    def __getitem__(self, key: StatusKey) -> MessageStatus:
        return self._data[key]

    def __iter__(self) -> Iterator[StatusKey]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"StatusMap({self._data!r})"

    def advance(self, key: StatusKey, status: MessageStatus) -> StatusMap:
        """Aplica transição se permitida; senão retorna o próprio mapa."""
        if not can_transition(self._data.get(key), status):
            return self
        data = dict(self._data)
        data[key] = status
        return StatusMap(data)

    def advance_many(self, keys: list[StatusKey], status: MessageStatus) -> StatusMap:
        """Aplica a mesma transição a várias chaves."""
        result = self
        for key in keys:
            result = result.advance(key, status)
        return result

    def discard(self, key: StatusKey) -> StatusMap:
        """Remove a chave (no-op se ausente)."""
        if key not in self._data:
            return self
        data = dict(self._data)
        del data[key]
        return StatusMap(data)

    def rekey(self, old_key: StatusKey, new_key: StatusKey) -> StatusMap:
        """Move o status da chave provisória para o id canônico.

        Se o id canônico já tem status, prevalece o mais avançado. Um failed
        movido é descartado: a mensagem confirmada existe no servidor.
        """
        if old_key == new_key or old_key not in self._data:
            return self
        data = dict(self._data)
        moved = data.pop(old_key)
        if moved != MessageStatus.FAILED and can_transition(data.get(new_key), moved):
            data[new_key] = moved
        return StatusMap(data)

"""Contexto de conversa corrente para enriquecer logs."""

from __future__ import annotations

import contextlib
from collections.abc import Generator
from contextvars import ContextVar

_conversation_id: ContextVar[str] = ContextVar("conversation_id", default="")


def get_conversation_id() -> str:
    """Retorna o conversation_id corrente (ou vazio)."""

    return _conversation_id.get()


@contextlib.contextmanager
def conversation_scope(conversation_id: int | str | None) -> Generator[None, None, None]:
    """Define o conversation_id visível aos logs dentro do bloco.

    Tasks asyncio criadas dentro do bloco herdam o valor (cópia do contexto).
    """
    token = _conversation_id.set("" if conversation_id is None else str(conversation_id))
    try:
        yield
    finally:
        _conversation_id.reset(token)

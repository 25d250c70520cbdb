"""Identidade e fingerprint de mensagens.

Antes do id canônico existir, uma mensagem confirmada é casada com a
otimista correspondente por:
1. `client_message_id` ecoado pelo servidor == `local_key` (token de idempotência)
2. Heurística de fingerprint (classe do remetente + texto normalizado)

A heurística é aceita como limitação: dois envios de texto idêntico pelo
mesmo remetente no mesmo instante podem casar com a entrada otimista
"errada". O conteúdo final renderizado é idêntico, então o efeito é inócuo.
"""

from __future__ import annotations

import uuid
from collections.abc import Collection, Iterable

from hotelmate_sync.domain.enums import SenderClass
from hotelmate_sync.domain.models import Message


def new_local_key() -> str:
    """Gera chave provisória (também enviada como client_message_id)."""

    return f"local:{uuid.uuid4()}"


def normalize_body(body: str | None) -> str:
    """Normaliza texto para comparação (quebras de linha e bordas)."""

    if not body:
        return ""
    return body.replace("\r\n", "\n").replace("\r", "\n").strip()


def fingerprint(message: Message) -> tuple[SenderClass, str]:
    """Retorna (classe do remetente, texto normalizado)."""

    return message.sender_class, normalize_body(message.body)


def matches_optimistic(candidate: Message, confirmed: Message) -> bool:
    """Regra de casamento entre otimista e confirmada.

    Guest: sender_ref deve ser igual, ou ausente em um dos lados.
    """
    if not candidate.is_optimistic:
        return False
    if fingerprint(candidate) != fingerprint(confirmed):
        return False
    guest_refs = candidate.sender_ref and confirmed.sender_ref
    if candidate.sender_class == SenderClass.GUEST and guest_refs:
        return candidate.sender_ref == confirmed.sender_ref
    return True


def find_optimistic_match(
    messages: Iterable[Message],
    confirmed: Message,
    exclude: Collection[str] = (),
) -> Message | None:
    """Encontra a entrada otimista que a mensagem confirmada substitui.

    Token ecoado tem prioridade. Na heurística, empate é resolvido pelo
    `created_at` mais antigo (e depois pela ordem de chegada).

    Args:
        messages: Entradas atuais da conversa
        confirmed: Mensagem confirmada pelo servidor
        exclude: local_keys fora da heurística (envios que falharam); o token
            ecoado ainda casa com elas, pois prova que o servidor recebeu o envio
    """
    candidates = [m for m in messages if m.is_optimistic]
    if not candidates:
        return None

    token = confirmed.client_message_id
    if token:
        for candidate in candidates:
            if candidate.local_key == token:
                return candidate

    best: Message | None = None
    for candidate in candidates:
        if token and candidate.client_message_id:
            # Ambos os lados têm token e não bateram: não é o mesmo envio.
            continue
        if candidate.local_key in exclude:
            continue
        if not matches_optimistic(candidate, confirmed):
            continue
        if best is None or candidate.created_at < best.created_at:
            best = candidate
    return best

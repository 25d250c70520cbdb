"""Eventos push como união fechada de variantes.

`parse_event(name, payload)` converte o par (nome, payload) entregue pelo
canal push em um evento tipado. Payload sem campo obrigatório levanta
`MalformedEvent`; nome desconhecido retorna None.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from hotelmate_sync.domain.enums import EventKind, SenderClass
from hotelmate_sync.domain.errors import MalformedEvent
from hotelmate_sync.domain.models import DeletionEvent, Message


class PushEvent(BaseModel):
    """Campos comuns a todo evento push."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    event_id: str | None = None
    conversation_id: int | None = None


class NewMessageEvent(PushEvent):
    message: Message


class MessageDeliveredEvent(PushEvent):
    message_id: int
    client_message_id: str | None = None


class MessagesReadEvent(PushEvent):
    peer: SenderClass
    message_ids: tuple[int, ...]


class MessageDeletedEvent(PushEvent):
    message_id: int
    is_soft_delete: bool = True
    deleted_by: SenderClass | None = None
    original_sender: SenderClass | None = None
    staff_name: str | None = None
    backend_text: str | None = None

    def to_deletion(self) -> DeletionEvent:
        return DeletionEvent(
            message_id=self.message_id,
            deleted_by=self.deleted_by,
            original_sender=self.original_sender,
            is_soft_delete=self.is_soft_delete,
            staff_name=self.staff_name,
            backend_text=self.backend_text,
        )


class AttachmentDeletedEvent(PushEvent):
    message_id: int
    attachment_id: int | str


class MessageEditedEvent(PushEvent):
    message_id: int
    body: str


class StaffAssignedEvent(PushEvent):
    staff_id: str | None = None
    staff_name: str | None = None


class SubscriptionSucceededEvent(PushEvent):
    pass


ChatEvent = (
    NewMessageEvent
    | MessageDeliveredEvent
    | MessagesReadEvent
    | MessageDeletedEvent
    | AttachmentDeletedEvent
    | MessageEditedEvent
    | StaffAssignedEvent
    | SubscriptionSucceededEvent
)


# -----------------------------------------------------------------------------
# Helpers de extração
# -----------------------------------------------------------------------------


def _first(payload: dict[str, Any], *names: str) -> Any:
    for name in names:
        value = payload.get(name)
        if value is not None:
            return value
    return None


def _require(payload: dict[str, Any], event_name: str, *names: str) -> Any:
    value = _first(payload, *names)
    if value is None:
        raise MalformedEvent(f"{event_name}: campo obrigatório ausente ({names[0]})")
    return value


def _as_int(value: Any, event_name: str, field_name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise MalformedEvent(f"{event_name}: {field_name} inválido") from exc


def _optional_int(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    if isinstance(value, dict):
        return _optional_str(value.get("id"))
    return str(value)


def _common(name: str, payload: dict[str, Any]) -> dict[str, Any]:
    meta = payload.get("meta") if isinstance(payload.get("meta"), dict) else {}
    return {
        "name": name,
        "event_id": _optional_str(meta.get("event_id") or payload.get("event_id")),
        "conversation_id": _optional_int(_first(payload, "conversation_id", "conversationId")),
    }


# -----------------------------------------------------------------------------
# Builders por evento
# -----------------------------------------------------------------------------


def _new_message(name: str, payload: dict[str, Any]) -> NewMessageEvent:
    common = _common(name, payload)
    # Formato envelope: {"message": {...}, "meta": {...}}; senão o payload é a mensagem.
    body = payload["message"] if isinstance(payload.get("message"), dict) else payload
    if body.get("id") is None:
        raise MalformedEvent(f"{name}: mensagem sem id canônico")
    if common["conversation_id"] is None:
        common["conversation_id"] = _optional_int(body.get("conversation_id"))
    return NewMessageEvent(message=Message.from_payload(body), **common)


def _delivered(name: str, payload: dict[str, Any]) -> MessageDeliveredEvent:
    raw = _require(payload, name, "message_id", "messageId", "id")
    return MessageDeliveredEvent(
        message_id=_as_int(raw, name, "message_id"),
        client_message_id=_optional_str(_first(payload, "client_message_id", "clientMessageId")),
        **_common(name, payload),
    )


def _read_by(peer: SenderClass) -> Callable[[str, dict[str, Any]], MessagesReadEvent]:
    def build(name: str, payload: dict[str, Any]) -> MessagesReadEvent:
        raw = _require(payload, name, "message_ids", "messageIds")
        if not isinstance(raw, list | tuple):
            raise MalformedEvent(f"{name}: message_ids deve ser lista")
        ids = tuple(_as_int(value, name, "message_ids") for value in raw)
        return MessagesReadEvent(peer=peer, message_ids=ids, **_common(name, payload))

    return build


def _deleted(name: str, payload: dict[str, Any]) -> MessageDeletedEvent:
    raw = _require(payload, name, "message_id", "messageId")
    soft = payload.get("soft_delete")
    # Campo novo soft_delete tem prioridade; hard_delete mantido por compatibilidade.
    is_soft = bool(soft) if soft is not None else not payload.get("hard_delete", False)
    backend = payload.get("message")
    backend_text = backend.get("message") if isinstance(backend, dict) else None
    return MessageDeletedEvent(
        message_id=_as_int(raw, name, "message_id"),
        is_soft_delete=is_soft,
        deleted_by=payload.get("deleted_by") or None,
        original_sender=payload.get("original_sender") or None,
        staff_name=payload.get("staff_name") or None,
        backend_text=backend_text or None,
        **_common(name, payload),
    )


def _attachment_deleted(name: str, payload: dict[str, Any]) -> AttachmentDeletedEvent:
    message_id = _require(payload, name, "message_id", "messageId")
    attachment_id = _require(payload, name, "attachment_id", "attachmentId")
    return AttachmentDeletedEvent(
        message_id=_as_int(message_id, name, "message_id"),
        attachment_id=attachment_id,
        **_common(name, payload),
    )


def _edited(name: str, payload: dict[str, Any]) -> MessageEditedEvent:
    message_id = _require(payload, name, "message_id", "messageId", "id")
    body = _require(payload, name, "message", "body")
    if not isinstance(body, str):
        raise MalformedEvent(f"{name}: texto editado inválido")
    return MessageEditedEvent(
        message_id=_as_int(message_id, name, "message_id"),
        body=body,
        **_common(name, payload),
    )


def _staff_assigned(name: str, payload: dict[str, Any]) -> StaffAssignedEvent:
    return StaffAssignedEvent(
        staff_id=_optional_str(_first(payload, "staff_id", "staff", "assigned_staff")),
        staff_name=_optional_str(_first(payload, "staff_name", "assigned_staff_name")),
        **_common(name, payload),
    )


def _subscription_succeeded(name: str, payload: dict[str, Any]) -> SubscriptionSucceededEvent:
    return SubscriptionSucceededEvent(**_common(name, payload))


_BUILDERS: dict[str, Callable[[str, dict[str, Any]], ChatEvent]] = {
    EventKind.NEW_MESSAGE: _new_message,
    EventKind.MESSAGE_DELIVERED: _delivered,
    EventKind.MESSAGES_READ_BY_STAFF: _read_by(SenderClass.STAFF),
    EventKind.MESSAGES_READ_BY_GUEST: _read_by(SenderClass.GUEST),
    # message-removed é alias de message-deleted: mesmo builder, mesmo handler.
    EventKind.MESSAGE_DELETED: _deleted,
    EventKind.MESSAGE_REMOVED: _deleted,
    EventKind.MESSAGE_EDITED: _edited,
    EventKind.ATTACHMENT_DELETED: _attachment_deleted,
    EventKind.STAFF_ASSIGNED: _staff_assigned,
    EventKind.SUBSCRIPTION_SUCCEEDED: _subscription_succeeded,
}

SUPPORTED_EVENTS: frozenset[str] = frozenset(_BUILDERS)


def parse_event(name: str, payload: Any) -> ChatEvent | None:
    """Converte evento push em variante tipada.

    Returns:
        Evento tipado, ou None para nomes desconhecidos.

    Raises:
        MalformedEvent: payload inválido ou sem campo obrigatório.
    """
    builder = _BUILDERS.get(name)
    if builder is None:
        return None
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise MalformedEvent(f"{name}: payload não é objeto")
    try:
        return builder(name, payload)
    except ValidationError as exc:
        raise MalformedEvent(f"{name}: payload inválido ({exc.error_count()} erros)") from exc

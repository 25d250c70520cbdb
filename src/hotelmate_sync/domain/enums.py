"""Enums de domínio: remetentes, status de mensagem e tipos de evento push."""

from __future__ import annotations

from enum import StrEnum


class SenderClass(StrEnum):
    """Classe do autor de uma mensagem (também usada como papel do viewer)."""

    STAFF = "staff"
    GUEST = "guest"
    SYSTEM = "system"


class MessageStatus(StrEnum):
    """Status de entrega/leitura, desacoplado do conteúdo da mensagem."""

    PENDING = "pending"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


class EventKind(StrEnum):
    """Nomes de eventos entregues pelo canal push."""

    NEW_MESSAGE = "new-message"
    MESSAGE_DELIVERED = "message-delivered"
    MESSAGES_READ_BY_STAFF = "messages-read-by-staff"
    MESSAGES_READ_BY_GUEST = "messages-read-by-guest"
    MESSAGE_DELETED = "message-deleted"
    MESSAGE_REMOVED = "message-removed"
    MESSAGE_EDITED = "message-edited"
    ATTACHMENT_DELETED = "attachment-deleted"
    STAFF_ASSIGNED = "staff-assigned"
    SUBSCRIPTION_SUCCEEDED = "subscription-succeeded"


class NoticeLevel(StrEnum):
    """Severidade de uma notificação exibida ao usuário."""

    INFO = "info"
    ERROR = "error"

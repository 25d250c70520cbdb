"""Modelos de domínio (contratos principais) do chat.

Payloads REST e push usam os nomes de campo do backend do hotel
(`message`, `sender_type`, `timestamp`, `reply_to`, ...); os aliases abaixo
aceitam tanto o formato de wire quanto o nome interno.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from hotelmate_sync.domain.enums import NoticeLevel, SenderClass


def utc_now() -> datetime:
    """Timestamp UTC (aware) usado em mensagens otimistas."""
    return datetime.now(tz=UTC)


def _ref_to_str(value: Any) -> str | None:
    """Normaliza referências numéricas/objeto para string."""
    if value is None or value == "":
        return None
    if isinstance(value, dict):
        value = value.get("id")
        if value is None:
            return None
    return str(value)


class Attachment(BaseModel):
    """Descritor de anexo (arquivo já armazenado no backend)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int | str | None = None
    url: str | None = Field(default=None, validation_alias=AliasChoices("url", "file_url"))
    kind: str | None = Field(default=None, validation_alias=AliasChoices("kind", "file_type"))
    size: int | None = Field(default=None, validation_alias=AliasChoices("size", "file_size"))
    name: str | None = Field(default=None, validation_alias=AliasChoices("name", "file_name"))


class ReplyPreview(BaseModel):
    """Metadados da mensagem citada, carregados no próprio payload de resposta."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int | None = None
    sender_class: SenderClass | None = Field(
        default=None, validation_alias=AliasChoices("sender_class", "sender_type")
    )
    sender_name: str | None = None
    staff_name: str | None = None
    guest_name: str | None = None
    body: str | None = Field(default=None, validation_alias=AliasChoices("body", "message"))


class Message(BaseModel):
    """Unidade de conteúdo da conversa.

    Imutável: toda mutação gera uma cópia via `model_copy(update=...)`.
    Mensagens otimistas têm `id=None` e são endereçadas por `local_key`.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int | None = None
    local_key: str | None = None
    client_message_id: str | None = None
    sender_class: SenderClass = Field(
        validation_alias=AliasChoices("sender_class", "sender_type")
    )
    sender_ref: str | None = Field(
        default=None,
        validation_alias=AliasChoices("sender_ref", "staff", "staff_id", "guest_session_id"),
    )
    body: str = Field(default="", validation_alias=AliasChoices("body", "message"))
    attachments: tuple[Attachment, ...] = ()
    reply_to_id: int | None = Field(
        default=None, validation_alias=AliasChoices("reply_to_id", "reply_to")
    )
    reply_preview: ReplyPreview | None = Field(
        default=None, validation_alias=AliasChoices("reply_preview", "reply_to_message")
    )
    created_at: datetime = Field(
        default_factory=utc_now, validation_alias=AliasChoices("created_at", "timestamp")
    )
    is_deleted: bool = False
    is_optimistic: bool = False
    deleted_by: SenderClass | None = None
    original_sender: SenderClass | None = None
    read_by_staff: bool = False
    read_by_guest: bool = False
    sender_name: str | None = None
    staff_name: str | None = None
    guest_name: str | None = None

    @field_validator("sender_ref", mode="before")
    @classmethod
    def _coerce_sender_ref(cls, value: Any) -> str | None:
        return _ref_to_str(value)

    @field_validator("body", mode="before")
    @classmethod
    def _coerce_body(cls, value: Any) -> str:
        return "" if value is None else value

    @field_validator("attachments", mode="before")
    @classmethod
    def _coerce_attachments(cls, value: Any) -> Any:
        return () if value is None else value

    @field_validator("reply_to_id", mode="before")
    @classmethod
    def _coerce_reply_to(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return value.get("id")
        return value

    @field_validator("created_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        # Ordenação mistura timestamps locais e do servidor: todos precisam ser aware.
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Message:
        """Constrói mensagem confirmada a partir do payload do backend."""
        message = cls.model_validate(payload)
        if message.is_optimistic:
            # Payload do servidor nunca é otimista.
            message = message.model_copy(update={"is_optimistic": False})
        return message

    @property
    def key(self) -> int | str:
        """Chave de endereçamento: id canônico ou local_key."""
        if self.id is not None:
            return self.id
        return self.local_key or ""


@dataclass(slots=True, frozen=True)
class EngineContext:
    """Contexto explícito passado a toda operação (sem globais de sessão)."""

    hotel_slug: str
    conversation_id: int
    viewer_role: SenderClass
    viewer_ref: str | None = None
    viewer_name: str | None = None
    credential: str | None = field(default=None, repr=False)

    @property
    def is_guest_viewer(self) -> bool:
        return self.viewer_role == SenderClass.GUEST

    @property
    def peer_role(self) -> SenderClass:
        """Papel do outro lado da conversa."""
        if self.viewer_role == SenderClass.GUEST:
            return SenderClass.STAFF
        return SenderClass.GUEST

    def is_own(self, message: Message) -> bool:
        """Indica se a mensagem foi escrita pelo próprio viewer."""
        if message.sender_class != self.viewer_role:
            return False
        if self.viewer_role == SenderClass.GUEST:
            # Uma conversa tem um único guest.
            return True
        return message.sender_ref is not None and message.sender_ref == self.viewer_ref


@dataclass(slots=True, frozen=True)
class OutgoingAttachment:
    """Arquivo local anexado a um envio."""

    filename: str
    content: bytes = field(repr=False)
    content_type: str = "application/octet-stream"


@dataclass(slots=True, frozen=True)
class Draft:
    """Conteúdo devolvido ao compositor (retry manual)."""

    text: str
    attachments: tuple[OutgoingAttachment, ...] = ()
    reply_to_id: int | None = None


@dataclass(slots=True, frozen=True)
class DeletionEvent:
    """Evento efêmero de deleção, consumido uma única vez."""

    message_id: int
    deleted_by: SenderClass | None = None
    original_sender: SenderClass | None = None
    is_soft_delete: bool = True
    staff_name: str | None = None
    backend_text: str | None = None


@dataclass(slots=True, frozen=True)
class ConversationAggregate:
    """Agregados derivados da conversa aberta."""

    unread_count: int = 0
    current_handler_id: str | None = None
    current_handler_name: str | None = None
    last_message_at: datetime | None = None


@dataclass(slots=True, frozen=True)
class Notice:
    """Notificação visível ao usuário gerada na borda de uma operação."""

    level: NoticeLevel
    code: str
    text: str
    message_id: int | str | None = None

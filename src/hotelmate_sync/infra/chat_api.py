"""Cliente da API REST de chat do hotel.

Endpoints:
- POST   /chat/{hotel}/conversations/{cid}/messages/send/
- DELETE /chat/messages/{id}/delete/
- POST   /chat/conversations/{cid}/mark-read/        (staff)
- POST   /chat/conversations/{cid}/mark-read-guest/  (guest)
- GET    /chat/{hotel}/conversations/{cid}/messages/?limit=&before=

Autenticação: staff via header `Authorization: Token <t>`; guest via query
param `session_token`. Erros HTTP viram a taxonomia de domínio:
401/403 → PermissionDenied, 404 → NotFound, demais → NetworkFailure.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from hotelmate_sync.domain.errors import NetworkFailure, NotFound, PermissionDenied, SyncError
from hotelmate_sync.domain.models import EngineContext, Message, OutgoingAttachment
from hotelmate_sync.infra.http import HttpClient, HttpError, create_http_client
from hotelmate_sync.observability.logging import get_logger

if TYPE_CHECKING:
    from hotelmate_sync.config.settings import Settings

logger: logging.Logger = get_logger(__name__)


def translate_http_error(exc: HttpError) -> SyncError:
    """Converte HttpError na taxonomia de erros do engine."""
    detail = exc.payload.get("error") or exc.payload.get("detail")
    status = exc.status_code
    if status in (401, 403):
        return PermissionDenied(
            detail or "You do not have permission to perform this action.",
            status_code=status,
        )
    if status == 404:
        return NotFound(detail or "Not found.", status_code=status)
    return NetworkFailure(detail or str(exc), status_code=status)


def _auth(ctx: EngineContext) -> dict[str, Any]:
    """Kwargs de autenticação conforme papel do viewer."""
    if not ctx.credential:
        return {}
    if ctx.is_guest_viewer:
        return {"params": {"session_token": ctx.credential}}
    return {"headers": {"Authorization": f"Token {ctx.credential}"}}


def _unwrap_message(data: Any) -> dict[str, Any] | None:
    """Aceita mensagem direta ou envelope {"message": {...}}."""
    if not isinstance(data, dict):
        return None
    inner = data.get("message")
    if isinstance(inner, dict):
        return inner
    if "id" in data and "sender_type" in data:
        return data
    return None


def _json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


class HttpChatApi:
    """Implementação da porta ChatApi sobre HttpClient."""

    def __init__(self, http: HttpClient) -> None:
        self._http = http

    async def close(self) -> None:
        await self._http.close()

    async def send_message(
        self,
        ctx: EngineContext,
        text: str,
        client_message_id: str,
        attachments: Sequence[OutgoingAttachment] = (),
        reply_to_id: int | None = None,
    ) -> Message:
        url = f"/chat/{ctx.hotel_slug}/conversations/{ctx.conversation_id}/messages/send/"
        fields: dict[str, Any] = {
            "message": text,
            "sender_type": ctx.viewer_role.value,
            "client_message_id": client_message_id,
        }
        if not ctx.is_guest_viewer and ctx.viewer_ref:
            fields["staff_id"] = ctx.viewer_ref
        if reply_to_id is not None:
            fields["reply_to"] = reply_to_id

        kwargs = _auth(ctx)
        if attachments:
            # Multipart: campos de formulário precisam ser strings.
            kwargs["data"] = {k: str(v) for k, v in fields.items()}
            kwargs["files"] = [
                ("attachments", (a.filename, a.content, a.content_type)) for a in attachments
            ]
        else:
            kwargs["json"] = fields

        try:
            response = await self._http.post(url, **kwargs)
        except HttpError as exc:
            raise translate_http_error(exc) from exc

        payload = _unwrap_message(_json(response))
        if payload is None:
            raise NetworkFailure("Resposta de envio sem mensagem canônica")
        try:
            message = Message.from_payload(payload)
        except ValidationError as exc:
            raise NetworkFailure("Resposta de envio inválida") from exc

        logger.info(
            "Mensagem confirmada pelo servidor",
            extra={"message_id": message.id, "attachments": len(attachments)},
        )
        return message

    async def delete_message(self, ctx: EngineContext, message_id: int) -> Message | None:
        url = f"/chat/messages/{message_id}/delete/"
        try:
            response = await self._http.delete(url, **_auth(ctx))
        except HttpError as exc:
            raise translate_http_error(exc) from exc

        payload = _unwrap_message(_json(response))
        if payload is None:
            return None
        try:
            return Message.from_payload(payload)
        except ValidationError:
            logger.warning(
                "Resposta de deleção com mensagem inválida; ignorando corpo",
                extra={"message_id": message_id},
            )
            return None

    async def mark_read(self, ctx: EngineContext) -> None:
        suffix = "mark-read-guest" if ctx.is_guest_viewer else "mark-read"
        url = f"/chat/conversations/{ctx.conversation_id}/{suffix}/"
        try:
            await self._http.post(url, json={}, **_auth(ctx))
        except HttpError as exc:
            raise translate_http_error(exc) from exc

    async def get_messages(
        self,
        ctx: EngineContext,
        limit: int,
        before: int | None = None,
    ) -> list[Message]:
        url = f"/chat/{ctx.hotel_slug}/conversations/{ctx.conversation_id}/messages/"
        kwargs = _auth(ctx)
        params = dict(kwargs.pop("params", {}))
        params["limit"] = limit
        if before is not None:
            params["before"] = before

        try:
            response = await self._http.get(url, params=params, **kwargs)
        except HttpError as exc:
            raise translate_http_error(exc) from exc

        data = _json(response)
        if isinstance(data, dict):
            data = data.get("results") or data.get("messages") or []
        if not isinstance(data, list):
            return []

        messages: list[Message] = []
        skipped = 0
        for item in data:
            try:
                messages.append(Message.from_payload(item))
            except (ValidationError, TypeError):
                skipped += 1
        if skipped:
            logger.warning(
                "Mensagens inválidas ignoradas no histórico",
                extra={"skipped": skipped, "received": len(data)},
            )
        return messages


def create_chat_api(settings: Settings | None = None) -> HttpChatApi:
    """Factory do cliente REST configurado a partir de settings."""
    return HttpChatApi(create_http_client(settings))

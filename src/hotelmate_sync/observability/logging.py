"""Configuração de logging estruturado (JSON)."""

from __future__ import annotations

import logging

from pythonjsonlogger.json import JsonFormatter

from hotelmate_sync.observability.context import get_conversation_id


class ConversationContextFilter(logging.Filter):
    """Insere conversation_id e service no record de log.

    Importante: nunca adicionar corpo de mensagens ou credenciais nos logs.
    """

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self._service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        # Preserva conversation_id passado explicitamente via `extra`.
        existing = getattr(record, "conversation_id", None)
        record.conversation_id = existing if existing else get_conversation_id()
        record.service = self._service_name
        return True


def configure_logging(level: str, service_name: str, log_format: str = "json") -> None:
    """Configura logging com campos padrão do serviço (JSON ou texto)."""

    if log_format == "text":
        formatter: logging.Formatter = logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s [%(conversation_id)s] %(message)s"
        )
    else:
        formatter = JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s %(conversation_id)s %(service)s",
            rename_fields={"levelname": "level", "name": "logger"},
        )

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(ConversationContextFilter(service_name))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]


def get_logger(name: str) -> logging.Logger:
    """Retorna logger simples; o filtro injeta service/conversation_id."""

    return logging.getLogger(name)


def log_dropped_event(
    logger: logging.Logger,
    event_name: str,
    reason: str,
    message_id: int | str | None = None,
) -> None:
    """Log observável de evento push descartado (sem payload).

    Args:
        logger: Logger instance
        event_name: Nome do evento push (ex: "message-deleted")
        reason: Motivo do descarte (ex: "malformed", "duplicate_event_id")
        message_id: ID da mensagem afetada, quando conhecido

    Exemplo:
        log_dropped_event(logger, "message-deleted", reason="malformed")
    """
    extra: dict[str, object] = {
        "event_dropped": True,
        "event_name": event_name,
        "reason": reason,
    }
    if message_id is not None:
        extra["message_id"] = message_id

    logger.info(
        f"Push event dropped: {event_name}",
        extra=extra,
    )

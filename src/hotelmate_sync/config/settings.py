"""Configurações do engine de sincronização via variáveis de ambiente.

Todas as configurações são carregadas de env vars com prefixo HOTELMATE_.
Credenciais de staff/guest nunca ficam aqui: chegam via EngineContext.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict

from hotelmate_sync.observability.logging import get_logger

# -----------------------------------------------------------------------------
# Nomes de canais push (mesmo formato usado pelo backend do hotel)
# -----------------------------------------------------------------------------
CONVERSATION_CHANNEL_TEMPLATE: str = "{hotel_slug}-conversation-{conversation_id}-chat"
NOTIFICATIONS_CHANNEL_TEMPLATE: str = "{hotel_slug}-{role}-{viewer_ref}-notifications"
DEFAULT_API_BASE_URL: str = "http://localhost:8000/api"


class Settings(BaseSettings):
    """Configurações lidas do ambiente."""

    model_config = SettingsConfigDict(
        env_prefix="HOTELMATE_",
        case_sensitive=False,
    )

    # Aplicação
    service_name: str = "hotelmate_sync"
    version: str = "0.1.0"
    environment: str = "development"
    log_level: str = "INFO"
    log_format: str = "json"  # json | text

    # API REST do hotel
    api_base_url: str = DEFAULT_API_BASE_URL
    request_timeout_seconds: float = 15.0
    read_max_retries: int = 2  # Apenas GET (histórico); envio nunca faz retry
    retry_backoff_seconds: float = 1.0
    retry_backoff_max_seconds: float = 10.0

    # Histórico / paginação
    history_page_size: int = 50

    # Read receipts
    visibility_threshold: float = 0.5  # Fração visível para contar como "visto"
    mark_read_debounce_seconds: float = 1.0  # Apenas guest (auto mark-read)

    # Reply
    highlight_seconds: float = 1.5

    # Dedupe de eventos push (meta.event_id)
    event_dedupe_ttl_seconds: int = 300

    # Canais push
    conversation_channel_template: str = CONVERSATION_CHANNEL_TEMPLATE
    notifications_channel_template: str = NOTIFICATIONS_CHANNEL_TEMPLATE

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    def validate_api_config(self) -> list[str]:
        """Valida configuração da API REST.

        Retorna lista de erros (vazia = tudo OK).
        """
        errors: list[str] = []
        if not self.api_base_url:
            errors.append("HOTELMATE_API_BASE_URL não configurado")
        elif self.is_production and self.api_base_url.startswith("http://"):
            errors.append("HOTELMATE_API_BASE_URL deve usar https em production")
        if self.request_timeout_seconds <= 0:
            errors.append("HOTELMATE_REQUEST_TIMEOUT_SECONDS deve ser positivo")
        if self.read_max_retries < 0:
            errors.append("HOTELMATE_READ_MAX_RETRIES não pode ser negativo")
        return errors

    def validate_sync_config(self) -> list[str]:
        """Valida parâmetros do engine de sincronização."""
        errors: list[str] = []
        if not 0.0 < self.visibility_threshold <= 1.0:
            errors.append("HOTELMATE_VISIBILITY_THRESHOLD deve estar em (0, 1]")
        if self.mark_read_debounce_seconds < 0:
            errors.append("HOTELMATE_MARK_READ_DEBOUNCE_SECONDS não pode ser negativo")
        if self.history_page_size <= 0:
            errors.append("HOTELMATE_HISTORY_PAGE_SIZE deve ser positivo")
        for name in ("conversation_channel_template", "notifications_channel_template"):
            template = getattr(self, name)
            if "{hotel_slug}" not in template:
                errors.append(f"{name.upper()} deve conter {{hotel_slug}}")
        if "{conversation_id}" not in self.conversation_channel_template:
            errors.append("CONVERSATION_CHANNEL_TEMPLATE deve conter {conversation_id}")
        return errors

    def conversation_channel(self, hotel_slug: str, conversation_id: int | str) -> str:
        """Nome do canal push da conversa."""
        return self.conversation_channel_template.format(
            hotel_slug=hotel_slug, conversation_id=conversation_id
        )

    def notifications_channel(self, hotel_slug: str, role: str, viewer_ref: str | None) -> str:
        """Nome do canal push de notificações do viewer."""
        return self.notifications_channel_template.format(
            hotel_slug=hotel_slug, role=role, viewer_ref=viewer_ref or "anonymous"
        )

    def model_post_init(self, __context: Any) -> None:
        """Registra ambiente e falha cedo (fail-closed) em production inválida."""
        logger: logging.Logger = get_logger(__name__)
        errors = self.validate_api_config() + self.validate_sync_config()
        if errors and self.is_production:
            logger.error(
                "Validação de configuração falhou",
                extra={"errors": errors, "environment": self.environment},
            )
            raise RuntimeError(f"Configuração inválida: {'; '.join(errors)}")
        if errors:
            logger.warning(
                "Configuração com problemas (ambiente não-prod)",
                extra={"errors": errors, "environment": self.environment},
            )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Retorna uma instância cacheada de Settings."""
    return Settings()

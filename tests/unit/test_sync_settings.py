"""Testes unitários para config/settings.py."""

from __future__ import annotations

import pytest

from hotelmate_sync.config.settings import (
    CONVERSATION_CHANNEL_TEMPLATE,
    Settings,
    get_settings,
)


class TestSettingsDefaults:
    """Testes para valores padrão de Settings."""

    def test_default_environment_is_development(self) -> None:
        s = Settings()
        assert s.environment == "development"
        assert s.is_development is True
        assert s.is_production is False

    def test_sync_defaults(self) -> None:
        """Padrões do engine: página de 50, limiar 0.5, destaque de 1.5s."""
        s = Settings()
        assert s.history_page_size == 50
        assert s.visibility_threshold == 0.5
        assert s.highlight_seconds == 1.5
        assert s.conversation_channel_template == CONVERSATION_CHANNEL_TEMPLATE

    def test_reads_prefixed_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HOTELMATE_HISTORY_PAGE_SIZE", "20")
        monkeypatch.setenv("HOTELMATE_LOG_FORMAT", "text")
        s = Settings()
        assert s.history_page_size == 20
        assert s.log_format == "text"

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()


class TestChannels:
    def test_conversation_channel(self) -> None:
        s = Settings()
        assert s.conversation_channel("hotel-a", 42) == "hotel-a-conversation-42-chat"

    def test_notifications_channel_without_ref(self) -> None:
        s = Settings()
        assert s.notifications_channel("hotel-a", "guest", None) == (
            "hotel-a-guest-anonymous-notifications"
        )


class TestValidation:
    """validate_* retornam lista de erros (vazia = OK)."""

    def test_valid_defaults(self) -> None:
        s = Settings()
        assert s.validate_api_config() == []
        assert s.validate_sync_config() == []

    def test_invalid_threshold(self) -> None:
        s = Settings(visibility_threshold=1.5)
        assert any("VISIBILITY_THRESHOLD" in e for e in s.validate_sync_config())

    def test_template_without_conversation_id(self) -> None:
        s = Settings(conversation_channel_template="{hotel_slug}-chat")
        assert any("conversation_id" in e for e in s.validate_sync_config())

    def test_production_requires_https(self) -> None:
        """Em production, configuração inválida falha cedo."""
        with pytest.raises(RuntimeError, match="https"):
            Settings(environment="production", api_base_url="http://hotel.example.com/api")

    def test_production_with_https_is_accepted(self) -> None:
        s = Settings(environment="production", api_base_url="https://hotel.example.com/api")
        assert s.is_production is True

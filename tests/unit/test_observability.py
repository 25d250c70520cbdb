"""Testes para observability/ (logging JSON e contexto de conversa)."""

from __future__ import annotations

import json
import logging

import pytest

from hotelmate_sync.observability.context import conversation_scope, get_conversation_id
from hotelmate_sync.observability.logging import (
    ConversationContextFilter,
    configure_logging,
    get_logger,
    log_dropped_event,
)


@pytest.fixture()
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)


class TestConversationScope:
    def test_scope_sets_and_resets(self) -> None:
        assert get_conversation_id() == ""
        with conversation_scope(42):
            assert get_conversation_id() == "42"
        assert get_conversation_id() == ""


class TestConversationContextFilter:
    def _record(self, **extra) -> logging.LogRecord:
        record = logging.LogRecord("t", logging.INFO, __file__, 1, "msg", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_injects_service_and_conversation(self) -> None:
        record = self._record()
        with conversation_scope(7):
            ConversationContextFilter("hotelmate_sync").filter(record)
        assert record.conversation_id == "7"
        assert record.service == "hotelmate_sync"

    def test_preserves_explicit_conversation_id(self) -> None:
        record = self._record(conversation_id=99)
        with conversation_scope(7):
            ConversationContextFilter("svc").filter(record)
        assert record.conversation_id == 99


class TestConfigureLogging:
    def test_json_output(self, restore_root_logger, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging("INFO", "hotelmate_sync")
        logger = get_logger("hotelmate_sync.test")

        with conversation_scope(42):
            log_dropped_event(logger, "message-deleted", reason="malformed", message_id=5)

        line = capsys.readouterr().err.strip().splitlines()[-1]
        data = json.loads(line)
        assert data["message"] == "Push event dropped: message-deleted"
        assert data["level"] == "INFO"
        assert data["conversation_id"] == "42"
        assert data["service"] == "hotelmate_sync"
        assert data["event_dropped"] is True
        assert data["reason"] == "malformed"
        assert data["message_id"] == 5

    def test_text_format(self, restore_root_logger, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging("DEBUG", "svc", log_format="text")
        get_logger("hotelmate_sync.test").info("olá")

        err = capsys.readouterr().err
        assert "INFO" in err
        assert "olá" in err

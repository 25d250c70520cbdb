"""Testes para domain/deletion.py (texto de deleção contextual)."""

from __future__ import annotations

import pytest

from hotelmate_sync.domain.deletion import (
    GENERIC_DELETION_TEXT,
    deletion_text,
    resolve_deletion_display,
)
from hotelmate_sync.domain.enums import SenderClass
from hotelmate_sync.domain.models import DeletionEvent

GUEST = SenderClass.GUEST
STAFF = SenderClass.STAFF


class TestDeletionText:
    """Tabela de texto por (deleted_by, original_sender, viewer)."""

    @pytest.mark.parametrize(
        ("deleted_by", "original", "is_guest_viewer", "expected"),
        [
            (GUEST, GUEST, True, "You deleted this message"),
            (STAFF, GUEST, True, "Message removed by staff"),
            (STAFF, STAFF, True, "Message deleted"),
            (GUEST, GUEST, False, "Message deleted by guest"),
            (STAFF, GUEST, False, "Message deleted by Alice"),
            (STAFF, STAFF, False, "Message deleted by Alice"),
        ],
    )
    def test_table(self, deleted_by, original, is_guest_viewer, expected) -> None:
        assert deletion_text(deleted_by, original, "Alice", is_guest_viewer) == expected

    def test_staff_without_name_falls_back_to_generic(self) -> None:
        assert deletion_text(STAFF, GUEST, None, False) == GENERIC_DELETION_TEXT

    def test_unknown_combination_is_generic(self) -> None:
        assert deletion_text(None, None, None, True) == GENERIC_DELETION_TEXT
        assert deletion_text(GUEST, STAFF, None, False) == GENERIC_DELETION_TEXT


class TestResolveDeletionDisplay:
    """Precedência do texto vindo do backend."""

    def test_backend_text_takes_precedence(self) -> None:
        event = DeletionEvent(
            message_id=1,
            deleted_by=STAFF,
            original_sender=GUEST,
            backend_text="[File deleted]",
        )
        assert resolve_deletion_display(event, is_guest_viewer=True) == "[File deleted]"

    def test_contextual_text_without_backend_text(self) -> None:
        event = DeletionEvent(message_id=1, deleted_by=STAFF, original_sender=GUEST)
        assert resolve_deletion_display(event, is_guest_viewer=True) == "Message removed by staff"

"""Testes para domain/reply.py (rótulo e trecho da mensagem citada)."""

from __future__ import annotations

from hotelmate_sync.domain.enums import SenderClass
from hotelmate_sync.domain.models import ReplyPreview
from hotelmate_sync.domain.reply import (
    ATTACHMENT_SNIPPET,
    format_reply_reference,
    resolve_reply_display,
)
from tests.helpers.factories import make_message


class TestFormatReplyReference:
    def test_returns_canonical_id(self) -> None:
        assert format_reply_reference(make_message(12)) == 12

    def test_none_for_missing_or_optimistic(self) -> None:
        assert format_reply_reference(None) is None
        assert format_reply_reference(make_message(None)) is None


class TestResolveReplyDisplay:
    """Testes para resolve_reply_display."""

    def test_no_reply(self) -> None:
        assert resolve_reply_display(None, []) is None

    def test_staff_original_in_window_uses_staff_name(self) -> None:
        original = make_message(3, "Check-in às 14h", sender=SenderClass.STAFF, staff_name="Alice")

        display = resolve_reply_display(3, [original])

        assert display is not None
        assert display.sender_label == "Alice"
        assert display.snippet == "Check-in às 14h"
        assert display.in_window is True

    def test_guest_original_prefers_loaded_guest_name(self) -> None:
        original = make_message(3, "Oi", guest_name="Maria")
        preview = ReplyPreview(id=3, sender_class=SenderClass.GUEST, sender_name="Hóspede")

        display = resolve_reply_display(3, [original], preview)

        assert display is not None
        assert display.sender_label == "Maria"

    def test_out_of_window_uses_payload_preview(self) -> None:
        preview = ReplyPreview(
            id=3, sender_class=SenderClass.STAFF, staff_name="Bob", body="Toalhas extras"
        )

        display = resolve_reply_display(3, [], preview)

        assert display is not None
        assert display.sender_label == "Bob"
        assert display.snippet == "Toalhas extras"
        assert display.in_window is False

    def test_attachment_only_original_uses_fallback_snippet(self) -> None:
        original = make_message(3, "")
        display = resolve_reply_display(3, [original])
        assert display is not None
        assert display.snippet == ATTACHMENT_SNIPPET

    def test_dangling_reference_falls_back(self) -> None:
        """Referência sem original nem preview: fallback de anexo."""
        display = resolve_reply_display(99, [])
        assert display is not None
        assert display.sender_label == "Guest"
        assert display.snippet == ATTACHMENT_SNIPPET

    def test_staff_without_names_is_generic(self) -> None:
        preview = ReplyPreview(id=3, sender_class=SenderClass.STAFF)
        display = resolve_reply_display(3, [], preview)
        assert display is not None
        assert display.sender_label == "Staff"

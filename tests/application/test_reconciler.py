"""Testes para application/reconciler.py (redutor de eventos push)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from hotelmate_sync.application.deletion import DeletionService
from hotelmate_sync.application.read_receipts import ReadReceiptTracker
from hotelmate_sync.application.reconciler import EventReconciler
from hotelmate_sync.application.state import ConversationState
from hotelmate_sync.domain.enums import MessageStatus
from hotelmate_sync.domain.models import Attachment, EngineContext
from hotelmate_sync.infra.dedupe import InMemoryDedupeStore
from tests.helpers.factories import make_message, message_payload


@pytest.fixture()
def state() -> ConversationState:
    return ConversationState()


@pytest.fixture()
def on_resync() -> MagicMock:
    return MagicMock()


@pytest.fixture()
def reconciler(state: ConversationState, api: AsyncMock, on_resync) -> EventReconciler:
    return EventReconciler(
        state,
        DeletionService(state, api),
        ReadReceiptTracker(state, api),
        InMemoryDedupeStore(),
        on_resync=on_resync,
    )


class TestNewMessage:
    """Evento new-message."""

    def test_appends_peer_message_and_counts_unread(
        self, reconciler, state, guest_ctx: EngineContext
    ) -> None:
        payload = message_payload(9, "Bem-vinda", sender_type="staff", staff=7)

        assert reconciler.handle(guest_ctx, "new-message", payload) is True

        assert [m.id for m in state.store] == [9]
        assert state.statuses[9] == MessageStatus.DELIVERED
        assert state.aggregate.unread_count == 1

    def test_duplicate_id_is_ignored(self, reconciler, state, guest_ctx) -> None:
        payload = message_payload(9, "Oi", sender_type="staff")
        reconciler.handle(guest_ctx, "new-message", payload)

        assert reconciler.handle(guest_ctx, "new-message", payload) is False
        assert len(state.store) == 1
        assert state.aggregate.unread_count == 1

    def test_duplicate_event_id_is_dropped(self, reconciler, state, guest_ctx) -> None:
        first = {"message": message_payload(9), "meta": {"event_id": "evt-9"}}
        second = {"message": message_payload(10), "meta": {"event_id": "evt-9"}}

        reconciler.handle(guest_ctx, "new-message", first)
        assert reconciler.handle(guest_ctx, "new-message", second) is False
        assert [m.id for m in state.store] == [9]

    def test_other_conversation_is_dropped(self, reconciler, state, guest_ctx) -> None:
        payload = message_payload(9, conversation_id=99)
        assert reconciler.handle(guest_ctx, "new-message", payload) is False
        assert len(state.store) == 0


class TestStatusEvents:
    """Eventos delivered/read respeitam monotonicidade."""

    def test_delivered_promotes_pending_only(self, reconciler, state, guest_ctx) -> None:
        state.set_status(5, MessageStatus.PENDING)
        state.set_status(6, MessageStatus.READ)

        assert reconciler.handle(guest_ctx, "message-delivered", {"message_id": 5}) is True
        assert reconciler.handle(guest_ctx, "message-delivered", {"message_id": 6}) is False

        assert state.statuses[5] == MessageStatus.DELIVERED
        assert state.statuses[6] == MessageStatus.READ

    def test_delivered_reaches_provisional_through_echoed_token(
        self, reconciler, state, guest_ctx
    ) -> None:
        """Recibo chega antes da resposta REST: pending ainda está sob o local_key."""
        state.set_status("local:a", MessageStatus.PENDING)
        payload = {"message_id": 55, "client_message_id": "local:a"}

        assert reconciler.handle(guest_ctx, "message-delivered", payload) is True

        assert state.statuses["local:a"] == MessageStatus.DELIVERED
        assert 55 not in state.statuses

    def test_read_by_staff_sets_flag(self, reconciler, state, guest_ctx) -> None:
        state.store.upsert(make_message(1))
        state.set_status(1, MessageStatus.DELIVERED)

        reconciler.handle(guest_ctx, "messages-read-by-staff", {"message_ids": [1]})

        assert state.statuses[1] == MessageStatus.READ
        assert state.store.get(1).read_by_staff is True

    def test_read_then_late_delivered_keeps_read(self, reconciler, state, guest_ctx) -> None:
        state.store.upsert(make_message(1))
        state.set_status(1, MessageStatus.PENDING)

        reconciler.handle(guest_ctx, "messages-read-by-staff", {"message_ids": [1]})
        reconciler.handle(guest_ctx, "message-delivered", {"message_id": 1})

        assert state.statuses[1] == MessageStatus.READ


class TestContentEvents:
    def test_deleted_and_removed_share_handler(self, reconciler, state, guest_ctx) -> None:
        state.store.load([make_message(1), make_message(2, seconds=1)])
        deleted = {"message_id": 1, "deleted_by": "staff", "original_sender": "guest"}
        removed = {"message_id": 2, "deleted_by": "staff", "original_sender": "guest"}

        reconciler.handle(guest_ctx, "message-deleted", deleted)
        reconciler.handle(guest_ctx, "message-removed", removed)

        assert [m.body for m in state.store] == ["Message removed by staff"] * 2

    def test_attachment_deleted(self, reconciler, state, guest_ctx) -> None:
        attachments = (Attachment(id=1, url="a"), Attachment(id=2, url="b"))
        state.store.load([make_message(1, attachments=attachments)])

        payload = {"message_id": 1, "attachment_id": 2}
        assert reconciler.handle(guest_ctx, "attachment-deleted", payload) is True

        assert [a.id for a in state.store.get(1).attachments] == [1]

    def test_edit_ignored_for_deleted_message(self, reconciler, state, guest_ctx) -> None:
        state.store.load([make_message(1, "Message deleted", is_deleted=True)])
        payload = {"message_id": 1, "message": "ressuscitada"}
        assert reconciler.handle(guest_ctx, "message-edited", payload) is False
        assert state.store.get(1).body == "Message deleted"

    def test_edit_replaces_body(self, reconciler, state, guest_ctx) -> None:
        state.store.load([make_message(1, "Ola")])
        reconciler.handle(guest_ctx, "message-edited", {"message_id": 1, "message": "Olá"})
        assert state.store.get(1).body == "Olá"


class TestConversationEvents:
    def test_staff_assigned_updates_aggregate_only(self, reconciler, state, guest_ctx) -> None:
        payload = {"staff_id": 7, "staff_name": "Alice"}
        assert reconciler.handle(guest_ctx, "staff-assigned", payload) is True
        assert state.aggregate.current_handler_name == "Alice"
        assert len(state.store) == 0

    def test_subscription_succeeded_requests_resync(
        self, reconciler, guest_ctx, on_resync
    ) -> None:
        reconciler.handle(guest_ctx, "subscription-succeeded", {})
        on_resync.assert_called_once_with()


class TestRobustness:
    """Nenhuma exceção escapa do reconciliador."""

    def test_malformed_payload_is_dropped(self, reconciler, state, guest_ctx) -> None:
        assert reconciler.handle(guest_ctx, "message-deleted", {"foo": 1}) is False
        assert reconciler.handle(guest_ctx, "new-message", "texto") is False

    def test_unknown_event_is_noop(self, reconciler, guest_ctx) -> None:
        assert reconciler.handle(guest_ctx, "client-typing", {}) is False

    def test_handler_error_is_contained(self, state, api, guest_ctx) -> None:
        deletion = MagicMock(spec=DeletionService)
        deletion.apply.side_effect = RuntimeError("boom")
        reconciler = EventReconciler(
            state, deletion, ReadReceiptTracker(state, api), InMemoryDedupeStore()
        )

        assert reconciler.handle(guest_ctx, "message-deleted", {"message_id": 1}) is False

    def test_replaying_event_sequence_is_idempotent(self, reconciler, state, staff_ctx) -> None:
        events = [
            ("new-message", message_payload(1, "Olá")),
            ("new-message", message_payload(2, "Resposta", sender_type="staff", staff=7)),
            ("messages-read-by-guest", {"message_ids": [2]}),
            (
                "message-deleted",
                {"message_id": 1, "deleted_by": "guest", "original_sender": "guest"},
            ),
        ]
        for name, payload in events:
            reconciler.handle(staff_ctx, name, payload)
        snapshot = state.snapshot()

        for name, payload in events:
            reconciler.handle(staff_ctx, name, payload)

        assert state.snapshot() == snapshot
        assert state.store.get(1).body == "Message deleted by guest"
        assert state.statuses[2] == MessageStatus.READ

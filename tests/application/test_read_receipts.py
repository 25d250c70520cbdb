"""Testes para application/read_receipts.py."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from hotelmate_sync.application.read_receipts import MARK_READ_FAILED_TEXT, ReadReceiptTracker
from hotelmate_sync.application.state import ConversationState
from hotelmate_sync.domain.enums import MessageStatus, SenderClass
from hotelmate_sync.domain.errors import NetworkFailure
from hotelmate_sync.domain.models import ConversationAggregate
from hotelmate_sync.domain.status import StatusMap
from tests.helpers.factories import make_message


@pytest.fixture()
def state() -> ConversationState:
    state = ConversationState()
    state.store.load(
        [
            make_message(1, "Olá", seconds=0),
            make_message(2, "Oi, em que posso ajudar?", sender=SenderClass.STAFF, seconds=1),
            make_message(3, "Toalhas", sender=SenderClass.STAFF, seconds=2),
        ]
    )
    state.statuses = StatusMap(
        {1: MessageStatus.DELIVERED, 2: MessageStatus.DELIVERED, 3: MessageStatus.DELIVERED}
    )
    state.aggregate = ConversationAggregate(unread_count=2)
    return state


@pytest.fixture()
def tracker(state: ConversationState, api: AsyncMock) -> ReadReceiptTracker:
    return ReadReceiptTracker(state, api, visibility_threshold=0.5, debounce_seconds=0.01)


class TestVisibility:
    """Visibilidade local."""

    @pytest.mark.asyncio
    async def test_below_threshold_is_ignored(self, tracker, state, guest_ctx) -> None:
        assert tracker.on_visibility(guest_ctx, 2, 0.3) is False
        assert state.statuses[2] == MessageStatus.DELIVERED

    @pytest.mark.asyncio
    async def test_own_message_is_ignored(self, tracker, guest_ctx) -> None:
        assert tracker.on_visibility(guest_ctx, 1, 1.0) is False

    @pytest.mark.asyncio
    async def test_guest_visibility_debounces_single_mark_read(
        self, tracker, state, api, guest_ctx
    ) -> None:
        assert tracker.on_visibility(guest_ctx, 2, 0.6) is True
        assert tracker.on_visibility(guest_ctx, 3, 1.0) is True
        assert state.statuses[2] == MessageStatus.READ

        await asyncio.sleep(0.05)
        await tracker.drain()

        api.mark_read.assert_awaited_once_with(guest_ctx)
        assert state.aggregate.unread_count == 0
        assert state.store.get(2).read_by_guest is True

    @pytest.mark.asyncio
    async def test_new_sighting_does_not_abort_request_in_flight(
        self, tracker, state, api, guest_ctx
    ) -> None:
        """Debounce vencido: a chamada em andamento termina mesmo com nova visualização."""
        started = asyncio.Event()
        gate = asyncio.Event()
        completed: list[int] = []

        async def slow_mark_read(ctx) -> None:
            started.set()
            await gate.wait()
            completed.append(len(completed) + 1)

        api.mark_read.side_effect = slow_mark_read
        tracker.on_visibility(guest_ctx, 2, 1.0)
        await started.wait()

        state.store.upsert(make_message(4, "Já vou", sender=SenderClass.STAFF, seconds=3))
        assert tracker.on_visibility(guest_ctx, 4, 1.0) is True
        gate.set()
        await asyncio.sleep(0.05)
        await tracker.drain()

        assert completed == [1, 2]

    @pytest.mark.asyncio
    async def test_staff_visibility_does_not_call_backend(
        self, tracker, state, api, staff_ctx
    ) -> None:
        assert tracker.on_visibility(staff_ctx, 1, 1.0) is True
        await tracker.drain()
        api.mark_read.assert_not_called()

    @pytest.mark.asyncio
    async def test_staff_composer_focus_marks_read(self, tracker, state, api, staff_ctx) -> None:
        task = tracker.on_composer_focus(staff_ctx)
        assert task is not None
        assert await task is True
        assert state.store.get(1).read_by_staff is True
        assert state.statuses[1] == MessageStatus.READ


class TestMarkConversationRead:
    @pytest.mark.asyncio
    async def test_failure_emits_notice(self, tracker, state, api, guest_ctx) -> None:
        api.mark_read.side_effect = NetworkFailure("offline")

        assert await tracker.mark_conversation_read(guest_ctx) is False

        assert [n.text for n in state.notices] == [MARK_READ_FAILED_TEXT]
        assert state.aggregate.unread_count == 2


class TestRemoteRead:
    """Evento messages-read-by-<peer>."""

    def test_sets_flag_and_status(self, tracker, state) -> None:
        assert tracker.apply_remote_read(SenderClass.STAFF, [1]) is True
        assert state.store.get(1).read_by_staff is True
        assert state.statuses[1] == MessageStatus.READ

    def test_replay_is_noop(self, tracker, state) -> None:
        tracker.apply_remote_read(SenderClass.STAFF, [1])
        assert tracker.apply_remote_read(SenderClass.STAFF, [1]) is False

    def test_unknown_ids_are_ignored(self, tracker) -> None:
        assert tracker.apply_remote_read(SenderClass.STAFF, [99]) is False

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from hotelmate_sync.application.engine import ChatSyncEngine
from hotelmate_sync.config.settings import Settings, get_settings
from hotelmate_sync.domain.enums import SenderClass
from hotelmate_sync.domain.models import EngineContext
from hotelmate_sync.infra.chat_api import HttpChatApi
from hotelmate_sync.infra.dedupe import InMemoryDedupeStore
from hotelmate_sync.infra.push import InMemoryPushClient
from tests.helpers.factories import CONVERSATION_ID, HOTEL


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def settings() -> Settings:
    return Settings(mark_read_debounce_seconds=0.01, history_page_size=3)


@pytest.fixture()
def guest_ctx() -> EngineContext:
    return EngineContext(
        hotel_slug=HOTEL,
        conversation_id=CONVERSATION_ID,
        viewer_role=SenderClass.GUEST,
        viewer_ref="guest-session-1",
        viewer_name="Maria",
        credential="guest-token",
    )


@pytest.fixture()
def staff_ctx() -> EngineContext:
    return EngineContext(
        hotel_slug=HOTEL,
        conversation_id=CONVERSATION_ID,
        viewer_role=SenderClass.STAFF,
        viewer_ref="7",
        viewer_name="Alice",
        credential="staff-token",
    )


@pytest.fixture()
def api() -> AsyncMock:
    mock = AsyncMock(spec=HttpChatApi)
    mock.get_messages.return_value = []
    mock.delete_message.return_value = None
    mock.mark_read.return_value = None
    return mock


@pytest.fixture()
def push() -> InMemoryPushClient:
    return InMemoryPushClient()


@pytest.fixture()
def guest_engine(guest_ctx, api, push, settings) -> ChatSyncEngine:
    return ChatSyncEngine(
        guest_ctx, api, push, settings=settings, dedupe=InMemoryDedupeStore()
    )


@pytest.fixture()
def staff_engine(staff_ctx, api, push, settings) -> ChatSyncEngine:
    return ChatSyncEngine(
        staff_ctx, api, push, settings=settings, dedupe=InMemoryDedupeStore()
    )

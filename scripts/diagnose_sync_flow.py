#!/usr/bin/env python
"""Script de diagnóstico do fluxo de sincronização.

Simula, sem backend real:
1. Envio otimista de uma mensagem do guest
2. Evento push new-message chegando antes da resposta REST
3. Entrega duplicada pelo canal de notificações
4. Deleção feita pelo staff

Uso:
    python scripts/diagnose_sync_flow.py
"""

import asyncio
import sys
from pathlib import Path

# Adicionar src ao path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from hotelmate_sync.application.engine import ChatSyncEngine
from hotelmate_sync.config.settings import get_settings
from hotelmate_sync.domain.enums import SenderClass
from hotelmate_sync.domain.models import EngineContext, Message, utc_now
from hotelmate_sync.infra.push import InMemoryPushClient
from hotelmate_sync.observability.logging import configure_logging


class SlowChatApi:
    """API falsa: confirma envios só depois que o push já chegou."""

    def __init__(self) -> None:
        self.release = asyncio.Event()

    async def send_message(self, ctx, text, client_message_id, attachments=(), reply_to_id=None):
        await self.release.wait()
        return Message(
            id=55,
            sender_class=ctx.viewer_role,
            body=text,
            client_message_id=client_message_id,
            created_at=utc_now(),
        )

    async def delete_message(self, ctx, message_id):
        return None

    async def mark_read(self, ctx):
        return None

    async def get_messages(self, ctx, limit, before=None):
        return []


def print_snapshot(engine: ChatSyncEngine, title: str) -> None:
    snapshot = engine.get_snapshot()
    print(f"\n📋 {title}")
    for message in snapshot.messages:
        status = snapshot.statuses.get(message.key, "-")
        print(f"  - [{message.key}] {message.body!r} status={status}")


async def main() -> int:
    settings = get_settings()
    configure_logging("WARNING", settings.service_name, log_format="text")

    ctx = EngineContext(
        hotel_slug="demo-hotel",
        conversation_id=1,
        viewer_role=SenderClass.GUEST,
        viewer_ref="session-demo",
    )
    api = SlowChatApi()
    push = InMemoryPushClient()
    engine = ChatSyncEngine(ctx, api, push, settings=settings)
    engine.subscribe(ctx.conversation_id)

    conversation_channel = settings.conversation_channel(ctx.hotel_slug, ctx.conversation_id)
    notifications_channel = settings.notifications_channel(
        ctx.hotel_slug, ctx.viewer_role.value, ctx.viewer_ref
    )

    key = engine.send_message("Olá, preciso de toalhas")
    print_snapshot(engine, "Após envio otimista")

    payload = {
        "message": {
            "id": 55,
            "conversation_id": 1,
            "sender_type": "guest",
            "message": "Olá, preciso de toalhas",
            "client_message_id": key,
        },
        "meta": {"event_id": "evt-55"},
    }
    push.emit(conversation_channel, "new-message", payload)
    push.emit(notifications_channel, "new-message", payload)
    print_snapshot(engine, "Após push (dois canais)")

    api.release.set()
    await engine.drain()
    print_snapshot(engine, "Após resposta REST")

    push.emit(
        conversation_channel,
        "message-deleted",
        {"message_id": 55, "deleted_by": "staff", "original_sender": "guest"},
    )
    print_snapshot(engine, "Após deleção pelo staff")

    snapshot = engine.get_snapshot()
    await engine.close()

    if len(snapshot.messages) != 1:
        print("❌ ERRO: esperado exatamente uma mensagem")
        return 1
    print("\n✅ Fluxo convergiu para uma única mensagem")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))

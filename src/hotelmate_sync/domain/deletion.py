"""Texto de deleção contextual, relativo a quem está vendo.

Função pura: não acessa estado do store.
"""

from __future__ import annotations

from hotelmate_sync.domain.enums import SenderClass
from hotelmate_sync.domain.models import DeletionEvent

GENERIC_DELETION_TEXT = "Message deleted"


def deletion_text(
    deleted_by: SenderClass | str | None,
    original_sender: SenderClass | str | None,
    staff_name: str | None,
    is_guest_viewer: bool,
) -> str:
    """Calcula o texto exibido no lugar de uma mensagem deletada.

    | deleted_by | original_sender | viewer | texto                           |
    |------------|-----------------|--------|---------------------------------|
    | guest      | guest           | guest  | You deleted this message        |
    | staff      | guest           | guest  | Message removed by staff        |
    | staff      | staff           | guest  | Message deleted                 |
    | guest      | guest           | staff  | Message deleted by guest        |
    | staff      | qualquer        | staff  | Message deleted by {staff_name} |
    """
    if is_guest_viewer:
        if deleted_by == SenderClass.GUEST and original_sender == SenderClass.GUEST:
            return "You deleted this message"
        if deleted_by == SenderClass.STAFF and original_sender == SenderClass.GUEST:
            return "Message removed by staff"
        return GENERIC_DELETION_TEXT

    if deleted_by == SenderClass.GUEST and original_sender == SenderClass.GUEST:
        return "Message deleted by guest"
    if deleted_by == SenderClass.STAFF:
        return f"Message deleted by {staff_name}" if staff_name else GENERIC_DELETION_TEXT
    return GENERIC_DELETION_TEXT


def resolve_deletion_display(event: DeletionEvent, is_guest_viewer: bool) -> str:
    """Texto final: o texto do backend (ex.: "[File deleted]") tem precedência."""
    if event.backend_text:
        return event.backend_text
    return deletion_text(
        event.deleted_by,
        event.original_sender,
        event.staff_name,
        is_guest_viewer,
    )

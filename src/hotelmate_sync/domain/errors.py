"""Taxonomia de erros do engine de sincronização.

Regras de propagação:
- Falhas de rede são capturadas na borda da operação e viram status
  (`failed`) ou notificação ao usuário.
- O reconciliador de eventos nunca propaga exceção.
"""

from __future__ import annotations


class SyncError(Exception):
    """Erro base do engine, sem expor dados sensíveis."""

    code: str = "sync_error"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NetworkFailure(SyncError):
    """Envio/delete/mark-read não alcançou o servidor (ou 5xx).

    Nunca há retry silencioso: apenas por ação explícita do usuário.
    """

    code = "network_failure"


class PermissionDenied(SyncError):
    """401/403: credencial inválida ou ação não permitida."""

    code = "permission_denied"


class NotFound(SyncError):
    """404: recurso já removido em outro lugar (corrida esperada)."""

    code = "not_found"


class MalformedEvent(SyncError):
    """Payload push sem campo obrigatório; registrado e descartado."""

    code = "malformed_event"

"""Cliente HTTP centralizado com retry, timeout e logging.

Este módulo fornece um cliente HTTP configurável para a API REST do
hotel, com:
- Retry com backoff exponencial apenas para métodos idempotentes (GET)
- Timeouts configuráveis
- Logging estruturado (sem corpo de mensagens nem tokens)
- Injeção de headers padrão

Envio, deleção e mark-read nunca fazem retry automático: falha vira
status `failed` ou notificação, e o retry é decisão do usuário.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from hotelmate_sync.observability.logging import get_logger

if TYPE_CHECKING:
    from hotelmate_sync.config.settings import Settings

logger: logging.Logger = get_logger(__name__)

# Regex pré-compilado para sanitização de URL
_TOKEN_PATTERN = re.compile(r"(session_token|token)=[^&]+")


def _sanitize_url(url: str) -> str:
    """Remove tokens da URL para logging seguro."""
    if "token=" in url:
        return _TOKEN_PATTERN.sub(r"\1=***", url)
    return url


@dataclass
class HttpClientConfig:
    """Configuração do cliente HTTP.

    Valores padrão são seguros e conservadores.
    """

    base_url: str = ""
    timeout_seconds: float = 15.0
    max_retries: int = 2
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 10.0
    retry_methods: frozenset[str] = frozenset({"GET"})
    default_headers: dict[str, str] = field(default_factory=dict)
    verify_ssl: bool = True


class HttpError(Exception):
    """Erro de requisição HTTP sem expor informações sensíveis."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        is_retryable: bool = False,
        payload: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.is_retryable = is_retryable
        self.payload = payload or {}


def _is_retryable_status(status_code: int) -> bool:
    """Determina se status HTTP permite retry (429 ou 5xx)."""
    return status_code == 429 or 500 <= status_code < 600


def _calculate_backoff(
    attempt: int,
    base_seconds: float,
    max_seconds: float,
) -> float:
    """Calcula tempo de espera com backoff exponencial."""
    backoff = (2**attempt) * base_seconds
    return min(backoff, max_seconds)


def _error_payload(response: httpx.Response) -> dict[str, Any]:
    """Extrai corpo JSON de erro (ex.: {"error": ...}); vazio se não for JSON."""
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _log_request_start(method: str, url: str, attempt: int, max_r: int) -> None:
    logger.debug(
        "Executando requisição HTTP",
        extra={
            "method": method,
            "url": _sanitize_url(url),
            "attempt": attempt + 1,
            "max_retries": max_r,
        },
    )


def _log_transient_error(msg: str, method: str, url: str, attempt: int, error: str) -> None:
    """Loga erro transitório (timeout, conexão)."""
    logger.warning(
        msg,
        extra={
            "method": method,
            "url": _sanitize_url(url),
            "attempt": attempt + 1,
            "error": error,
        },
    )


def _handle_transient_exception(
    exc: Exception,
    method: str,
    url: str,
    attempt: int,
) -> HttpError:
    """Trata exceções transitórias (timeout, conexão) e retorna HttpError."""
    if isinstance(exc, httpx.TimeoutException):
        _log_transient_error("Timeout em requisição HTTP", method, url, attempt, str(exc))
        return HttpError("Timeout", is_retryable=True)

    if isinstance(exc, httpx.TransportError):
        _log_transient_error("Erro de conexão HTTP", method, url, attempt, type(exc).__name__)
        return HttpError("Erro de conexão", is_retryable=True)

    logger.error(
        "Erro inesperado em requisição HTTP",
        extra={"method": method, "url": _sanitize_url(url), "error_type": type(exc).__name__},
    )
    raise HttpError(f"Erro inesperado: {type(exc).__name__}") from exc


class HttpClient:
    """Cliente HTTP assíncrono com retry e logging.

    Uso típico:
        async with HttpClient(config) as client:
            response = await client.get(url, params={"limit": 50})
    """

    def __init__(self, config: HttpClientConfig | None = None) -> None:
        self._config = config or HttpClientConfig()
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Retorna cliente httpx (lazy loading)."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url,
                timeout=httpx.Timeout(self._config.timeout_seconds),
                headers=self._config.default_headers,
                verify=self._config.verify_ssl,
            )
        return self._client

    async def close(self) -> None:
        """Fecha o cliente e libera recursos."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def _max_attempts(self, method: str) -> int:
        if method.upper() in self._config.retry_methods:
            return self._config.max_retries + 1
        return 1

    async def _request(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Executa requisição, com retry apenas para métodos idempotentes.

        Raises:
            HttpError: Se a requisição falhar (após retries, quando aplicável)
        """
        client = await self._get_client()
        attempts = self._max_attempts(method)
        last_error: HttpError | None = None

        for attempt in range(attempts):
            _log_request_start(method, url, attempt, attempts - 1)

            try:
                response = await client.request(method, url, **kwargs)
                result = self._process_response(response, method, url)
                if result is not None:
                    return result
                last_error = HttpError(
                    f"HTTP {response.status_code}",
                    status_code=response.status_code,
                    is_retryable=True,
                    payload=_error_payload(response),
                )
            except HttpError:
                raise
            except Exception as exc:
                last_error = _handle_transient_exception(exc, method, url, attempt)

            if attempt + 1 < attempts:
                await self._wait_backoff(attempt)

        if attempts > 1:
            logger.error(
                "Esgotou tentativas de retry",
                extra={"method": method, "url": _sanitize_url(url), "total_attempts": attempts},
            )
        raise last_error or HttpError("Falha após todos os retries")

    def _process_response(
        self,
        response: httpx.Response,
        method: str,
        url: str,
    ) -> httpx.Response | None:
        """Processa resposta: retorna se sucesso, levanta se não retentável.

        Returns:
            Response se sucesso, None se retentável
        """
        if response.is_success:
            logger.debug(
                "Requisição HTTP bem-sucedida",
                extra={
                    "method": method,
                    "url": _sanitize_url(url),
                    "status_code": response.status_code,
                },
            )
            return response

        if not _is_retryable_status(response.status_code):
            logger.warning(
                "Requisição HTTP falhou (não retryable)",
                extra={
                    "method": method,
                    "url": _sanitize_url(url),
                    "status_code": response.status_code,
                },
            )
            raise HttpError(
                f"HTTP {response.status_code}",
                status_code=response.status_code,
                is_retryable=False,
                payload=_error_payload(response),
            )
        return None

    async def _wait_backoff(self, attempt: int) -> None:
        cfg = self._config
        backoff = _calculate_backoff(attempt, cfg.backoff_base_seconds, cfg.backoff_max_seconds)
        logger.info(
            "Aguardando backoff antes de retry",
            extra={"backoff_seconds": backoff, "next_attempt": attempt + 2},
        )
        await asyncio.sleep(backoff)

    # Métodos de conveniência

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """Executa GET com retry."""
        return await self._request("GET", url, **kwargs)

    async def post(
        self,
        url: str,
        json: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Executa POST (sem retry)."""
        if json is not None:
            kwargs["json"] = json
        return await self._request("POST", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        """Executa DELETE (sem retry)."""
        return await self._request("DELETE", url, **kwargs)


def create_http_client(settings: Settings | None = None) -> HttpClient:
    """Factory para criar cliente HTTP configurado.

    Args:
        settings: Configurações da aplicação. Se None, usa get_settings()
    """
    if settings is None:
        from hotelmate_sync.config.settings import get_settings

        settings = get_settings()

    config = HttpClientConfig(
        base_url=settings.api_base_url.rstrip("/"),
        timeout_seconds=float(settings.request_timeout_seconds),
        max_retries=settings.read_max_retries,
        backoff_base_seconds=float(settings.retry_backoff_seconds),
        backoff_max_seconds=float(settings.retry_backoff_max_seconds),
        default_headers={
            "User-Agent": f"{settings.service_name}/{settings.version}",
        },
        verify_ssl=not settings.is_development,
    )

    logger.info(
        "Cliente HTTP criado",
        extra={
            "timeout_seconds": config.timeout_seconds,
            "max_retries": config.max_retries,
        },
    )

    return HttpClient(config)

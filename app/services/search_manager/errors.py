"""
Erros do cliente de busca.

Toda falha que sai do cliente é um único SearchServiceError que identifica
o serviço externo, a operação lógica e a causa original (em __cause__).
"""

from typing import Optional

import httpx

RETRYABLE_STATUS_CODES = frozenset({403, 429, 502, 503, 504, 522, 524})

_CONNECTIVITY_MESSAGES = ("network error", "getaddrinfo", "name or service not known", "econn")


class SearchServiceError(Exception):
    """Falha ao consultar o serviço de busca externo."""

    def __init__(
        self,
        message: str,
        service: str,
        operation: str,
        cause: Optional[BaseException] = None,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
    ):
        super().__init__(message)
        self.service = service
        self.operation = operation
        self.cause = cause
        self.status_code = status_code
        self.url = url

    @property
    def is_connectivity(self) -> bool:
        """True quando a causa é falta de rede (não do serviço)."""
        return is_connectivity_error(self.cause)


def status_code_of(error: Optional[BaseException]) -> Optional[int]:
    """Extrai o status HTTP de uma exceção do transporte, se houver."""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    return getattr(error, "status_code", None)


def is_retryable_error(error: BaseException) -> bool:
    return status_code_of(error) in RETRYABLE_STATUS_CODES


def build_service_error(service: str, operation: str, error: BaseException) -> SearchServiceError:
    """
    Embrulha uma falha do transporte num SearchServiceError.

    Formato: "<service> <operation> failed (status 429 Too Many Requests, url ...): <mensagem>"
    """
    status = status_code_of(error)
    detail_parts = []
    url = None

    if isinstance(error, httpx.HTTPStatusError):
        reason = error.response.reason_phrase
        detail_parts.append(f"status {status}{f' {reason}' if reason else ''}")
        url = str(error.request.url)
    elif status:
        detail_parts.append(f"status {status}")

    if url is None and isinstance(error, httpx.RequestError):
        try:
            url = str(error.request.url)
        except RuntimeError:
            # request não associado à exceção
            url = None

    if url:
        detail_parts.append(f"url {url}")

    details = f" ({', '.join(detail_parts)})" if detail_parts else ""
    message = str(error)
    cause_message = f": {message}" if message else f": {type(error).__name__}"

    return SearchServiceError(
        f"{service} {operation} failed{details}{cause_message}",
        service=service,
        operation=operation,
        cause=error,
        status_code=status,
        url=url,
    )


def is_connectivity_error(error: Optional[BaseException]) -> bool:
    """Percorre a cadeia de causas procurando falha de conectividade."""
    visited = set()
    current = error
    while current is not None and id(current) not in visited:
        visited.add(id(current))
        if isinstance(current, (httpx.ConnectError, httpx.ConnectTimeout, httpx.NetworkError)):
            return True
        if isinstance(current, (ConnectionError, OSError)) and not isinstance(current, TimeoutError):
            return True
        message = str(current).lower()
        if any(marker in message for marker in _CONNECTIVITY_MESSAGES):
            return True
        current = current.__cause__ or current.__context__
    return False

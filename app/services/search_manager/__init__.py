"""
Search Manager - Controle de acesso ao DuckDuckGo.

Este módulo centraliza todo o controle de infraestrutura de busca:
- Fila única de requisições (espaçamento, jitter, teto por minuto)
- Cooldown global após throttling (403/429/5xx de gateway)
- Retry com backoff exponencial
- Cache persistente de buscas
- Parser das páginas de resultado
"""

from .duckduckgo_client import (
    DuckDuckGoClient,
    get_duckduckgo_client,
    close_duckduckgo_client,
    search_web,
    instant_answer,
)
from .search_cache import (
    CacheEntry,
    ResponseCache,
    build_cache_key,
)
from .rate_limiter import (
    RollingWindowRateLimiter,
)
from .cooldown import (
    CooldownState,
)
from .request_scheduler import (
    RequestScheduler,
)
from .retry_policy import (
    RetryPolicy,
)
from .query_normalizer import (
    normalize_query,
)
from .result_parser import (
    SearchHit,
    resolve_result_url,
    parse_search_results,
    parse_instant_answer,
    instant_answer_url,
    instant_answer_text,
)
from .errors import (
    RETRYABLE_STATUS_CODES,
    SearchServiceError,
    build_service_error,
    is_connectivity_error,
)
from .connectivity import (
    check_connectivity,
    wait_for_connectivity,
)

__all__ = [
    # Client
    "DuckDuckGoClient",
    "get_duckduckgo_client",
    "close_duckduckgo_client",
    "search_web",
    "instant_answer",
    # Cache
    "CacheEntry",
    "ResponseCache",
    "build_cache_key",
    # Scheduling
    "RollingWindowRateLimiter",
    "CooldownState",
    "RequestScheduler",
    "RetryPolicy",
    # Parsing
    "normalize_query",
    "SearchHit",
    "resolve_result_url",
    "parse_search_results",
    "parse_instant_answer",
    "instant_answer_url",
    "instant_answer_text",
    # Errors
    "RETRYABLE_STATUS_CODES",
    "SearchServiceError",
    "build_service_error",
    "is_connectivity_error",
    "check_connectivity",
    "wait_for_connectivity",
]

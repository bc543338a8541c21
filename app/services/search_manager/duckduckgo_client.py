"""
DuckDuckGo Client - Cliente resiliente de busca no DuckDuckGo.

Controla:
- Cliente HTTP compartilhado (httpx)
- Fila serializada com espaçamento, jitter e teto por minuto
- Cooldown global após throttling
- Retry com backoff exponencial
- Cache persistente de buscas

O DuckDuckGo não tem API oficial de busca: a página HTML é raspada e
bloqueia com facilidade (403/429), por isso toda requisição passa pela
mesma fila, não importa quantos chamadores existam.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from app.core.config import settings
from .cooldown import CooldownState
from .errors import RETRYABLE_STATUS_CODES
from .query_normalizer import normalize_query
from .rate_limiter import RollingWindowRateLimiter
from .request_scheduler import RequestScheduler
from .result_parser import SearchHit, parse_instant_answer, parse_search_results
from .retry_policy import RetryPolicy
from .search_cache import ResponseCache, build_cache_key

logger = logging.getLogger(__name__)

SERVICE_NAME = "DuckDuckGo"
INSTANT_ANSWER_URL = "https://api.duckduckgo.com/"
WEB_SEARCH_URL = "https://duckduckgo.com/html/"

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Safari/605.1.15"
)
DEFAULT_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept-Language": "en-US,en;q=0.9",
}


class DuckDuckGoClient:
    """
    Cliente de busca com fila única, cooldown, retry e cache.

    Deve ser construído uma vez por processo e injetado nos chamadores:
    o limite de taxa é uma propriedade do DuckDuckGo, não de cada chamador.
    """

    def __init__(
        self,
        min_delay_ms: Optional[int] = None,  # Valores default vêm de settings
        jitter_ms: Optional[int] = None,
        max_retries: Optional[int] = None,
        retry_base_ms: Optional[int] = None,
        max_per_minute: Optional[int] = None,
        cooldown_ms: Optional[int] = None,
        cache_ttl_ms: Optional[int] = None,
        cache_path: Optional[str] = None,
        request_timeout: Optional[float] = None,
        cache: Optional[ResponseCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        """
        Args:
            min_delay_ms: Espaçamento mínimo entre requisições
            jitter_ms: Jitter máximo somado às esperas
            max_retries: Máximo de tentativas por requisição lógica
            retry_base_ms: Base do backoff exponencial
            max_per_minute: Teto de requisições nos últimos 60s
            cooldown_ms: Duração do cooldown após throttling
            cache_ttl_ms: Tempo de vida do cache
            cache_path: Arquivo JSON do cache
            request_timeout: Timeout por tentativa em segundos
            cache: Cache já construído (substitui cache_ttl_ms/cache_path)
            transport: Transporte httpx alternativo (testes)
            clock: Relógio monotônico do scheduler (testes)
            sleep: Função de espera do scheduler e do retry (testes)
        """
        self._min_delay_ms = min_delay_ms if min_delay_ms is not None else settings.DDG_MIN_DELAY_MS
        self._jitter_ms = jitter_ms if jitter_ms is not None else settings.DDG_JITTER_MS
        self._max_retries = max_retries if max_retries is not None else settings.DDG_MAX_RETRIES
        self._retry_base_ms = retry_base_ms if retry_base_ms is not None else settings.DDG_RETRY_BASE_MS
        self._max_per_minute = max_per_minute if max_per_minute is not None else settings.DDG_MAX_PER_MINUTE
        self._cooldown_ms = cooldown_ms if cooldown_ms is not None else settings.DDG_COOLDOWN_MS
        self._request_timeout = request_timeout if request_timeout is not None else settings.DDG_REQUEST_TIMEOUT

        jitter_seconds = self._jitter_ms / 1000

        self._scheduler = RequestScheduler(
            min_delay_seconds=self._min_delay_ms / 1000,
            jitter_seconds=jitter_seconds,
            rate_limiter=RollingWindowRateLimiter(
                max_per_minute=self._max_per_minute,
                jitter_seconds=jitter_seconds,
                name="duckduckgo"
            ),
            cooldown=CooldownState(cooldown_seconds=self._cooldown_ms / 1000, name="duckduckgo"),
            clock=clock,
            sleep=sleep,
            name="duckduckgo"
        )
        self._retry = RetryPolicy(
            scheduler=self._scheduler,
            max_attempts=self._max_retries,
            base_delay_seconds=self._retry_base_ms / 1000,
            jitter_seconds=jitter_seconds,
            service=SERVICE_NAME,
            sleep=sleep
        )

        if cache is None:
            ttl_ms = cache_ttl_ms if cache_ttl_ms is not None else settings.DDG_CACHE_TTL_MS
            cache = ResponseCache(
                path=cache_path or settings.DDG_CACHE_PATH,
                ttl_seconds=ttl_ms / 1000
            )
        self._cache = cache

        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        # Métricas
        self._total_requests = 0
        self._successful_requests = 0
        self._throttled_requests = 0
        self._failed_requests = 0
        self._total_latency_ms = 0.0

        logger.info(
            f"🦆 DuckDuckGoClient: min_delay={self._min_delay_ms}ms, jitter={self._jitter_ms}ms, "
            f"max={self._max_per_minute}/min, retries={self._max_retries}, "
            f"cooldown={self._cooldown_ms}ms"
        )

    @property
    def scheduler(self) -> RequestScheduler:
        return self._scheduler

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    def _get_client(self) -> httpx.AsyncClient:
        """Retorna cliente HTTP compartilhado (lazy)."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._request_timeout),
                headers=DEFAULT_HEADERS,
                follow_redirects=True,
                transport=self._transport
            )
            logger.info("🌐 DuckDuckGo: Cliente HTTP criado")
        return self._client

    async def close(self):
        """Fecha cliente HTTP, para a fila e descarrega o cache."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            logger.info("🌐 DuckDuckGo: Cliente HTTP fechado")
        self._client = None
        await self._scheduler.close()
        await self._cache.close()

    async def _fetch(self, url: str, params: Dict[str, Any]) -> httpx.Response:
        """Uma tentativa de GET. Status de erro vira httpx.HTTPStatusError."""
        client = self._get_client()
        start_time = time.perf_counter()
        self._total_requests += 1

        try:
            response = await client.get(url, params=params)
        except httpx.HTTPError:
            self._failed_requests += 1
            raise

        latency_ms = (time.perf_counter() - start_time) * 1000
        self._total_latency_ms += latency_ms

        if response.status_code in RETRYABLE_STATUS_CODES:
            self._throttled_requests += 1
            logger.warning(f"⚠️ DuckDuckGo throttling ({response.status_code}) em {url}")
        elif response.is_error:
            self._failed_requests += 1
        else:
            self._successful_requests += 1

        response.raise_for_status()
        return response

    async def instant_answer(self, query: str) -> Dict[str, Any]:
        """
        Consulta o endpoint de instant answer (resposta estruturada única).

        Não usa cache: a resposta é barata e sensível a frescor.

        Returns:
            JSON decodificado (dict vazio se o corpo vier malformado)

        Raises:
            SearchServiceError: falha não transitória ou tentativas esgotadas
        """
        normalized = normalize_query(query)
        if not normalized:
            return {}

        params = {"q": normalized, "format": "json", "no_redirect": "1", "no_html": "1"}
        response = await self._retry.run(
            "instant answer",
            lambda: self._fetch(INSTANT_ANSWER_URL, params)
        )
        return parse_instant_answer(response.text)

    async def search(self, query: str, limit: int = 5) -> List[SearchHit]:
        """
        Busca na web (resultados ordenados).

        Args:
            query: Texto livre
            limit: Máximo de resultados

        Returns:
            Lista de {title, url, snippet}, no máximo `limit`

        Raises:
            SearchServiceError: falha não transitória ou tentativas esgotadas
        """
        normalized = normalize_query(query)
        if not normalized or limit <= 0:
            return []

        key = build_cache_key("search", normalized, limit)
        cached = await self._cache.lookup(key)
        if cached is not None:
            logger.debug(f"🦆 DuckDuckGo: cache hit '{normalized[:50]}' ({len(cached)} resultados)")
            return cached

        start_time = time.perf_counter()
        response = await self._retry.run(
            "search",
            lambda: self._fetch(WEB_SEARCH_URL, {"q": normalized, "ia": "web"})
        )
        results = parse_search_results(response.text, limit)

        if results:
            await self._cache.store(key, results)

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"✅ DuckDuckGo: {len(results)} resultados para '{normalized[:50]}' "
            f"({duration_ms:.0f}ms)"
        )
        return results

    def get_status(self) -> dict:
        """Retorna status e métricas."""
        avg_latency = 0.0
        if self._total_requests > 0:
            avg_latency = self._total_latency_ms / self._total_requests

        success_rate = 0.0
        if self._total_requests > 0:
            success_rate = self._successful_requests / self._total_requests

        return {
            "total_requests": self._total_requests,
            "successful_requests": self._successful_requests,
            "throttled_requests": self._throttled_requests,
            "failed_requests": self._failed_requests,
            "success_rate": f"{success_rate:.1%}",
            "avg_latency_ms": round(avg_latency, 2),
            "scheduler": self._scheduler.get_status(),
            "retry": self._retry.get_status(),
            "cache": self._cache.get_status(),
            "config": {
                "min_delay_ms": self._min_delay_ms,
                "jitter_ms": self._jitter_ms,
                "max_retries": self._max_retries,
                "retry_base_ms": self._retry_base_ms,
                "max_per_minute": self._max_per_minute,
                "cooldown_ms": self._cooldown_ms,
                "request_timeout": self._request_timeout,
            },
        }

    def reset_metrics(self):
        """Reseta métricas."""
        self._total_requests = 0
        self._successful_requests = 0
        self._throttled_requests = 0
        self._failed_requests = 0
        self._total_latency_ms = 0.0
        self._scheduler.reset_metrics()
        self._retry.reset_metrics()
        self._cache.reset_metrics()
        logger.info("DuckDuckGoClient: Métricas resetadas")


# Instância do processo (criada no primeiro uso)
_duckduckgo_client: Optional[DuckDuckGoClient] = None


def get_duckduckgo_client() -> DuckDuckGoClient:
    """Retorna o cliente do processo, criando-o na primeira chamada."""
    global _duckduckgo_client
    if _duckduckgo_client is None:
        _duckduckgo_client = DuckDuckGoClient()
    return _duckduckgo_client


async def close_duckduckgo_client():
    """Fecha e descarta o cliente do processo (shutdown e testes)."""
    global _duckduckgo_client
    if _duckduckgo_client is not None:
        await _duckduckgo_client.close()
        _duckduckgo_client = None


# Funções de conveniência
async def search_web(query: str, limit: int = 5) -> List[SearchHit]:
    """Busca na web usando o cliente do processo."""
    return await get_duckduckgo_client().search(query, limit)


async def instant_answer(query: str) -> Dict[str, Any]:
    """Instant answer usando o cliente do processo."""
    return await get_duckduckgo_client().instant_answer(query)

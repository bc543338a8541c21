"""
Retry Policy - Retry com backoff exponencial para falhas transitórias.

Cada tentativa passa pelo RequestScheduler. Falhas com status em
RETRYABLE_STATUS_CODES estendem o cooldown compartilhado e são repetidas
até `max_attempts`; qualquer outra falha (ou a exaustão) sobe como um único
SearchServiceError com a causa original encadeada.
"""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from .errors import build_service_error, is_retryable_error, status_code_of
from .request_scheduler import RequestScheduler

logger = logging.getLogger(__name__)


class RetryPolicy:
    """Política global de retry, compartilhada por todos os chamadores."""

    def __init__(
        self,
        scheduler: RequestScheduler,
        max_attempts: int = 4,
        base_delay_seconds: float = 2.0,
        jitter_seconds: float = 0.75,
        service: str = "DuckDuckGo",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        """
        Args:
            scheduler: Fila serializada por onde passa cada tentativa
            max_attempts: Máximo de tentativas (inclui a primeira)
            base_delay_seconds: Base do backoff (base * 2^tentativa)
            jitter_seconds: Jitter máximo somado ao backoff
            service: Nome do serviço externo nas mensagens de erro
            sleep: Função de espera assíncrona (injetável em testes)
        """
        self.scheduler = scheduler
        self.max_attempts = max(1, max_attempts)
        self.base_delay_seconds = base_delay_seconds
        self.jitter_seconds = jitter_seconds
        self.service = service
        self._sleep = sleep

        # Métricas
        self._retries = 0
        self._exhausted = 0
        self._failed = 0

    def _backoff(self, retry_state: RetryCallState) -> float:
        attempt = retry_state.attempt_number - 1
        jitter = random.uniform(0, self.jitter_seconds) if self.jitter_seconds > 0 else 0.0
        return self.base_delay_seconds * (2 ** attempt) + jitter

    def _on_retryable_failure(self, retry_state: RetryCallState) -> None:
        self.scheduler.trip_cooldown()

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        self._retries += 1
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"🔄 {self.service} retry {retry_state.attempt_number + 1}/{self.max_attempts} "
            f"após {delay:.1f}s (status={status_code_of(error)})"
        )

    async def run(self, operation: str, call: Callable[[], Awaitable[Any]]) -> Any:
        """
        Executa `call` pelo scheduler com retry.

        Args:
            operation: Nome lógico da operação (ex: 'search')
            call: Fábrica de corrotina que faz a chamada de transporte

        Raises:
            SearchServiceError: falha não transitória ou tentativas esgotadas
        """
        retrying = AsyncRetrying(
            sleep=self._sleep,
            stop=stop_after_attempt(self.max_attempts),
            wait=self._backoff,
            retry=retry_if_exception(is_retryable_error),
            after=self._on_retryable_failure,
            before_sleep=self._before_sleep,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    return await self.scheduler.submit(call, label=operation)
        except Exception as e:
            if is_retryable_error(e):
                self._exhausted += 1
                logger.error(
                    f"❌ {self.service} {operation} falhou após {self.max_attempts} tentativas "
                    f"(status={status_code_of(e)})"
                )
            else:
                self._failed += 1
                logger.error(f"❌ {self.service} {operation} falhou: {type(e).__name__}: {e}")
            raise build_service_error(self.service, operation, e) from e

    def get_status(self) -> dict:
        return {
            "max_attempts": self.max_attempts,
            "base_delay_seconds": self.base_delay_seconds,
            "metrics": {
                "retries": self._retries,
                "exhausted": self._exhausted,
                "failed": self._failed,
            },
        }

    def reset_metrics(self) -> None:
        self._retries = 0
        self._exhausted = 0
        self._failed = 0

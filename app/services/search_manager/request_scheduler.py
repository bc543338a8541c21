"""
Request Scheduler - Fila única e serializada de requisições ao serviço externo.

Todos os chamadores passam por um único worker, de modo que espaçamento,
jitter, janela por minuto e cooldown são contabilizados corretamente não
importa quantas corrotinas submetam trabalho ao mesmo tempo.

Ordem aplicada a cada requisição:
1. Espera do cooldown (se ativo) + jitter
2. Espera da janela deslizante (se cheia)
3. Espaçamento mínimo desde a última requisição + jitter
4. Registra `now` como última requisição e na janela
5. Executa a chamada de transporte
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from .cooldown import CooldownState
from .rate_limiter import RollingWindowRateLimiter

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[Any]]


@dataclass
class ScheduledRequest:
    """Unidade de trabalho na fila (executa exatamente uma vez)."""
    thunk: Callable[[], Awaitable[Any]] = field(repr=False)
    future: asyncio.Future = field(repr=False)
    label: str = ""
    enqueued_at: float = 0.0


class RequestScheduler:
    """
    Fila FIFO com um único worker.

    Todo estado mutável (janela, cooldown, última requisição) só é alterado
    de dentro do worker, então não há lock além da própria serialização.
    O cooldown é a exceção: é estendido pelo RetryPolicy via `trip_cooldown`,
    e como só avança no tempo, a ordem das escritas não importa.
    """

    def __init__(
        self,
        min_delay_seconds: float = 1.5,
        jitter_seconds: float = 0.75,
        rate_limiter: Optional[RollingWindowRateLimiter] = None,
        cooldown: Optional[CooldownState] = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        name: str = "duckduckgo"
    ):
        """
        Args:
            min_delay_seconds: Espaçamento mínimo entre requisições
            jitter_seconds: Jitter máximo somado às esperas
            rate_limiter: Janela deslizante por minuto
            cooldown: Estado de cooldown compartilhado
            clock: Relógio monotônico (injetável em testes)
            sleep: Função de espera assíncrona (injetável em testes)
            name: Nome para identificação em logs
        """
        self.min_delay_seconds = min_delay_seconds
        self.jitter_seconds = jitter_seconds
        self.rate_limiter = rate_limiter or RollingWindowRateLimiter(jitter_seconds=jitter_seconds, name=name)
        self.cooldown = cooldown or CooldownState(name=name)
        self.name = name

        self._clock = clock
        self._sleep = sleep

        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._last_request_at: Optional[float] = None

        # Métricas
        self._submitted = 0
        self._executed = 0
        self._failed = 0
        self._total_wait_ms = 0.0

        logger.info(
            f"[Scheduler:{name}] min_delay={min_delay_seconds:.2f}s, "
            f"jitter={jitter_seconds:.2f}s, max={self.rate_limiter.max_per_minute}/min"
        )

    def _jitter(self) -> float:
        if self.jitter_seconds <= 0:
            return 0.0
        return random.uniform(0, self.jitter_seconds)

    def _ensure_worker(self) -> asyncio.Queue:
        """Inicia o worker no loop corrente (lazy, uma vez por loop)."""
        loop = asyncio.get_running_loop()
        if self._worker is None or self._worker.done() or self._loop is not loop:
            previous, same_loop = self._queue, self._loop is loop
            self._queue = asyncio.Queue()
            carried = 0
            while previous is not None and not previous.empty():
                job = previous.get_nowait()
                if job.future.done():
                    continue
                if same_loop:
                    self._queue.put_nowait(job)
                    carried += 1
                elif not job.future.get_loop().is_closed():
                    job.future.cancel()

            self._loop = loop
            self._worker = loop.create_task(self._run())
            logger.debug(f"[Scheduler:{self.name}] Worker iniciado ({carried} pendentes herdados)")
        return self._queue

    async def submit(self, thunk: Callable[[], Awaitable[Any]], label: str = "") -> Any:
        """
        Enfileira uma chamada e aguarda sua vez e seu resultado.

        A exceção da chamada (se houver) é propagada ao chamador; ela não
        interrompe a fila para os próximos.
        """
        queue = self._ensure_worker()
        future = self._loop.create_future()
        queue.put_nowait(
            ScheduledRequest(thunk=thunk, future=future, label=label, enqueued_at=self._clock())
        )
        self._submitted += 1
        return await future

    def trip_cooldown(self) -> float:
        """Estende o cooldown a partir de agora. Retorna o novo deadline."""
        return self.cooldown.trip(self._clock())

    async def _wait_for_turn(self, job: ScheduledRequest) -> None:
        waited = 0.0

        now = self._clock()
        cooldown_wait = self.cooldown.remaining(now)
        if cooldown_wait > 0:
            cooldown_wait += self._jitter()
            logger.info(
                f"🧊 [Scheduler:{self.name}] Cooldown ativo, aguardando {cooldown_wait:.1f}s "
                f"({job.label or 'request'})"
            )
            await self._sleep(cooldown_wait)
            waited += cooldown_wait

        now = self._clock()
        rate_wait = self.rate_limiter.admit(now)
        if rate_wait > 0:
            logger.info(
                f"🚦 [Scheduler:{self.name}] Limite por minuto atingido, aguardando {rate_wait:.1f}s"
            )
            await self._sleep(rate_wait)
            waited += rate_wait

        now = self._clock()
        elapsed = now - self._last_request_at if self._last_request_at is not None else float("inf")
        spacing = max(0.0, self.min_delay_seconds - elapsed) + self._jitter()
        if spacing > 0:
            await self._sleep(spacing)
            waited += spacing

        now = self._clock()
        self._last_request_at = now
        self.rate_limiter.record(now)
        self._total_wait_ms += waited * 1000

    async def _run(self) -> None:
        """Worker único: drena a fila em ordem FIFO."""
        queue = self._queue
        while True:
            job: ScheduledRequest = await queue.get()
            try:
                if job.future.done():
                    # chamador desistiu (cancelado) antes da vez
                    continue

                try:
                    await self._wait_for_turn(job)
                    result = await job.thunk()
                except asyncio.CancelledError:
                    job.future.cancel()
                    if asyncio.current_task().cancelling():
                        raise
                    # a própria chamada levantou CancelledError; a fila segue
                    self._failed += 1
                except Exception as e:
                    self._failed += 1
                    if not job.future.done():
                        job.future.set_exception(e)
                else:
                    self._executed += 1
                    if not job.future.done():
                        job.future.set_result(result)
            finally:
                queue.task_done()

    async def close(self) -> None:
        """Para o worker e cancela requisições ainda na fila."""
        if self._worker is None:
            return

        worker = self._worker
        self._worker = None
        if not worker.done():
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass

        pending = 0
        while self._queue is not None and not self._queue.empty():
            job = self._queue.get_nowait()
            if not job.future.done():
                job.future.cancel()
                pending += 1

        logger.info(f"[Scheduler:{self.name}] Worker parado ({pending} pendentes cancelados)")

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def get_status(self) -> dict:
        """Retorna status e métricas do scheduler."""
        now = self._clock()
        since_last = None
        if self._last_request_at is not None:
            since_last = round(now - self._last_request_at, 2)

        return {
            "name": self.name,
            "running": self._worker is not None and not self._worker.done(),
            "pending": self.pending,
            "seconds_since_last_request": since_last,
            "cooldown": self.cooldown.get_status(now),
            "rate_limiter": self.rate_limiter.get_status(),
            "metrics": {
                "submitted": self._submitted,
                "executed": self._executed,
                "failed": self._failed,
                "total_wait_ms": round(self._total_wait_ms, 2),
            },
            "config": {
                "min_delay_seconds": self.min_delay_seconds,
                "jitter_seconds": self.jitter_seconds,
            },
        }

    def reset(self) -> None:
        """Limpa janela, cooldown e última requisição (útil para testes)."""
        self._last_request_at = None
        self.rate_limiter.reset()
        self.cooldown.reset()

    def reset_metrics(self) -> None:
        self._submitted = 0
        self._executed = 0
        self._failed = 0
        self._total_wait_ms = 0.0
        self.rate_limiter.reset_metrics()
        logger.info(f"[Scheduler:{self.name}] Métricas resetadas")

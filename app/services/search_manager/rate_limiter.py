"""
Rate Limiter de janela deslizante - teto de requisições por minuto.

Diferente de um contador por bucket fixo (que permite rajada na virada do
minuto), a janela conta as requisições dos últimos 60s continuamente.
"""

import logging
import random
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0


@dataclass
class RateLimiterMetrics:
    """Métricas do rate limiter."""
    total_admitted: int = 0
    total_waited: int = 0
    total_wait_time_ms: float = 0

    @property
    def avg_wait_time_ms(self) -> float:
        if self.total_waited == 0:
            return 0
        return self.total_wait_time_ms / self.total_waited


class RollingWindowRateLimiter:
    """
    Janela deslizante de timestamps de requisições emitidas.

    Não dorme: `admit()` calcula quanto o chamador precisa esperar e
    `record()` registra a requisição depois da espera. Quem dorme é o
    RequestScheduler, que é o único a mutar este estado.
    """

    def __init__(
        self,
        max_per_minute: int = 20,
        jitter_seconds: float = 0.0,
        name: str = "duckduckgo"
    ):
        """
        Args:
            max_per_minute: Teto de requisições nos últimos 60s (<= 0 desativa)
            jitter_seconds: Jitter máximo somado à espera
            name: Nome para identificação em logs
        """
        self.max_per_minute = max_per_minute
        self.jitter_seconds = jitter_seconds
        self.name = name

        self._window: Deque[float] = deque()
        self._metrics = RateLimiterMetrics()

        logger.info(
            f"🚦 RollingWindowRateLimiter[{name}]: "
            f"max={max_per_minute}/min, jitter={jitter_seconds:.2f}s"
        )

    def _prune(self, now: float) -> None:
        while self._window and now - self._window[0] >= WINDOW_SECONDS:
            self._window.popleft()

    def admit(self, now: float) -> float:
        """
        Calcula a espera (segundos) antes de uma nova requisição.

        Returns:
            0 se há vaga na janela; senão o tempo até a entrada mais antiga
            sair da janela, mais jitter.
        """
        self._prune(now)

        if self.max_per_minute <= 0 or len(self._window) < self.max_per_minute:
            return 0.0

        oldest = self._window[0]
        wait = max(0.0, WINDOW_SECONDS - (now - oldest))
        if self.jitter_seconds > 0:
            wait += random.uniform(0, self.jitter_seconds)

        self._metrics.total_waited += 1
        self._metrics.total_wait_time_ms += wait * 1000
        logger.debug(
            f"[RateWindow:{self.name}] Janela cheia ({len(self._window)}/{self.max_per_minute}), "
            f"aguardando {wait:.1f}s"
        )
        return wait

    def record(self, now: float) -> None:
        """Registra uma requisição emitida em `now`."""
        self._prune(now)
        self._window.append(now)
        self._metrics.total_admitted += 1

    def in_window(self, now: Optional[float] = None) -> int:
        """Quantidade de requisições ainda dentro da janela."""
        if now is not None:
            self._prune(now)
        return len(self._window)

    def get_status(self) -> dict:
        """Retorna status e métricas do rate limiter."""
        return {
            "name": self.name,
            "in_window": len(self._window),
            "max_per_minute": self.max_per_minute,
            "metrics": {
                "total_admitted": self._metrics.total_admitted,
                "total_waited": self._metrics.total_waited,
                "avg_wait_time_ms": round(self._metrics.avg_wait_time_ms, 2),
            },
        }

    def reset(self) -> None:
        """Esvazia a janela (útil para testes)."""
        self._window.clear()

    def reset_metrics(self) -> None:
        self._metrics = RateLimiterMetrics()

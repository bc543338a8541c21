"""
Cooldown global após throttling do serviço externo.

Um único deadline: antes dele, toda requisição espera; depois dele, o estado
volta ao normal sozinho (é só uma comparação de tempo, não há reset).
"""

import logging

logger = logging.getLogger(__name__)


class CooldownState:
    """
    Deadline de cooldown compartilhado por todos os chamadores.

    O deadline só avança: uma nova falha nunca encurta uma espera já maior.
    """

    def __init__(self, cooldown_seconds: float = 60.0, name: str = "duckduckgo"):
        self.cooldown_seconds = cooldown_seconds
        self.name = name
        self._deadline = 0.0
        self._total_trips = 0

    @property
    def deadline(self) -> float:
        return self._deadline

    def is_active(self, now: float) -> bool:
        return now < self._deadline

    def remaining(self, now: float) -> float:
        """Segundos restantes de cooldown (0 se normal)."""
        return max(0.0, self._deadline - now)

    def trip(self, now: float) -> float:
        """
        Entra (ou estende) o cooldown a partir de `now`.

        Returns:
            O deadline resultante.
        """
        candidate = now + self.cooldown_seconds
        self._total_trips += 1
        if candidate > self._deadline:
            self._deadline = candidate
            logger.warning(
                f"🧊 Cooldown[{self.name}]: ativo por {self.cooldown_seconds:.0f}s "
                f"(trips={self._total_trips})"
            )
        return self._deadline

    def get_status(self, now: float) -> dict:
        return {
            "active": self.is_active(now),
            "remaining_seconds": round(self.remaining(now), 2),
            "cooldown_seconds": self.cooldown_seconds,
            "total_trips": self._total_trips,
        }

    def reset(self) -> None:
        """Volta ao estado normal (útil para testes)."""
        self._deadline = 0.0
        self._total_trips = 0

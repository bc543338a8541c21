import os
import logging
from dotenv import load_dotenv

# Carregar variáveis do arquivo .env
load_dotenv()

logger = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"[config] Valor inválido para {name}={raw!r}, usando default {default}")
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


class Settings:
    """Configuração do cliente DuckDuckGo (todas opcionais, via env)."""

    def __init__(self):
        # Espaçamento e jitter entre requisições (ms)
        self.DDG_MIN_DELAY_MS: int = _env_int("DDG_MIN_DELAY_MS", 1500)
        self.DDG_JITTER_MS: int = _env_int("DDG_JITTER_MS", 750)

        # Retry com backoff exponencial
        self.DDG_MAX_RETRIES: int = _env_int("DDG_MAX_RETRIES", 4)
        self.DDG_RETRY_BASE_MS: int = _env_int("DDG_RETRY_BASE_MS", 2000)

        # Janela deslizante de 60s e cooldown após throttling
        self.DDG_MAX_PER_MINUTE: int = _env_int("DDG_MAX_PER_MINUTE", 20)
        self.DDG_COOLDOWN_MS: int = _env_int("DDG_COOLDOWN_MS", 60_000)

        # Cache persistente
        self.DDG_CACHE_TTL_MS: int = _env_int("DDG_CACHE_TTL_MS", 24 * 60 * 60 * 1000)
        self.DDG_CACHE_PATH: str = os.getenv("DDG_CACHE_PATH", ".cache/duckduckgo-cache.json")

        # Timeout por tentativa (segundos)
        self.DDG_REQUEST_TIMEOUT: float = _env_float("DDG_REQUEST_TIMEOUT", 15.0)

        # Checagem de conectividade
        self.NET_CHECK_URLS: list = [
            url.strip()
            for url in os.getenv("NET_CHECK_URLS", "").split(",")
            if url.strip()
        ] or [
            "https://www.google.com/generate_204",
            "https://www.cloudflare.com/cdn-cgi/trace",
        ]
        self.NET_CHECK_TIMEOUT_MS: int = _env_int("NET_CHECK_TIMEOUT_MS", 5000)
        self.NET_RETRY_BASE_MS: int = _env_int("NET_RETRY_BASE_MS", 2000)
        self.NET_RETRY_MAX_MS: int = _env_int("NET_RETRY_MAX_MS", 30_000)
        self.NET_JITTER_MS: int = _env_int("NET_JITTER_MS", 1000)

        # Logging
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_FORMAT: str = os.getenv("LOG_FORMAT", "json").lower()


settings = Settings()

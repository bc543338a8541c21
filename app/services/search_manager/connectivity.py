"""
Checagem de conectividade de rede.

Permite ao chamador distinguir "sem internet" de "serviço falhou" e esperar
a rede voltar em vez de descartar o registro.
"""

import asyncio
import logging
import random
from typing import Iterable, Optional

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)


async def _probe_once(urls: Iterable[str], timeout: float) -> bool:
    last_error: Optional[Exception] = None
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        for url in urls:
            try:
                response = await client.get(url)
                if 200 <= response.status_code < 400:
                    return True
            except httpx.HTTPError as e:
                last_error = e
    if last_error is not None:
        raise last_error
    return False


async def check_connectivity(urls: Optional[Iterable[str]] = None) -> bool:
    """Retorna True se alguma URL de checagem responder com sucesso."""
    urls = list(urls or settings.NET_CHECK_URLS)
    try:
        return await _probe_once(urls, settings.NET_CHECK_TIMEOUT_MS / 1000)
    except httpx.HTTPError as e:
        logger.debug(f"[Connectivity] Probe falhou: {type(e).__name__}: {e}")
        return False


async def wait_for_connectivity(label: str = "", urls: Optional[Iterable[str]] = None) -> None:
    """Bloqueia (sem travar o loop) até a rede voltar, com backoff exponencial limitado."""
    delay = settings.NET_RETRY_BASE_MS / 1000
    max_delay = settings.NET_RETRY_MAX_MS / 1000
    jitter = settings.NET_JITTER_MS / 1000

    while not await check_connectivity(urls):
        suffix = f" ({label})" if label else ""
        logger.warning(f"📡 Rede offline{suffix}. Aguardando {delay:.1f}s para tentar novamente...")
        await asyncio.sleep(delay + random.uniform(0, jitter))
        delay = min(delay * 2, max_delay)

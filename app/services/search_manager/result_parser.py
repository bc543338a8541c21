"""
Parser das respostas do DuckDuckGo.

Tudo que depende do formato atual das páginas do DuckDuckGo fica aqui, para
que o resto do cliente não quebre quando a página mudar. Resposta
malformada vira lista vazia / resposta nula, nunca erro.
"""

import json
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urljoin, urlparse

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

DDG_BASE_URL = "https://duckduckgo.com"

SearchHit = Dict[str, str]

_INSTANT_TEXT_FIELDS = ("AbstractText", "Abstract", "Text", "Description", "Heading")


def _is_duckduckgo_host(hostname: Optional[str]) -> bool:
    if not hostname:
        return False
    hostname = hostname.lower()
    return hostname == "duckduckgo.com" or hostname.endswith(".duckduckgo.com")


def resolve_result_url(raw_url: Optional[str]) -> Optional[str]:
    """
    Resolve o link de um resultado.

    Links do redirecionador (`/l/?uddg=<url codificada>`) viram a URL de
    destino decodificada; links relativos são resolvidos contra o domínio do
    DuckDuckGo; URLs absolutas comuns passam sem alteração.
    """
    if not raw_url:
        return raw_url

    try:
        parsed = urlparse(raw_url)
        is_absolute = bool(parsed.scheme and parsed.netloc)
        absolute = raw_url if is_absolute else urljoin(DDG_BASE_URL, raw_url)
        if not is_absolute:
            parsed = urlparse(absolute)
    except ValueError:
        return raw_url

    if _is_duckduckgo_host(parsed.hostname):
        target = parse_qs(parsed.query).get("uddg")
        if target and target[0]:
            return target[0]

    return absolute


def _clean_text(text: str) -> str:
    return " ".join(text.split())


def parse_search_results(html: Optional[str], limit: int = 5) -> List[SearchHit]:
    """
    Extrai resultados `{title, url, snippet}` da página HTML de resultados.

    Args:
        html: Documento retornado por duckduckgo.com/html/
        limit: Máximo de resultados

    Returns:
        Lista ordenada com no máximo `limit` resultados
    """
    if not html or limit <= 0:
        return []

    try:
        soup = BeautifulSoup(html, "html.parser")
        results: List[SearchHit] = []

        for block in soup.select("div.results div.result"):
            if len(results) >= limit:
                break

            link = block.select_one("a.result__a")
            if link is None:
                continue

            url = resolve_result_url(link.get("href"))
            if not url:
                continue

            snippet = block.select_one(".result__snippet")
            results.append({
                "title": _clean_text(link.get_text()),
                "url": url,
                "snippet": _clean_text(snippet.get_text()) if snippet is not None else "",
            })

        return results
    except Exception as e:
        logger.warning(f"🦆 DuckDuckGo: HTML de resultados não pôde ser lido: {type(e).__name__}: {e}")
        return []


def parse_instant_answer(body: Optional[str]) -> Dict[str, Any]:
    """Decodifica o JSON do instant answer; corpo inválido vira {}."""
    if not body:
        return {}
    try:
        data = json.loads(body)
    except ValueError:
        logger.warning("🦆 DuckDuckGo: instant answer com JSON inválido, tratando como vazio")
        return {}
    return data if isinstance(data, dict) else {}


def instant_answer_url(payload: Optional[Dict[str, Any]]) -> Optional[str]:
    """URL oficial sugerida pelo instant answer (AbstractURL ou primeiro resultado)."""
    if not payload:
        return None
    abstract_url = payload.get("AbstractURL")
    if isinstance(abstract_url, str) and abstract_url:
        return abstract_url
    results = payload.get("Results")
    if isinstance(results, list) and results and isinstance(results[0], dict):
        first_url = results[0].get("FirstURL")
        if isinstance(first_url, str) and first_url:
            return first_url
    return None


def instant_answer_text(payload: Optional[Dict[str, Any]]) -> str:
    """Primeiro texto descritivo não vazio do instant answer."""
    if not payload:
        return ""
    for field_name in _INSTANT_TEXT_FIELDS:
        value = payload.get(field_name)
        if isinstance(value, str) and value.strip():
            return value
    return ""

"""
Endpoints de busca v2 - DuckDuckGo (web search e instant answer).

As requisições passam pelo cliente do processo, que serializa o acesso ao
DuckDuckGo; uma busca pode demorar vários segundos se a fila estiver cheia
ou em cooldown.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException
from app.schemas.v2.search import (
    SearchRequest,
    SearchResponse,
    InstantAnswerRequest,
    InstantAnswerResponse,
)
from app.services.search_manager import (
    DuckDuckGoClient,
    SearchServiceError,
    get_duckduckgo_client,
    normalize_query,
    instant_answer_text,
    instant_answer_url,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _service_error(e: SearchServiceError) -> HTTPException:
    status_code = 503 if e.is_connectivity else 502
    return HTTPException(status_code=status_code, detail=str(e))


@router.post("/search", response_model=SearchResponse)
async def buscar_web(
    request: SearchRequest,
    client: DuckDuckGoClient = Depends(get_duckduckgo_client)
) -> SearchResponse:
    """
    Busca resultados na web via DuckDuckGo (com cache).

    Raises:
        HTTPException: 502 se o DuckDuckGo falhar, 503 se não houver rede
    """
    logger.info(f"📥 Busca recebida: '{request.query[:80]}' (limit={request.limit})")
    try:
        results = await client.search(request.query, request.limit)
    except SearchServiceError as e:
        logger.error(f"❌ Busca falhou: {e}")
        raise _service_error(e)

    return SearchResponse(
        query=request.query,
        normalized_query=normalize_query(request.query),
        results=results
    )


@router.post("/instant_answer", response_model=InstantAnswerResponse)
async def buscar_instant_answer(
    request: InstantAnswerRequest,
    client: DuckDuckGoClient = Depends(get_duckduckgo_client)
) -> InstantAnswerResponse:
    """
    Consulta o instant answer do DuckDuckGo (sem cache).

    Raises:
        HTTPException: 502 se o DuckDuckGo falhar, 503 se não houver rede
    """
    logger.info(f"📥 Instant answer recebido: '{request.query[:80]}'")
    try:
        payload = await client.instant_answer(request.query)
    except SearchServiceError as e:
        logger.error(f"❌ Instant answer falhou: {e}")
        raise _service_error(e)

    return InstantAnswerResponse(
        query=request.query,
        normalized_query=normalize_query(request.query),
        url=instant_answer_url(payload),
        text=instant_answer_text(payload),
        raw=payload
    )


@router.get("/search/status")
async def status_busca(client: DuckDuckGoClient = Depends(get_duckduckgo_client)) -> dict:
    """Retorna fila, cooldown, cache e métricas do cliente DuckDuckGo."""
    return client.get_status()

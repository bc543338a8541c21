"""
Schemas Pydantic para endpoints de busca v2 (DuckDuckGo).
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict


class SearchRequest(BaseModel):
    """
    Request schema para busca na web.

    Campos:
        query: Texto livre da busca - obrigatório
        limit: Máximo de resultados (1 a 30)
    """
    query: str = Field(..., description="Texto livre da busca", min_length=1, max_length=500)
    limit: int = Field(5, description="Máximo de resultados", ge=1, le=30)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "query": "Acme Robotics careers",
                "limit": 5
            }
        }
    )


class SearchHitSchema(BaseModel):
    """Um resultado de busca."""
    title: str = Field(..., description="Título do resultado")
    url: str = Field(..., description="URL de destino (já sem redirecionador)")
    snippet: str = Field("", description="Trecho exibido na página de resultados")


class SearchResponse(BaseModel):
    """
    Response schema para busca na web.

    Campos:
        query: Query original
        normalized_query: Query após normalização (chave do cache)
        results: Resultados ordenados
    """
    query: str = Field(..., description="Query original")
    normalized_query: str = Field(..., description="Query normalizada")
    results: List[SearchHitSchema] = Field(default_factory=list, description="Resultados ordenados")


class InstantAnswerRequest(BaseModel):
    """Request schema para instant answer."""
    query: str = Field(..., description="Texto livre (ex: nome da empresa)", min_length=1, max_length=500)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "query": "Acme Robotics"
            }
        }
    )


class InstantAnswerResponse(BaseModel):
    """
    Response schema para instant answer.

    Campos:
        url: AbstractURL ou primeiro resultado, se houver
        text: Primeiro texto descritivo disponível
        raw: JSON retornado pelo DuckDuckGo
    """
    query: str = Field(..., description="Query original")
    normalized_query: str = Field(..., description="Query normalizada")
    url: Optional[str] = Field(None, description="URL sugerida")
    text: str = Field("", description="Texto descritivo")
    raw: Dict[str, Any] = Field(default_factory=dict, description="Resposta bruta")

"""
Router principal para API v2.
Agrupa todos os endpoints v2 em um único router.
"""
from fastapi import APIRouter
from app.api.v2 import search

# Criar router principal
router = APIRouter()

# Endpoint de health check e documentação
@router.get("/")
async def v2_root():
    """Endpoint raiz da API v2 - lista endpoints disponíveis"""
    return {
        "version": "v2",
        "status": "ok",
        "endpoints": {
            "search": "POST /v2/search",
            "instant_answer": "POST /v2/instant_answer",
            "search_status": "GET /v2/search/status"
        },
        "docs": "/docs"
    }

# Incluir todos os routers v2
router.include_router(search.router, tags=["v2-search"])

__all__ = ["router"]

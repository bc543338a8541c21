import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from app.api.v2.router import router as v2_router
from app.core.logging_utils import setup_logging
from app.services.search_manager import close_duckduckgo_client

# Configurar Logging (JSON Structured)
setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Company Research Search Client")


@app.on_event("startup")
async def startup_event():
    """Executado quando a aplicação inicia"""
    logger.info("🚀 Aplicação inicializada com sucesso")


@app.on_event("shutdown")
async def shutdown_event():
    """Fecha o cliente DuckDuckGo e descarrega o cache em disco"""
    await close_duckduckgo_client()
    logger.info("🛑 Aplicação finalizada")

# --- Global Exception Handlers ---

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global Error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error", "error": str(exc)}
    )

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail}
    )


app.include_router(v2_router, prefix="/v2")


@app.get("/")
async def root():
    return {"status": "ok", "service": "Company Research Search Client"}

"""FastAPI application exposing the docquery search service."""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from docquery.config import AppConfig
from docquery.errors import (
    BackendError,
    BackendTimeoutError,
    ConfigurationError,
    DocQueryError,
    Throttled,
    ValidationError,
)
from docquery.service import SearchService

LOGGER = logging.getLogger(__name__)

API_VERSION = "1.0.0"

ERROR_STATUS = (
    (ValidationError, 400, "Invalid query"),
    (Throttled, 429, "Rate limit exceeded"),
    (ConfigurationError, 503, "Service unavailable"),
    (BackendTimeoutError, 504, "Request timeout"),
    (BackendError, 502, "Search failed"),
)


class SearchPayload(BaseModel):
    query: Any = None


def _client_id(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _service(request: Request) -> SearchService:
    return request.app.state.service


def error_response(exc: DocQueryError) -> JSONResponse:
    status_code, title = 500, "Search failed"
    for error_type, code, label in ERROR_STATUS:
        if isinstance(exc, error_type):
            status_code, title = code, label
            break

    body: Dict[str, Any] = {"error": title, "message": str(exc)}
    headers: Dict[str, str] = {}
    if isinstance(exc, Throttled):
        body["retryAfter"] = exc.retry_after
        headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


router = APIRouter(prefix="/api")


@router.post("/search")
async def search_documents(payload: SearchPayload, request: Request) -> Dict[str, Any]:
    response = await _service(request).search(payload.query, _client_id(request))
    return response.to_dict()


@router.post("/ingest")
async def ingest_documents(request: Request) -> Dict[str, Any]:
    service = _service(request)
    LOGGER.info("[Ingest] Starting document ingestion")
    stats = await service.ingest()
    return {
        "success": True,
        "message": f"Ingested {stats.success} documents",
        "stats": stats.to_dict(),
        "documentsPath": str(service.config.documents_path),
    }


@router.get("/documents")
async def list_documents(request: Request) -> Dict[str, Any]:
    documents = await _service(request).list_documents()
    return {"success": True, "stats": {"total": len(documents)}, "documents": documents}


@router.get("/health")
async def health(request: Request) -> Dict[str, Any]:
    return await _service(request).health_snapshot()


@router.post("/index/rebuild")
async def rebuild_index(request: Request) -> Dict[str, Any]:
    result = await _service(request).rebuild_index()
    return {
        "success": True,
        "message": f"Index rebuilt with {result['count']} documents",
        **result,
    }


def create_app(service: SearchService | None = None) -> FastAPI:
    if service is None:
        service = SearchService.from_config(AppConfig.from_env())

    application = FastAPI(title="docquery", version=API_VERSION)
    application.state.service = service
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    application.include_router(router)

    @application.exception_handler(DocQueryError)
    async def handle_docquery_error(request: Request, exc: DocQueryError) -> JSONResponse:
        LOGGER.error("[%s] %s: %s", request.url.path, type(exc).__name__, exc)
        return error_response(exc)

    @application.on_event("startup")
    async def startup_event() -> None:
        logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
        if not service.llm_configured:
            LOGGER.warning("LLM API key not configured; searches will fail until it is set")

    @application.on_event("shutdown")
    async def shutdown_event() -> None:
        service.close()

    @application.get("/")
    async def root() -> Dict[str, Any]:
        return {
            "name": "docquery",
            "version": API_VERSION,
            "endpoints": {
                "search": "POST /api/search",
                "ingest": "POST /api/ingest",
                "documents": "GET /api/documents",
                "health": "GET /api/health",
                "rebuild": "POST /api/index/rebuild",
            },
        }

    return application


app = create_app()

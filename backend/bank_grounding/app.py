"""FastAPI application setup for Bank Grounding."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bank_grounding.api.dependencies import (
    get_app_settings,
    get_database,
    get_embedding_model,
    get_pipeline,
    get_search_service,
    get_vector_index,
)
from bank_grounding.api.routes_admin import router as admin_router
from bank_grounding.api.routes_documents import router as documents_router
from bank_grounding.api.routes_search import router as search_router
from bank_grounding.core.logging import configure_logging
from bank_grounding.core.metrics import INDEX_SIZE

configure_logging()

app = FastAPI(
    title="Bank Grounding",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://127.0.0.1:3000",
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(documents_router, prefix="/documents", tags=["documents"])
app.include_router(search_router, prefix="", tags=["search"])
app.include_router(admin_router, prefix="", tags=["admin"])


@app.on_event("startup")
async def startup() -> None:
    """Warm up core singletons on startup."""
    get_app_settings()
    get_database()
    get_embedding_model()
    index = get_vector_index()
    get_pipeline()
    get_search_service()
    INDEX_SIZE.set(index.size)


@app.get("/health", tags=["admin"])
def health() -> dict[str, bool]:
    """Simple liveness check."""
    return {"ok": True}

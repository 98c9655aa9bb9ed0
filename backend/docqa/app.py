"""FastAPI application setup for docqa."""

from __future__ import annotations

import threading
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from docqa.api.dependencies import get_app_settings, get_crawler, get_runtime
from docqa.api.routes_admin import router as admin_router
from docqa.api.routes_ingest import crawl_and_ingest
from docqa.api.routes_ingest import router as ingest_router
from docqa.api.routes_query import router as query_router
from docqa.core.logging import configure_logging, get_logger
from docqa.core.metrics import REQUEST_COUNT, REQUEST_LATENCY

configure_logging()
logger = get_logger(__name__)

app = FastAPI(
    title="docqa",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=['*'],
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(query_router, prefix="", tags=["query"])
app.include_router(ingest_router, prefix="", tags=["ingest"])
app.include_router(admin_router, prefix="", tags=["admin"])


@app.middleware("http")
async def record_metrics(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    REQUEST_LATENCY.labels(endpoint=endpoint, method=request.method).observe(time.perf_counter() - started)
    REQUEST_COUNT.labels(endpoint=endpoint, method=request.method, status=str(response.status_code)).inc()
    return response


@app.on_event("startup")
async def startup() -> None:
    """Start runtime initialization; the embedding model loads in the background."""
    settings = get_app_settings()
    runtime = get_runtime()
    if settings.crawl_on_startup and settings.crawl_patterns:
        runtime.on_ready(_start_startup_crawl)
    runtime.initialize(background=True)


def _start_startup_crawl() -> None:
    threading.Thread(target=_startup_crawl, name="docqa-startup-crawl", daemon=True).start()


def _startup_crawl() -> None:
    settings = get_app_settings()
    logger.info("Beginning knowledge ingestion from %s crawl patterns", len(settings.crawl_patterns))
    try:
        crawl_and_ingest(
            get_runtime(),
            get_crawler(),
            settings.crawl_patterns,
            settings.crawl_max_depth,
            settings.crawl_fallback_urls,
        )
    except Exception:
        logger.exception("Startup crawl failed")
        return
    logger.info("Knowledge ingestion complete")


@app.get("/health", tags=["admin"])
def health() -> dict[str, bool]:
    """Simple liveness check."""
    return {"ok": True}

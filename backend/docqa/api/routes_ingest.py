"""Knowledge and crawl API routes."""

from __future__ import annotations

from typing import Iterable, Mapping, Sequence

from fastapi import APIRouter, Depends, HTTPException

from docqa.api.dependencies import get_app_settings, get_crawler, get_runtime
from docqa.core.config import Settings
from docqa.core.errors import RuntimeNotReady
from docqa.core.logging import get_logger
from docqa.crawl.crawler import WebCrawler, format_knowledge
from docqa.ingest.types import IngestReport
from docqa.models.dto import CrawlRequest, CrawlResponse, KnowledgeRequest, KnowledgeResponse
from docqa.models.entities import CrawledPage
from docqa.retrieval.runtime import KnowledgeRuntime

logger = get_logger(__name__)

router = APIRouter()


@router.post("/knowledge", response_model=KnowledgeResponse, summary="Ingest raw text or local files")
def add_knowledge(
    request: KnowledgeRequest,
    runtime: KnowledgeRuntime = Depends(get_runtime),
) -> KnowledgeResponse:
    try:
        report = runtime.add_knowledge(request.items)
    except RuntimeNotReady as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return _to_response(report)


@router.post("/crawl", response_model=CrawlResponse, summary="Crawl documentation and ingest the pages")
def crawl(
    request: CrawlRequest,
    runtime: KnowledgeRuntime = Depends(get_runtime),
    crawler: WebCrawler = Depends(get_crawler),
    settings: Settings = Depends(get_app_settings),
) -> CrawlResponse:
    patterns = request.patterns or settings.crawl_patterns
    if not patterns:
        raise HTTPException(status_code=400, detail="No crawl patterns given or configured")
    if not runtime.is_ready:
        raise HTTPException(status_code=503, detail=f"Runtime is {runtime.state.value}")
    max_depth = settings.crawl_max_depth if request.max_depth is None else request.max_depth
    pages, report = crawl_and_ingest(runtime, crawler, patterns, max_depth, settings.crawl_fallback_urls)
    return CrawlResponse(
        pages=len(pages),
        urls=[page.url for page in pages],
        knowledge=_to_response(report) if report is not None else None,
    )


def crawl_and_ingest(
    runtime: KnowledgeRuntime,
    crawler: WebCrawler,
    patterns: Sequence[str],
    max_depth: int,
    fallback_urls: Mapping[str, Iterable[str]] | None = None,
) -> tuple[list[CrawledPage], IngestReport | None]:
    """Crawl every pattern and store the pages as knowledge items."""
    pages = crawler.crawl_patterns(patterns, max_depth=max_depth, fallback_urls=fallback_urls)
    logger.info("Crawled %s pages from %s patterns", len(pages), len(patterns))
    report = runtime.add_knowledge(format_knowledge(pages))
    return pages, report


def _to_response(report: IngestReport | None) -> KnowledgeResponse:
    if report is None:
        return KnowledgeResponse(succeeded=0, failed=[], documents=0, chunks=0)
    return KnowledgeResponse(**report.to_dict())


__all__ = ["router", "crawl_and_ingest"]

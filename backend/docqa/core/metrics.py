"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

REQUEST_COUNT = Counter(
    "docqa_requests_total",
    "Total HTTP requests",
    labelnames=("endpoint", "method", "status"),
    registry=REGISTRY,
)

REQUEST_LATENCY = Histogram(
    "docqa_request_latency_seconds",
    "Latency of HTTP requests",
    labelnames=("endpoint", "method"),
    registry=REGISTRY,
)

INGEST_DURATION = Histogram(
    "docqa_ingest_duration_seconds",
    "Ingest pipeline duration",
    registry=REGISTRY,
)

DOCUMENT_COUNT = Gauge(
    "docqa_documents",
    "Number of documents stored in the vector store",
    registry=REGISTRY,
)

CRAWL_PAGES = Counter(
    "docqa_crawl_pages_total",
    "Pages visited by the crawler",
    labelnames=("status",),
    registry=REGISTRY,
)

GENERATION_ATTEMPTS = Counter(
    "docqa_generation_attempts_total",
    "Generation provider calls",
    labelnames=("outcome",),
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "INGEST_DURATION",
    "DOCUMENT_COUNT",
    "CRAWL_PAGES",
    "GENERATION_ATTEMPTS",
    "metrics_response",
]

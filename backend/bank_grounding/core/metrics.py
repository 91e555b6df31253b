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

SEARCH_COUNT = Counter(
    "bgr_search_total",
    "Vector searches by outcome",
    labelnames=("outcome",),
    registry=REGISTRY,
)

SEARCH_LATENCY = Histogram(
    "bgr_search_latency_seconds",
    "Latency of vector searches",
    registry=REGISTRY,
)

RETRIEVALS_RECORDED = Counter(
    "bgr_chunk_retrievals_total",
    "Chunk retrievals recorded",
    registry=REGISTRY,
)

FEEDBACK_RECORDED = Counter(
    "bgr_chunk_feedback_total",
    "Chunk feedback submissions",
    labelnames=("polarity",),
    registry=REGISTRY,
)

PROCESSING_DURATION = Histogram(
    "bgr_document_processing_seconds",
    "Document processing duration",
    labelnames=("status",),
    registry=REGISTRY,
)

INDEX_SIZE = Gauge(
    "bgr_index_chunks",
    "Number of chunks stored in the grounding store",
    registry=REGISTRY,
)


def feedback_polarity(rating: int) -> str:
    if rating >= 4:
        return "positive"
    if rating <= 2:
        return "negative"
    return "neutral"


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "SEARCH_COUNT",
    "SEARCH_LATENCY",
    "RETRIEVALS_RECORDED",
    "FEEDBACK_RECORDED",
    "PROCESSING_DURATION",
    "INDEX_SIZE",
    "feedback_polarity",
    "metrics_response",
]

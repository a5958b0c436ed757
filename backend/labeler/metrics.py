from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

CHUNKS_COMMITTED = Counter(
    "labeler_chunks_committed_total",
    "Chunks normalized and committed to a labeling session (not yet persisted)",
)

CHUNK_SAVES = Counter(
    "labeler_chunk_saves_total",
    "Bulk chunk inserts by outcome",
    ["outcome"],
)

STORE_LATENCY = Histogram(
    "labeler_store_latency_seconds",
    "Duration of calls to the relational store",
    ["operation"],
)


def metrics_endpoint(request=None):
    """FastAPI route handler for /metrics (scraped by Prometheus)."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

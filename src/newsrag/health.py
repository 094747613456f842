"""Service health report for the store, corpus and embedding provider."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from newsrag.rag.embeddings import EmbeddingProvider
from newsrag.rag.vector_store import VectorStore
from newsrag.store.client import KeyValueBackend


def check_health(
    backend: KeyValueBackend,
    store: VectorStore,
    embedder: EmbeddingProvider,
) -> dict[str, Any]:
    """Return ``{status, timestamp, services, corpus}``; never raises.

    Degraded services ("fallback", "empty", "partial") still count as
    healthy; only an "error" entry marks the report degraded. "partial" means
    the corpus loaded but some records were skipped as malformed.
    """
    services: dict[str, str] = {}
    services["store"] = backend.status()

    corpus: dict[str, int] = {"loaded": 0, "total": 0, "skipped": 0}
    try:
        report = store.load()
    except Exception:
        services["vector_store"] = "error"
    else:
        corpus = {"loaded": report.loaded, "total": report.total, "skipped": len(report.skipped)}
        if report.loaded == 0:
            services["vector_store"] = "empty"
        else:
            services["vector_store"] = "loaded" if report.ok else "partial"

    services["embeddings"] = embedder.mode

    status = "degraded" if "error" in services.values() else "healthy"
    return {
        "status": status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": services,
        "corpus": corpus,
    }

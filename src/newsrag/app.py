"""Composition root: builds every component from one NewsragConfig.

The backend (and so the Redis handles and their disabled state) is created
here once and passed by reference to the cache and session layers.
"""

from __future__ import annotations

from dataclasses import dataclass

from newsrag.config import NewsragConfig, load_config
from newsrag.rag.embeddings import EmbeddingProvider
from newsrag.rag.pipeline import ChatPipeline, Responder
from newsrag.rag.vector_store import VectorStore
from newsrag.store.cache import Cache
from newsrag.store.client import ClientFactory, KeyValueBackend
from newsrag.store.sessions import SessionStore


@dataclass
class NewsragApp:
    config: NewsragConfig
    embedder: EmbeddingProvider
    store: VectorStore
    backend: KeyValueBackend
    cache: Cache
    sessions: SessionStore
    pipeline: ChatPipeline

    def close(self) -> None:
        self.backend.close()


def build_app(
    config: NewsragConfig | None = None,
    *,
    client_factory: ClientFactory | None = None,
    responder: Responder | None = None,
) -> NewsragApp:
    """Wire all components. Loads config from disk/env when *config* is None."""
    cfg = config if config is not None else load_config()

    embedder = EmbeddingProvider(cfg.embedding)
    store = VectorStore(cfg.corpus.path, embedder, cfg.retrieval)
    backend = KeyValueBackend(cfg.store, client_factory)
    cache = Cache(backend, default_ttl=cfg.cache.ttl)
    sessions = SessionStore(backend, ttl=cfg.session.ttl, max_messages=cfg.session.max_messages)
    pipeline = ChatPipeline(
        store,
        cache,
        sessions,
        responder=responder,
        top_k=cfg.retrieval.top_k,
        cache_ttl=cfg.cache.ttl,
    )
    return NewsragApp(
        config=cfg,
        embedder=embedder,
        store=store,
        backend=backend,
        cache=cache,
        sessions=sessions,
        pipeline=pipeline,
    )

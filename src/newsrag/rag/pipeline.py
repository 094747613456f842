"""Chat orchestration: cache → vector store → cache write → session log.

The responder (the generative step) is injected; prompt construction and
model calls live outside this package. ``extractive_response`` is the
default and only quotes the retrieved context.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from newsrag.models import SessionMessage
from newsrag.rag.vector_store import VectorStore
from newsrag.store.cache import Cache, search_key
from newsrag.store.sessions import SessionStore

logger = logging.getLogger(__name__)

Responder = Callable[[str, str, list[SessionMessage]], str]

_PREVIEW_CHARS = 500
_MAX_LISTED_SOURCES = 3


@dataclass
class ChatReply:
    response: str
    sources: list[str] = field(default_factory=list)
    session_id: str = ""
    cached: bool = False


def extractive_response(
    message: str,
    context: str,
    summary: str = "",
    sources: list[str] | None = None,
) -> str:
    """Answer by quoting the retrieved context, without a generative model."""
    preview = context[:_PREVIEW_CHARS] if context else "No relevant context found."
    parts = [f'Based on recent news articles, here is what I found regarding "{message}":']
    if summary:
        parts.append(summary)
    ellipsis = "..." if len(context) > _PREVIEW_CHARS else ""
    parts.append(f"Key information:\n{preview}{ellipsis}")
    if sources:
        parts.append("Sources: " + ", ".join(sources[:_MAX_LISTED_SOURCES]))
    return "\n\n".join(parts)


class ChatPipeline:
    """Run one chat turn against the shared store, cache and session log.

    Args:
        store: Vector store used on cache misses.
        cache: Search-result cache.
        sessions: Session log store.
        responder: ``(message, context, history) -> str``. When omitted (or
            when it raises) the extractive response is used.
        top_k: Chunks retrieved per query.
        cache_ttl: Seconds a cached search result lives.
    """

    def __init__(
        self,
        store: VectorStore,
        cache: Cache,
        sessions: SessionStore,
        responder: Responder | None = None,
        top_k: int = 5,
        cache_ttl: int = 300,
    ) -> None:
        self._store = store
        self._cache = cache
        self._sessions = sessions
        self._responder = responder
        self._top_k = top_k
        self._cache_ttl = cache_ttl

    def retrieve(self, message: str) -> tuple[str, list[str], str, bool]:
        """Return ``(context, sources, summary, cached)`` for *message*."""
        key = search_key(message)
        cached = self._cache.get(key)
        if isinstance(cached, dict) and "context" in cached:
            logger.info("Using cached search results")
            return str(cached["context"]), list(cached.get("sources") or []), "", True

        rag = self._store.build_context(message, self._top_k)
        self._cache.set(key, rag.to_cache(), self._cache_ttl)
        return rag.context, rag.sources, rag.summary, False

    def handle(self, message: str, session_id: str) -> ChatReply:
        """Answer *message* and record both sides of the exchange in the session log.

        Raises:
            ValueError: If *message* or *session_id* is empty.
        """
        if not message or not session_id:
            raise ValueError("message and session_id are required")

        logger.info("Chat request for session %s: %r", session_id, message[:100])
        context, sources, summary, cached = self.retrieve(message)
        history = self._sessions.read(session_id)

        response = None
        if self._responder is not None:
            try:
                response = self._responder(message, context, history)
            except Exception as exc:
                logger.error("Responder failed, using extractive response: %s", exc)
        if not response:
            response = extractive_response(message, context, summary, sources)

        self._sessions.append(session_id, SessionMessage.create("user", message, session_id))
        self._sessions.append(
            session_id,
            SessionMessage.create("assistant", response, session_id, sources=sources),
        )
        return ChatReply(response=response, sources=sources, session_id=session_id, cached=cached)

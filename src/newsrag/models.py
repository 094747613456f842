"""Domain models for newsrag.

Records that cross a serialisation boundary (corpus chunks, session messages)
are pydantic models so each record validates on its own; in-process value
types are dataclasses.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ChunkMetadata(BaseModel):
    """Article metadata attached to every corpus chunk."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    title: str
    source: str
    link: str = ""
    pub_date: str = Field(alias="pubDate")
    chunk_index: int = Field(default=0, alias="chunkIndex")


class Chunk(BaseModel):
    """An embedded slice of a news article, loaded once from the corpus file."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    text: str
    embedding: list[float]
    metadata: ChunkMetadata

    @property
    def article_key(self) -> tuple[str, str]:
        return (self.metadata.source, self.metadata.title)


Role = Literal["user", "assistant"]


class SessionMessage(BaseModel):
    """One entry of a session's conversation log."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    content: str
    role: Role
    timestamp: str
    session_id: str = Field(alias="sessionId")
    sources: list[str] | None = None

    @classmethod
    def create(
        cls,
        role: Role,
        content: str,
        session_id: str,
        sources: list[str] | None = None,
    ) -> SessionMessage:
        """Build a message stamped with the current time (``msg_<ms>_<role>`` id)."""
        now = datetime.now(timezone.utc)
        return cls(
            id=f"msg_{int(time.time() * 1000)}_{role}",
            content=content,
            role=role,
            timestamp=now.isoformat().replace("+00:00", "Z"),
            session_id=session_id,
            sources=sources,
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class SearchResult:
    """A chunk scored against one query.

    Attributes:
        chunk: The matched corpus chunk.
        similarity: Cosine similarity between query and chunk embeddings, [-1, 1].
        relevance: Blended ranking score (similarity, recency, title overlap), [0, 1].
    """

    chunk: Chunk
    similarity: float
    relevance: float


@dataclass
class RAGContext:
    """Context block assembled for one query."""

    context: str
    sources: list[str] = field(default_factory=list)
    chunks: list[SearchResult] = field(default_factory=list)
    summary: str = ""

    def to_cache(self) -> dict:
        """The JSON-safe subset stored in the search cache."""
        return {"context": self.context, "sources": list(self.sources)}


@dataclass
class LoadReport:
    """Outcome of loading the corpus: loaded N of M, with per-record skip reasons."""

    loaded: int = 0
    total: int = 0
    skipped: list[tuple[int, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.skipped

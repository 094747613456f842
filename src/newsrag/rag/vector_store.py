"""In-memory vector store over the embedded news corpus.

The corpus is a JSON array of chunk records, loaded once per process.
Search is a brute-force cosine scan followed by re-ranking:

  relevance = 0.7 * similarity + 0.2 * recency + 0.1 * title_overlap
  recency   = max(0, 1 - days_since_publish / 30)

Results with similarity <= min_similarity (0.1) are dropped before the top k
are taken. Nothing here raises on bad data: unreadable corpora load empty,
bad records are skipped, and degenerate vectors score 0.
"""

from __future__ import annotations

import json
import logging
import math
import threading
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from pathlib import Path

import numpy as np
from dateutil import parser as date_parser
from pydantic import ValidationError

from newsrag.config import RetrievalCfg
from newsrag.models import Chunk, LoadReport, RAGContext, SearchResult
from newsrag.rag.embeddings import EmbeddingProvider

logger = logging.getLogger(__name__)

_SIMILARITY_WEIGHT = 0.7
_RECENCY_WEIGHT = 0.2
_TITLE_WEIGHT = 0.1

ARTICLE_DELIMITER = "\n\n---\n\n"
NO_RESULTS_CONTEXT = "No relevant news articles found for this query."
NO_RESULTS_SUMMARY = "No relevant information available."


# ------------------------------------------------------------------
# Scoring primitives
# ------------------------------------------------------------------


def similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of *a* and *b*; 0.0 for mismatched, empty or zero vectors."""
    if len(a) != len(b) or len(a) == 0:
        if len(a) != len(b):
            logger.debug("Vector dimension mismatch: %d vs %d", len(a), len(b))
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    value = float(np.dot(va, vb)) / (norm_a * norm_b)
    if not math.isfinite(value):
        return 0.0
    return max(-1.0, min(1.0, value))


def parse_pub_date(raw: str) -> datetime | None:
    """Parse an RFC-2822 or ISO-8601 date; naive values are taken as UTC."""
    if not raw:
        return None
    try:
        parsed = date_parser.parse(raw)
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def recency(pub_date: str, now: datetime, window_days: int = 30) -> float:
    published = parse_pub_date(pub_date)
    if published is None:
        return 0.0
    days = (now - published).total_seconds() / 86_400
    return max(0.0, 1 - days / window_days)


def title_overlap(query: str, title: str) -> float:
    """Fraction of query terms that are substrings of some title term."""
    query_terms = query.lower().split()
    if not query_terms:
        return 0.0
    title_terms = title.lower().split()
    matches = [q for q in query_terms if any(q in t for t in title_terms)]
    return len(matches) / len(query_terms)


def relevance(
    chunk: Chunk,
    query: str,
    sim: float,
    now: datetime | None = None,
    window_days: int = 30,
) -> float:
    """Blend similarity, recency and title overlap into a score in [0, 1]."""
    now = now or datetime.now(timezone.utc)
    score = (
        sim * _SIMILARITY_WEIGHT
        + recency(chunk.metadata.pub_date, now, window_days) * _RECENCY_WEIGHT
        + title_overlap(query, chunk.metadata.title) * _TITLE_WEIGHT
    )
    return max(0.0, min(1.0, score))


def _display_date(raw: str) -> str:
    published = parse_pub_date(raw)
    if published is None:
        return raw
    return f"{published.month}/{published.day}/{published.year}"


# ------------------------------------------------------------------
# Store
# ------------------------------------------------------------------


class VectorStore:
    """Brute-force similarity search over a corpus file loaded once.

    Args:
        corpus_path: JSON array of embedded chunk records.
        embedder: Provider used to embed queries.
        config: Ranking configuration (top_k, min_similarity, recency_days).
        clock: Returns "now" for recency scoring (override in tests).
    """

    def __init__(
        self,
        corpus_path: Path | str,
        embedder: EmbeddingProvider,
        config: RetrievalCfg | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.corpus_path = Path(corpus_path)
        self._embedder = embedder
        self._config = config or RetrievalCfg()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()
        self._chunks: tuple[Chunk, ...] | None = None
        self._report: LoadReport | None = None
        self._missing_logged = False

    # ---- loading ----------------------------------------------------

    def load(self) -> LoadReport:
        """Read the corpus into memory once; later calls return the same report."""
        with self._lock:
            if self._report is None:
                chunks, report = self._read_corpus()
                self._chunks = tuple(chunks)
                self._report = report
            return self._report

    @property
    def chunks(self) -> tuple[Chunk, ...]:
        self.load()
        return self._chunks or ()

    def _read_corpus(self) -> tuple[list[Chunk], LoadReport]:
        if not self.corpus_path.exists():
            if not self._missing_logged:
                logger.warning(
                    "No embeddings found at %s. Run the ingestion and embedding setup first.",
                    self.corpus_path,
                )
                self._missing_logged = True
            return [], LoadReport()

        try:
            records = json.loads(self.corpus_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.error("Could not read corpus %s: %s", self.corpus_path, exc)
            return [], LoadReport()

        if not isinstance(records, list):
            logger.error("Corpus %s is not a JSON array; ignoring it", self.corpus_path)
            return [], LoadReport()

        chunks: list[Chunk] = []
        report = LoadReport(total=len(records))
        for index, record in enumerate(records):
            try:
                chunks.append(Chunk.model_validate(record))
            except ValidationError as exc:
                reason = "; ".join(
                    f"{'.'.join(str(p) for p in err['loc']) or '<record>'}: {err['msg']}"
                    for err in exc.errors()
                )
                report.skipped.append((index, reason))
                logger.debug("Skipping corpus record %d: %s", index, reason)

        report.loaded = len(chunks)
        logger.info("Loaded %d of %d embedded chunks", report.loaded, report.total)
        if report.skipped:
            logger.warning(
                "Skipped %d malformed corpus records (first: #%d %s)",
                len(report.skipped),
                report.skipped[0][0],
                report.skipped[0][1],
            )
        return chunks, report

    # ---- scoring ----------------------------------------------------

    def similarity(self, a: Sequence[float], b: Sequence[float]) -> float:
        return similarity(a, b)

    def relevance(
        self, chunk: Chunk, query: str, sim: float, now: datetime | None = None
    ) -> float:
        return relevance(chunk, query, sim, now or self._clock(), self._config.recency_days)

    # ---- search -----------------------------------------------------

    def search(self, query: str, k: int | None = None) -> list[SearchResult]:
        """Return at most *k* results with similarity above the threshold, best first."""
        k = self._config.top_k if k is None else k
        chunks = self.chunks
        if not chunks or k <= 0:
            if not chunks:
                logger.warning("No embedded chunks available")
            return []

        logger.debug("Searching %d chunks for query: %r", len(chunks), query[:50])
        query_embedding = self._embedder.embed(query)
        now = self._clock()

        results = []
        for chunk in chunks:
            sim = similarity(query_embedding, chunk.embedding)
            results.append(
                SearchResult(
                    chunk=chunk,
                    similarity=sim,
                    relevance=relevance(chunk, query, sim, now, self._config.recency_days),
                )
            )

        # sorted() is stable, so equal scores keep corpus order
        ranked = sorted(results, key=lambda r: r.relevance, reverse=True)
        top = [r for r in ranked if r.similarity > self._config.min_similarity][:k]
        logger.info(
            "Found %d relevant chunks with similarities: %s",
            len(top),
            [f"{r.similarity:.3f}" for r in top],
        )
        return top

    def build_context(self, query: str, k: int | None = None) -> RAGContext:
        """Search and render results as one context block grouped by article."""
        results = self.search(query, k)
        if not results:
            return RAGContext(context=NO_RESULTS_CONTEXT, summary=NO_RESULTS_SUMMARY)

        groups: dict[tuple[str, str], list[SearchResult]] = {}
        for result in results:
            groups.setdefault(result.chunk.article_key, []).append(result)

        parts: list[str] = []
        sources: list[str] = []
        for members in groups.values():
            primary = max(members, key=lambda r: r.relevance)
            meta = primary.chunk.metadata
            article_text = " ".join(m.chunk.text for m in members)
            parts.append(
                f"Article: {meta.title}\n"
                f"Source: {meta.source}\n"
                f"Published: {_display_date(meta.pub_date)}\n"
                f"Content: {article_text}\n"
                f"Relevance: {primary.relevance * 100:.1f}%"
            )
            label = f"{meta.source} - {meta.title}"
            if label not in sources:
                sources.append(label)

        avg = sum(r.relevance for r in results) / len(results)
        summary = (
            f"Found {len(results)} relevant passages from {len(groups)} news articles "
            f"with average relevance of {avg * 100:.1f}%."
        )
        return RAGContext(
            context=ARTICLE_DELIMITER.join(parts),
            sources=sources,
            chunks=results,
            summary=summary,
        )

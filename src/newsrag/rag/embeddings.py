"""Embedding provider: LiteLLM embeddings with a deterministic hash fallback.

Every call goes through ``litellm.embedding()`` when an API key is configured.
Any failure (missing key, network error, non-success response, empty or
malformed payload) falls back to a deterministic hash-based vector, so
``embed`` and ``embed_batch`` never raise.

Fallback vectors (dimension ``EmbeddingCfg.dimensions``, 768 by default) and
provider vectors (whatever dimension the provider returns) are not reconciled
here; similarity between mismatched dimensions is defined as 0 downstream.
"""

from __future__ import annotations

import hashlib
import logging
import math
import re
from collections.abc import Sequence
from typing import Any

import litellm
import numpy as np

from newsrag.config import EmbeddingCfg

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True

logger = logging.getLogger(__name__)

_LENGTH_SLOTS = slice(0, 50)
_DIVERSITY_SLOTS = slice(50, 100)

# Leading/trailing whitespace yields empty tokens, which still contribute
# (hash 0); corpus fallback vectors were built with the same split.
_WHITESPACE = re.compile(r"\s+")


class ProviderResponseError(ValueError):
    """The provider answered, but not with one usable vector per input."""


# ------------------------------------------------------------------
# Deterministic fallback
# ------------------------------------------------------------------


def string_hash(text: str) -> int:
    """32-bit rolling string hash (``h * 31 + unit``), absolute value.

    Iterates UTF-16 code units so the result matches the hash used when the
    corpus fallback vectors were produced.
    """
    h = 0
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = ((h << 5) - h + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def deterministic_embedding(text: str, dimensions: int = 768) -> list[float]:
    """Return a unit-length pseudo-embedding derived only from *text*.

    Each whitespace token contributes ``sin(hash + i) * 0.1`` at position
    ``(hash + i + token_index) mod dimensions``; two global blocks encode the
    normalised text length (slots 0-49) and the character diversity
    (slots 50-99). An all-zero vector is returned unchanged.
    """
    vec = np.zeros(dimensions, dtype=np.float64)
    offsets = np.arange(dimensions)

    for token_index, token in enumerate(_WHITESPACE.split(text.lower())):
        h = string_hash(token)
        values = np.sin(h + offsets) * 0.1
        # value i lands at (i + h + token_index) mod dimensions
        vec += np.roll(values, (h + token_index) % dimensions)

    text_length = min(len(text) / 1000, 1.0)
    diversity = len(set(text.lower())) / 26
    vec[_LENGTH_SLOTS] += text_length * 0.2
    vec[_DIVERSITY_SLOTS] += diversity * 0.2

    magnitude = float(np.linalg.norm(vec))
    if magnitude == 0.0:
        return vec.tolist()
    return (vec / magnitude).tolist()


# ------------------------------------------------------------------
# Provider
# ------------------------------------------------------------------


def _digest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _extract_vector(item: Any) -> list[float]:
    raw = item.get("embedding") if isinstance(item, dict) else getattr(item, "embedding", None)
    if not isinstance(raw, (list, tuple)) or not raw:
        raise ProviderResponseError("empty or missing embedding")
    try:
        vector = [float(v) for v in raw]
    except (TypeError, ValueError) as exc:
        raise ProviderResponseError(f"non-numeric embedding value: {exc}") from exc
    if not all(math.isfinite(v) for v in vector):
        raise ProviderResponseError("non-finite embedding value")
    return vector


class EmbeddingProvider:
    """Text → vector conversion with a process-lifetime cache of provider vectors.

    Args:
        config: Embedding configuration. ``config.api_key`` of None means no
            external provider is configured; every call uses the fallback.
    """

    def __init__(self, config: EmbeddingCfg | None = None) -> None:
        self._config = config or EmbeddingCfg()
        self._cache: dict[str, list[float]] = {}

    @property
    def mode(self) -> str:
        """``"provider"`` when an API key is configured, otherwise ``"fallback"``."""
        return "provider" if self._config.api_key else "fallback"

    def fallback(self, text: str) -> list[float]:
        return deterministic_embedding(text, self._config.dimensions)

    def embed(self, text: str) -> list[float]:
        """Embed one text. Never raises."""
        key = _digest(text)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("Using cached embedding")
            return list(cached)

        if not self._config.api_key:
            logger.debug("No embedding API key configured; using deterministic embedding")
            return self.fallback(text)

        try:
            vector = self._call_provider([text])[0]
        except Exception as exc:
            # Provider failure is non-fatal
            logger.warning("Embedding provider failed (%s); using deterministic embedding", exc)
            return self.fallback(text)

        self._cache[key] = vector
        logger.debug("Created embedding with %d dimensions", len(vector))
        return list(vector)

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed *texts* with one provider call.

        All-or-nothing: if the call fails or returns anything other than one
        well-formed vector per input, every text gets a fallback vector.
        """
        texts = list(texts)
        if not texts:
            return []

        if not self._config.api_key:
            logger.debug("Creating %d deterministic embeddings", len(texts))
            return [self.fallback(t) for t in texts]

        try:
            vectors = self._call_provider(texts)
        except Exception as exc:
            logger.warning(
                "Batch embedding of %d texts failed (%s); using deterministic embeddings",
                len(texts),
                exc,
            )
            return [self.fallback(t) for t in texts]

        for text, vector in zip(texts, vectors):
            self._cache[_digest(text)] = vector
        return [list(v) for v in vectors]

    def _call_provider(self, texts: list[str]) -> list[list[float]]:
        """Call litellm.embedding() and validate one vector per input."""
        response = litellm.embedding(
            model=self._config.model,
            input=texts,
            api_key=self._config.api_key,
            num_retries=self._config.num_retries,
            timeout=self._config.timeout,
        )
        data = getattr(response, "data", None)
        if not data or len(data) != len(texts):
            got = len(data) if data else 0
            raise ProviderResponseError(f"expected {len(texts)} embeddings, got {got}")
        return [_extract_vector(item) for item in data]

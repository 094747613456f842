"""Best-effort JSON cache on top of the shared key/value backend.

Reads go through the read handle, writes through the write handle. Nothing
here raises: a disabled backend, a failed call, or an unparsable stored value
all look like a cache miss.

Keys are namespaced by purpose and built from the raw input text. No
normalisation is applied, so "Tesla news" and "tesla  news" are distinct
entries.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any

from newsrag.store.client import KeyValueBackend

logger = logging.getLogger(__name__)

SEARCH_NAMESPACE = "search"


def cache_key(namespace: str, raw: str) -> str:
    """``<namespace>:<base64(raw)>``, deterministic and unnormalised."""
    encoded = base64.b64encode(raw.encode("utf-8")).decode("ascii")
    return f"{namespace}:{encoded}"


def search_key(query: str) -> str:
    return cache_key(SEARCH_NAMESPACE, query)


class Cache:
    """JSON get/set with TTL over a ``KeyValueBackend``.

    Args:
        backend: Shared backend owning the Redis handles.
        default_ttl: Seconds used when ``set`` is called without a ttl.
    """

    def __init__(self, backend: KeyValueBackend, default_ttl: int = 300) -> None:
        self._backend = backend
        self._default_ttl = default_ttl

    def get(self, key: str) -> Any | None:
        """Return the stored value, or None when absent or unavailable."""
        client = self._backend.reader()
        if client is None:
            return None

        try:
            raw = client.get(key)
        except Exception as exc:
            self._backend.report(exc, "cache read")
            return None

        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.debug("Ignoring unparsable cache entry %s", key)
            return None

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value* as JSON. ``ttl=None`` uses the default; ``ttl <= 0`` never expires."""
        client = self._backend.writer()
        if client is None:
            return

        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as exc:
            logger.error("Cannot cache value for %s: %s", key, exc)
            return

        ttl = self._default_ttl if ttl is None else ttl
        try:
            if ttl > 0:
                client.setex(key, ttl, payload)
            else:
                client.set(key, payload)
        except Exception as exc:
            self._backend.report(exc, "cache write")

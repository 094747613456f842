"""Lazily-connected, permanently-disabling Redis handles.

One ``KeyValueBackend`` is built by the application and shared by the cache
and session layers. It owns two handles:

- ``writer()``: read/write credential, verified on first use with a liveness
  probe (``SET healthcheck ok``).
- ``reader()``: read-only credential when configured (falls back to the
  write token), no probe.

Missing configuration, a failed probe, or a rejected credential disables the
whole backend for the rest of the process; both handles then return None and
callers take their degraded path. Failures are mapped to ``StoreErrorKind``
in one place so callers never inspect error text.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Callable
from typing import Union

import redis
from redis import exceptions as redis_errors

from newsrag.config import StoreCfg
from newsrag.store.rest import RestClient, is_rest_url, rest_client

logger = logging.getLogger(__name__)

StoreClient = Union[redis.Redis, RestClient]
ClientFactory = Callable[[str, str], StoreClient]

HEALTHCHECK_KEY = "healthcheck"

# Reply prefixes / HTTP-proxy messages that mean "credentials rejected"
_AUTH_MARKERS = ("WRONGPASS", "NOAUTH", "NOPERM", "UNAUTHORIZED")


class StoreErrorKind(enum.Enum):
    AUTH = "auth"
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    OTHER = "other"


def classify(exc: BaseException) -> StoreErrorKind:
    """Map a store exception onto the closed set of error kinds."""
    if isinstance(
        exc,
        (
            redis_errors.AuthenticationError,
            redis_errors.AuthenticationWrongNumberOfArgsError,
            redis_errors.NoPermissionError,
        ),
    ):
        return StoreErrorKind.AUTH
    if isinstance(exc, redis_errors.ResponseError) or not isinstance(exc, redis_errors.RedisError):
        text = str(exc).upper()
        if any(marker in text for marker in _AUTH_MARKERS):
            return StoreErrorKind.AUTH
    if isinstance(exc, (redis_errors.TimeoutError, TimeoutError)):
        return StoreErrorKind.TIMEOUT
    if isinstance(exc, (redis_errors.ConnectionError, ConnectionError, OSError)):
        return StoreErrorKind.CONNECTION
    return StoreErrorKind.OTHER


def default_factory(socket_timeout: float) -> ClientFactory:
    """Return a factory for the URL's scheme.

    ``http(s)://`` endpoints get the Upstash REST client; anything else is
    handed to redis-py with *socket_timeout*.
    """

    def _build(url: str, token: str) -> StoreClient:
        if is_rest_url(url):
            return rest_client(url, token)
        return redis.Redis.from_url(
            url,
            password=token,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            decode_responses=True,
        )

    return _build


class KeyValueBackend:
    """Shared owner of the read and write Redis handles.

    Args:
        config: Connection settings (url, tokens, timeout, disabled flag).
        client_factory: Builds a client from ``(url, token)``. Defaults to the
            Upstash REST client for http(s) URLs, otherwise redis-py with the
            configured socket timeout.
    """

    def __init__(
        self,
        config: StoreCfg,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._config = config
        self._factory = client_factory or default_factory(config.socket_timeout)
        self._lock = threading.Lock()
        self._writer: StoreClient | None = None
        self._reader: StoreClient | None = None
        self._disabled_reason: str | None = (
            "disabled by configuration" if config.disabled else None
        )

    @property
    def is_disabled(self) -> bool:
        return self._disabled_reason is not None

    @property
    def disabled_reason(self) -> str | None:
        return self._disabled_reason

    # ------------------------------------------------------------------
    # Handles
    # ------------------------------------------------------------------

    def writer(self) -> StoreClient | None:
        """The read/write client, connecting and probing on first use."""
        if self._disabled_reason is not None:
            return None
        if self._writer is not None:
            return self._writer
        with self._lock:
            if self._disabled_reason is None and self._writer is None:
                self._writer = self._connect_writer()
            return self._writer

    def reader(self) -> StoreClient | None:
        """The read-path client (read-only token when configured)."""
        if self._disabled_reason is not None:
            return None
        if self._reader is not None:
            return self._reader
        with self._lock:
            if self._disabled_reason is None and self._reader is None:
                self._reader = self._connect_reader()
            return self._reader

    def _connect_writer(self) -> StoreClient | None:
        url, token = self._config.url, self._config.token
        logger.debug(
            "Store environment check: url=%s token=%s read_only_token=%s",
            bool(url),
            bool(token),
            bool(self._config.read_only_token),
        )
        if not url or not token:
            self._mark_disabled("missing store URL or token for write client")
            return None

        try:
            client = self._factory(url, token)
            client.set(HEALTHCHECK_KEY, "ok")
        except Exception as exc:
            self._mark_disabled(f"connection test failed ({classify(exc).value}): {exc}")
            return None

        logger.info("Store client initialized and connected")
        return client

    def _connect_reader(self) -> StoreClient | None:
        url, token = self._config.url, self._config.read_token
        if not url or not token:
            self._mark_disabled("missing store URL or token for read client")
            return None
        try:
            return self._factory(url, token)
        except Exception as exc:
            self._mark_disabled(f"failed to initialize read client: {exc}")
            return None

    # ------------------------------------------------------------------
    # Failure handling
    # ------------------------------------------------------------------

    def _mark_disabled(self, reason: str) -> None:
        """Disable the backend; only the first transition is logged. Call with the lock held."""
        if self._disabled_reason is not None:
            return
        self._disabled_reason = reason
        self._writer = None
        self._reader = None
        logger.warning("Store disabled for this run: %s", reason)

    def disable(self, reason: str) -> None:
        with self._lock:
            self._mark_disabled(reason)

    def report(self, exc: BaseException, operation: str) -> StoreErrorKind:
        """Classify a failed store call; rejected credentials disable the backend."""
        kind = classify(exc)
        if kind is StoreErrorKind.AUTH:
            self.disable(f"credentials rejected during {operation}")
        else:
            logger.error("Store %s failed (%s): %s", operation, kind.value, exc)
        return kind

    # ------------------------------------------------------------------
    # Status / lifecycle
    # ------------------------------------------------------------------

    def status(self) -> str:
        """``"connected"`` when the write handle is usable, otherwise ``"fallback"``."""
        return "connected" if self.writer() is not None else "fallback"

    def close(self) -> None:
        with self._lock:
            for client in {id(c): c for c in (self._writer, self._reader) if c}.values():
                try:
                    client.close()
                except Exception as exc:
                    logger.debug("Ignoring error while closing store client: %s", exc)
            self._writer = None
            self._reader = None

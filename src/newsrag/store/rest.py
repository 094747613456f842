"""Upstash REST endpoints behind the redis-py command subset newsrag uses.

``KV_REST_API_URL`` usually holds an ``https://`` Upstash REST endpoint with
a bearer token rather than a ``redis://`` URL. ``RestClient`` wraps
``upstash_redis.Redis`` so the cache and session layers can call the same
methods on either kind of handle.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any
from urllib.parse import urlsplit

import upstash_redis

REST_SCHEMES = ("http", "https")


class RestPipeline:
    """A MULTI/EXEC transaction; ``execute()`` sends every queued command at once."""

    def __init__(self, transaction: Any) -> None:
        self._tx = transaction

    def rpush(self, key: str, *values: str) -> RestPipeline:
        self._tx.rpush(key, *values)
        return self

    def expire(self, key: str, seconds: int) -> RestPipeline:
        self._tx.expire(key, seconds)
        return self

    def ltrim(self, key: str, start: int, stop: int) -> RestPipeline:
        self._tx.ltrim(key, start, stop)
        return self

    def execute(self) -> list[Any]:
        return self._tx.exec()


class RestClient:
    """redis-py shaped facade over an ``upstash_redis.Redis`` client."""

    def __init__(self, client: upstash_redis.Redis) -> None:
        self._client = client

    def get(self, key: str) -> str | None:
        return self._client.get(key)

    def set(self, key: str, value: str) -> Any:
        return self._client.set(key, value)

    def setex(self, key: str, seconds: int, value: str) -> Any:
        return self._client.setex(key, seconds, value)

    def delete(self, *keys: str) -> int:
        return self._client.delete(*keys)

    def rpush(self, key: str, *values: str) -> int:
        return self._client.rpush(key, *values)

    def lrange(self, key: str, start: int, stop: int) -> list[str]:
        return self._client.lrange(key, start, stop)

    def expire(self, key: str, seconds: int) -> Any:
        return self._client.expire(key, seconds)

    def ttl(self, key: str) -> int:
        return self._client.ttl(key)

    def pipeline(self, transaction: bool = True) -> RestPipeline:
        return RestPipeline(self._client.multi() if transaction else self._client.pipeline())

    def scan_iter(self, match: str | None = None, count: int | None = None) -> Iterator[str]:
        cursor = 0
        while True:
            cursor, keys = self._client.scan(cursor, match=match, count=count)
            yield from keys
            if int(cursor) == 0:
                return

    def close(self) -> None:
        close = getattr(self._client, "close", None)
        if close is not None:
            close()


def is_rest_url(url: str) -> bool:
    return urlsplit(url).scheme.lower() in REST_SCHEMES


def rest_client(url: str, token: str) -> RestClient:
    return RestClient(upstash_redis.Redis(url=url, token=token))

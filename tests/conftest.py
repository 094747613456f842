"""Shared pytest fixtures."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import fakeredis
import pytest

from newsrag.config import StoreCfg
from newsrag.store.client import KeyValueBackend

FIXED_NOW = datetime(2024, 10, 15, 12, 0, tzinfo=timezone.utc)


def make_record(
    chunk_id: str,
    text: str,
    embedding: list[float],
    title: str = "Untitled",
    source: str = "Wire",
    pub_date: str = "2024-10-15T12:00:00Z",
    chunk_index: int = 0,
) -> dict:
    """A corpus record in the persisted (camelCase) layout."""
    return {
        "id": chunk_id,
        "text": text,
        "embedding": embedding,
        "metadata": {
            "title": title,
            "source": source,
            "link": f"https://news.example/{chunk_id}",
            "pubDate": pub_date,
            "chunkIndex": chunk_index,
        },
    }


def write_corpus(path: Path, records: list) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(records), encoding="utf-8")
    return path


@pytest.fixture
def fake_server():
    return fakeredis.FakeServer()


@pytest.fixture
def client_factory(fake_server):
    """Factory handing out fakeredis clients that share one in-memory server."""
    tokens: list[str] = []

    def _build(url: str, token: str):
        tokens.append(token)
        return fakeredis.FakeRedis(server=fake_server, decode_responses=True)

    _build.tokens = tokens  # type: ignore[attr-defined]
    return _build


@pytest.fixture
def store_cfg() -> StoreCfg:
    return StoreCfg(url="redis://kv.example:6379", token="rw-token", read_only_token="ro-token")


@pytest.fixture
def backend(store_cfg, client_factory) -> KeyValueBackend:
    return KeyValueBackend(store_cfg, client_factory)


@pytest.fixture
def offline_backend() -> KeyValueBackend:
    """A backend with no connection settings — permanently degraded."""
    return KeyValueBackend(StoreCfg())

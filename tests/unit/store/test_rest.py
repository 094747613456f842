"""Tests for Upstash REST endpoint support."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import redis

from newsrag.config import StoreCfg
from newsrag.models import SessionMessage
from newsrag.store.cache import Cache
from newsrag.store.client import KeyValueBackend, default_factory
from newsrag.store.rest import RestClient, is_rest_url
from newsrag.store.sessions import SessionStore, history_key

REST_URL = "https://eager-fox-12345.upstash.io"


@pytest.fixture
def upstash():
    with patch("newsrag.store.rest.upstash_redis.Redis") as cls:
        yield cls


# ------------------------------------------------------------------
# Scheme selection
# ------------------------------------------------------------------


@pytest.mark.parametrize(
    "url, expected",
    [
        (REST_URL, True),
        ("http://localhost:8079", True),
        ("redis://kv.example:6379", False),
        ("rediss://kv.example:6380", False),
    ],
)
def test_is_rest_url(url, expected):
    assert is_rest_url(url) is expected


def test_https_endpoint_builds_rest_client(upstash):
    client = default_factory(5.0)(REST_URL, "AXyzTOKEN")
    assert isinstance(client, RestClient)
    upstash.assert_called_once_with(url=REST_URL, token="AXyzTOKEN")


def test_redis_url_builds_redis_py_client(upstash):
    client = default_factory(5.0)("redis://kv.example:6379", "secret")
    assert isinstance(client, redis.Redis)
    upstash.assert_not_called()


def test_backend_with_rest_endpoint_connects(upstash):
    backend = KeyValueBackend(StoreCfg(url=REST_URL, token="AXyzTOKEN"))
    cache = Cache(backend)
    cache.set("k", {"v": 1}, ttl=60)

    assert not backend.is_disabled
    rest = upstash.return_value
    rest.set.assert_called_once_with("healthcheck", "ok")
    rest.setex.assert_called_once_with("k", 60, '{"v": 1}')


def test_rest_read_path_uses_read_only_token(upstash):
    upstash.return_value.get.return_value = '{"v": 2}'
    backend = KeyValueBackend(StoreCfg(url=REST_URL, token="rw", read_only_token="ro"))
    assert Cache(backend).get("k") == {"v": 2}
    upstash.assert_called_once_with(url=REST_URL, token="ro")


# ------------------------------------------------------------------
# Command adapter
# ------------------------------------------------------------------


def test_session_append_runs_as_one_transaction():
    rest = MagicMock()
    backend = KeyValueBackend(StoreCfg(url=REST_URL, token="t"), lambda url, token: RestClient(rest))
    message = SessionMessage.create("user", "hello", "s1")

    SessionStore(backend).append("s1", message)

    tx = rest.multi.return_value
    key = history_key("s1")
    tx.rpush.assert_called_once_with(key, message.to_json())
    tx.expire.assert_called_once_with(key, 86_400)
    tx.ltrim.assert_called_once_with(key, -50, -1)
    tx.exec.assert_called_once_with()


def test_scan_iter_follows_cursor():
    rest = MagicMock()
    rest.scan.side_effect = [(7, ["session:a:history"]), (0, ["session:b:history"])]
    keys = list(RestClient(rest).scan_iter(match="session:*:history"))

    assert keys == ["session:a:history", "session:b:history"]
    assert rest.scan.call_args_list[1].args == (7,)


def test_rest_auth_error_disables_backend():
    rest = MagicMock()
    rest.get.side_effect = Exception("WRONGPASS invalid or missing auth token")
    backend = KeyValueBackend(StoreCfg(url=REST_URL, token="t"), lambda url, token: RestClient(rest))

    assert Cache(backend).get("k") is None
    assert backend.is_disabled

"""Tests for the shared key/value backend: lazy handles, disabling, error kinds."""

from __future__ import annotations

import logging
import socket
from unittest.mock import MagicMock

import pytest
from redis import exceptions as redis_errors

from newsrag.config import StoreCfg
from newsrag.store.client import KeyValueBackend, StoreErrorKind, classify


# ------------------------------------------------------------------
# classify()
# ------------------------------------------------------------------


@pytest.mark.parametrize(
    "exc, kind",
    [
        (redis_errors.AuthenticationError("invalid password"), StoreErrorKind.AUTH),
        (redis_errors.ResponseError("WRONGPASS invalid username-password pair"), StoreErrorKind.AUTH),
        (redis_errors.ResponseError("NOAUTH Authentication required."), StoreErrorKind.AUTH),
        (redis_errors.NoPermissionError("NOPERM this user has no permissions"), StoreErrorKind.AUTH),
        (RuntimeError("401 Unauthorized"), StoreErrorKind.AUTH),
        (redis_errors.TimeoutError("Timeout reading from socket"), StoreErrorKind.TIMEOUT),
        (socket.timeout("timed out"), StoreErrorKind.TIMEOUT),
        (redis_errors.ConnectionError("Connection refused"), StoreErrorKind.CONNECTION),
        (ConnectionRefusedError(111, "refused"), StoreErrorKind.CONNECTION),
        (redis_errors.ResponseError("WRONGTYPE Operation against a key"), StoreErrorKind.OTHER),
        (ValueError("bad"), StoreErrorKind.OTHER),
    ],
)
def test_classify(exc, kind):
    assert classify(exc) is kind


# ------------------------------------------------------------------
# Lazy initialisation
# ------------------------------------------------------------------


def test_handles_are_not_built_until_used(store_cfg, client_factory):
    KeyValueBackend(store_cfg, client_factory)
    assert client_factory.tokens == []


def test_writer_probes_once_and_is_reused(backend, fake_server, client_factory):
    first = backend.writer()
    second = backend.writer()
    assert first is second
    assert client_factory.tokens == ["rw-token"]
    assert first.get("healthcheck") == "ok"


def test_reader_uses_read_only_token_without_probe(store_cfg):
    factory = MagicMock()
    backend = KeyValueBackend(store_cfg, factory)
    backend.reader()
    factory.assert_called_once_with("redis://kv.example:6379", "ro-token")
    factory.return_value.set.assert_not_called()


def test_reader_falls_back_to_write_token(client_factory):
    backend = KeyValueBackend(StoreCfg(url="redis://kv", token="rw-token"), client_factory)
    backend.reader()
    assert client_factory.tokens == ["rw-token"]


# ------------------------------------------------------------------
# Permanent disabling
# ------------------------------------------------------------------


def test_missing_configuration_disables(offline_backend):
    assert offline_backend.writer() is None
    assert offline_backend.is_disabled
    assert "missing" in offline_backend.disabled_reason
    assert offline_backend.reader() is None


def test_disable_flag_skips_connection(client_factory):
    backend = KeyValueBackend(
        StoreCfg(url="redis://kv", token="t", disabled=True), client_factory
    )
    assert backend.writer() is None
    assert backend.reader() is None
    assert client_factory.tokens == []


def test_failed_probe_disables_for_the_process(store_cfg):
    factory = MagicMock()
    factory.return_value.set.side_effect = redis_errors.ConnectionError("refused")
    backend = KeyValueBackend(store_cfg, factory)

    assert backend.writer() is None
    assert backend.reader() is None
    assert backend.writer() is None
    assert factory.call_count == 1
    assert "connection test failed" in backend.disabled_reason


def test_factory_exception_disables(store_cfg):
    factory = MagicMock(side_effect=ValueError("bad url"))
    backend = KeyValueBackend(store_cfg, factory)
    assert backend.writer() is None
    assert backend.is_disabled


def test_auth_report_disables_both_handles(backend):
    assert backend.writer() is not None
    assert backend.reader() is not None

    kind = backend.report(redis_errors.AuthenticationError("WRONGPASS"), "cache write")

    assert kind is StoreErrorKind.AUTH
    assert backend.writer() is None
    assert backend.reader() is None
    assert "credentials rejected" in backend.disabled_reason


def test_auth_disable_logged_exactly_once(backend, caplog):
    backend.writer()
    with caplog.at_level(logging.WARNING, logger="newsrag.store.client"):
        backend.report(redis_errors.AuthenticationError("WRONGPASS"), "cache read")
        backend.report(redis_errors.ResponseError("WRONGPASS again"), "cache write")
    disabled = [r for r in caplog.records if "disabled" in r.getMessage()]
    assert len(disabled) == 1


def test_transient_error_does_not_disable(backend):
    backend.writer()
    kind = backend.report(redis_errors.TimeoutError("slow"), "cache read")
    assert kind is StoreErrorKind.TIMEOUT
    assert not backend.is_disabled
    assert backend.writer() is not None


# ------------------------------------------------------------------
# Status / close
# ------------------------------------------------------------------


def test_status(backend, offline_backend):
    assert backend.status() == "connected"
    assert offline_backend.status() == "fallback"


def test_close_releases_handles(backend, client_factory):
    backend.writer()
    backend.close()
    backend.writer()
    assert client_factory.tokens == ["rw-token", "rw-token"]

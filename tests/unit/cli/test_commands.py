"""Tests for the newsrag CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from conftest import make_record, write_corpus
from newsrag.app import build_app
from newsrag.cli.main import app
from newsrag.config import CorpusCfg, NewsragConfig, RetrievalCfg, StoreCfg
from newsrag.rag.embeddings import deterministic_embedding

runner = CliRunner()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _corpus(tmp_path: Path) -> Path:
    return write_corpus(
        tmp_path / "chunks.json",
        [
            make_record(
                "c1",
                "World leaders agreed on a climate deal.",
                deterministic_embedding("climate deal"),
                title="Climate deal",
                source="Reuters",
            ),
        ],
    )


@pytest.fixture
def cli_app(tmp_path, monkeypatch, client_factory, store_cfg):
    """Point the CLI at a fakeredis-backed app over a one-article corpus."""
    cfg = NewsragConfig(corpus=CorpusCfg(path=str(_corpus(tmp_path))), store=store_cfg)
    monkeypatch.setattr(
        "newsrag.cli.common.load_app",
        lambda: build_app(cfg, client_factory=client_factory),
    )
    return cfg


@pytest.fixture
def offline_cli_app(tmp_path, monkeypatch):
    cfg = NewsragConfig(corpus=CorpusCfg(path=str(_corpus(tmp_path))), store=StoreCfg())
    monkeypatch.setattr("newsrag.cli.common.load_app", lambda: build_app(cfg))
    return cfg


# ---------------------------------------------------------------------------
# newsrag --version / version
# ---------------------------------------------------------------------------


def test_version_flag_exits_zero() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "newsrag" in result.output


def test_version_command() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "newsrag" in result.output


# ---------------------------------------------------------------------------
# newsrag search
# ---------------------------------------------------------------------------


def test_search_prints_context_and_sources(cli_app) -> None:
    result = runner.invoke(app, ["search", "climate deal"])
    assert result.exit_code == 0, result.output
    assert "Climate deal" in result.output
    assert "Reuters - Climate deal" in result.output
    assert "Found 1 relevant passages" in result.output


def test_search_second_run_uses_cache(cli_app) -> None:
    runner.invoke(app, ["search", "climate deal"])
    result = runner.invoke(app, ["search", "climate deal"])
    assert result.exit_code == 0
    assert "(cached)" in result.output


def test_search_no_cache_flag_skips_cache(cli_app) -> None:
    runner.invoke(app, ["search", "climate deal"])
    result = runner.invoke(app, ["search", "climate deal", "--no-cache"])
    assert "(cached)" not in result.output


def test_search_empty_query_fails(cli_app) -> None:
    result = runner.invoke(app, ["search", "   "])
    assert result.exit_code == 1
    assert "must not be empty" in result.output


def test_search_warns_on_empty_corpus(tmp_path, monkeypatch) -> None:
    cfg = NewsragConfig(corpus=CorpusCfg(path=str(tmp_path / "missing.json")))
    monkeypatch.setattr("newsrag.cli.common.load_app", lambda: build_app(cfg))
    result = runner.invoke(app, ["search", "anything"])
    assert result.exit_code == 0
    assert "No embedded chunks" in result.output
    assert "No relevant news articles found" in result.output


def test_search_top_k_defaults_to_configured_value(tmp_path, monkeypatch) -> None:
    vector = deterministic_embedding("climate deal")
    path = write_corpus(
        tmp_path / "two.json",
        [
            make_record("c1", "Deal agreed.", vector, title="Climate deal", source="Reuters"),
            make_record("c2", "Deal signed.", vector, title="Climate pact", source="AP"),
        ],
    )
    cfg = NewsragConfig(corpus=CorpusCfg(path=str(path)), retrieval=RetrievalCfg(top_k=1))
    monkeypatch.setattr("newsrag.cli.common.load_app", lambda: build_app(cfg))

    assert "Found 1 relevant passages" in runner.invoke(app, ["search", "climate deal"]).output
    assert "Found 2 relevant passages" in runner.invoke(app, ["search", "climate deal", "-k", "2"]).output


# ---------------------------------------------------------------------------
# newsrag ask / history / clear
# ---------------------------------------------------------------------------


def test_ask_answers_and_records_session(cli_app) -> None:
    result = runner.invoke(app, ["ask", "climate deal", "--session", "s1"])
    assert result.exit_code == 0, result.output
    assert "Key information:" in result.output
    assert "session s1" in result.output

    history = runner.invoke(app, ["history", "s1"])
    assert history.exit_code == 0
    assert "2 messages" in history.output


def test_ask_requires_session(cli_app) -> None:
    result = runner.invoke(app, ["ask", "climate deal"])
    assert result.exit_code != 0


def test_clear_removes_history(cli_app) -> None:
    runner.invoke(app, ["ask", "climate deal", "-s", "s1"])
    result = runner.invoke(app, ["clear", "s1"])
    assert result.exit_code == 0
    assert "Session cleared: s1" in result.output
    assert "0 messages" in runner.invoke(app, ["history", "s1"]).output


def test_ask_without_store_warns_but_answers(offline_cli_app) -> None:
    result = runner.invoke(app, ["ask", "climate deal", "-s", "s1"])
    assert result.exit_code == 0
    assert "Store unavailable" in result.output
    assert "Key information:" in result.output


# ---------------------------------------------------------------------------
# newsrag analytics / health
# ---------------------------------------------------------------------------


def test_analytics_counts_sessions(cli_app) -> None:
    runner.invoke(app, ["ask", "climate deal", "-s", "a"])
    runner.invoke(app, ["ask", "climate talks", "-s", "b"])
    result = runner.invoke(app, ["analytics"])
    assert result.exit_code == 0
    assert "Session Analytics" in result.output
    assert "climate (2)" in result.output


def test_analytics_without_store(offline_cli_app) -> None:
    result = runner.invoke(app, ["analytics"])
    assert result.exit_code == 0
    assert "Store unavailable" in result.output


def test_health_json_report(cli_app) -> None:
    result = runner.invoke(app, ["health", "--json"])
    assert result.exit_code == 0
    report = json.loads(result.stdout.strip().splitlines()[-1])
    assert report["status"] == "healthy"
    assert report["services"] == {
        "store": "connected",
        "vector_store": "loaded",
        "embeddings": "fallback",
    }


def test_health_offline_is_still_healthy(offline_cli_app) -> None:
    result = runner.invoke(app, ["health", "--json"])
    report = json.loads(result.stdout.strip().splitlines()[-1])
    assert report["status"] == "healthy"
    assert report["services"]["store"] == "fallback"


def test_bad_config_exits_with_message(tmp_path, monkeypatch) -> None:
    (tmp_path / "newsrag.yaml").write_text("retrieval:\n  top_k: 0\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("newsrag.config._GLOBAL_CONFIG_PATH", tmp_path / "none.yaml")
    result = runner.invoke(app, ["health"])
    assert result.exit_code == 1
    assert "Invalid configuration" in result.output

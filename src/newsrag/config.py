"""newsrag configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (NEWSRAG_EMBEDDING_MODEL, NEWSRAG_CORPUS_PATH,
     KV_REST_API_*, DISABLE_REDIS, JINA_API_KEY)
  3. Per-project newsrag.yaml  (in the working directory)
  4. Global ~/.newsrag/config.yaml  (defaults only — no credentials)
  5. Hardcoded defaults

Credentials (store tokens, embedding API key) are only ever read from the
environment. All YAML reads use yaml.safe_load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".newsrag"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "newsrag.yaml"

# Key names that look like credentials — forbidden in global config.
# Does NOT match legitimate keys like max_messages, top_k, socket_timeout.
_SECRET_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["embedding", "retrieval", "corpus", "cache", "session", "store"]
)

_TRUTHY = frozenset(["1", "true", "yes", "on"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding provider configuration (newsrag.yaml: embedding:).

    Attributes:
        model: LiteLLM embedding model string (provider/model format).
        dimensions: Dimension of the deterministic fallback embedding.
        num_retries: Retries LiteLLM performs before the call counts as failed.
        timeout: Per-request timeout in seconds.
        api_key: Provider API key, from JINA_API_KEY only. None → fallback mode.
    """

    model: str = "jina_ai/jina-embeddings-v2-base-en"
    dimensions: int = 768
    num_retries: int = 2
    timeout: float = 10.0
    api_key: str | None = None


@dataclass
class RetrievalCfg:
    """Search and ranking configuration (newsrag.yaml: retrieval:)."""

    top_k: int = 5
    min_similarity: float = 0.1
    recency_days: int = 30


@dataclass
class CorpusCfg:
    """Location of the embedded chunk corpus (newsrag.yaml: corpus:)."""

    path: str = "data/embedded_chunks.json"


@dataclass
class CacheCfg:
    """Search-result cache configuration (newsrag.yaml: cache:)."""

    ttl: int = 300


@dataclass
class SessionCfg:
    """Session log configuration (newsrag.yaml: session:)."""

    ttl: int = 24 * 60 * 60
    max_messages: int = 50


@dataclass
class StoreCfg:
    """Key/value backing store connection (newsrag.yaml: store:).

    Attributes:
        url: Redis endpoint URL (KV_REST_API_URL).
        token: Read/write credential (KV_REST_API_TOKEN).
        read_only_token: Optional read-replica credential
            (KV_REST_API_READ_ONLY_TOKEN); the read path falls back to *token*.
        socket_timeout: Seconds before a store call is abandoned.
        disabled: Force degraded mode (DISABLE_REDIS=true).
    """

    url: str | None = None
    token: str | None = None
    read_only_token: str | None = None
    socket_timeout: float = 5.0
    disabled: bool = False

    @property
    def read_token(self) -> str | None:
        return self.read_only_token or self.token


@dataclass
class NewsragConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    corpus: CorpusCfg = field(default_factory=CorpusCfg)
    cache: CacheCfg = field(default_factory=CacheCfg)
    session: SessionCfg = field(default_factory=SessionCfg)
    store: StoreCfg = field(default_factory=StoreCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_secrets(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any credential-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _SECRET_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  Credentials must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _positive(value: int, name: str) -> int:
    if value < 1:
        raise ConfigError(f"{name} must be >= 1, got {value}")
    return value


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> NewsragConfig:
    """Build a *NewsragConfig* from a merged raw YAML dict."""
    cfg = NewsragConfig()

    if "embedding" in data:
        e = data["embedding"]
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=_positive(
                int(e.get("dimensions", cfg.embedding.dimensions)), "embedding.dimensions"
            ),
            num_retries=int(e.get("num_retries", cfg.embedding.num_retries)),
            timeout=float(e.get("timeout", cfg.embedding.timeout)),
        )

    if "retrieval" in data:
        r = data["retrieval"]
        cfg.retrieval = RetrievalCfg(
            top_k=_positive(int(r.get("top_k", cfg.retrieval.top_k)), "retrieval.top_k"),
            min_similarity=float(r.get("min_similarity", cfg.retrieval.min_similarity)),
            recency_days=_positive(
                int(r.get("recency_days", cfg.retrieval.recency_days)), "retrieval.recency_days"
            ),
        )

    if "corpus" in data:
        cfg.corpus = CorpusCfg(path=str(data["corpus"].get("path", cfg.corpus.path)))

    if "cache" in data:
        cfg.cache = CacheCfg(ttl=int(data["cache"].get("ttl", cfg.cache.ttl)))

    if "session" in data:
        s = data["session"]
        cfg.session = SessionCfg(
            ttl=_positive(int(s.get("ttl", cfg.session.ttl)), "session.ttl"),
            max_messages=_positive(
                int(s.get("max_messages", cfg.session.max_messages)), "session.max_messages"
            ),
        )

    if "store" in data:
        st = data["store"]
        cfg.store = StoreCfg(
            socket_timeout=float(st.get("socket_timeout", cfg.store.socket_timeout)),
            disabled=bool(st.get("disabled", cfg.store.disabled)),
        )

    return cfg


def _apply_env_overrides(cfg: NewsragConfig) -> NewsragConfig:
    """Apply environment variable overrides and credentials (layer 2)."""
    if model := os.environ.get("NEWSRAG_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if path := os.environ.get("NEWSRAG_CORPUS_PATH"):
        cfg.corpus.path = path

    cfg.embedding.api_key = os.environ.get("JINA_API_KEY") or None
    cfg.store.url = os.environ.get("KV_REST_API_URL") or None
    cfg.store.token = os.environ.get("KV_REST_API_TOKEN") or None
    cfg.store.read_only_token = os.environ.get("KV_REST_API_READ_ONLY_TOKEN") or None
    if os.environ.get("DISABLE_REDIS", "").strip().lower() in _TRUTHY:
        cfg.store.disabled = True
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> NewsragConfig:
    """Load and return a merged *NewsragConfig*.

    Applies layers in order: global → per-project → env vars.

    Args:
        project_dir: Directory to search for *newsrag.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *NewsragConfig* with env var overrides applied.

    Raises:
        ConfigError: If global config contains credential-like fields, or a
            numeric setting is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_secrets(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)
    return _apply_env_overrides(cfg)

"""Per-session conversation logs: append-only, capped, TTL-refreshed.

Each session is a Redis list at ``session:<id>:history`` holding JSON
messages oldest-first. An append is one MULTI/EXEC pipeline
(RPUSH, EXPIRE, LTRIM), so concurrent appends to the same session can not
leave the list untrimmed. Every operation degrades instead of raising:
append becomes a no-op, read returns [], clear reports success.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime

from pydantic import ValidationError

from newsrag.models import SessionMessage
from newsrag.store.client import KeyValueBackend

logger = logging.getLogger(__name__)

_KEY_PATTERN = "session:*:history"
_MIN_QUERY_WORD = 4
_TOP_QUERIES = 10
_DAILY_WINDOW = 7


def history_key(session_id: str) -> str:
    return f"session:{session_id}:history"


@dataclass
class SessionAnalytics:
    """Aggregate usage across all stored sessions."""

    total_sessions: int = 0
    total_messages: int = 0
    average_session_length: float = 0.0
    top_queries: list[tuple[str, int]] = field(default_factory=list)
    daily_stats: list[tuple[str, int]] = field(default_factory=list)
    error: str | None = None


class SessionStore:
    """Bounded message log per session id.

    Args:
        backend: Shared backend owning the Redis handles.
        ttl: Seconds a log survives after its last append (default 24 h).
        max_messages: Number of most recent messages kept (default 50).
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        ttl: int = 24 * 60 * 60,
        max_messages: int = 50,
    ) -> None:
        self._backend = backend
        self._ttl = ttl
        self._max_messages = max_messages

    def append(self, session_id: str, message: SessionMessage) -> None:
        client = self._backend.writer()
        if client is None:
            logger.info("Store not available, skipping session storage")
            return

        key = history_key(session_id)
        try:
            pipe = client.pipeline(transaction=True)
            pipe.rpush(key, message.to_json())
            pipe.expire(key, self._ttl)
            pipe.ltrim(key, -self._max_messages, -1)
            pipe.execute()
        except Exception as exc:
            self._backend.report(exc, "session append")

    def read(self, session_id: str) -> list[SessionMessage]:
        """Return the session's messages oldest-first; [] when unavailable."""
        client = self._backend.reader()
        if client is None:
            logger.info("Store not available, returning empty session history")
            return []

        try:
            items = client.lrange(history_key(session_id), 0, -1)
        except Exception as exc:
            self._backend.report(exc, "session read")
            return []

        messages: list[SessionMessage] = []
        for item in items:
            try:
                messages.append(SessionMessage.model_validate_json(item))
            except ValidationError:
                logger.debug("Skipping unparsable message in session %s", session_id)
        return messages

    def clear(self, session_id: str) -> bool:
        """Delete the session's log. Always True: the log is no longer guaranteed to exist."""
        client = self._backend.writer()
        if client is None:
            logger.info("Store not available, skipping remote clear and returning success")
            return True

        try:
            deleted = client.delete(history_key(session_id))
            logger.info("Cleared session %s, deleted keys: %s", session_id, deleted)
        except Exception as exc:
            self._backend.report(exc, "session clear")
        return True

    def analytics(self) -> SessionAnalytics:
        """Summarise every stored session (counts, top query words, daily activity)."""
        client = self._backend.writer()
        if client is None:
            return SessionAnalytics(error="store not available")

        try:
            keys = list(client.scan_iter(match=_KEY_PATTERN))
        except Exception as exc:
            self._backend.report(exc, "session scan")
            return SessionAnalytics(error="store not available")

        lengths: list[int] = []
        words: Counter[str] = Counter()
        daily: Counter[str] = Counter()
        for key in keys:
            try:
                items = client.lrange(key, 0, -1)
            except Exception as exc:
                self._backend.report(exc, "session analytics")
                continue
            lengths.append(len(items))
            for item in items:
                try:
                    message = SessionMessage.model_validate_json(item)
                except ValidationError:
                    continue
                if message.role == "user":
                    words.update(
                        w for w in message.content.lower().split() if len(w) >= _MIN_QUERY_WORD
                    )
                day = _day_of(message.timestamp)
                if day:
                    daily[day] += 1

        total = sum(lengths)
        average = round(total / len(lengths), 1) if lengths else 0.0
        return SessionAnalytics(
            total_sessions=len(keys),
            total_messages=total,
            average_session_length=average,
            top_queries=words.most_common(_TOP_QUERIES),
            daily_stats=sorted(daily.items())[-_DAILY_WINDOW:],
        )


def _day_of(timestamp: str) -> str | None:
    try:
        return datetime.fromisoformat(timestamp.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return None

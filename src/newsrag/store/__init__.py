"""Key/value backing store: shared client, cache, session logs."""

from newsrag.store.cache import Cache, cache_key, search_key
from newsrag.store.client import KeyValueBackend, StoreErrorKind, classify
from newsrag.store.sessions import SessionAnalytics, SessionStore

__all__ = [
    "Cache",
    "KeyValueBackend",
    "SessionAnalytics",
    "SessionStore",
    "StoreErrorKind",
    "cache_key",
    "classify",
    "search_key",
]

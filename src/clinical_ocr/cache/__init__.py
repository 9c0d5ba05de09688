"""Result cache and its key-value backends."""

from .result_cache import ResultCache, cache_key
from .store import InMemoryStore, JsonFileStore, KeyValueStore, open_store

__all__ = [
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueStore",
    "ResultCache",
    "cache_key",
    "open_store",
]

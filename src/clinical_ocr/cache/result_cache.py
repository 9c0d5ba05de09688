"""Content-addressed cache for remote extraction results.

Entries are stored under `ocr_{document_type}_{sha256}` as
`{data, timestamp, expiresAt, cost}`; hit/miss counters live beside them and
survive eviction of individual entries.
"""

from __future__ import annotations

from collections.abc import Callable
import hashlib
import logging
import time
from typing import Any

from clinical_ocr import constants
from clinical_ocr.core.types import (
    CacheEntry,
    CacheStats,
    DocumentType,
    RemoteExtractionResult,
)

from .store import KeyValueStore

log = logging.getLogger(__name__)


def cache_key(data: bytes, mime_type: str, document_type: DocumentType) -> str:
    """Deterministic key over the full payload, its MIME type and document type."""
    digest = hashlib.sha256()
    digest.update(data)
    digest.update(mime_type.encode("utf-8"))
    digest.update(document_type.value.encode("utf-8"))
    return f"{constants.CACHE_KEY_PREFIX}{document_type.value}_{digest.hexdigest()}"


def _result_to_dict(result: RemoteExtractionResult) -> dict[str, Any]:
    return {
        "extracted_text": result.extracted_text,
        "confidence": result.confidence,
        "tokens_used": result.tokens_used,
        "cost": result.cost,
        "processing_time_ms": result.processing_time_ms,
    }


def _entry_from_raw(key: str, raw: dict[str, Any]) -> CacheEntry:
    data = raw["data"]
    result = RemoteExtractionResult(
        extracted_text=str(data["extracted_text"]),
        confidence=float(data["confidence"]),
        tokens_used=int(data["tokens_used"]),
        cost=float(data["cost"]),
        processing_time_ms=int(data["processing_time_ms"]),
    )
    return CacheEntry(
        key=key,
        result=result,
        created_at=float(raw["timestamp"]),
        expires_at=float(raw["expiresAt"]),
        cost=float(raw["cost"]),
    )


class ResultCache:
    """TTL cache of `RemoteExtractionResult` values over a `KeyValueStore`.

    Args:
        store: Backend holding entries and counters.
        clock: Returns the current time in seconds since the epoch.
    """

    def __init__(
        self, store: KeyValueStore, clock: Callable[[], float] = time.time
    ) -> None:
        self.store = store
        self.clock = clock

    def get(self, key: str) -> CacheEntry | None:
        """Return the live entry for `key`, counting a hit or a miss.

        Expired and unreadable entries are evicted and count as misses.
        """
        raw = self.store.get(key)
        if raw is None:
            self._increment(constants.CACHE_MISSES_KEY)
            log.debug("Cache miss: %s", key)
            return None

        try:
            entry = _entry_from_raw(key, raw)
        except (KeyError, TypeError, ValueError) as e:
            log.warning("Discarding unreadable cache entry %s: %s", key, e)
            self.store.delete(key)
            self._increment(constants.CACHE_MISSES_KEY)
            return None

        if entry.is_expired(self.clock()):
            log.debug("Cache entry expired: %s", key)
            self.store.delete(key)
            self._increment(constants.CACHE_MISSES_KEY)
            return None

        self._increment(constants.CACHE_HITS_KEY)
        log.debug("Cache hit: %s", key)
        return entry

    def set(
        self,
        key: str,
        result: RemoteExtractionResult,
        ttl_seconds: int = constants.CACHE_TTL_SECONDS,
    ) -> CacheEntry:
        """Store `result` under `key` for `ttl_seconds`."""
        now = self.clock()
        entry = CacheEntry(
            key=key,
            result=result,
            created_at=now,
            expires_at=now + ttl_seconds,
            cost=result.cost,
        )
        self.store.set(
            key,
            {
                "data": _result_to_dict(result),
                "timestamp": entry.created_at,
                "expiresAt": entry.expires_at,
                "cost": entry.cost,
            },
        )
        return entry

    def delete(self, key: str) -> None:
        """Remove a single entry; counters are untouched."""
        self.store.delete(key)

    def clear(self) -> None:
        """Remove every entry and reset the hit/miss counters."""
        for key in self.store.keys(constants.CACHE_KEY_PREFIX):
            self.store.delete(key)
        self.store.delete(constants.CACHE_HITS_KEY)
        self.store.delete(constants.CACHE_MISSES_KEY)

    def stats(self) -> CacheStats:
        """Aggregate entry count, stored cost, hit rate and oldest entry age.

        Only live entries are counted; expired ones awaiting eviction are skipped.
        """
        now = self.clock()
        entries = []
        for key in self.store.keys(constants.CACHE_KEY_PREFIX):
            raw = self.store.get(key)
            if raw is None:
                continue
            try:
                entry = _entry_from_raw(key, raw)
            except (KeyError, TypeError, ValueError):
                continue
            if not entry.is_expired(now):
                entries.append(entry)

        hits = self._counter(constants.CACHE_HITS_KEY)
        misses = self._counter(constants.CACHE_MISSES_KEY)
        total = hits + misses
        oldest_age = (
            max(0.0, now - min(e.created_at for e in entries))
            if entries
            else 0.0
        )
        return CacheStats(
            total_entries=len(entries),
            total_cost_saved=sum(e.cost for e in entries),
            hit_rate=hits / total if total else 0.0,
            oldest_entry_age=oldest_age,
        )

    def _counter(self, key: str) -> int:
        value = self.store.get(key)
        try:
            return int(value or 0)
        except (TypeError, ValueError):
            return 0

    def _increment(self, key: str) -> None:
        self.store.set(key, self._counter(key) + 1)

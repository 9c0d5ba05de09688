"""Content-addressed result cache: keys, TTL, counters and stats."""

import pytest

from clinical_ocr import constants
from clinical_ocr.cache import ResultCache, cache_key
from clinical_ocr.core.types import DocumentType, RemoteExtractionResult

pytestmark = pytest.mark.unit

DAY = 24 * 60 * 60


def _result(text: str = "Hemoglobina 13.8", cost: float = 0.03) -> RemoteExtractionResult:
    return RemoteExtractionResult(
        extracted_text=text,
        confidence=0.6,
        tokens_used=1200,
        cost=cost,
        processing_time_ms=850,
    )


@pytest.fixture
def cache(store, clock) -> ResultCache:
    return ResultCache(store, clock=clock)


class TestCacheKey:
    def test_deterministic_and_prefixed_with_document_type(self):
        key = cache_key(b"image", "image/jpeg", DocumentType.LAB_REPORT)

        assert key == cache_key(b"image", "image/jpeg", DocumentType.LAB_REPORT)
        assert key.startswith("ocr_lab_report_")
        assert len(key) == len("ocr_lab_report_") + 64

    def test_every_input_participates(self):
        base = cache_key(b"image", "image/jpeg", DocumentType.GENERIC)

        assert cache_key(b"image!", "image/jpeg", DocumentType.GENERIC) != base
        assert cache_key(b"image", "image/png", DocumentType.GENERIC) != base
        assert cache_key(b"image", "image/jpeg", DocumentType.FORM) != base

    def test_whole_payload_is_hashed(self):
        prefix = b"\xff\xd8\xff" + b"\x00" * 4096
        assert cache_key(prefix + b"a", "image/jpeg", DocumentType.GENERIC) != cache_key(
            prefix + b"b", "image/jpeg", DocumentType.GENERIC
        )


class TestResultCache:
    def test_set_then_get_round_trips(self, cache, store, clock):
        cache.set("ocr_generic_k", _result(), ttl_seconds=DAY)

        entry = cache.get("ocr_generic_k")

        assert entry is not None
        assert entry.result == _result()
        assert entry.created_at == clock.now
        assert entry.expires_at == clock.now + DAY
        assert set(store.get("ocr_generic_k")) == {"data", "timestamp", "expiresAt", "cost"}

    def test_set_is_idempotent(self, cache, store):
        cache.set("ocr_generic_k", _result())
        cache.set("ocr_generic_k", _result())

        assert store.keys(constants.CACHE_KEY_PREFIX) == ["ocr_generic_k"]

    def test_expired_entry_is_evicted_and_counted_as_miss(self, cache, store, clock):
        cache.set("ocr_generic_k", _result(), ttl_seconds=DAY)
        clock.advance(DAY + 1)

        assert cache.get("ocr_generic_k") is None
        assert store.get("ocr_generic_k") is None
        assert store.get(constants.CACHE_MISSES_KEY) == 1

    def test_unreadable_entry_is_discarded(self, cache, store):
        store.set("ocr_generic_bad", {"data": {"extracted_text": "x"}})

        assert cache.get("ocr_generic_bad") is None
        assert store.get("ocr_generic_bad") is None

    def test_hits_and_misses_are_counted(self, cache, store):
        cache.set("ocr_generic_k", _result())
        cache.get("ocr_generic_k")
        cache.get("ocr_generic_k")
        cache.get("ocr_generic_other")

        assert store.get(constants.CACHE_HITS_KEY) == 2
        assert store.get(constants.CACHE_MISSES_KEY) == 1
        assert cache.stats().hit_rate == pytest.approx(2 / 3)

    def test_delete_keeps_counters(self, cache, store):
        cache.set("ocr_generic_k", _result())
        cache.get("ocr_generic_k")
        cache.delete("ocr_generic_k")

        assert store.get("ocr_generic_k") is None
        assert store.get(constants.CACHE_HITS_KEY) == 1

    def test_clear_removes_entries_and_counters_only(self, cache, store):
        store.set("costs", {"daily": 1.0})
        cache.set("ocr_generic_a", _result())
        cache.set("ocr_form_b", _result())
        cache.get("ocr_generic_a")

        cache.clear()

        assert store.keys(constants.CACHE_KEY_PREFIX) == []
        assert store.get(constants.CACHE_HITS_KEY) is None
        assert store.get("costs") == {"daily": 1.0}
        assert cache.stats().hit_rate == 0.0

    def test_stats(self, cache, clock):
        cache.set("ocr_generic_a", _result(cost=0.02))
        clock.advance(120)
        cache.set("ocr_form_b", _result(cost=0.05))
        clock.advance(30)

        stats = cache.stats()

        assert stats.total_entries == 2
        assert stats.total_cost_saved == pytest.approx(0.07)
        assert stats.oldest_entry_age == pytest.approx(150)
        assert stats.hit_rate == 0.0

    def test_stats_skip_expired_entries(self, cache, store, clock):
        cache.set("ocr_generic_old", _result(cost=0.02), ttl_seconds=60)
        clock.advance(30)
        cache.set("ocr_generic_new", _result(cost=0.05), ttl_seconds=DAY)
        clock.advance(60)

        stats = cache.stats()

        assert stats.total_entries == 1
        assert stats.total_cost_saved == pytest.approx(0.05)
        assert stats.oldest_entry_age == pytest.approx(60)
        assert store.get("ocr_generic_old") is not None

    def test_stats_on_empty_cache(self, cache):
        stats = cache.stats()
        assert (stats.total_entries, stats.total_cost_saved, stats.oldest_entry_age) == (
            0,
            0,
            0.0,
        )

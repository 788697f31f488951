"""
Testes do TTLCache (TTL por classe, stale-on-error, coalescência, persistência).
"""

import asyncio

import pytest

from pubspy.services.discovery_manager import DEFAULT_TTL_SECONDS, TTLCache, TTLClass


class CountingProducer:

    def __init__(self, value="valor", fail=False, delay=0.0):
        self.value = value
        self.fail = fail
        self.delay = delay
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("produtor falhou")
        return self.value


class TestGetOrCompute:

    @pytest.mark.asyncio
    async def test_producer_runs_once_within_ttl(self, clock):
        cache = TTLCache(clock=clock)
        producer = CountingProducer()

        first = await cache.get_or_compute("k", producer, TTLClass.ADSENSE_SEARCH)
        clock.advance(DEFAULT_TTL_SECONDS[TTLClass.ADSENSE_SEARCH] - 1)
        second = await cache.get_or_compute("k", producer, TTLClass.ADSENSE_SEARCH)

        assert first == second == "valor"
        assert producer.calls == 1
        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1

    @pytest.mark.asyncio
    async def test_expired_entry_is_recomputed(self, clock):
        cache = TTLCache(clock=clock)
        producer = CountingProducer()

        await cache.get_or_compute("k", producer, TTLClass.API_RESPONSE)
        clock.advance(DEFAULT_TTL_SECONDS[TTLClass.API_RESPONSE])
        await cache.get_or_compute("k", producer, TTLClass.API_RESPONSE)

        assert producer.calls == 2

    @pytest.mark.asyncio
    async def test_stale_value_served_when_producer_fails(self, clock):
        cache = TTLCache(clock=clock)
        await cache.get_or_compute("k", CountingProducer("antigo"), TTLClass.API_RESPONSE)
        clock.advance(3600)

        value = await cache.get_or_compute("k", CountingProducer(fail=True), TTLClass.API_RESPONSE)

        assert value == "antigo"
        assert cache.get_stats()["stale_hits"] == 1

    @pytest.mark.asyncio
    async def test_failure_without_entry_propagates(self, clock):
        cache = TTLCache(clock=clock)
        with pytest.raises(RuntimeError):
            await cache.get_or_compute("k", CountingProducer(fail=True))
        assert "k" not in cache

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_producer(self, clock):
        cache = TTLCache(clock=clock)
        producer = CountingProducer(delay=0.02)

        results = await asyncio.gather(*(cache.get_or_compute("k", producer) for _ in range(5)))

        assert results == ["valor"] * 5
        assert producer.calls == 1
        assert cache.get_stats()["coalesced"] == 4

    @pytest.mark.asyncio
    async def test_ttl_override_per_class(self, clock):
        cache = TTLCache(ttl_seconds={"api_response": 10}, clock=clock)
        producer = CountingProducer()

        await cache.get_or_compute("k", producer)
        clock.advance(10)
        await cache.get_or_compute("k", producer)

        assert cache.ttl_for(TTLClass.API_RESPONSE) == 10
        assert producer.calls == 2


class TestMapOperations:

    def test_generate_key_is_lowercase(self):
        assert TTLCache.generate_key("adsense_search", "CA-PUB-1") == "adsense_search:ca-pub-1"

    @pytest.mark.asyncio
    async def test_set_get_delete(self, clock):
        cache = TTLCache(clock=clock)
        await cache.set("k", {"a": 1}, TTLClass.HTML_ANALYSIS)

        assert await cache.get("k") == {"a": 1}
        assert await cache.delete("k") is True
        assert await cache.get("k") is None
        assert await cache.delete("k") is False

    @pytest.mark.asyncio
    async def test_get_ignores_expired(self, clock):
        cache = TTLCache(clock=clock)
        await cache.set("k", 1, TTLClass.API_RESPONSE)
        clock.advance(DEFAULT_TTL_SECONDS[TTLClass.API_RESPONSE] + 1)
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_cleanup_removes_only_expired(self, clock):
        cache = TTLCache(clock=clock)
        await cache.set("curto", 1, TTLClass.API_RESPONSE)
        await cache.set("longo", 2, TTLClass.ADS_TXT_CHECK)
        clock.advance(DEFAULT_TTL_SECONDS[TTLClass.API_RESPONSE] + 1)

        removed = await cache.cleanup()

        assert removed == 1
        assert "curto" not in cache
        assert "longo" in cache
        assert cache.get_stats()["evictions"] == 1

    @pytest.mark.asyncio
    async def test_clear_resets_entries_and_metrics(self, clock):
        cache = TTLCache(clock=clock)
        await cache.get_or_compute("k", CountingProducer())
        await cache.clear()
        assert len(cache) == 0
        assert cache.get_stats()["misses"] == 0

    @pytest.mark.asyncio
    async def test_periodic_sweeper(self):
        now = [0.0]
        cache = TTLCache(ttl_seconds={"api_response": 1}, clock=lambda: now[0])
        await cache.set("k", 1)
        now[0] = 5.0

        cache.start_sweeper(interval=0.01)
        assert cache.sweeper_running
        await asyncio.sleep(0.05)
        await cache.stop_sweeper()

        assert "k" not in cache
        assert not cache.sweeper_running
        assert cache.get_stats()["sweeper_running"] is False


class TestWarmupAndPersistence:

    @pytest.mark.asyncio
    async def test_warmup_skips_failing_producers(self, clock):
        cache = TTLCache(clock=clock)
        loaded = await cache.warmup([
            ("a", CountingProducer("A"), TTLClass.API_RESPONSE),
            ("b", CountingProducer(fail=True), TTLClass.API_RESPONSE),
        ])
        assert loaded == 1
        assert await cache.get("a") == "A"

    @pytest.mark.asyncio
    async def test_export_import_keeps_only_live_entries(self, clock):
        source = TTLCache(clock=clock)
        await source.set("vivo", {"domains": ["a.com"]}, TTLClass.ADS_TXT_CHECK)
        await source.set("quase", "x", TTLClass.API_RESPONSE)
        raw = source.export_json()

        clock.advance(DEFAULT_TTL_SECONDS[TTLClass.API_RESPONSE] + 1)
        target = TTLCache(clock=clock)
        imported = target.import_json(raw)

        assert imported == 1
        assert await target.get("vivo") == {"domains": ["a.com"]}
        assert "quase" not in target

    def test_import_of_garbage_imports_nothing(self, clock):
        assert TTLCache(clock=clock).import_json("not json") == 0

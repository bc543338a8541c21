"""
Testes do cache persistente (TTL, carga lazy, escritas serializadas).
"""

import asyncio
import json

import pytest

from app.services.search_manager import ResponseCache, build_cache_key

HITS = [{"title": "Acme", "url": "https://acme.com", "snippet": "Robots"}]


class WallClock:
    def __init__(self, now: float):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestBuildCacheKey:

    def test_deterministic(self):
        assert build_cache_key("search", "Acme Robotics", 5) == build_cache_key("search", "Acme Robotics", 5)

    def test_distinguishes_kind_and_limit(self):
        keys = {
            build_cache_key("search", "Acme", 5),
            build_cache_key("search", "Acme", 6),
            build_cache_key("instant_answer", "Acme"),
        }
        assert len(keys) == 3


class TestResponseCache:

    async def test_store_then_lookup(self, tmp_path):
        cache = ResponseCache(path=tmp_path / "cache.json", ttl_seconds=60)

        await cache.store("search:Acme:5", HITS)

        assert await cache.lookup("search:Acme:5") == HITS
        assert await cache.lookup("search:Other:5") is None
        await cache.close()

    async def test_lookup_returns_copy(self, tmp_path):
        cache = ResponseCache(path=tmp_path / "cache.json", ttl_seconds=60)
        await cache.store("k", HITS)

        first = await cache.lookup("k")
        first[0]["title"] = "mutated"

        assert (await cache.lookup("k"))[0]["title"] == "Acme"
        await cache.close()

    async def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "nested" / "cache.json"
        clock = WallClock(1_000.0)
        cache = ResponseCache(path=path, ttl_seconds=60, clock=clock)
        await cache.store("search:Acme:5", HITS)
        await cache.close()

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data == {"entries": [{"key": "search:Acme:5", "ts": 1_000_000, "value": HITS}]}

        clock.now = 1_030.0
        reloaded = ResponseCache(path=path, ttl_seconds=60, clock=clock)
        assert await reloaded.lookup("search:Acme:5") == HITS

    async def test_expired_entry_is_a_miss_while_still_on_disk(self, tmp_path):
        path = tmp_path / "cache.json"
        clock = WallClock(1_000.0)
        cache = ResponseCache(path=path, ttl_seconds=60, clock=clock)
        await cache.store("search:Acme:5", HITS)
        await cache.flush()

        clock.now = 1_059.0
        assert await cache.lookup("search:Acme:5") == HITS

        clock.now = 1_061.0
        assert await cache.lookup("search:Acme:5") is None

        on_disk = json.loads(path.read_text(encoding="utf-8"))
        assert [e["key"] for e in on_disk["entries"]] == ["search:Acme:5"]
        await cache.close()

    async def test_expired_entries_are_dropped_at_load(self, tmp_path):
        path = tmp_path / "cache.json"
        path.write_text(json.dumps({"entries": [
            {"key": "old", "ts": 0, "value": HITS},
            {"key": "fresh", "ts": 995_000, "value": HITS},
        ]}), encoding="utf-8")

        cache = ResponseCache(path=path, ttl_seconds=60, clock=WallClock(1_000.0))

        assert await cache.load() == 1
        assert await cache.lookup("old") is None
        assert await cache.lookup("fresh") == HITS

    async def test_missing_file_is_empty_cache(self, tmp_path):
        cache = ResponseCache(path=tmp_path / "absent.json", ttl_seconds=60)
        assert await cache.lookup("anything") is None
        assert cache.get_status()["loaded"] is True

    async def test_malformed_file_is_empty_cache(self, tmp_path):
        path = tmp_path / "cache.json"
        path.write_text("{not valid json", encoding="utf-8")

        cache = ResponseCache(path=path, ttl_seconds=60)

        assert await cache.lookup("anything") is None
        await cache.store("k", HITS)
        await cache.flush()
        assert json.loads(path.read_text(encoding="utf-8"))["entries"][0]["key"] == "k"
        await cache.close()

    async def test_wrong_shape_entries_are_skipped(self, tmp_path):
        path = tmp_path / "cache.json"
        path.write_text(json.dumps({"entries": [
            "junk",
            {"key": 1, "ts": 995_000},
            {"key": "no-ts", "value": []},
            {"key": "ok", "ts": 995_000, "value": []},
        ]}), encoding="utf-8")

        cache = ResponseCache(path=path, ttl_seconds=60, clock=WallClock(1_000.0))

        assert await cache.load() == 1

    @pytest.mark.parametrize("bad_ts", ["NaN", "Infinity", "-Infinity"])
    async def test_non_finite_timestamps_are_skipped(self, tmp_path, bad_ts):
        path = tmp_path / "cache.json"
        path.write_text(
            '{"entries": [{"key": "bad", "ts": %s, "value": []}, '
            '{"key": "ok", "ts": 995000, "value": []}]}' % bad_ts,
            encoding="utf-8",
        )

        cache = ResponseCache(path=path, ttl_seconds=60, clock=WallClock(1_000.0))

        assert await cache.lookup("bad") is None
        assert await cache.lookup("ok") == []
        assert cache.get_status()["loaded"] is True

    async def test_burst_of_stores_is_coalesced_into_one_write(self, tmp_path):
        path = tmp_path / "cache.json"
        cache = ResponseCache(path=path, ttl_seconds=60)
        await cache.load()

        for i in range(10):
            await cache.store(f"k{i}", [{"i": i}])
        await cache.flush()

        assert cache.get_status()["writes"] == 1
        data = json.loads(path.read_text(encoding="utf-8"))
        assert len(data["entries"]) == 10
        await cache.close()

    async def test_concurrent_stores_leave_a_consistent_file(self, tmp_path):
        path = tmp_path / "cache.json"
        cache = ResponseCache(path=path, ttl_seconds=60)

        await asyncio.gather(*[cache.store(f"k{i}", [{"i": i}]) for i in range(25)])
        await cache.flush()

        data = json.loads(path.read_text(encoding="utf-8"))
        assert sorted(e["key"] for e in data["entries"]) == sorted(f"k{i}" for i in range(25))
        assert cache.get_status()["write_failures"] == 0
        await cache.close()

    async def test_invalidate_and_clear(self, tmp_path):
        cache = ResponseCache(path=tmp_path / "cache.json", ttl_seconds=60)
        await cache.store("a", HITS)
        await cache.store("b", HITS)

        assert await cache.invalidate("a") is True
        assert await cache.invalidate("a") is False
        assert await cache.lookup("a") is None

        await cache.clear()
        assert await cache.lookup("b") is None
        await cache.close()

    async def test_hit_rate_metrics(self, tmp_path):
        cache = ResponseCache(path=tmp_path / "cache.json", ttl_seconds=60)
        await cache.store("a", HITS)
        await cache.lookup("a")
        await cache.lookup("b")

        status = cache.get_status()
        assert status["hits"] == 1
        assert status["misses"] == 1
        assert status["hit_rate"] == "50.0%"
        await cache.close()

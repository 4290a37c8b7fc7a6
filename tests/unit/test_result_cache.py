import pytest

from insight_engine.query import InMemoryCacheBackend, ResultCache, normalize_sql


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class BrokenBackend:
    async def get(self, key):
        raise ConnectionError("redis is down")

    async def set(self, key, rows, ttl_s):
        raise ConnectionError("redis is down")

    async def delete_pattern(self, pattern):
        raise ConnectionError("redis is down")

    async def count(self, pattern):
        raise ConnectionError("redis is down")

    async def close(self):
        raise ConnectionError("redis is down")


def _cache(clock: FakeClock, **kwargs) -> ResultCache:
    return ResultCache(InMemoryCacheBackend(clock=clock, **kwargs), ttl_s=60)


def test_normalize_sql_collapses_whitespace_and_trailing_semicolons():
    assert normalize_sql("  SELECT   1\n  FROM t ;; ") == "SELECT 1 FROM t"


def test_key_is_scoped_to_connection_and_normalized_sql():
    cache = _cache(FakeClock())

    assert cache.key_for("c1", "SELECT 1") == cache.key_for("c1", "SELECT    1;")
    assert cache.key_for("c1", "SELECT 1") != cache.key_for("c2", "SELECT 1")
    assert cache.key_for("c1", "SELECT 1").startswith("insight:query:c1:")


@pytest.mark.anyio
async def test_get_returns_rows_until_ttl_elapses():
    clock = FakeClock()
    cache = _cache(clock)
    rows = [{"x": 1}, {"x": 2}]

    await cache.set("c1", "SELECT x FROM t", rows)
    clock.advance(59)
    assert await cache.get("c1", "SELECT x FROM t") == rows

    clock.advance(2)
    assert await cache.get("c1", "SELECT x FROM t") is None


@pytest.mark.anyio
async def test_cached_rows_are_copies():
    cache = _cache(FakeClock())
    rows = [{"x": 1}]

    await cache.set("c1", "SELECT x", rows)
    rows[0]["x"] = 99
    first = await cache.get("c1", "SELECT x")
    first[0]["x"] = 42

    assert await cache.get("c1", "SELECT x") == [{"x": 1}]


@pytest.mark.anyio
async def test_least_recently_used_entry_is_evicted():
    cache = _cache(FakeClock(), max_entries=2)

    await cache.set("c1", "SELECT 'a'", [{"v": "a"}])
    await cache.set("c1", "SELECT 'b'", [{"v": "b"}])
    await cache.get("c1", "SELECT 'a'")
    await cache.set("c1", "SELECT 'c'", [{"v": "c"}])

    assert await cache.get("c1", "SELECT 'a'") == [{"v": "a"}]
    assert await cache.get("c1", "SELECT 'b'") is None
    assert await cache.get("c1", "SELECT 'c'") == [{"v": "c"}]


@pytest.mark.anyio
async def test_invalidate_scopes_patterns_to_prefix():
    cache = _cache(FakeClock())
    await cache.set("c1", "SELECT 1", [{"x": 1}])
    await cache.set("c1", "SELECT 2", [{"x": 2}])
    await cache.set("c2", "SELECT 1", [{"x": 1}])

    assert await cache.invalidate_connection("c1") == 2
    assert await cache.invalidate("c2") == 1
    assert await cache.get("c2", "SELECT 1") is None


@pytest.mark.anyio
async def test_stats_track_hits_and_misses():
    cache = _cache(FakeClock())
    await cache.set("c1", "SELECT 1", [{"x": 1}])

    await cache.get("c1", "SELECT 1")
    await cache.get("c1", "SELECT 2")
    stats = await cache.stats()

    assert (stats.hits, stats.misses, stats.errors, stats.entries) == (1, 1, 0, 1)


@pytest.mark.anyio
async def test_backend_failures_degrade_to_miss():
    cache = ResultCache(BrokenBackend(), ttl_s=60)

    assert await cache.get("c1", "SELECT 1") is None
    await cache.set("c1", "SELECT 1", [{"x": 1}])
    assert await cache.invalidate("*") == 0
    await cache.close()

    stats = await cache.stats()
    assert stats.errors == 3
    assert stats.entries is None


@pytest.mark.anyio
async def test_disabled_cache_never_stores():
    cache = ResultCache(InMemoryCacheBackend(), enabled=False)

    await cache.set("c1", "SELECT 1", [{"x": 1}])

    assert await cache.get("c1", "SELECT 1") is None


@pytest.mark.anyio
async def test_cached_result_carries_columns_for_empty_rows():
    cache = _cache(FakeClock())

    await cache.set("c1", "SELECT id FROM t WHERE 1 = 0", [], columns=["id"])
    cached = await cache.get_result("c1", "SELECT id FROM t WHERE 1 = 0")

    assert cached is not None
    assert cached.columns == ["id"]
    assert cached.rows == []
    assert await cache.get("c1", "SELECT id FROM t WHERE 1 = 0") == []

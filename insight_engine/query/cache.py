"""
Content-addressed result cache keyed by connection id and normalized SQL.

Caching is an optimization only: backend failures are logged and surface as
a miss (or a no-op for writes and invalidation), never as a request error.
"""

from __future__ import annotations

import fnmatch
import hashlib
import json
import logging
import re
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from redis.asyncio import Redis

from insight_engine.monitoring import query_metrics

from .values import json_safe

Rows = List[Dict[str, Any]]
CachePayload = Dict[str, Any]

_WHITESPACE_RE = re.compile(r"\s+")
_GLOB_CHARS = ("*", "?", "[")


def normalize_sql(sql: str) -> str:
    """Collapse whitespace runs and drop trailing semicolons; case is preserved."""
    normalized = _WHITESPACE_RE.sub(" ", sql).strip()
    while normalized.endswith(";"):
        normalized = normalized[:-1].rstrip()
    return normalized


def _copy_payload(payload: CachePayload) -> CachePayload:
    return {
        "columns": list(payload.get("columns") or []),
        "rows": [dict(row) for row in payload.get("rows") or []],
    }


@dataclass(slots=True)
class CacheEntry:
    key: str
    data: CachePayload
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


@dataclass(slots=True)
class CachedResult:
    columns: List[str]
    rows: Rows


@dataclass(slots=True)
class CacheStats:
    hits: int
    misses: int
    errors: int
    entries: Optional[int]


class CacheBackend(Protocol):
    async def get(self, key: str) -> Optional[CachePayload]:
        ...

    async def set(self, key: str, payload: CachePayload, ttl_s: int) -> None:
        ...

    async def delete_pattern(self, pattern: str) -> int:
        ...

    async def count(self, pattern: str) -> int:
        ...

    async def close(self) -> None:
        ...


class InMemoryCacheBackend:
    """TTL cache bounded to ``max_entries`` with least-recently-used eviction."""

    def __init__(
        self,
        *,
        max_entries: int = 1_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive.")
        self._max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Optional[CachePayload]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return _copy_payload(entry.data)

    async def set(self, key: str, payload: CachePayload, ttl_s: int) -> None:
        now = self._clock()
        self._entries[key] = CacheEntry(
            key=key,
            data=_copy_payload(payload),
            created_at=now,
            expires_at=now + ttl_s,
        )
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    async def delete_pattern(self, pattern: str) -> int:
        matched = [key for key in self._entries if fnmatch.fnmatchcase(key, pattern)]
        for key in matched:
            del self._entries[key]
        return len(matched)

    async def count(self, pattern: str) -> int:
        now = self._clock()
        return sum(
            1
            for key, entry in self._entries.items()
            if fnmatch.fnmatchcase(key, pattern) and not entry.is_expired(now)
        )

    async def close(self) -> None:
        self._entries.clear()


class RedisCacheBackend:
    """Redis-backed cache; expiry is delegated to ``SET ... EX``."""

    def __init__(self, client: Redis, *, scan_count: int = 500) -> None:
        self._client = client
        self._scan_count = scan_count

    @classmethod
    def from_url(cls, url: str) -> "RedisCacheBackend":
        return cls(Redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> Optional[CachePayload]:
        raw = await self._client.get(key)
        if raw is None:
            return None
        try:
            payload = json.loads(raw)
        except ValueError:
            await self._client.delete(key)
            return None
        if not isinstance(payload, dict) or not isinstance(payload.get("rows"), list):
            await self._client.delete(key)
            return None
        return payload

    async def set(self, key: str, payload: CachePayload, ttl_s: int) -> None:
        await self._client.set(key, json.dumps(payload), ex=ttl_s)

    async def delete_pattern(self, pattern: str) -> int:
        deleted = 0
        batch: list[str] = []
        async for key in self._client.scan_iter(match=pattern, count=self._scan_count):
            batch.append(key)
            if len(batch) >= self._scan_count:
                deleted += await self._client.delete(*batch)
                batch = []
        if batch:
            deleted += await self._client.delete(*batch)
        return deleted

    async def count(self, pattern: str) -> int:
        total = 0
        async for _ in self._client.scan_iter(match=pattern, count=self._scan_count):
            total += 1
        return total

    async def close(self) -> None:
        await self._client.aclose()


class ResultCache:
    def __init__(
        self,
        backend: CacheBackend,
        *,
        ttl_s: int = 300,
        prefix: str = "insight:query",
        enabled: bool = True,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._backend = backend
        self._ttl_s = ttl_s
        self._prefix = prefix
        self._enabled = enabled
        self._metrics = query_metrics()
        self.logger = logger or logging.getLogger(__name__)
        self._hits = 0
        self._misses = 0
        self._errors = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def prefix(self) -> str:
        return self._prefix

    def key_for(self, connection_id: str, sql: str) -> str:
        digest = hashlib.sha256(normalize_sql(sql).encode("utf-8")).hexdigest()
        return f"{self._prefix}:{connection_id}:{digest}"

    def _scoped_pattern(self, pattern: str) -> str:
        if not pattern.startswith(f"{self._prefix}:"):
            pattern = f"{self._prefix}:{pattern}"
        if not any(char in pattern for char in _GLOB_CHARS):
            pattern = f"{pattern}*"
        return pattern

    async def get(self, connection_id: str, sql: str) -> Optional[Rows]:
        cached = await self.get_result(connection_id, sql)
        return cached.rows if cached is not None else None

    async def get_result(self, connection_id: str, sql: str) -> Optional[CachedResult]:
        """Cached rows together with the column list they were stored with."""
        if not self._enabled:
            return None
        key = self.key_for(connection_id, sql)
        try:
            payload = await self._backend.get(key)
        except Exception as exc:
            self._errors += 1
            self._metrics.cache_lookups.labels("error").inc()
            self.logger.warning("Cache read failed for %s, treating as miss: %s", key, exc)
            return None
        if payload is None:
            self._misses += 1
            self._metrics.cache_lookups.labels("miss").inc()
            return None
        self._hits += 1
        self._metrics.cache_lookups.labels("hit").inc()
        rows = payload.get("rows") or []
        columns = payload.get("columns") or (list(rows[0].keys()) if rows else [])
        return CachedResult(columns=list(columns), rows=rows)

    async def set(
        self,
        connection_id: str,
        sql: str,
        rows: Rows,
        ttl: Optional[int] = None,
        *,
        columns: Optional[Sequence[str]] = None,
    ) -> None:
        if not self._enabled:
            return
        ttl_s = self._ttl_s if ttl is None else ttl
        if ttl_s <= 0:
            return
        key = self.key_for(connection_id, sql)
        if columns is None:
            columns = list(rows[0].keys()) if rows else []
        payload = {
            "columns": list(columns),
            "rows": [{column: json_safe(value) for column, value in row.items()} for row in rows],
        }
        try:
            await self._backend.set(key, payload, ttl_s)
        except Exception as exc:
            self._errors += 1
            self.logger.warning("Cache write failed for %s: %s", key, exc)

    async def invalidate(self, pattern: str) -> int:
        """
        Remove every entry matching ``pattern``. Patterns are scoped to the
        cache prefix, and a pattern without glob characters is treated as a
        prefix. This scans the whole key space.
        """
        scoped = self._scoped_pattern(pattern)
        try:
            removed = await self._backend.delete_pattern(scoped)
        except Exception as exc:
            self._errors += 1
            self.logger.warning("Cache invalidation failed for %s: %s", scoped, exc)
            return 0
        self.logger.info("Invalidated %s cache entries matching %s", removed, scoped)
        return removed

    async def invalidate_connection(self, connection_id: str) -> int:
        return await self.invalidate(f"{connection_id}:*")

    async def clear(self) -> int:
        return await self.invalidate("*")

    async def stats(self) -> CacheStats:
        try:
            entries: Optional[int] = await self._backend.count(f"{self._prefix}:*")
        except Exception as exc:
            self.logger.warning("Cache size lookup failed: %s", exc)
            entries = None
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            errors=self._errors,
            entries=entries,
        )

    async def close(self) -> None:
        try:
            await self._backend.close()
        except Exception as exc:
            self.logger.warning("Cache backend close failed: %s", exc)

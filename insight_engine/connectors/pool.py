"""
Process-wide registry of async connection pools, one per distinct target
database (``host:port:database``).
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional

from sqlalchemy import exc as sa_exc
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool

from insight_engine.errors import ConnectFailed, PoolExhausted
from insight_engine.monitoring import query_metrics

from .descriptor import ConnectionDescriptor, SqlDialect


@dataclass(slots=True)
class PoolHandle:
    """A checked-out connection plus the pool it belongs to."""

    pool_key: str
    dialect: SqlDialect
    connection: AsyncConnection
    invalidated: bool = False

    def invalidate(self) -> None:
        """Mark the connection unhealthy so release discards it."""
        self.invalidated = True


_STATEMENT_TIMEOUT_SQL: Dict[SqlDialect, str] = {
    SqlDialect.POSTGRES: "SET statement_timeout = {timeout_ms}",
    SqlDialect.MYSQL: "SET SESSION max_execution_time = {timeout_ms}",
}


def _build_connect_args(descriptor: ConnectionDescriptor, *, connect_timeout_s: float) -> Dict[str, Any]:
    """Return driver-specific connect arguments."""
    connect_args: Dict[str, Any] = {}
    if descriptor.dialect == SqlDialect.POSTGRES:
        connect_args["timeout"] = connect_timeout_s
    elif descriptor.dialect == SqlDialect.MYSQL:
        connect_args["connect_timeout"] = connect_timeout_s
    elif descriptor.dialect == SqlDialect.SQLITE:
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = connect_timeout_s
    connect_args.update(descriptor.options)
    return connect_args


class PoolRegistry:
    """
    Owns one SQLAlchemy ``AsyncEngine`` per pool key. Engines are created
    lazily on first acquisition and live until ``dispose`` is called at
    process shutdown; requests never own a pool.
    """

    def __init__(
        self,
        *,
        max_size: int = 10,
        idle_timeout_s: int = 30,
        connect_timeout_s: float = 5.0,
        echo: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._max_size = max_size
        self._idle_timeout_s = idle_timeout_s
        self._connect_timeout_s = connect_timeout_s
        self._echo = echo
        self._engines: Dict[str, AsyncEngine] = {}
        self._lock = asyncio.Lock()
        self._metrics = query_metrics()
        self.logger = logger or logging.getLogger(__name__)
        self.acquisitions = 0

    @property
    def pool_keys(self) -> list[str]:
        return list(self._engines.keys())

    def _create_engine(self, descriptor: ConnectionDescriptor) -> AsyncEngine:
        self.logger.info(
            "Creating connection pool %s (dialect=%s, size=%s)",
            descriptor.pool_key,
            descriptor.dialect.value,
            self._max_size,
        )
        return create_async_engine(
            descriptor.sqlalchemy_url(),
            echo=self._echo,
            poolclass=AsyncAdaptedQueuePool,
            pool_size=self._max_size,
            max_overflow=0,
            pool_timeout=self._connect_timeout_s,
            pool_recycle=self._idle_timeout_s,
            pool_pre_ping=True,
            connect_args=_build_connect_args(descriptor, connect_timeout_s=self._connect_timeout_s),
        )

    async def engine_for(self, descriptor: ConnectionDescriptor) -> AsyncEngine:
        key = descriptor.pool_key
        engine = self._engines.get(key)
        if engine is not None:
            return engine
        async with self._lock:
            engine = self._engines.get(key)
            if engine is None:
                engine = self._create_engine(descriptor)
                self._engines[key] = engine
        return engine

    async def acquire(self, descriptor: ConnectionDescriptor) -> PoolHandle:
        self.acquisitions += 1
        engine = await self.engine_for(descriptor)
        try:
            connection = await engine.connect()
        except sa_exc.TimeoutError as exc:
            self._metrics.pool_acquisitions.labels("exhausted").inc()
            raise PoolExhausted(
                f"Connection pool {descriptor.pool_key} exhausted after {self._connect_timeout_s}s."
            ) from exc
        except (sa_exc.DBAPIError, OSError) as exc:
            self._metrics.pool_acquisitions.labels("failed").inc()
            self.logger.warning("Connect to %s failed: %s", descriptor.pool_key, exc)
            raise ConnectFailed(f"Unable to connect to {descriptor.pool_key}: {exc}") from exc
        self._metrics.pool_acquisitions.labels("ok").inc()
        return PoolHandle(
            pool_key=descriptor.pool_key,
            dialect=descriptor.dialect,
            connection=connection,
        )

    async def set_statement_timeout(self, handle: PoolHandle, timeout_ms: int) -> None:
        """
        Bound the next statement on ``handle`` server side. Pooled sessions are
        reused, so this runs before every statement. SQLite has no equivalent.
        """
        template = _STATEMENT_TIMEOUT_SQL.get(handle.dialect)
        if template is None:
            return
        await handle.connection.execute(text(template.format(timeout_ms=max(int(timeout_ms), 1))))

    async def release(self, handle: PoolHandle) -> None:
        connection = handle.connection
        if handle.invalidated and not connection.closed:
            self.logger.debug("Discarding invalidated connection for %s", handle.pool_key)
            await connection.invalidate()
        await connection.close()

    @asynccontextmanager
    async def connection(self, descriptor: ConnectionDescriptor) -> AsyncIterator[PoolHandle]:
        handle = await self.acquire(descriptor)
        try:
            yield handle
        except asyncio.CancelledError:
            # the statement may still be running server side
            handle.invalidate()
            raise
        finally:
            await self.release(handle)

    async def dispose(self) -> None:
        async with self._lock:
            engines = list(self._engines.items())
            self._engines.clear()
        for key, engine in engines:
            self.logger.info("Disposing connection pool %s", key)
            await engine.dispose()

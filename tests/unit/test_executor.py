import asyncio
from contextlib import asynccontextmanager
from types import SimpleNamespace

import pytest

from insight_engine.connectors import ConnectionDescriptor, PoolHandle, PoolRegistry
from insight_engine.errors import ExecutionError, QueryTimeout
from insight_engine.query import QueryExecutor


class SlowConnection:
    async def execute(self, statement, params):
        await asyncio.sleep(5)


class SlowPool:
    def __init__(self) -> None:
        self.released = False
        self.statement_timeouts = []

    async def set_statement_timeout(self, handle, timeout_ms):
        self.statement_timeouts.append(timeout_ms)

    @asynccontextmanager
    async def connection(self, descriptor):
        try:
            yield SimpleNamespace(connection=SlowConnection(), invalidate=lambda: None)
        finally:
            self.released = True


@pytest.fixture
def descriptor(sqlite_database):
    return ConnectionDescriptor(dialect="sqlite", database=str(sqlite_database))


@pytest.mark.anyio
async def test_statement_exceeding_deadline_raises_timeout(descriptor):
    pool = SlowPool()
    executor = QueryExecutor(pool, default_timeout_ms=1_000)

    with pytest.raises(QueryTimeout) as exc_info:
        await executor.execute("SELECT 1", descriptor, timeout_ms=20)

    assert exc_info.value.error_type == "Timeout"
    assert pool.released
    assert pool.statement_timeouts == [20]


@pytest.mark.anyio
async def test_execute_binds_named_parameters(descriptor):
    pool = PoolRegistry(max_size=1)
    executor = QueryExecutor(pool)
    try:
        result = await executor.execute(
            "SELECT name FROM users WHERE id = :user_id", descriptor, {"user_id": 2}
        )
    finally:
        await pool.dispose()

    assert result.columns == ["name"]
    assert result.rows == [("grace",)]
    assert result.params == {"user_id": 2}
    assert result.duration_ms >= 0


@pytest.mark.anyio
async def test_syntax_errors_become_execution_errors(descriptor):
    pool = PoolRegistry(max_size=1)
    executor = QueryExecutor(pool)
    try:
        with pytest.raises(ExecutionError) as exc_info:
            await executor.execute("SELEC 1", descriptor)
    finally:
        await pool.dispose()

    assert "syntax error" in str(exc_info.value)


class StallingPoolRegistry(PoolRegistry):
    """Real pool whose per-statement setup never completes."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.released: list[PoolHandle] = []

    async def set_statement_timeout(self, handle, timeout_ms):
        await asyncio.sleep(5)

    async def release(self, handle):
        self.released.append(handle)
        await super().release(handle)


@pytest.mark.anyio
async def test_timed_out_statement_never_returns_its_connection_to_the_pool(descriptor):
    pool = StallingPoolRegistry(max_size=1)
    executor = QueryExecutor(pool)
    try:
        with pytest.raises(QueryTimeout):
            await executor.execute("SELECT 1", descriptor, timeout_ms=300)
    finally:
        await pool.dispose()

    assert [handle.invalidated for handle in pool.released] == [True]


@pytest.mark.anyio
async def test_request_timeout_reaches_the_driver(descriptor):
    pool = SlowPool()
    executor = QueryExecutor(pool, default_timeout_ms=1_000)

    with pytest.raises(QueryTimeout):
        await executor.execute("SELECT 1", descriptor, timeout_ms=45)
    with pytest.raises(QueryTimeout):
        await executor.execute("SELECT 1", descriptor)

    assert pool.statement_timeouts == [45, 1_000]

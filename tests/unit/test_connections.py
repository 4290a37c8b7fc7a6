import asyncio

import pytest
from pydantic import ValidationError

from insight_engine.connectors import (
    ConnectionDescriptor,
    InMemoryCredentialResolver,
    PoolHandle,
    PoolRegistry,
    SqlDialect,
    YamlCredentialResolver,
)
from insight_engine.errors import ConnectFailed, ConnectionNotFound, InvalidRequest, PoolExhausted

CONNECTIONS_YAML = """
connections:
  analytics:
    dialect: postgres
    host: db.internal
    port: 5432
    database: analytics
    username: reader
    password: ${INSIGHT_TEST_PG_PASSWORD}
  local:
    dialect: sqlite
    database: /tmp/local.db
"""


def test_descriptor_pool_key_and_url():
    descriptor = ConnectionDescriptor(
        dialect="postgres", host="db", port=5432, database="sales", username="u", password="secret"
    )

    assert descriptor.pool_key == "db:5432:sales"
    assert descriptor.sqlglot_dialect == "postgres"
    url = descriptor.sqlalchemy_url()
    assert url.drivername == "postgresql+asyncpg"
    assert url.password == "secret"
    assert "secret" not in repr(descriptor)


def test_descriptor_requires_host_for_network_dialects():
    with pytest.raises(ValidationError):
        ConnectionDescriptor(dialect="mysql", database="sales")

    sqlite = ConnectionDescriptor(dialect="sqlite", database="file.db")
    assert sqlite.sqlalchemy_url().drivername == "sqlite+aiosqlite"


@pytest.mark.anyio
async def test_in_memory_resolver():
    resolver = InMemoryCredentialResolver()
    descriptor = ConnectionDescriptor(dialect="sqlite", database="file.db")
    resolver.register("local", descriptor)

    assert await resolver.resolve("local") is descriptor
    with pytest.raises(ConnectionNotFound):
        await resolver.resolve("other")


@pytest.mark.anyio
async def test_yaml_resolver_expands_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("INSIGHT_TEST_PG_PASSWORD", "hunter2")
    path = tmp_path / "connections.yml"
    path.write_text(CONNECTIONS_YAML, encoding="utf-8")

    resolver = YamlCredentialResolver(path)
    analytics = await resolver.resolve("analytics")
    local = await resolver.resolve("local")

    assert analytics.dialect == SqlDialect.POSTGRES
    assert analytics.password == "hunter2"
    assert local.dialect == SqlDialect.SQLITE


def test_yaml_resolver_rejects_malformed_files(tmp_path):
    path = tmp_path / "connections.yml"
    path.write_text("connections:\n  broken:\n    dialect: postgres\n", encoding="utf-8")

    with pytest.raises(InvalidRequest):
        YamlCredentialResolver(path)


@pytest.mark.anyio
async def test_pool_registry_reuses_engine_per_target(sqlite_database):
    pool = PoolRegistry(max_size=1)
    descriptor = ConnectionDescriptor(dialect="sqlite", database=str(sqlite_database))
    try:
        async with pool.connection(descriptor) as first:
            assert first.pool_key == descriptor.pool_key
        async with pool.connection(descriptor):
            pass
        assert pool.pool_keys == [descriptor.pool_key]
        assert pool.acquisitions == 2
    finally:
        await pool.dispose()

    assert pool.pool_keys == []


@pytest.mark.anyio
async def test_pool_registry_reports_connect_failures(tmp_path):
    pool = PoolRegistry(max_size=1)
    descriptor = ConnectionDescriptor(dialect="sqlite", database=str(tmp_path / "missing" / "nested.db"))
    try:
        with pytest.raises(ConnectFailed):
            async with pool.connection(descriptor):
                pass
    finally:
        await pool.dispose()


@pytest.mark.anyio
async def test_pool_registry_raises_pool_exhausted_at_the_bound(sqlite_database):
    pool = PoolRegistry(max_size=1, connect_timeout_s=0.2)
    descriptor = ConnectionDescriptor(dialect="sqlite", database=str(sqlite_database))
    try:
        async with pool.connection(descriptor):
            with pytest.raises(PoolExhausted) as exc_info:
                await pool.acquire(descriptor)
        assert exc_info.value.error_type == "PoolExhausted"

        # the slot is usable again once the holder releases it
        async with pool.connection(descriptor):
            pass
    finally:
        await pool.dispose()


@pytest.mark.anyio
async def test_concurrent_first_callers_share_one_engine(sqlite_database):
    pool = PoolRegistry(max_size=2)
    descriptor = ConnectionDescriptor(dialect="sqlite", database=str(sqlite_database))
    try:
        engines = await asyncio.gather(*(pool.engine_for(descriptor) for _ in range(10)))
        handles = await asyncio.gather(*(pool.acquire(descriptor) for _ in range(2)))
        for handle in handles:
            await pool.release(handle)
    finally:
        await pool.dispose()

    assert len({id(engine) for engine in engines}) == 1
    assert pool.acquisitions == 2


@pytest.mark.anyio
async def test_cancelled_holder_invalidates_its_connection(sqlite_database):
    pool = PoolRegistry(max_size=1)
    descriptor = ConnectionDescriptor(dialect="sqlite", database=str(sqlite_database))
    held = []

    async def hold_connection():
        async with pool.connection(descriptor) as handle:
            held.append(handle)
            await asyncio.sleep(5)

    try:
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(hold_connection(), timeout=0.2)
        async with pool.connection(descriptor) as fresh:
            assert fresh.invalidated is False
    finally:
        await pool.dispose()

    assert held[0].invalidated is True


class RecordingConnection:
    def __init__(self) -> None:
        self.statements = []

    async def execute(self, statement, params=None):
        self.statements.append(str(statement))


@pytest.mark.anyio
@pytest.mark.parametrize(
    "dialect, expected",
    [
        (SqlDialect.POSTGRES, ["SET statement_timeout = 120000"]),
        (SqlDialect.MYSQL, ["SET SESSION max_execution_time = 120000"]),
        (SqlDialect.SQLITE, []),
    ],
)
async def test_statement_timeout_follows_each_request(dialect, expected):
    connection = RecordingConnection()
    handle = PoolHandle(pool_key="db:5432:sales", dialect=dialect, connection=connection)

    await PoolRegistry().set_statement_timeout(handle, 120_000)

    assert connection.statements == expected

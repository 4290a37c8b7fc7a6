import os
import sqlite3
from pathlib import Path

os.environ.setdefault("OTEL_SDK_DISABLED", "true")
os.environ.setdefault("ENVIRONMENT", "production")

import pytest

from insight_engine.connectors import ConnectionDescriptor, InMemoryCredentialResolver


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def sqlite_database(tmp_path: Path) -> Path:
    path = tmp_path / "warehouse.db"
    with sqlite3.connect(path) as conn:
        conn.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT)")
        conn.executemany("INSERT INTO users (id, name) VALUES (?, ?)", [(1, "ada"), (2, "grace")])
        conn.execute("CREATE TABLE orders (id INTEGER PRIMARY KEY, region TEXT, amount REAL, status TEXT)")
        conn.executemany(
            "INSERT INTO orders (region, amount, status) VALUES (?, ?, ?)",
            [
                ("east", 10.0, "paid"),
                ("east", 5.0, "paid"),
                ("west", 7.0, "paid"),
                ("west", 100.0, "void"),
                ("north", 1.0, None),
            ],
        )
    return path


@pytest.fixture
def credential_resolver(sqlite_database: Path) -> InMemoryCredentialResolver:
    return InMemoryCredentialResolver(
        {"warehouse": ConnectionDescriptor(dialect="sqlite", database=str(sqlite_database))}
    )

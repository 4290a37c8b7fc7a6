from __future__ import annotations

from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlalchemy.engine import URL


class SqlDialect(str, Enum):
    POSTGRES = "postgres"
    MYSQL = "mysql"
    SQLITE = "sqlite"


SqlDialectDriverMap: Dict[SqlDialect, str] = {
    SqlDialect.POSTGRES: "postgresql+asyncpg",
    SqlDialect.MYSQL: "mysql+aiomysql",
    SqlDialect.SQLITE: "sqlite+aiosqlite",
}

# sqlglot dialect names used when rendering compiled queries
SqlDialectSqlglotMap: Dict[SqlDialect, str] = {
    SqlDialect.POSTGRES: "postgres",
    SqlDialect.MYSQL: "mysql",
    SqlDialect.SQLITE: "sqlite",
}


class ConnectionDescriptor(BaseModel):
    """
    A resolved target database. Credentials arrive already decrypted; the
    descriptor only lives for the duration of a request.
    """

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    dialect: SqlDialect = SqlDialect.POSTGRES
    host: str = ""
    port: int = 0
    database: str
    username: str = ""
    password: str = Field(default="", repr=False)
    options: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_network_target(self) -> "ConnectionDescriptor":
        if self.dialect != SqlDialect.SQLITE and not self.host:
            raise ValueError(f"host is required for {self.dialect.value} connections.")
        if not self.database:
            raise ValueError("database must be provided.")
        return self

    @property
    def pool_key(self) -> str:
        return f"{self.host}:{self.port}:{self.database}"

    @property
    def sqlglot_dialect(self) -> str:
        return SqlDialectSqlglotMap[self.dialect]

    def sqlalchemy_url(self) -> URL:
        drivername = SqlDialectDriverMap[self.dialect]
        if self.dialect == SqlDialect.SQLITE:
            return URL.create(drivername, database=self.database)
        return URL.create(
            drivername,
            username=self.username or None,
            password=self.password or None,
            host=self.host,
            port=self.port or None,
            database=self.database,
        )

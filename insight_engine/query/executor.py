"""
Statement execution against pooled connections with a hard deadline.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import exc as sa_exc
from sqlalchemy import text

from insight_engine.connectors import ConnectionDescriptor, PoolRegistry
from insight_engine.errors import ExecutionError, QueryTimeout
from insight_engine.monitoring import query_metrics

SQL_LIMIT_RE = re.compile(r"\blimit\s+\d+", re.IGNORECASE)

DEFAULT_TIMEOUT_MS = 30_000
MAX_RESULT_ROWS = 50_000


@dataclass(slots=True)
class ExecutionResult:
    """
    Raw statement output: column names as reported by the driver and row
    tuples in driver order.
    """

    columns: List[str]
    rows: List[Tuple[Any, ...]]
    duration_ms: float
    truncated: bool = False
    sql: str = ""
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def row_count(self) -> int:
        return len(self.rows)


def apply_limit(sql: str, max_rows: Optional[int]) -> str:
    """Append ``LIMIT max_rows`` unless the statement already carries a limit."""
    if max_rows is None or max_rows < 0:
        return sql
    if SQL_LIMIT_RE.search(sql):
        return sql
    terminating_semicolon = ";" if sql.strip().endswith(";") else ""
    base = sql.strip().rstrip(";")
    return f"{base}\nLIMIT {max_rows}{terminating_semicolon}"


def _driver_message(exc: sa_exc.DBAPIError) -> str:
    orig = getattr(exc, "orig", None)
    message = str(orig) if orig is not None else str(exc)
    return message or exc.__class__.__name__


class QueryExecutor:
    """
    Runs a single statement through the pool registry. Pool acquisition and
    the statement share one deadline, so the reported duration includes any
    wait for a pool slot. Failed statements are never retried.
    """

    def __init__(
        self,
        pool: PoolRegistry,
        *,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        max_rows: int = MAX_RESULT_ROWS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._pool = pool
        self._default_timeout_ms = default_timeout_ms
        self._max_rows = max_rows
        self._metrics = query_metrics()
        self.logger = logger or logging.getLogger(__name__)

    @property
    def max_rows(self) -> int:
        return self._max_rows

    async def execute(
        self,
        sql: str,
        descriptor: ConnectionDescriptor,
        params: Optional[Mapping[str, Any]] = None,
        *,
        timeout_ms: Optional[int] = None,
    ) -> ExecutionResult:
        timeout_ms = timeout_ms or self._default_timeout_ms
        bind_params = dict(params or {})
        dialect = descriptor.dialect.value
        self.logger.debug("Executing SQL (dialect=%s timeout_ms=%s): %s", dialect, timeout_ms, sql)

        start = time.perf_counter()
        try:
            columns, rows, truncated = await asyncio.wait_for(
                self._run(sql, descriptor, bind_params, timeout_ms),
                timeout=timeout_ms / 1000,
            )
        except asyncio.TimeoutError as exc:
            self._metrics.executions.labels(dialect, "timeout").inc()
            self.logger.warning(
                "Query on %s exceeded %sms and was cancelled", descriptor.pool_key, timeout_ms
            )
            raise QueryTimeout(f"Query exceeded the timeout of {timeout_ms}ms.") from exc
        except ExecutionError as exc:
            if (time.perf_counter() - start) * 1000 >= timeout_ms:
                # the server cancelled the statement at the same deadline
                self._metrics.executions.labels(dialect, "timeout").inc()
                raise QueryTimeout(f"Query exceeded the timeout of {timeout_ms}ms.") from exc
            self._metrics.executions.labels(dialect, "error").inc()
            raise
        duration_ms = (time.perf_counter() - start) * 1000

        self._metrics.executions.labels(dialect, "ok").inc()
        self._metrics.execution_latency.labels(dialect).observe(duration_ms / 1000)
        self.logger.debug(
            "Execution completed (rows=%s elapsed_ms=%.2f truncated=%s)",
            len(rows),
            duration_ms,
            truncated,
        )
        return ExecutionResult(
            columns=columns,
            rows=rows,
            duration_ms=duration_ms,
            truncated=truncated,
            sql=sql,
            params=bind_params,
        )

    async def _run(
        self,
        sql: str,
        descriptor: ConnectionDescriptor,
        params: Dict[str, Any],
        timeout_ms: int,
    ) -> Tuple[List[str], List[Tuple[Any, ...]], bool]:
        async with self._pool.connection(descriptor) as handle:
            try:
                await self._pool.set_statement_timeout(handle, timeout_ms)
                result = await handle.connection.execute(text(sql), params)
                if not result.returns_rows:
                    return [], [], False
                columns = [str(key) for key in result.keys()]
                fetched: Sequence[Any] = result.fetchmany(self._max_rows + 1)
            except sa_exc.DBAPIError as exc:
                if exc.connection_invalidated:
                    handle.invalidate()
                raise ExecutionError(_driver_message(exc)) from exc
            except sa_exc.StatementError as exc:
                raise ExecutionError(str(exc.orig or exc)) from exc

        truncated = len(fetched) > self._max_rows
        rows = [tuple(row) for row in fetched[: self._max_rows]]
        return columns, rows, truncated

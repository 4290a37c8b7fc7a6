import json
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from insight_engine.analytics import AnalyticsAugmenter
from insight_engine.connectors import ConnectionDescriptor, CredentialResolver
from insight_engine.contracts.analytics import (
    AnomalyRequest,
    AnomalyResponse,
    ClusteringRequest,
    ClusteringResponse,
    ForecastRequest,
    ForecastResponse,
)
from insight_engine.contracts.queries import (
    CacheInvalidationResponse,
    ExecuteQueryRequest,
    ExecuteQueryResponse,
    ForecastFit,
)
from insight_engine.errors import InsightEngineError
from insight_engine.query import (
    QueryExecutor,
    ResultCache,
    apply_limit,
    limit_rows,
    paginate,
    sanitize,
    shape_rows,
    unique_columns,
)
from insight_engine.query.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from insight_engine.semantic import SemanticQueryCompiler

from .analytics_service import INTERNAL_ERROR, AnalyticsService

Rows = List[Dict[str, Any]]


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class QueryService:
    """
    Request boundary of the query pipeline: compile, sanitize, cache lookup,
    execute, cache, augment, paginate. Every failure is reported in the
    response; nothing is raised to the caller.
    """

    def __init__(
        self,
        credential_resolver: CredentialResolver,
        executor: QueryExecutor,
        cache: ResultCache,
        compiler: SemanticQueryCompiler,
        augmenter: AnalyticsAugmenter,
        analytics_service: Optional[AnalyticsService] = None,
        *,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ) -> None:
        self._credential_resolver = credential_resolver
        self._executor = executor
        self._cache = cache
        self._compiler = compiler
        self._augmenter = augmenter
        self._analytics_service = analytics_service or AnalyticsService()
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size
        self._logger = logging.getLogger(__name__)

    async def execute(self, request: ExecuteQueryRequest) -> ExecuteQueryResponse:
        start = time.perf_counter()
        try:
            return await self._execute(request, start)
        except InsightEngineError as exc:
            self._logger.warning(
                "Query on connection %s failed (%s): %s",
                request.connection_id,
                exc.error_type,
                exc,
            )
            return ExecuteQueryResponse(
                success=False,
                error=str(exc),
                error_type=exc.error_type,
                execution_time_ms=_elapsed_ms(start),
            )
        except Exception:
            self._logger.exception("Unexpected failure while executing query on %s", request.connection_id)
            return ExecuteQueryResponse(
                success=False,
                error="Internal error while executing query.",
                error_type=INTERNAL_ERROR,
                execution_time_ms=_elapsed_ms(start),
            )

    async def _execute(self, request: ExecuteQueryRequest, start: float) -> ExecuteQueryResponse:
        sql, params, descriptor, metadata = await self._prepare(request)
        sql = apply_limit(sql, self._row_cap(request.limit))
        cache_text = self._cache_text(sql, params)

        cached_result = None
        cached = False
        truncated = False
        if request.use_cache:
            cached_result = await self._cache.get_result(request.connection_id, cache_text)
        if cached_result is not None:
            cached = True
            rows = cached_result.rows
            columns = cached_result.columns or [item["column"] for item in metadata or []]
            execution_time_ms = _elapsed_ms(start)
            self._logger.debug("Cache hit for connection %s", request.connection_id)
        else:
            result = await self._executor.execute(
                sql,
                descriptor,
                params,
                timeout_ms=request.timeout_ms,
            )
            columns = unique_columns(result.columns)
            rows = shape_rows(result.columns, result.rows)
            truncated = result.truncated
            execution_time_ms = result.duration_ms
            if request.use_cache:
                await self._cache.set(request.connection_id, cache_text, rows, columns=columns)

        rows = limit_rows(rows, request.limit)
        augmented = await self._augmenter.augment(rows, request.analytics)
        page = paginate(
            augmented.rows,
            request.page,
            request.page_size or self._default_page_size,
            max_page_size=self._max_page_size,
        )

        forecast_fit = None
        if augmented.forecast is not None:
            forecast_fit = ForecastFit(
                model=augmented.forecast.model,
                slope=augmented.forecast.slope,
                intercept=augmented.forecast.intercept,
                r_squared=augmented.forecast.r_squared,
            )

        return ExecuteQueryResponse(
            success=True,
            data=page.rows,
            columns=columns,
            row_count=len(page.rows),
            total_rows=page.total_rows,
            page=page.page,
            page_size=page.page_size,
            execution_time_ms=execution_time_ms,
            cached=cached,
            truncated=truncated,
            sql=sql,
            metadata=metadata,
            forecast=forecast_fit,
            analytics_errors=augmented.errors,
        )

    async def _prepare(
        self, request: ExecuteQueryRequest
    ) -> Tuple[str, Dict[str, Any], ConnectionDescriptor, Optional[List[Dict[str, Optional[str]]]]]:
        if request.semantic is not None:
            descriptor = await self._credential_resolver.resolve(request.connection_id)
            compiled = self._compiler.compile(request.semantic, dialect=descriptor.sqlglot_dialect)
            return sanitize(compiled.sql), compiled.args, descriptor, compiled.metadata

        # rejected statements never reach credential resolution or the pool
        sql = sanitize(request.sql or "")
        descriptor = await self._credential_resolver.resolve(request.connection_id)
        return sql, {}, descriptor, None

    def _row_cap(self, limit: Optional[int]) -> int:
        if limit is None or limit < 0:
            return self._executor.max_rows
        return min(limit, self._executor.max_rows)

    @staticmethod
    def _cache_text(sql: str, params: Dict[str, Any]) -> str:
        if not params:
            return sql
        return f"{sql} /* {json.dumps(params, sort_keys=True, default=str)} */"

    async def invalidate_cache(self, pattern: str) -> CacheInvalidationResponse:
        removed = await self._cache.invalidate(pattern)
        return CacheInvalidationResponse(success=True, pattern=pattern, removed=removed)

    async def forecast(self, request: ForecastRequest) -> ForecastResponse:
        return await self._analytics_service.forecast(request)

    async def detect_anomalies(self, request: AnomalyRequest) -> AnomalyResponse:
        return await self._analytics_service.detect_anomalies(request)

    async def cluster(self, request: ClusteringRequest) -> ClusteringResponse:
        return await self._analytics_service.cluster(request)

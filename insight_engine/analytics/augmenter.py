"""
Runs the requested analytics over an unpaginated result set and folds the
results back into the rows.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, List, Mapping, Optional, Sequence

from insight_engine.contracts.analytics import AnalyticsOptions, FailureMode
from insight_engine.monitoring import query_metrics

from .anomaly import AnomalyPoint, detect_row_anomalies
from .clustering import ClusterResult, cluster
from .forecasting import ForecastOutcome, forecast_rows
from .series import (
    ANOMALY_FLAG,
    ANOMALY_LABEL,
    ANOMALY_SCORE,
    ANOMALY_SEVERITY,
    CLUSTER_DISTANCE,
    CLUSTER_ID,
    copy_rows,
    is_forecast_row,
)


async def run_sync(fn, *args, **kwargs):
    """
    Run blocking call in default thread pool.
    """

    return await asyncio.to_thread(fn, *args, **kwargs)


@dataclass(slots=True)
class AugmentedResult:
    rows: List[Dict[str, Any]]
    errors: Dict[str, str] = field(default_factory=dict)
    forecast: Optional[ForecastOutcome] = None


class AnalyticsAugmenter:
    """
    Anomaly detection, clustering and forecasting run concurrently. Anomaly
    and cluster results are matched to rows strictly by position; forecast
    rows are appended after the source rows.

    ``on_error="degrade"`` drops a failing analytic and reports it in
    ``errors``; ``on_error="fail"`` re-raises the first failure.
    """

    def __init__(self, *, on_error: FailureMode = "degrade", logger: Optional[logging.Logger] = None) -> None:
        self._on_error = on_error
        self._metrics = query_metrics()
        self.logger = logger or logging.getLogger(__name__)

    async def augment(
        self,
        rows: Sequence[Mapping[str, Any]],
        options: Optional[AnalyticsOptions],
        *,
        on_error: Optional[FailureMode] = None,
    ) -> AugmentedResult:
        annotated = copy_rows(rows)
        if options is None:
            return AugmentedResult(rows=annotated)
        policy = on_error or options.on_error or self._on_error
        source_rows = [row for row in annotated if not is_forecast_row(row)]

        tasks: Dict[str, Awaitable[Any]] = {}
        if options.anomaly and options.anomaly.enabled:
            tasks["anomaly"] = run_sync(
                detect_row_anomalies,
                annotated,
                options.anomaly.value_column,
                options.anomaly.method,
                options.anomaly.sensitivity,
            )
        if options.clustering and options.clustering.enabled:
            tasks["clustering"] = run_sync(
                cluster,
                source_rows,
                options.clustering.features,
                options.clustering.k,
            )
        if options.forecast and options.forecast.enabled:
            tasks["forecast"] = run_sync(
                forecast_rows,
                annotated,
                options.forecast.date_column,
                options.forecast.value_column,
                options.forecast.periods,
                options.forecast.model,
            )
        if not tasks:
            return AugmentedResult(rows=annotated)

        names = list(tasks)
        outcomes = await asyncio.gather(*tasks.values(), return_exceptions=True)

        result = AugmentedResult(rows=annotated)
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                self._metrics.analytics_runs.labels(name, "error").inc()
                if policy == "fail":
                    raise outcome
                self.logger.warning("Analytic %s failed and was skipped: %s", name, outcome)
                result.errors[name] = str(outcome)
                continue
            self._metrics.analytics_runs.labels(name, "ok").inc()
            if name == "anomaly":
                self._apply_anomalies(annotated, outcome)
            elif name == "clustering":
                self._apply_clusters(annotated, outcome)
            elif name == "forecast":
                result.forecast = outcome

        if result.forecast is not None:
            annotated.extend(result.forecast.rows)
        return result

    @staticmethod
    def _apply_anomalies(rows: List[Dict[str, Any]], points: List[AnomalyPoint]) -> None:
        for row in rows:
            if not is_forecast_row(row):
                row[ANOMALY_FLAG] = False
        for point in points:
            row = rows[point.index]
            row[ANOMALY_FLAG] = True
            row[ANOMALY_SCORE] = point.score
            row[ANOMALY_LABEL] = point.label
            row[ANOMALY_SEVERITY] = point.severity

    @staticmethod
    def _apply_clusters(rows: List[Dict[str, Any]], result: ClusterResult) -> None:
        # clustering ran over the non-forecast rows, in order
        source_positions = [index for index, row in enumerate(rows) if not is_forecast_row(row)]
        for assignment in result.clusters:
            row = rows[source_positions[assignment.data_index]]
            row[CLUSTER_ID] = assignment.cluster_id
            row[CLUSTER_DISTANCE] = assignment.centroid_distance

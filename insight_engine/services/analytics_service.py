import logging

from insight_engine.analytics import cluster, detect_row_anomalies, forecast_rows, run_sync
from insight_engine.contracts.analytics import (
    AnomalyPointResponse,
    AnomalyRequest,
    AnomalyResponse,
    ClusterAssignmentResponse,
    ClusteringRequest,
    ClusteringResponse,
    ForecastRequest,
    ForecastResponse,
)
from insight_engine.errors import InsightEngineError

INTERNAL_ERROR = "InternalError"


class AnalyticsService:
    """Standalone analytics over caller-supplied rows; failures come back as ``success=False``."""

    def __init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    async def forecast(self, request: ForecastRequest) -> ForecastResponse:
        try:
            outcome = await run_sync(
                forecast_rows,
                request.data,
                request.date_column,
                request.value_column,
                request.periods,
                request.model,
            )
        except InsightEngineError as exc:
            self._logger.info("Forecast rejected (%s): %s", exc.error_type, exc)
            return ForecastResponse(success=False, error=str(exc), error_type=exc.error_type)
        except Exception:
            self._logger.exception("Unexpected forecasting failure")
            return ForecastResponse(success=False, error="Forecasting failed.", error_type=INTERNAL_ERROR)
        return ForecastResponse(
            success=True,
            forecast=outcome.rows,
            model=outcome.model,
            slope=outcome.slope,
            intercept=outcome.intercept,
            r_squared=outcome.r_squared,
        )

    async def detect_anomalies(self, request: AnomalyRequest) -> AnomalyResponse:
        try:
            points = await run_sync(
                detect_row_anomalies,
                request.data,
                request.value_column,
                request.method,
                request.sensitivity,
            )
        except InsightEngineError as exc:
            self._logger.info("Anomaly detection rejected (%s): %s", exc.error_type, exc)
            return AnomalyResponse(success=False, error=str(exc), error_type=exc.error_type)
        except Exception:
            self._logger.exception("Unexpected anomaly detection failure")
            return AnomalyResponse(success=False, error="Anomaly detection failed.", error_type=INTERNAL_ERROR)
        return AnomalyResponse(
            success=True,
            anomalies=[AnomalyPointResponse.model_validate(point) for point in points],
        )

    async def cluster(self, request: ClusteringRequest) -> ClusteringResponse:
        try:
            result = await run_sync(
                cluster,
                request.data,
                request.features,
                request.k,
                request.max_iterations,
            )
        except InsightEngineError as exc:
            self._logger.info("Clustering rejected (%s): %s", exc.error_type, exc)
            return ClusteringResponse(success=False, error=str(exc), error_type=exc.error_type)
        except Exception:
            self._logger.exception("Unexpected clustering failure")
            return ClusteringResponse(success=False, error="Clustering failed.", error_type=INTERNAL_ERROR)
        return ClusteringResponse(
            success=True,
            clusters=[ClusterAssignmentResponse.model_validate(item) for item in result.clusters],
            centroids=result.centroids,
            iterations=result.iterations,
        )

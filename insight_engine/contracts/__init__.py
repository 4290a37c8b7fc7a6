from .analytics import (
    AnalyticsOptions,
    AnomalyOptions,
    AnomalyPointResponse,
    AnomalyRequest,
    AnomalyResponse,
    ClusterAssignmentResponse,
    ClusteringOptions,
    ClusteringRequest,
    ClusteringResponse,
    FailureMode,
    ForecastOptions,
    ForecastRequest,
    ForecastResponse,
)
from .queries import (
    CacheInvalidationResponse,
    ExecuteQueryRequest,
    ExecuteQueryResponse,
    ForecastFit,
)

__all__ = [
    "AnalyticsOptions",
    "AnomalyOptions",
    "AnomalyPointResponse",
    "AnomalyRequest",
    "AnomalyResponse",
    "ClusterAssignmentResponse",
    "ClusteringOptions",
    "ClusteringRequest",
    "ClusteringResponse",
    "FailureMode",
    "ForecastOptions",
    "ForecastRequest",
    "ForecastResponse",
    "CacheInvalidationResponse",
    "ExecuteQueryRequest",
    "ExecuteQueryResponse",
    "ForecastFit",
]

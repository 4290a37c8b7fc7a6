from .anomaly import AnomalyPoint, detect_anomalies, detect_row_anomalies
from .augmenter import AnalyticsAugmenter, AugmentedResult, run_sync
from .clustering import ClusterAssignment, ClusterResult, cluster
from .errors import AnalyticsError, AnalyticsInputError, InsufficientData, InvalidK
from .forecasting import (
    ForecastOutcome,
    LinearForecast,
    decomposition,
    forecast_linear,
    forecast_rows,
    holt_winters,
)

__all__ = [
    "AnomalyPoint",
    "detect_anomalies",
    "detect_row_anomalies",
    "AnalyticsAugmenter",
    "AugmentedResult",
    "run_sync",
    "ClusterAssignment",
    "ClusterResult",
    "cluster",
    "AnalyticsError",
    "AnalyticsInputError",
    "InsufficientData",
    "InvalidK",
    "ForecastOutcome",
    "LinearForecast",
    "decomposition",
    "forecast_linear",
    "forecast_rows",
    "holt_winters",
]

from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from .base import _Base

FailureMode = Literal["degrade", "fail"]


class ForecastOptions(_Base):
    enabled: bool = True
    date_column: str
    value_column: str
    periods: int = 7
    model: str = "linear"


class AnomalyOptions(_Base):
    enabled: bool = True
    value_column: str
    method: str = "iqr"
    sensitivity: Optional[float] = None


class ClusteringOptions(_Base):
    enabled: bool = True
    features: List[str]
    k: int = 3


class AnalyticsOptions(_Base):
    forecast: Optional[ForecastOptions] = None
    anomaly: Optional[AnomalyOptions] = None
    clustering: Optional[ClusteringOptions] = None
    # None falls back to the service-wide ANALYTICS_FAILURE_MODE
    on_error: Optional[FailureMode] = None


class ForecastRequest(_Base):
    data: List[Dict[str, Any]]
    date_column: str
    value_column: str
    periods: int = 7
    model: str = "linear"


class ForecastResponse(_Base):
    success: bool
    forecast: List[Dict[str, Any]] = Field(default_factory=list)
    model: Optional[str] = None
    slope: Optional[float] = None
    intercept: Optional[float] = None
    r_squared: Optional[float] = None
    error: Optional[str] = None
    error_type: Optional[str] = None


class AnomalyRequest(_Base):
    data: List[Dict[str, Any]]
    value_column: str
    method: str = "iqr"
    sensitivity: Optional[float] = None


class AnomalyPointResponse(_Base):
    index: int
    value: float
    score: float
    label: str
    severity: str


class AnomalyResponse(_Base):
    success: bool
    anomalies: List[AnomalyPointResponse] = Field(default_factory=list)
    error: Optional[str] = None
    error_type: Optional[str] = None


class ClusteringRequest(_Base):
    data: List[Dict[str, Any]]
    features: List[str]
    k: int
    max_iterations: int = 50


class ClusterAssignmentResponse(_Base):
    data_index: int
    cluster_id: int
    centroid_distance: float


class ClusteringResponse(_Base):
    success: bool
    clusters: List[ClusterAssignmentResponse] = Field(default_factory=list)
    centroids: List[List[float]] = Field(default_factory=list)
    iterations: int = 0
    error: Optional[str] = None
    error_type: Optional[str] = None

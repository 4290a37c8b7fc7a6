from typing import Any, Dict, List, Optional

from pydantic import Field, model_validator

from insight_engine.semantic.query_model import SemanticQueryRequest

from .analytics import AnalyticsOptions
from .base import _Base


class ExecuteQueryRequest(_Base):
    connection_id: str
    sql: Optional[str] = None
    semantic: Optional[SemanticQueryRequest] = None
    limit: Optional[int] = Field(default=None, ge=0)
    page: int = Field(default=1, ge=1)
    page_size: Optional[int] = Field(default=None, ge=1)
    timeout_ms: Optional[int] = Field(default=None, gt=0)
    use_cache: bool = True
    analytics: Optional[AnalyticsOptions] = None

    @model_validator(mode="after")
    def _ensure_single_source(self) -> "ExecuteQueryRequest":
        if (self.sql is None) == (self.semantic is None):
            raise ValueError("Provide exactly one of sql or semantic.")
        return self


class ForecastFit(_Base):
    model: str
    slope: Optional[float] = None
    intercept: Optional[float] = None
    r_squared: Optional[float] = None


class ExecuteQueryResponse(_Base):
    success: bool
    data: List[Dict[str, Any]] = Field(default_factory=list)
    columns: List[str] = Field(default_factory=list)
    row_count: int = 0
    total_rows: int = 0
    page: int = 1
    page_size: int = 0
    execution_time_ms: float = 0.0
    cached: bool = False
    truncated: bool = False
    sql: Optional[str] = None
    metadata: Optional[List[Dict[str, Optional[str]]]] = None
    forecast: Optional[ForecastFit] = None
    analytics_errors: Dict[str, str] = Field(default_factory=dict)
    error: Optional[str] = None
    error_type: Optional[str] = None


class CacheInvalidationResponse(_Base):
    success: bool
    pattern: str
    removed: int = 0
    error: Optional[str] = None
    error_type: Optional[str] = None

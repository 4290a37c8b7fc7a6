from .analytics_service import AnalyticsService
from .query_service import QueryService

__all__ = ["AnalyticsService", "QueryService"]

from insight_engine.errors import InsightEngineError


class AnalyticsError(InsightEngineError):
    """Base error for analytics failures."""

    error_type = "AnalyticsError"


class InsufficientData(AnalyticsError):
    """Raised when a series is too short for the requested analytic."""

    error_type = "InsufficientData"


class InvalidK(AnalyticsError):
    """Raised when the cluster count is below 2 or above the number of rows."""

    error_type = "InvalidK"


class AnalyticsInputError(AnalyticsError):
    """Raised when analytics options reference missing or unusable columns."""

    error_type = "AnalyticsInputError"

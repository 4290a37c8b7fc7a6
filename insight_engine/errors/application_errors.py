from typing import Dict, Optional


class InsightEngineError(Exception):
    """Base error for every failure reported across the request boundary."""

    error_type: str = "InternalError"

    def __init__(self, message: str, errors: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}

    def __str__(self):
        return self.message


class InvalidRequest(InsightEngineError):
    error_type = "InvalidRequest"


class ConnectionNotFound(InsightEngineError):
    error_type = "ConnectionNotFound"

from .correlation_middleware import CORRELATION_ID_HEADER, CorrelationIdMiddleware
from .error_middleware import ErrorMiddleware, error_response

__all__ = [
    "CORRELATION_ID_HEADER",
    "CorrelationIdMiddleware",
    "ErrorMiddleware",
    "error_response",
]

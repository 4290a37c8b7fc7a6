"""Logging helpers."""
from .logger import (
    CorrelationIdFilter,
    get_correlation_id,
    reset_correlation_id,
    set_correlation_id,
    setup_logging,
)

__all__ = [
    "CorrelationIdFilter",
    "get_correlation_id",
    "reset_correlation_id",
    "set_correlation_id",
    "setup_logging",
]

from .application_errors import (
    ConnectionNotFound,
    InsightEngineError,
    InvalidRequest,
)
from .connector_errors import (
    ConnectFailed,
    ConnectorError,
    DestructiveStatement,
    ExecutionError,
    PoolExhausted,
    QueryTimeout,
    QueryValidationError,
)

__all__ = [
    "ConnectionNotFound",
    "InsightEngineError",
    "InvalidRequest",
    "ConnectFailed",
    "ConnectorError",
    "DestructiveStatement",
    "ExecutionError",
    "PoolExhausted",
    "QueryTimeout",
    "QueryValidationError",
]

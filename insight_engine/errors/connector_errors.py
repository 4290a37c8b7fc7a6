from .application_errors import InsightEngineError


class ConnectorError(InsightEngineError):
    """Base error for connection and execution issues."""

    error_type = "ConnectorError"


class PoolExhausted(ConnectorError):
    """Raised when no pooled connection frees up before the acquisition timeout."""

    error_type = "PoolExhausted"


class ConnectFailed(ConnectorError):
    """Raised when the network or authentication handshake fails."""

    error_type = "ConnectFailed"


class QueryTimeout(ConnectorError):
    """Raised when a statement does not finish before its deadline."""

    error_type = "Timeout"


class ExecutionError(ConnectorError):
    """Raised when the driver rejects or fails a statement."""

    error_type = "ExecutionError"


class QueryValidationError(ConnectorError):
    """Raised when an invalid or unsafe query is detected."""

    error_type = "InvalidQuery"


class DestructiveStatement(QueryValidationError):
    """Raised when a statement contains a mutating or DDL keyword."""

    error_type = "DestructiveStatement"

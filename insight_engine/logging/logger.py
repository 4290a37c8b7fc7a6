"""
Logging setup for the query service: console/file handlers, request
correlation ids and OpenTelemetry OTLP export of logs and traces.
"""

from __future__ import annotations

import contextvars
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from opentelemetry import _logs, trace
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import (
    OTLPLogExporter as GrpcOTLPLogExporter,
)
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
    OTLPSpanExporter as GrpcOTLPSpanExporter,
)
from opentelemetry.exporter.otlp.proto.http._log_exporter import (
    OTLPLogExporter as HttpOTLPLogExporter,
)
from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
    OTLPSpanExporter as HttpOTLPSpanExporter,
)
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

DEFAULT_LOG_DIR = os.getenv("LOG_DIR", "./")
DEFAULT_LOG_FILE = "insight-engine.log"
DEFAULT_LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEFAULT_SERVICE_NAME = os.getenv("OTEL_SERVICE_NAME", "insight-engine")

_correlation_id: contextvars.ContextVar[str] = contextvars.ContextVar(
    "insight_engine_correlation_id", default="-"
)
_initialized = False


def _root_logger() -> logging.Logger:
    """Return the process-wide root logger."""
    return logging.getLogger("")


def set_correlation_id(value: str) -> contextvars.Token:
    return _correlation_id.set(value)


def reset_correlation_id(token: contextvars.Token) -> None:
    _correlation_id.reset(token)


def get_correlation_id() -> str:
    return _correlation_id.get()


class CorrelationIdFilter(logging.Filter):
    """Stamp every record with the correlation id of the current request."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = _correlation_id.get()
        return True


def _build_formatter() -> logging.Formatter:
    return logging.Formatter(
        fmt="%(asctime)s %(levelname)s [%(name)s] [%(correlation_id)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _build_file_handler(log_dir: str, log_file: str, formatter: logging.Formatter) -> RotatingFileHandler:
    os.makedirs(log_dir, exist_ok=True)
    file_handler = RotatingFileHandler(
        os.path.join(log_dir, log_file),
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    return file_handler


def _bool_env(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


def _otel_disabled() -> bool:
    return _bool_env("OTEL_SDK_DISABLED")


def _exporter_enabled(env_key: str, default: str = "otlp") -> bool:
    return os.getenv(env_key, default).strip().lower() not in {"none", "disabled"}


def _get_protocol(env_key: str) -> str:
    value = os.getenv(env_key)
    if value:
        return value.strip().lower()
    return os.getenv("OTEL_EXPORTER_OTLP_PROTOCOL", "grpc").strip().lower()


def _build_log_exporter() -> Optional[object]:
    if not _exporter_enabled("OTEL_LOGS_EXPORTER"):
        return None
    if _get_protocol("OTEL_EXPORTER_OTLP_LOGS_PROTOCOL") in {"http/protobuf", "http"}:
        return HttpOTLPLogExporter()
    return GrpcOTLPLogExporter()


def _build_span_exporter() -> Optional[object]:
    if not _exporter_enabled("OTEL_TRACES_EXPORTER"):
        return None
    if _get_protocol("OTEL_EXPORTER_OTLP_TRACES_PROTOCOL") in {"http/protobuf", "http"}:
        return HttpOTLPSpanExporter()
    return GrpcOTLPSpanExporter()


def _install_otel(service_name: Optional[str], level: str | int) -> Optional[logging.Handler]:
    resource = Resource.create({"service.name": service_name or DEFAULT_SERVICE_NAME})

    tracer_provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(tracer_provider)
    span_exporter = _build_span_exporter()
    if span_exporter is not None:
        tracer_provider.add_span_processor(BatchSpanProcessor(span_exporter))

    logger_provider = LoggerProvider(resource=resource)
    _logs.set_logger_provider(logger_provider)
    log_exporter = _build_log_exporter()
    if log_exporter is None:
        return None
    logger_provider.add_log_record_processor(BatchLogRecordProcessor(log_exporter))
    return LoggingHandler(level=level, logger_provider=logger_provider)


def setup_logging(
    *,
    service_name: Optional[str] = None,
    level: str | int = DEFAULT_LOG_LEVEL,
    log_dir: str = DEFAULT_LOG_DIR,
    log_file: str = DEFAULT_LOG_FILE,
    with_console: bool = True,
    with_file: bool = False,
) -> logging.Logger:
    """
    Configure application logging. OTLP exporters are attached unless
    OTEL_SDK_DISABLED is set. Safe to call multiple times.
    """
    global _initialized

    root = _root_logger()
    root.setLevel(level)
    if _initialized:
        return root
    _initialized = True

    formatter = _build_formatter()
    correlation_filter = CorrelationIdFilter()
    handlers: list[logging.Handler] = []
    if with_console:
        handlers.append(logging.StreamHandler())
    if with_file:
        handlers.append(_build_file_handler(log_dir, log_file, formatter))

    if not _otel_disabled():
        otel_handler = _install_otel(service_name, level)
        if otel_handler is not None:
            handlers.append(otel_handler)

    existing = set(root.handlers)
    for handler in handlers:
        if handler in existing:
            continue
        if not isinstance(handler, LoggingHandler):
            handler.setFormatter(formatter)
        handler.addFilter(correlation_filter)
        root.addHandler(handler)

    root.info("Logging initialized (level=%s, otel_disabled=%s)", level, _otel_disabled())
    return root

from .cache import (
    CacheBackend,
    CachedResult,
    CacheEntry,
    CacheStats,
    InMemoryCacheBackend,
    RedisCacheBackend,
    ResultCache,
    normalize_sql,
)
from .executor import ExecutionResult, QueryExecutor, apply_limit
from .pagination import Page, limit_rows, paginate, shape_rows, unique_columns
from .sanitizer import FORBIDDEN_KEYWORDS, find_forbidden_keywords, sanitize
from .values import ValueKind, as_number, classify, json_safe

__all__ = [
    "CacheBackend",
    "CachedResult",
    "CacheEntry",
    "CacheStats",
    "InMemoryCacheBackend",
    "RedisCacheBackend",
    "ResultCache",
    "normalize_sql",
    "ExecutionResult",
    "QueryExecutor",
    "apply_limit",
    "Page",
    "limit_rows",
    "paginate",
    "shape_rows",
    "unique_columns",
    "FORBIDDEN_KEYWORDS",
    "find_forbidden_keywords",
    "sanitize",
    "ValueKind",
    "as_number",
    "classify",
    "json_safe",
]

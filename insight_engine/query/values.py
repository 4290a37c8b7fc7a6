"""
Cell classification for result rows.

Rows travel as ordered ``dict`` objects. Analytics and shaping consult
``classify`` instead of probing types ad hoc.
"""

from __future__ import annotations

import base64
import math
import uuid
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class ValueKind(str, Enum):
    NULL = "null"
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    TEXT = "text"
    TIMESTAMP = "timestamp"

    @property
    def is_numeric(self) -> bool:
        return self in (ValueKind.INT, ValueKind.FLOAT)


def classify(value: Any) -> ValueKind:
    if value is None:
        return ValueKind.NULL
    # bool is a subclass of int
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, int):
        return ValueKind.INT
    if isinstance(value, (float, Decimal)):
        return ValueKind.FLOAT
    if isinstance(value, (datetime, date, time)):
        return ValueKind.TIMESTAMP
    return ValueKind.TEXT


def as_number(value: Any) -> Optional[float]:
    """
    Numeric view of a cell: ints, floats, decimals and numeric strings.
    Booleans, timestamps, NaN and anything unparsable map to ``None``.
    """
    kind = classify(value)
    if kind.is_numeric:
        number = float(value)
    elif kind == ValueKind.TEXT and isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def json_safe(value: Any) -> Any:
    if value is None or isinstance(value, (str, bool, int)):
        return value
    if isinstance(value, float):
        return None if math.isnan(value) or math.isinf(value) else value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            return base64.b64encode(raw).decode("ascii")
    if isinstance(value, (list, tuple)):
        return [json_safe(item) for item in value]
    if isinstance(value, dict):
        return {str(key): json_safe(item) for key, item in value.items()}
    return str(value)

"""
Helpers that turn result rows into numeric series and time axes.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from insight_engine.query.values import as_number

from .errors import AnalyticsInputError

FORECAST_FLAG = "_isForecast"
UPPER_BOUND = "_upperBound"
LOWER_BOUND = "_lowerBound"
ANOMALY_FLAG = "_isAnomaly"
ANOMALY_SCORE = "_anomalyScore"
ANOMALY_LABEL = "_anomalyLabel"
ANOMALY_SEVERITY = "_anomalySeverity"
CLUSTER_ID = "_clusterId"
CLUSTER_DISTANCE = "_centroidDistance"


def is_forecast_row(row: Mapping[str, Any]) -> bool:
    return bool(row.get(FORECAST_FLAG))


def require_column(rows: Sequence[Mapping[str, Any]], column: str) -> None:
    if rows and not any(column in row for row in rows):
        raise AnalyticsInputError(f"Column '{column}' is not present in the result set.")


def numeric_series(rows: Sequence[Mapping[str, Any]], column: str) -> List[Optional[float]]:
    """Positional numeric view of ``column``; forecast rows and non-numeric cells become ``None``."""
    require_column(rows, column)
    return [None if is_forecast_row(row) else as_number(row.get(column)) for row in rows]


def parse_timestamp(value: Any) -> Tuple[datetime, bool]:
    """Return ``(timestamp, date_only)`` for a date-like cell."""
    if isinstance(value, datetime):
        return value, False
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day), True
    if isinstance(value, str):
        text = value.strip()
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError as exc:
            raise AnalyticsInputError(f"Value '{value}' is not a date.") from exc
        return parsed, len(text) <= 10
    raise AnalyticsInputError(f"Value '{value}' is not a date.")


def _naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def project_dates(values: Sequence[Any], periods: int) -> List[str]:
    """
    Extrapolate ``periods`` future timestamps using the average spacing
    between the first and last values. Irregular series are treated as
    evenly spaced.
    """
    if len(values) < 2:
        raise AnalyticsInputError("At least two dates are required to project future dates.")
    parsed = [parse_timestamp(value) for value in values]
    first, _ = parsed[0]
    last, _ = parsed[-1]
    if (first.tzinfo is None) != (last.tzinfo is None):
        # mixed naive and offset-aware cells are read as UTC
        first, last = _naive_utc(first), _naive_utc(last)
    date_only = all(flag for _, flag in parsed)
    step = (last - first) / (len(parsed) - 1)
    projected: List[str] = []
    for offset in range(1, periods + 1):
        moment = last + step * offset
        projected.append(moment.date().isoformat() if date_only else moment.isoformat())
    return projected


def series_rows(
    rows: Sequence[Mapping[str, Any]],
    date_column: str,
    value_column: str,
) -> Tuple[List[Any], List[float]]:
    """Pair dates and numeric values, skipping forecast rows and non-numeric values."""
    require_column(rows, value_column)
    require_column(rows, date_column)
    dates: List[Any] = []
    values: List[float] = []
    for row in rows:
        if is_forecast_row(row):
            continue
        number = as_number(row.get(value_column))
        if number is None:
            continue
        dates.append(row.get(date_column))
        values.append(number)
    return dates, values


def copy_rows(rows: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return [dict(row) for row in rows]

"""
Outlier flags over a numeric series.

``iqr`` flags values outside ``[Q1 - k*IQR, Q3 + k*IQR]`` (inclusive
quartiles); ``zscore`` flags ``|v - mean| / stddev > k`` using the
population standard deviation. A constant series never has anomalies.
"""

from __future__ import annotations

import statistics
from dataclasses import dataclass
from typing import Any, List, Literal, Mapping, Optional, Sequence

from .errors import AnalyticsInputError
from .series import numeric_series

AnomalyMethod = Literal["iqr", "zscore"]

DEFAULT_SENSITIVITY = {"iqr": 1.5, "zscore": 3.0}

_METHOD_ALIASES = {
    "iqr": "iqr",
    "zscore": "zscore",
    "z-score": "zscore",
    "z_score": "zscore",
}


@dataclass(slots=True)
class AnomalyPoint:
    index: int
    value: float
    score: float
    label: Literal["spike", "drop"]
    severity: Literal["low", "medium", "high"]


def normalize_method(method: str) -> str:
    normalized = _METHOD_ALIASES.get(str(method).strip().lower())
    if normalized is None:
        raise AnalyticsInputError(f"Unsupported anomaly detection method '{method}'.")
    return normalized


def _severity(score: float, threshold: float) -> Literal["low", "medium", "high"]:
    ratio = score / threshold
    if ratio >= 2.0:
        return "high"
    if ratio >= 1.5:
        return "medium"
    return "low"


def _iqr_points(indexed: Sequence[tuple[int, float]], k: float) -> List[AnomalyPoint]:
    values = [value for _, value in indexed]
    q1, _, q3 = statistics.quantiles(values, n=4, method="inclusive")
    iqr = q3 - q1
    lower = q1 - k * iqr
    upper = q3 + k * iqr
    scale = iqr if iqr > 0 else 1.0

    points: List[AnomalyPoint] = []
    for index, value in indexed:
        if lower <= value <= upper:
            continue
        label: Literal["spike", "drop"] = "spike" if value > upper else "drop"
        quartile = q3 if label == "spike" else q1
        score = abs(value - quartile) / scale
        points.append(
            AnomalyPoint(
                index=index,
                value=value,
                score=score,
                label=label,
                severity=_severity(score, k),
            )
        )
    return points


def _zscore_points(indexed: Sequence[tuple[int, float]], k: float) -> List[AnomalyPoint]:
    values = [value for _, value in indexed]
    mean = statistics.fmean(values)
    stddev = statistics.pstdev(values)
    if stddev == 0:
        return []

    points: List[AnomalyPoint] = []
    for index, value in indexed:
        score = abs(value - mean) / stddev
        if score <= k:
            continue
        points.append(
            AnomalyPoint(
                index=index,
                value=value,
                score=score,
                label="spike" if value > mean else "drop",
                severity=_severity(score, k),
            )
        )
    return points


def detect_anomalies(
    values: Sequence[Optional[float]],
    method: str = "iqr",
    sensitivity: Optional[float] = None,
) -> List[AnomalyPoint]:
    """
    Return anomalies with their position in ``values``. ``None`` entries are
    skipped but keep their position, so indexes line up with the source rows.
    """
    method = normalize_method(method)
    k = DEFAULT_SENSITIVITY[method] if sensitivity is None else float(sensitivity)
    if k <= 0:
        raise AnalyticsInputError("sensitivity must be positive.")

    indexed = [(index, float(value)) for index, value in enumerate(values) if value is not None]
    if len(indexed) < 2:
        return []
    if method == "iqr":
        return _iqr_points(indexed, k)
    return _zscore_points(indexed, k)


def detect_row_anomalies(
    rows: Sequence[Mapping[str, Any]],
    value_column: str,
    method: str = "iqr",
    sensitivity: Optional[float] = None,
) -> List[AnomalyPoint]:
    """Anomalies over ``value_column``; forecast rows and non-numeric cells are skipped."""
    return detect_anomalies(numeric_series(rows, value_column), method, sensitivity)

"""
Time-series forecasting over result rows.

``forecast_linear`` is closed-form ordinary least squares over the integer
row index with a 95% prediction band. The band uses a fixed 1.96 multiplier
regardless of sample size, and future dates assume evenly spaced buckets;
both approximations are part of the numeric output contract.
"""

from __future__ import annotations

import math
import statistics
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence

from .errors import AnalyticsInputError, InsufficientData
from .series import FORECAST_FLAG, LOWER_BOUND, UPPER_BOUND, project_dates, series_rows

Z_95 = 1.96

ForecastModel = Literal["linear", "holt_winters", "decomposition"]

_MODEL_ALIASES: Dict[str, str] = {
    "linear": "linear",
    "holt_winters": "holt_winters",
    "holt-winters": "holt_winters",
    "exponential_smoothing": "holt_winters",
    "decomposition": "decomposition",
}


@dataclass(slots=True)
class LinearForecast:
    slope: float
    intercept: float
    r_squared: float
    standard_error: float
    forecast: List[float] = field(default_factory=list)
    upper_bound: List[float] = field(default_factory=list)
    lower_bound: List[float] = field(default_factory=list)


@dataclass(slots=True)
class ForecastOutcome:
    model: str
    rows: List[Dict[str, Any]]
    slope: Optional[float] = None
    intercept: Optional[float] = None
    r_squared: Optional[float] = None


def _check_periods(periods: int) -> None:
    if periods < 0:
        raise AnalyticsInputError("periods must be zero or positive.")


def forecast_linear(history: Sequence[float], periods: int) -> LinearForecast:
    n = len(history)
    if n < 2:
        raise InsufficientData("Linear forecasting needs at least 2 data points.")
    _check_periods(periods)

    x_mean = (n - 1) / 2
    y_mean = statistics.fmean(history)
    sxx = sum((x - x_mean) ** 2 for x in range(n))
    sxy = sum((x - x_mean) * (y - y_mean) for x, y in enumerate(history))
    slope = sxy / sxx
    intercept = y_mean - slope * x_mean

    ss_res = sum((y - (slope * x + intercept)) ** 2 for x, y in enumerate(history))
    ss_tot = sum((y - y_mean) ** 2 for y in history)
    # a flat series has nothing left to explain
    r_squared = 1.0 - ss_res / ss_tot if ss_tot > 0 else 1.0
    standard_error = math.sqrt(ss_res / (n - 2)) if n > 2 else 0.0

    result = LinearForecast(
        slope=slope,
        intercept=intercept,
        r_squared=r_squared,
        standard_error=standard_error,
    )
    for step in range(1, periods + 1):
        x = n - 1 + step
        predicted = slope * x + intercept
        margin = Z_95 * standard_error * math.sqrt(1 + 1 / n + (x - x_mean) ** 2 / sxx)
        result.forecast.append(predicted)
        result.upper_bound.append(predicted + margin)
        result.lower_bound.append(predicted - margin)
    return result


def _season_length(n: int) -> int:
    if n < 14:
        return 0
    if n >= 24:
        return 12
    return 7


def holt_winters(
    history: Sequence[float],
    periods: int,
    *,
    alpha: float = 0.5,
    beta: float = 0.4,
    gamma: float = 0.6,
) -> List[float]:
    """
    Additive triple exponential smoothing. Series shorter than two seasons
    fall back to the linear forecast.
    """
    _check_periods(periods)
    season = _season_length(len(history))
    if season == 0 or len(history) < season * 2:
        return forecast_linear(history, periods).forecast

    season_mean = statistics.fmean(history[:season])
    seasonal = [value - season_mean for value in history[:season]]
    level = history[0]
    trend = history[1] - history[0]

    for index, value in enumerate(history):
        slot = index % season
        last_level = level
        level = alpha * (value - seasonal[slot]) + (1 - alpha) * (last_level + trend)
        trend = beta * (level - last_level) + (1 - beta) * trend
        seasonal[slot] = gamma * (value - level) + (1 - gamma) * seasonal[slot]

    n = len(history)
    return [level + h * trend + seasonal[(n + h - 1) % season] for h in range(1, periods + 1)]


def decomposition(history: Sequence[float], periods: int) -> List[float]:
    """Global linear trend plus an averaged seasonal pattern of the detrended series."""
    fit = forecast_linear(history, 0)
    n = len(history)
    season = max(7, n // 4) if n > 20 else 7

    sums = [0.0] * season
    counts = [0] * season
    for index, value in enumerate(history):
        residual = value - (fit.slope * index + fit.intercept)
        sums[index % season] += residual
        counts[index % season] += 1
    pattern = [total / count if count else 0.0 for total, count in zip(sums, counts)]

    forecast: List[float] = []
    for step in range(1, periods + 1):
        x = n - 1 + step
        forecast.append(fit.slope * x + fit.intercept + pattern[x % season])
    return forecast


def normalize_model(model: str) -> str:
    normalized = _MODEL_ALIASES.get(str(model).strip().lower())
    if normalized is None:
        raise AnalyticsInputError(f"Unsupported forecast model '{model}'.")
    return normalized


def forecast_rows(
    rows: Sequence[Mapping[str, Any]],
    date_column: str,
    value_column: str,
    periods: int,
    model: str = "linear",
) -> ForecastOutcome:
    """
    Forecast ``value_column`` over the row order and return synthetic rows
    flagged ``_isForecast``. Rows without a numeric value are left out of the
    history.
    """
    model = normalize_model(model)
    _check_periods(periods)
    dates, values = series_rows(rows, date_column, value_column)
    if len(values) < 2:
        raise InsufficientData("Forecasting needs at least 2 numeric data points.")
    future_dates = project_dates(dates, periods)

    if model == "linear":
        fit = forecast_linear(values, periods)
        synthetic = [
            {
                date_column: moment,
                value_column: predicted,
                FORECAST_FLAG: True,
                UPPER_BOUND: upper,
                LOWER_BOUND: lower,
            }
            for moment, predicted, upper, lower in zip(
                future_dates, fit.forecast, fit.upper_bound, fit.lower_bound
            )
        ]
        return ForecastOutcome(
            model=model,
            rows=synthetic,
            slope=fit.slope,
            intercept=fit.intercept,
            r_squared=fit.r_squared,
        )

    predictions = holt_winters(values, periods) if model == "holt_winters" else decomposition(values, periods)
    synthetic = [
        {date_column: moment, value_column: predicted, FORECAST_FLAG: True}
        for moment, predicted in zip(future_dates, predictions)
    ]
    return ForecastOutcome(model=model, rows=synthetic)

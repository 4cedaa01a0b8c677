"""Shared statistics and time bucketing.

All timestamps are bucketed in UTC. Every division is guarded so that empty
or constant input yields 0 instead of NaN or infinity.
"""

import math
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import NamedTuple

WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)
DEFAULT_PERCENTILES = (0.25, 0.5, 0.75, 0.9, 0.95, 0.99)
MAX_ACF_LAG = 168  # one week of hourly readings


class LinearTrend(NamedTuple):
    slope: float
    intercept: float
    direction: str
    strength: float


class ChangePoint(NamedTuple):
    index: int
    magnitude: float


def safe_div(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator != 0 else 0.0


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round with ties going up, e.g. 2.5 -> 3 and -2.5 -> -2."""
    factor = 10**ndigits
    return math.floor(value * factor + 0.5) / factor


def mean(values: Sequence[float]) -> float:
    return safe_div(sum(values), len(values))


def std_dev(values: Sequence[float]) -> float:
    """Population standard deviation (divides by N)."""
    if not values:
        return 0.0
    avg = mean(values)
    return math.sqrt(sum((v - avg) ** 2 for v in values) / len(values))


def percentiles(values: Sequence[float], ps: Sequence[float] = DEFAULT_PERCENTILES) -> list[float]:
    """Nearest-rank percentiles using index floor(p * n), clamped to the last element."""
    if not values:
        return [0.0 for _ in ps]
    ordered = sorted(values)
    last = len(ordered) - 1
    return [ordered[min(math.floor(p * len(ordered)), last)] for p in ps]


def linear_trend(values: Sequence[float]) -> LinearTrend:
    """Ordinary least squares fit of values against their index 0..N-1."""
    n = len(values)
    if n < 2:
        return LinearTrend(
            slope=0.0, intercept=mean(values), direction="decreasing", strength=0.0
        )

    x_mean = (n - 1) / 2
    y_mean = mean(values)
    numerator = sum((i - x_mean) * (v - y_mean) for i, v in enumerate(values))
    denominator = sum((i - x_mean) ** 2 for i in range(n))
    slope = safe_div(numerator, denominator)

    return LinearTrend(
        slope=slope,
        intercept=y_mean - slope * x_mean,
        direction="increasing" if slope > 0 else "decreasing",
        strength=abs(slope),
    )


def autocorrelation(values: Sequence[float], max_lag: int = MAX_ACF_LAG) -> list[float]:
    """Autocorrelation for lags 1..min(N-1, max_lag); element i holds lag i+1."""
    n = len(values)
    lags = min(n - 1, max_lag)
    if lags < 1:
        return []

    avg = mean(values)
    variance = sum((v - avg) ** 2 for v in values) / n
    acf = []
    for lag in range(1, lags + 1):
        total = sum((values[i] - avg) * (values[i + lag] - avg) for i in range(n - lag))
        acf.append(safe_div(total, (n - lag) * variance))
    return acf


def significant_lags(acf: Sequence[float]) -> list[int]:
    """Lags whose |ACF| exceeds the 95% white-noise band 1.96/sqrt(len(acf))."""
    if not acf:
        return []
    threshold = 1.96 / math.sqrt(len(acf))
    return [i + 1 for i, value in enumerate(acf) if abs(value) > threshold]


def estimate_periodicity(acf: Sequence[float]) -> int:
    """Lag with the highest autocorrelation, 0 when there is none."""
    if not acf:
        return 0
    best = max(range(len(acf)), key=lambda i: (acf[i], -i))
    return best + 1


def change_points(values: Sequence[float], sigmas: float = 4.0) -> list[ChangePoint]:
    """CUSUM change points: the running sum of deviations resets once it exceeds sigmas * std."""
    sd = std_dev(values)
    if sd == 0:
        return []

    avg = mean(values)
    threshold = sigmas * sd
    points = []
    cusum = 0.0
    for i, value in enumerate(values):
        cusum += value - avg
        if abs(cusum) > threshold:
            points.append(ChangePoint(index=i, magnitude=abs(value - avg) / sd))
            cusum = 0.0
    return points


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def hour_of(ts: datetime) -> int:
    return ts.hour


def weekday_of(ts: datetime) -> int:
    """Day of week with 0 = Sunday through 6 = Saturday."""
    return (ts.weekday() + 1) % 7


def month_of(ts: datetime) -> int:
    return ts.month


def is_weekend(ts: datetime) -> bool:
    return weekday_of(ts) in (0, 6)


def is_peak_hour(hour: int, start: int = 9, end: int = 17) -> bool:
    return start <= hour <= end


def season_of(month: int) -> str:
    if 6 <= month <= 9:
        return "Summer"
    if 10 <= month <= 12:
        return "Fall"
    if 3 <= month <= 5:
        return "Spring"
    return "Winter"

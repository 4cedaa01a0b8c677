"""Feature extraction for bill analysis requests."""

import math
from collections.abc import Sequence
from typing import Any

from energyledger.analytics import stats
from energyledger.config import CostSettings
from energyledger.models import CostBreakdown, EnergyReading

PERCENTILE_LABELS = ("p25", "p50", "p75", "p90", "p95", "p99")


def baseline_usage(readings: Sequence[EnergyReading]) -> dict[str, float]:
    """Average usage keyed ``hour-H`` and ``day-D``; buckets without data are omitted."""
    by_key: dict[str, list[float]] = {}
    for r in readings:
        by_key.setdefault(f"hour-{stats.hour_of(r.timestamp)}", []).append(r.value)
        by_key.setdefault(f"day-{stats.weekday_of(r.timestamp)}", []).append(r.value)
    return {key: stats.mean(values) for key, values in sorted(by_key.items())}


def data_resolution(readings: Sequence[EnergyReading]) -> str:
    """Average spacing between readings, e.g. ``15 minutes`` or ``1 hour``."""
    if len(readings) < 2:
        return "unknown"

    intervals = [
        (b.timestamp - a.timestamp).total_seconds()
        for a, b in zip(readings, readings[1:], strict=False)
    ]
    minutes = round(stats.mean(intervals) / 60)
    if minutes < 60:
        return f"{minutes} minutes"
    if minutes == 60:
        return "1 hour"
    return f"{minutes / 60:g} hours"


def daily_seasonality(readings: Sequence[EnergyReading]) -> dict[str, Any]:
    sums = [0.0] * 24
    counts = [0] * 24
    for r in readings:
        hour = stats.hour_of(r.timestamp)
        sums[hour] += r.value
        counts[hour] += 1
    pattern = [stats.safe_div(sums[h], counts[h]) for h in range(24)]

    observed = [h for h in range(24) if counts[h]]
    if not observed:
        return {"dailyPattern": pattern, "peakHour": 0, "troughHour": 0, "amplitude": 0.0}

    peak_hour = max(observed, key=lambda h: pattern[h])
    trough_hour = min(observed, key=lambda h: pattern[h])
    return {
        "dailyPattern": pattern,
        "peakHour": peak_hour,
        "troughHour": trough_hour,
        "amplitude": pattern[peak_hour] - pattern[trough_hour],
    }


def cost_structure(breakdown: CostBreakdown) -> dict[str, Any]:
    energy = breakdown.energy_cost
    subtotal = energy + breakdown.demand_charges + breakdown.fixed_charges
    return {
        "peakRatio": stats.safe_div(breakdown.peak_cost, energy),
        "demandChargeRatio": stats.safe_div(breakdown.demand_charges, energy),
        "fixedCostRatio": stats.safe_div(breakdown.fixed_charges, energy),
        "composition": {
            "peak": stats.safe_div(breakdown.peak_cost, subtotal),
            "offPeak": stats.safe_div(breakdown.off_peak_cost, subtotal),
            "demand": stats.safe_div(breakdown.demand_charges, subtotal),
            "fixed": stats.safe_div(breakdown.fixed_charges, subtotal),
        },
    }


def extract_features(
    readings: Sequence[EnergyReading],
    breakdown: CostBreakdown,
    settings: CostSettings | None = None,
) -> dict[str, Any]:
    """Build the JSON-serialisable feature payload sent with every bill analysis prompt.

    Args:
        readings: Readings sorted by timestamp
        breakdown: Cost breakdown computed from the same readings
        settings: Tariff used to flag peak hours

    Returns:
        Nested dict of normalised readings, baselines, statistics,
        time-series features and cost structure
    """
    settings = settings or CostSettings()
    values = [r.value for r in readings]
    avg = stats.mean(values)
    sd = stats.std_dev(values)
    trend = stats.linear_trend(values)
    acf = stats.autocorrelation(values)

    normalized = [
        {
            "timestamp": r.timestamp.isoformat(),
            "value": r.value,
            "zScore": round(stats.safe_div(r.value - avg, sd), 2),
            "hourOfDay": stats.hour_of(r.timestamp),
            "dayOfWeek": stats.weekday_of(r.timestamp),
            "isPeak": stats.is_peak_hour(
                stats.hour_of(r.timestamp), settings.peak_start_hour, settings.peak_end_hour
            ),
            "seasonalComponent": math.sin(2 * math.pi * stats.hour_of(r.timestamp) / 24),
        }
        for r in readings
    ]

    return {
        "sampleSize": len(readings),
        "timeRange": {
            "start": readings[0].timestamp.isoformat() if readings else None,
            "end": readings[-1].timestamp.isoformat() if readings else None,
        },
        "dataResolution": data_resolution(readings),
        "readings": normalized,
        "baseline": baseline_usage(readings),
        "statistics": {
            "mean": avg,
            "stdDev": sd,
            "variance": sd**2,
            "percentiles": dict(zip(PERCENTILE_LABELS, stats.percentiles(values), strict=True)),
        },
        "timeSeries": {
            "trend": trend._asdict(),
            "seasonality": daily_seasonality(readings),
            "cyclicalPatterns": {
                "significantLags": stats.significant_lags(acf),
                "periodicity": stats.estimate_periodicity(acf),
            },
            "changePoints": [cp._asdict() for cp in stats.change_points(values)],
        },
        "bill": breakdown.model_dump(mode="json"),
        "costStructure": cost_structure(breakdown),
    }

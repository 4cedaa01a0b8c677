"""Tests for demand profiling."""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from energyledger.analytics.demand import DemandAnalyzer, analyze_trend
from energyledger.config import DemandSettings
from energyledger.models import AlertType, EnergyReading, RecommendationType, Trend

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def recent(values: list[float], end: datetime = NOW) -> list[EnergyReading]:
    """Hourly readings ending at ``end``."""
    start = end - timedelta(hours=len(values) - 1)
    return [
        EnergyReading(timestamp=start + timedelta(hours=i), value=v) for i, v in enumerate(values)
    ]


def two_days_with_peak_at(hour: int) -> list[EnergyReading]:
    start = NOW - timedelta(hours=48)
    readings = []
    for i in range(48):
        ts = start + timedelta(hours=i)
        readings.append(EnergyReading(timestamp=ts, value=100.0 if ts.hour == hour else 10.0))
    return readings


@pytest.fixture
def analyzer() -> DemandAnalyzer:
    return DemandAnalyzer(settings=DemandSettings(), clock=lambda: NOW)


class TestTrend:
    def test_scenario_c_increasing(self, analyzer: DemandAnalyzer) -> None:
        profile = analyzer.analyze_demand(recent([40, 42, 45, 48, 52]))
        assert profile.demand_trend == Trend.INCREASING

    def test_scenario_d_stable(self, analyzer: DemandAnalyzer) -> None:
        profile = analyzer.analyze_demand(recent([40, 40.5, 40.2, 40.8, 40.3]))
        assert profile.demand_trend == Trend.STABLE

    def test_decreasing(self) -> None:
        assert analyze_trend(recent([52, 48, 45, 42, 40])) == Trend.DECREASING

    def test_single_reading_is_stable(self) -> None:
        assert analyze_trend(recent([10])) == Trend.STABLE


class TestRecommendations:
    def test_immediate_when_near_peak(self, analyzer: DemandAnalyzer) -> None:
        profile = analyzer.analyze_demand(recent([40, 42, 45, 48, 52]))
        types = [r.type for r in profile.recommendations]
        assert types == [
            RecommendationType.IMMEDIATE,
            RecommendationType.SCHEDULED,
            RecommendationType.STRATEGIC,
        ]
        immediate = profile.recommendations[0]
        assert immediate.impact == pytest.approx(15.6)
        assert immediate.time_window.end - immediate.time_window.start == timedelta(minutes=30)

    def test_no_immediate_below_threshold(self, analyzer: DemandAnalyzer) -> None:
        profile = analyzer.analyze_demand(recent([52, 48, 45, 42, 40]))
        types = [r.type for r in profile.recommendations]
        assert types == [RecommendationType.SCHEDULED, RecommendationType.STRATEGIC]
        assert profile.recommendations[-1].impact == pytest.approx(10.4)

    def test_scheduled_before_close_peak(self) -> None:
        clock = NOW.replace(minute=30)
        analyzer = DemandAnalyzer(clock=lambda: clock)
        profile = analyzer.analyze_demand(two_days_with_peak_at(14))
        types = [r.type for r in profile.recommendations]
        assert types == [RecommendationType.SCHEDULED, RecommendationType.STRATEGIC]
        scheduled = profile.recommendations[0]
        assert scheduled.time_window.end == NOW.replace(hour=14)
        assert scheduled.impact == pytest.approx(21.75, abs=0.1)
        assert profile.time_to_next_peak == pytest.approx(90.0)

    def test_ids_are_deterministic(self) -> None:
        first = DemandAnalyzer(clock=lambda: NOW).analyze_demand(recent([40, 42, 45, 48, 52]))
        second = DemandAnalyzer(clock=lambda: NOW).analyze_demand(recent([40, 42, 45, 48, 52]))
        assert [r.id for r in first.recommendations] == [r.id for r in second.recommendations]

    def test_scheduled_for_placeholder_prediction(self, analyzer: DemandAnalyzer) -> None:
        profile = analyzer.analyze_demand(recent([30, 20, 10]))
        scheduled = profile.recommendations[0]
        assert scheduled.type == RecommendationType.SCHEDULED
        assert scheduled.time_window.end == NOW
        assert scheduled.impact == 0

    def test_empty_batch_keeps_strategic(self, analyzer: DemandAnalyzer) -> None:
        profile = analyzer.analyze_demand([])
        assert profile.current_demand == 0
        assert profile.real_time_metrics.alerts == []
        types = [r.type for r in profile.recommendations]
        assert types == [RecommendationType.SCHEDULED, RecommendationType.STRATEGIC]
        assert profile.recommendations[-1].impact == 0


class TestPrediction:
    def test_insufficient_data(self, analyzer: DemandAnalyzer) -> None:
        prediction = analyzer.predict_next_peak(recent([1, 2, 3]), NOW)
        assert prediction.confidence == 0
        assert prediction.predicted_demand == 0
        assert prediction.factors == ["Insufficient data for prediction"]

    def test_busiest_hour_projected_forward(self, analyzer: DemandAnalyzer) -> None:
        prediction = analyzer.predict_next_peak(two_days_with_peak_at(14), NOW)
        assert prediction.timestamp == NOW.replace(hour=14)
        assert prediction.predicted_demand == pytest.approx(145.0)
        assert prediction.confidence == pytest.approx(0.85)
        assert prediction.demand_range.low == pytest.approx(130.5)
        assert prediction.demand_range.high == pytest.approx(159.5)

    def test_past_peak_hour_rolls_to_tomorrow(self, analyzer: DemandAnalyzer) -> None:
        prediction = analyzer.predict_next_peak(two_days_with_peak_at(9), NOW)
        assert prediction.timestamp == NOW.replace(hour=9) + timedelta(days=1)

    def test_forecast_shapes(self, analyzer: DemandAnalyzer) -> None:
        profile = analyzer.analyze_demand(two_days_with_peak_at(14))
        predictions = profile.predictions
        assert len(predictions.daily_forecast) == 24
        assert predictions.daily_forecast[0].confidence == pytest.approx(0.9)
        assert [d.day for d in predictions.weekly_pattern][0] == "Sunday"
        assert [s.season for s in predictions.seasonal_trends] == [
            "Winter",
            "Spring",
            "Summer",
            "Fall",
        ]

    def test_range_alias_in_output(self, analyzer: DemandAnalyzer) -> None:
        dumped = analyzer.analyze_demand(two_days_with_peak_at(14)).model_dump(by_alias=True)
        assert "range" in dumped["predictions"]["nextPeak"]
        assert "mlInsights" in dumped["recommendations"][0]


class TestRealTimeMetrics:
    def test_low_load_factor_warning(self, analyzer: DemandAnalyzer) -> None:
        metrics = analyzer.calculate_real_time_metrics(recent([10, 10, 10, 50]))
        assert metrics.load_factor == pytest.approx(0.4)
        assert [a.type for a in metrics.alerts] == [AlertType.WARNING]

    def test_low_power_factor_critical(self) -> None:
        analyzer = DemandAnalyzer(settings=DemandSettings(power_factor=0.85), clock=lambda: NOW)
        metrics = analyzer.calculate_real_time_metrics(recent([10, 10, 10]))
        assert [a.type for a in metrics.alerts] == [AlertType.CRITICAL]
        assert metrics.power_factor == 0.85

    def test_no_alerts_for_steady_load(self, analyzer: DemandAnalyzer) -> None:
        assert analyzer.calculate_real_time_metrics(recent([10, 10, 10])).alerts == []


class TestHistory:
    def test_window_trim(self, analyzer: DemandAnalyzer) -> None:
        analyzer.update_historical_data(
            [
                EnergyReading(timestamp=NOW - timedelta(days=40), value=1.0),
                EnergyReading(timestamp=NOW - timedelta(days=1), value=2.0),
            ]
        )
        cutoff = NOW - timedelta(days=30)
        assert [r.value for r in analyzer.history] == [2.0]
        assert all(r.timestamp >= cutoff for r in analyzer.history)

    def test_buffer_stays_sorted(self, analyzer: DemandAnalyzer) -> None:
        analyzer.update_historical_data(recent([3, 4], end=NOW))
        analyzer.update_historical_data(recent([1, 2], end=NOW - timedelta(hours=5)))
        timestamps = [r.timestamp for r in analyzer.history]
        assert timestamps == sorted(timestamps)
        assert len(timestamps) == 4

    def test_peak_from_history(self, analyzer: DemandAnalyzer) -> None:
        analyzer.update_historical_data(recent([90], end=NOW - timedelta(days=2)))
        profile = analyzer.analyze_demand(recent([40, 42]))
        assert profile.peak_demand == 90
        assert profile.current_demand == 42

    def test_replace_history(self, analyzer: DemandAnalyzer) -> None:
        analyzer.update_historical_data(recent([1, 2, 3]))
        analyzer.replace_history(
            [
                EnergyReading(timestamp=NOW - timedelta(days=45), value=7.0),
                EnergyReading(timestamp=NOW - timedelta(hours=1), value=8.0),
            ]
        )
        assert [r.value for r in analyzer.history] == [8.0]

    def test_instances_are_isolated(self) -> None:
        first = DemandAnalyzer(clock=lambda: NOW)
        second = DemandAnalyzer(clock=lambda: NOW)
        first.update_historical_data(recent([1, 2, 3]))
        assert second.history == ()

    def test_concurrent_appends(self, analyzer: DemandAnalyzer) -> None:
        def append(worker: int) -> None:
            for i in range(50):
                ts = NOW - timedelta(minutes=worker * 50 + i + 1)
                analyzer.update_historical_data([EnergyReading(timestamp=ts, value=float(i))])

        threads = [threading.Thread(target=append, args=(w,)) for w in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        timestamps = [r.timestamp for r in analyzer.history]
        assert len(timestamps) == 400
        assert timestamps == sorted(timestamps)


class TestPatterns:
    def test_pattern_buckets(self, analyzer: DemandAnalyzer) -> None:
        patterns = analyzer.generate_patterns(two_days_with_peak_at(14), peak_demand=100.0)
        assert len(patterns.daily) == 24
        assert len(patterns.weekly) == 7
        assert [m.name for m in patterns.monthly][:3] == ["Jan", "Feb", "Mar"]
        assert patterns.daily[14].peak_probability == 1.0
        assert patterns.daily[13].peak_probability == 0.0
        assert patterns.daily[14].avg_demand == 100.0

"""Tests for shared statistics helpers."""

from datetime import datetime, timezone

import pytest

from energyledger.analytics import stats


class TestBasics:
    def test_safe_div_guards_zero(self) -> None:
        assert stats.safe_div(5.0, 0.0) == 0.0
        assert stats.safe_div(6.0, 3.0) == 2.0

    def test_mean_and_std_dev_empty(self) -> None:
        assert stats.mean([]) == 0.0
        assert stats.std_dev([]) == 0.0

    def test_population_std_dev(self) -> None:
        assert stats.std_dev([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(2.0)

    def test_round_half_up(self) -> None:
        assert stats.round_half_up(2.5) == 3
        assert stats.round_half_up(-2.5) == -2
        assert stats.round_half_up(1.25, 1) == pytest.approx(1.3)

    def test_percentiles_nearest_rank(self) -> None:
        values = list(range(1, 101))
        assert stats.percentiles(values, [0.25, 0.5, 0.99]) == [26, 51, 100]

    def test_percentiles_empty(self) -> None:
        assert stats.percentiles([]) == [0.0] * len(stats.DEFAULT_PERCENTILES)


class TestTrend:
    def test_increasing(self) -> None:
        trend = stats.linear_trend([1.0, 2.0, 3.0, 4.0])
        assert trend.direction == "increasing"
        assert trend.slope == pytest.approx(1.0)
        assert trend.intercept == pytest.approx(1.0)

    def test_decreasing(self) -> None:
        assert stats.linear_trend([4.0, 3.0, 2.0]).direction == "decreasing"

    def test_flat_reads_decreasing(self) -> None:
        trend = stats.linear_trend([5.0, 5.0, 5.0])
        assert trend.direction == "decreasing"
        assert trend.strength == 0.0

    def test_single_value(self) -> None:
        trend = stats.linear_trend([7.0])
        assert trend.slope == 0.0
        assert trend.intercept == 7.0
        assert trend.direction == "decreasing"


class TestCyclicalPatterns:
    def test_autocorrelation_detects_period(self) -> None:
        values = [1.0, 5.0, 1.0, 5.0, 1.0, 5.0, 1.0, 5.0]
        acf = stats.autocorrelation(values)
        assert acf[0] == pytest.approx(-1.0)
        assert acf[1] == pytest.approx(1.0)
        assert stats.estimate_periodicity(acf) == 2

    def test_autocorrelation_constant_series(self) -> None:
        assert stats.autocorrelation([3.0, 3.0, 3.0]) == [0.0, 0.0]

    def test_autocorrelation_too_short(self) -> None:
        assert stats.autocorrelation([1.0]) == []
        assert stats.estimate_periodicity([]) == 0

    def test_significant_lags(self) -> None:
        # 16 lags puts the band at 0.49
        acf = [0.9, 0.01, -0.95] + [0.0] * 13
        assert stats.significant_lags(acf) == [1, 3]

    def test_change_points(self) -> None:
        values = [10.0] * 20 + [50.0] * 20
        points = stats.change_points(values)
        assert points
        assert all(p.magnitude > 0 for p in points)

    def test_change_points_constant(self) -> None:
        assert stats.change_points([2.0] * 10) == []


class TestTimeBuckets:
    def test_weekday_starts_sunday(self) -> None:
        sunday = datetime(2024, 3, 3, tzinfo=timezone.utc)
        saturday = datetime(2024, 3, 2, tzinfo=timezone.utc)
        assert stats.weekday_of(sunday) == 0
        assert stats.weekday_of(saturday) == 6
        assert stats.is_weekend(sunday)
        assert not stats.is_weekend(datetime(2024, 3, 1, tzinfo=timezone.utc))

    def test_peak_hours_inclusive(self) -> None:
        assert stats.is_peak_hour(9)
        assert stats.is_peak_hour(17)
        assert not stats.is_peak_hour(8)
        assert not stats.is_peak_hour(18)

    @pytest.mark.parametrize(
        ("month", "season"),
        [(1, "Winter"), (3, "Spring"), (6, "Summer"), (9, "Summer"), (10, "Fall"), (12, "Fall")],
    )
    def test_season_of(self, month: int, season: str) -> None:
        assert stats.season_of(month) == season

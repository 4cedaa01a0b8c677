"""Tests for sustainability scoring."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from energyledger.analytics.sustainability import SustainabilityAnalyzer, add_months
from energyledger.config import SustainabilitySettings
from energyledger.models import (
    EnergyReading,
    ScoreComponents,
    ScoreTrend,
    SustainabilityCategory,
)

NOW = datetime(2024, 3, 15, 12, tzinfo=timezone.utc)


def hourly(values: list[float], start: datetime) -> list[EnergyReading]:
    return [
        EnergyReading(timestamp=start + timedelta(hours=i), value=v) for i, v in enumerate(values)
    ]


@pytest.fixture
def analyzer() -> SustainabilityAnalyzer:
    return SustainabilityAnalyzer(settings=SustainabilitySettings(), clock=lambda: NOW)


@pytest.fixture
def flat_day() -> list[EnergyReading]:
    return hourly([10.0] * 24, datetime(2024, 3, 1, tzinfo=timezone.utc))


class TestEmptyInput:
    def test_scenario_e(self, analyzer: SustainabilityAnalyzer) -> None:
        metrics = analyzer.analyze_sustainability([])
        assert metrics.carbon_footprint.total_emissions == 0
        assert metrics.renewable_energy.percentage == 0
        assert metrics.sustainability_score.recommendations == []
        assert metrics.sustainability_score.overall == 0
        assert metrics.sustainability_score.trend == ScoreTrend.STABLE
        assert metrics.efficiency.waste_energy == 0


class TestCarbonFootprint:
    def test_emissions(
        self, analyzer: SustainabilityAnalyzer, flat_day: list[EnergyReading]
    ) -> None:
        carbon = analyzer.calculate_carbon_footprint(flat_day)
        assert carbon.total_emissions == pytest.approx(96.0)
        assert carbon.emissions_per_kwh == pytest.approx(0.4)
        assert carbon.carbon_intensity == pytest.approx(400.0)
        assert carbon.reduction_from_baseline == pytest.approx(20.0)

    def test_sources_and_forecast(
        self, analyzer: SustainabilityAnalyzer, flat_day: list[EnergyReading]
    ) -> None:
        carbon = analyzer.calculate_carbon_footprint(flat_day)
        assert sum(s.emissions for s in carbon.sources) == pytest.approx(96.0)
        assert len(carbon.forecast) == 24
        assert carbon.forecast[0].timestamp == NOW
        assert carbon.forecast[0].predicted_emissions == pytest.approx(4.0)
        assert carbon.forecast[23].confidence == pytest.approx(0.9 - 23 * 0.02)


class TestRenewableEnergy:
    def test_shares(self, analyzer: SustainabilityAnalyzer, flat_day: list[EnergyReading]) -> None:
        renewable = analyzer.calculate_renewable_energy(flat_day)
        assert renewable.percentage == pytest.approx(40.0)
        assert renewable.solar_contribution == pytest.approx(36.0)
        assert renewable.wind_contribution == pytest.approx(60.0)
        assert renewable.grid_usage == pytest.approx(144.0)
        assert renewable.peak_renewable_hours == [flat_day[i].timestamp for i in (0, 4, 8, 12, 16)]
        assert renewable.savings.cost == pytest.approx(96.0 * 0.12)


class TestEfficiency:
    def test_flat_usage_has_no_waste(
        self, analyzer: SustainabilityAnalyzer, flat_day: list[EnergyReading]
    ) -> None:
        efficiency = analyzer.calculate_efficiency(flat_day)
        assert efficiency.waste_energy == 0
        assert efficiency.energy_per_square_foot == pytest.approx(0.024)
        assert set(efficiency.equipment_scores) == {"hvac", "lighting", "equipment"}
        assert efficiency.equipment_scores["hvac"].usage == pytest.approx(96.0)

    def test_waste_above_tolerance(self, analyzer: SustainabilityAnalyzer) -> None:
        readings = hourly([10, 10, 10, 30], NOW)
        # ceiling is 110% of the mean of 15
        assert analyzer.calculate_waste_energy(readings) == pytest.approx(13.5)


class TestScore:
    def test_weighted_overall(self, analyzer: SustainabilityAnalyzer) -> None:
        components = ScoreComponents(
            carbon_score=50, renewable_score=50, efficiency_score=90, waste_score=100
        )
        assert analyzer.overall_score(components) == 68

    def test_overall_is_clamped(self, analyzer: SustainabilityAnalyzer) -> None:
        high = ScoreComponents(
            carbon_score=200, renewable_score=200, efficiency_score=200, waste_score=200
        )
        low = ScoreComponents(carbon_score=-500)
        assert analyzer.overall_score(high) == 100
        assert analyzer.overall_score(low) == 0

    @pytest.mark.parametrize(
        ("overall", "trend"),
        [
            (81, ScoreTrend.IMPROVING),
            (80, ScoreTrend.STABLE),
            (75, ScoreTrend.STABLE),
            (70, ScoreTrend.STABLE),
            (69, ScoreTrend.DECLINING),
        ],
    )
    def test_trend_against_benchmark(
        self, analyzer: SustainabilityAnalyzer, overall: int, trend: ScoreTrend
    ) -> None:
        assert analyzer.calculate_trend(overall) == trend

    def test_components_from_readings(
        self, analyzer: SustainabilityAnalyzer, flat_day: list[EnergyReading]
    ) -> None:
        score = analyzer.analyze_sustainability(flat_day).sustainability_score
        assert score.components.carbon_score == pytest.approx(20.0)
        assert score.components.renewable_score == pytest.approx(40.0)
        assert score.components.efficiency_score == pytest.approx(87.5)
        assert score.components.waste_score == pytest.approx(100.0)
        assert 0 <= score.overall <= 100
        assert score.overall == analyzer.overall_score(score.components)

    def test_recommendations_for_low_scores(
        self, analyzer: SustainabilityAnalyzer, flat_day: list[EnergyReading]
    ) -> None:
        score = analyzer.analyze_sustainability(flat_day).sustainability_score
        recommendations = score.recommendations
        assert [r.category for r in recommendations] == [
            SustainabilityCategory.CARBON,
            SustainabilityCategory.RENEWABLE,
        ]

    def test_no_recommendations_when_targets_met(self, analyzer: SustainabilityAnalyzer) -> None:
        components = ScoreComponents(carbon_score=80, renewable_score=60)
        assert analyzer.generate_recommendations(components, key="x") == []

    def test_score_forecast(
        self, analyzer: SustainabilityAnalyzer, flat_day: list[EnergyReading]
    ) -> None:
        score = analyzer.analyze_sustainability(flat_day).sustainability_score
        assert len(score.forecast) == 12
        assert score.forecast[0].timestamp == datetime(2024, 3, 1, tzinfo=timezone.utc)
        assert score.forecast[11].timestamp == datetime(2025, 2, 1, tzinfo=timezone.utc)
        assert score.forecast[1].confidence == pytest.approx(0.85)
        assert all(f.predicted_score == score.overall for f in score.forecast)

    def test_historical_progress_per_month(self, analyzer: SustainabilityAnalyzer) -> None:
        readings = hourly([10.0] * 6, datetime(2024, 2, 28, 22, tzinfo=timezone.utc)) + hourly(
            [10.0] * 6, datetime(2024, 3, 10, tzinfo=timezone.utc)
        )
        score = analyzer.analyze_sustainability(readings).sustainability_score
        progress = score.historical_progress
        assert [p.timestamp for p in progress] == [
            datetime(2024, 2, 1, tzinfo=timezone.utc),
            datetime(2024, 3, 1, tzinfo=timezone.utc),
        ]

    def test_weights_must_sum_to_one(self) -> None:
        with pytest.raises(ValidationError):
            SustainabilitySettings(carbon_weight=0.5)


class TestInsights:
    def test_usage_anomalies(self, analyzer: SustainabilityAnalyzer) -> None:
        readings = hourly([10.0] * 23 + [50.0], datetime(2024, 3, 1, tzinfo=timezone.utc))
        insights = analyzer.analyze_sustainability(readings).insights
        assert [a.actual for a in insights.anomalies] == [50.0]
        assert len(insights.patterns.daily) == 24
        assert insights.patterns.daily[0].efficiency == 1.0
        assert insights.patterns.daily[23].efficiency < 1.0


class TestAnalyzeSustainability:
    def test_idempotent(
        self, analyzer: SustainabilityAnalyzer, flat_day: list[EnergyReading]
    ) -> None:
        first = analyzer.analyze_sustainability(flat_day)
        second = analyzer.analyze_sustainability(flat_day)
        assert first.model_dump() == second.model_dump()

    def test_rejected_records_counted(self, analyzer: SustainabilityAnalyzer) -> None:
        raw = [
            {"timestamp": "2024-03-01T00:00:00Z", "value": 10},
            {"timestamp": "2024-03-01T01:00:00Z", "value": "n/a"},
        ]
        metrics = analyzer.analyze_sustainability(raw)
        assert metrics.rejected_readings == 1
        assert metrics.carbon_footprint.total_emissions == pytest.approx(4.0)


class TestAddMonths:
    def test_rolls_over_year(self) -> None:
        assert add_months(datetime(2024, 11, 15, 8), 3) == datetime(2025, 2, 1)

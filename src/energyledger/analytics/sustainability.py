"""Sustainability scoring: carbon footprint, renewable share, efficiency and composite score."""

from collections.abc import Callable, Sequence
from datetime import datetime, timedelta

import structlog

from energyledger.analytics.stats import (
    hour_of,
    mean,
    round_half_up,
    safe_div,
    utc_now,
)
from energyledger.config import SustainabilitySettings
from energyledger.ingestion.readings import ReadingsInput, ensure_batch, fingerprint, make_id
from energyledger.models import (
    CarbonFootprint,
    Correlation,
    EfficiencyMetrics,
    EfficiencyOptimization,
    EmissionForecast,
    EmissionSource,
    EnergyReading,
    EquipmentScore,
    HourlyEfficiency,
    ImplementationPlan,
    LongTermPrediction,
    MaintenanceInfo,
    MaintenanceStatus,
    OptimizationStep,
    RecommendationImpact,
    RenewableEnergy,
    RenewableGeneration,
    RenewablePotential,
    RenewableSavings,
    Risk,
    ScoreComponents,
    ScoreForecast,
    ScorePoint,
    ScoreTrend,
    SeasonalImpact,
    SensitivityFactor,
    Severity,
    ShortTermPrediction,
    SustainabilityCategory,
    SustainabilityInsights,
    SustainabilityMetrics,
    SustainabilityPatterns,
    SustainabilityPredictions,
    SustainabilityRecommendation,
    SustainabilityRecommendationInsights,
    SustainabilityScore,
    Trend,
    UsageAnomaly,
    WeatherImpact,
)

log = structlog.get_logger()

Clock = Callable[[], datetime]

CARBON_SCORE_TARGET = 70
RENEWABLE_SCORE_TARGET = 50
TREND_MARGIN = 5
MAX_PEAK_RENEWABLE_HOURS = 5
MAX_USAGE_ANOMALIES = 5

# (source, share of emissions, trend)
EMISSION_SOURCES = (
    ("Grid Power", 0.6, Trend.DECREASING),
    ("On-site Generation", 0.3, Trend.STABLE),
    ("Backup Systems", 0.1, Trend.INCREASING),
)

# (name, score, usage share, savings potential share, maintenance, efficiency, days to service)
EQUIPMENT_TEMPLATES = (
    ("hvac", 82, 0.4, 0.35, MaintenanceStatus.GOOD, 0.88, 30),
    ("lighting", 88, 0.2, 0.15, MaintenanceStatus.WARNING, 0.92, 15),
    ("equipment", 75, 0.4, 0.3, MaintenanceStatus.CRITICAL, 0.78, 5),
)

OPTIMIZATION = EfficiencyOptimization(
    current=0.82,
    potential=0.90,
    steps=[
        OptimizationStep(action="Optimize HVAC schedules", impact=0.05, cost=5000),
        OptimizationStep(action="Upgrade lighting controls", impact=0.03, cost=8000),
    ],
)

SEASONAL_IMPACTS = (
    SeasonalImpact(season="Summer", impact=0.3, confidence=0.85),
    SeasonalImpact(season="Winter", impact=0.25, confidence=0.82),
    SeasonalImpact(season="Spring", impact=0.2, confidence=0.88),
    SeasonalImpact(season="Fall", impact=0.15, confidence=0.87),
)

WEATHER_IMPACTS = (
    WeatherImpact(condition="Temperature", impact=0.4, confidence=0.9),
    WeatherImpact(condition="Humidity", impact=0.2, confidence=0.85),
    WeatherImpact(condition="Cloud Cover", impact=0.15, confidence=0.8),
)

SUSTAINABILITY_CORRELATIONS = (
    Correlation(factor="Occupancy", correlation=0.8, significance=0.95, confidence=0.9),
    Correlation(factor="Temperature", correlation=0.7, significance=0.9, confidence=0.85),
    Correlation(factor="Time of Day", correlation=0.6, significance=0.85, confidence=0.8),
)


def add_months(ts: datetime, months: int) -> datetime:
    """First instant of the month ``months`` away from ts."""
    years, month_index = divmod(ts.month - 1 + months, 12)
    return ts.replace(
        year=ts.year + years,
        month=month_index + 1,
        day=1,
        hour=0,
        minute=0,
        second=0,
        microsecond=0,
    )


class SustainabilityAnalyzer:
    """Stateless sustainability scoring for a set of readings."""

    def __init__(
        self, settings: SustainabilitySettings | None = None, clock: Clock = utc_now
    ) -> None:
        self.settings = settings or SustainabilitySettings()
        self._clock = clock

    def calculate_carbon_footprint(self, readings: Sequence[EnergyReading]) -> CarbonFootprint:
        total_usage = sum(r.value for r in readings)
        if not readings:
            return CarbonFootprint()

        s = self.settings
        emissions = total_usage * s.emission_factor
        per_kwh = safe_div(emissions, total_usage)
        now = self._clock()

        return CarbonFootprint(
            total_emissions=emissions,
            emissions_per_kwh=per_kwh,
            carbon_intensity=per_kwh * 1000,
            reduction_from_baseline=(s.baseline_emissions - per_kwh) / s.baseline_emissions * 100,
            sources=[
                EmissionSource(
                    source=name, emissions=emissions * share, percentage=share * 100, trend=trend
                )
                for name, share, trend in EMISSION_SOURCES
            ],
            forecast=[
                EmissionForecast(
                    timestamp=now + timedelta(hours=i),
                    predicted_emissions=emissions / 24,
                    confidence=0.9 - i * 0.02,
                )
                for i in range(24)
            ],
        )

    def calculate_renewable_energy(self, readings: Sequence[EnergyReading]) -> RenewableEnergy:
        if not readings:
            return RenewableEnergy()

        s = self.settings
        total_usage = sum(r.value for r in readings)
        solar = total_usage * s.solar_share
        wind = total_usage * s.wind_share
        renewable = solar + wind

        return RenewableEnergy(
            percentage=safe_div(renewable, total_usage) * 100,
            solar_contribution=solar,
            wind_contribution=wind,
            grid_usage=total_usage - renewable,
            peak_renewable_hours=[r.timestamp for r in readings[::4]][:MAX_PEAK_RENEWABLE_HOURS],
            generation=[
                RenewableGeneration(
                    source="Solar", amount=solar, efficiency=s.solar_efficiency, availability=0.98
                ),
                RenewableGeneration(
                    source="Wind", amount=wind, efficiency=s.wind_efficiency, availability=0.95
                ),
            ],
            potential=RenewablePotential(
                solar=solar * 1.5, wind=wind * 1.3, storage=total_usage * 0.2
            ),
            savings=RenewableSavings(
                cost=renewable * s.renewable_savings_rate, carbon=renewable * s.emission_factor
            ),
        )

    def calculate_waste_energy(self, readings: Sequence[EnergyReading]) -> float:
        """Usage above the tolerated share (110% by default) of the batch average."""
        ceiling = mean([r.value for r in readings]) * self.settings.waste_tolerance
        return sum(max(0.0, r.value - ceiling) for r in readings)

    def calculate_efficiency(self, readings: Sequence[EnergyReading]) -> EfficiencyMetrics:
        if not readings:
            return EfficiencyMetrics()

        s = self.settings
        total_usage = sum(r.value for r in readings)
        now = self._clock()

        return EfficiencyMetrics(
            energy_per_square_foot=total_usage / s.square_footage,
            peak_efficiency=s.peak_efficiency,
            off_peak_efficiency=s.off_peak_efficiency,
            equipment_scores={
                name: EquipmentScore(
                    score=score,
                    usage=total_usage * usage_share,
                    potential=total_usage * potential_share,
                    maintenance=MaintenanceInfo(
                        status=status,
                        next_service=now + timedelta(days=days),
                        efficiency=efficiency,
                    ),
                )
                for name, score, usage_share, potential_share, status, efficiency, days in (
                    EQUIPMENT_TEMPLATES
                )
            },
            waste_energy=self.calculate_waste_energy(readings),
            optimization=OPTIMIZATION,
        )

    def score_components(
        self, carbon: CarbonFootprint, renewable: RenewableEnergy, efficiency: EfficiencyMetrics
    ) -> ScoreComponents:
        s = self.settings
        return ScoreComponents(
            carbon_score=min(100.0, (1 - carbon.emissions_per_kwh / s.baseline_emissions) * 100),
            renewable_score=renewable.percentage,
            efficiency_score=(efficiency.peak_efficiency + efficiency.off_peak_efficiency) / 2,
            waste_score=max(0.0, 100 - efficiency.waste_energy / 10),
        )

    def overall_score(self, components: ScoreComponents) -> int:
        """Weighted blend of the four component scores, rounded and clamped to 0..100."""
        s = self.settings
        weighted = (
            components.carbon_score * s.carbon_weight
            + components.renewable_score * s.renewable_weight
            + components.efficiency_score * s.efficiency_weight
            + components.waste_score * s.waste_weight
        )
        return int(min(100, max(0, round_half_up(weighted))))

    def calculate_trend(self, overall: float) -> ScoreTrend:
        benchmark = self.settings.industry_benchmark
        if overall > benchmark + TREND_MARGIN:
            return ScoreTrend.IMPROVING
        if overall < benchmark - TREND_MARGIN:
            return ScoreTrend.DECLINING
        return ScoreTrend.STABLE

    def _score_readings(self, readings: Sequence[EnergyReading]) -> int:
        components = self.score_components(
            self.calculate_carbon_footprint(readings),
            self.calculate_renewable_energy(readings),
            self.calculate_efficiency(readings),
        )
        return self.overall_score(components)

    def historical_progress(self, readings: Sequence[EnergyReading]) -> list[ScorePoint]:
        """Composite score recomputed for each calendar month present in the readings."""
        by_month: dict[tuple[int, int], list[EnergyReading]] = {}
        for r in readings:
            by_month.setdefault((r.timestamp.year, r.timestamp.month), []).append(r)

        return [
            ScorePoint(
                timestamp=add_months(month_readings[0].timestamp, 0),
                score=self._score_readings(month_readings),
            )
            for _key, month_readings in sorted(by_month.items())
        ]

    def generate_recommendations(
        self, components: ScoreComponents, key: str
    ) -> list[SustainabilityRecommendation]:
        recommendations = []

        if components.carbon_score < CARBON_SCORE_TARGET:
            recommendations.append(
                SustainabilityRecommendation(
                    id=make_id("sustainability", SustainabilityCategory.CARBON.value, key),
                    category=SustainabilityCategory.CARBON,
                    title="Implement Carbon Reduction Measures",
                    description="Switch to energy-efficient equipment and optimize HVAC schedules",
                    impact=RecommendationImpact(metric="CO2 Reduction", value=25, unit="tons/year"),
                    priority=Severity.HIGH,
                    estimated_cost=50000,
                    payback_period=24,
                    implementation=ImplementationPlan(
                        steps=[
                            "Audit current equipment",
                            "Identify replacement options",
                            "Schedule installations",
                            "Monitor performance",
                        ],
                        timeline="6 months",
                        requirements=["Capital budget", "Technical expertise"],
                        risks=[
                            Risk(
                                description="Equipment compatibility",
                                severity=Severity.MEDIUM,
                                mitigation="Conduct thorough assessment",
                            )
                        ],
                    ),
                    insights=SustainabilityRecommendationInsights(
                        confidence=0.85,
                        factors=["Equipment age", "Usage patterns"],
                        sensitivity=[
                            SensitivityFactor(factor="Implementation speed", impact=0.7),
                            SensitivityFactor(factor="Staff training", impact=0.3),
                        ],
                    ),
                )
            )

        if components.renewable_score < RENEWABLE_SCORE_TARGET:
            recommendations.append(
                SustainabilityRecommendation(
                    id=make_id("sustainability", SustainabilityCategory.RENEWABLE.value, key),
                    category=SustainabilityCategory.RENEWABLE,
                    title="Increase Renewable Energy Usage",
                    description="Install solar panels or purchase renewable energy credits",
                    impact=RecommendationImpact(metric="Renewable Percentage", value=30, unit="%"),
                    priority=Severity.MEDIUM,
                    estimated_cost=75000,
                    payback_period=36,
                    implementation=ImplementationPlan(
                        steps=[
                            "Site assessment",
                            "System design",
                            "Installation",
                            "Grid integration",
                        ],
                        timeline="4 months",
                        requirements=["Roof space", "Structural assessment"],
                        risks=[
                            Risk(
                                description="Weather variability",
                                severity=Severity.LOW,
                                mitigation="Include battery storage",
                            )
                        ],
                    ),
                    insights=SustainabilityRecommendationInsights(
                        confidence=0.9,
                        factors=["Solar exposure", "Energy demand"],
                        sensitivity=[
                            SensitivityFactor(factor="Installation timing", impact=0.4),
                            SensitivityFactor(factor="System size", impact=0.6),
                        ],
                    ),
                )
            )

        return recommendations

    def calculate_score(
        self,
        readings: Sequence[EnergyReading],
        carbon: CarbonFootprint,
        renewable: RenewableEnergy,
        efficiency: EfficiencyMetrics,
    ) -> SustainabilityScore:
        if not readings:
            return SustainabilityScore()

        s = self.settings
        components = self.score_components(carbon, renewable, efficiency)
        overall = self.overall_score(components)
        now = self._clock()

        return SustainabilityScore(
            overall=overall,
            components=components,
            industry_comparison=(overall - s.industry_benchmark) / s.industry_benchmark * 100,
            trend=self.calculate_trend(overall),
            recommendations=self.generate_recommendations(components, fingerprint(readings)),
            historical_progress=self.historical_progress(readings),
            forecast=[
                ScoreForecast(
                    timestamp=add_months(now, i), predicted_score=overall, confidence=0.9 - i * 0.05
                )
                for i in range(12)
            ],
        )

    def calculate_insights(
        self, readings: Sequence[EnergyReading], carbon: CarbonFootprint, score: SustainabilityScore
    ) -> SustainabilityInsights:
        """Hourly efficiency from waste share, over-consumption anomalies and short-term outlook."""
        if not readings:
            return SustainabilityInsights()

        average = mean([r.value for r in readings])
        ceiling = average * self.settings.waste_tolerance

        usage = [0.0] * 24
        waste = [0.0] * 24
        counts = [0] * 24
        for r in readings:
            hour = hour_of(r.timestamp)
            usage[hour] += r.value
            waste[hour] += max(0.0, r.value - ceiling)
            counts[hour] += 1

        daily = [
            HourlyEfficiency(
                time_of_day=f"{hour}:00",
                efficiency=1 - safe_div(waste[hour], usage[hour]) if counts[hour] else 0.0,
                confidence=0.9 - (hour % 12) * 0.02 if counts[hour] else 0.0,
            )
            for hour in range(24)
        ]

        over = [r for r in readings if r.value > ceiling][-MAX_USAGE_ANOMALIES:]
        anomalies = [
            UsageAnomaly(
                timestamp=r.timestamp,
                metric="Energy Usage",
                expected=average,
                actual=r.value,
                impact=safe_div(r.value - average, average),
                confidence=0.85,
            )
            for r in over
        ]

        return SustainabilityInsights(
            patterns=SustainabilityPatterns(
                seasonal=list(SEASONAL_IMPACTS),
                daily=daily,
                weather=list(WEATHER_IMPACTS),
            ),
            anomalies=anomalies,
            correlations=list(SUSTAINABILITY_CORRELATIONS),
            predictions=SustainabilityPredictions(
                short_term=[
                    ShortTermPrediction(
                        metric="Energy Usage", value=average, confidence=0.9, horizon="1h"
                    ),
                    ShortTermPrediction(
                        metric="Efficiency",
                        value=score.components.efficiency_score / 100,
                        confidence=0.85,
                        horizon="4h",
                    ),
                    ShortTermPrediction(
                        metric="Carbon Intensity",
                        value=carbon.emissions_per_kwh,
                        confidence=0.8,
                        horizon="24h",
                    ),
                ],
                long_term=[
                    LongTermPrediction(
                        metric="Sustainability Score",
                        trend=score.trend.value,
                        confidence=0.75,
                        factors=["Equipment Upgrades", "Renewable Integration"],
                    ),
                    LongTermPrediction(
                        metric="Carbon Emissions",
                        trend="decreasing",
                        confidence=0.8,
                        factors=["Grid Decarbonization", "Efficiency Improvements"],
                    ),
                ],
            ),
        )

    def analyze_sustainability(self, readings: ReadingsInput) -> SustainabilityMetrics:
        """Compute the full sustainability report.

        An empty reading set yields zeroed metrics, a stable trend and no
        recommendations.
        """
        batch = ensure_batch(readings)
        ordered = batch.readings

        carbon = self.calculate_carbon_footprint(ordered)
        renewable = self.calculate_renewable_energy(ordered)
        efficiency = self.calculate_efficiency(ordered)
        score = self.calculate_score(ordered, carbon, renewable, efficiency)

        metrics = SustainabilityMetrics(
            carbon_footprint=carbon,
            renewable_energy=renewable,
            efficiency=efficiency,
            sustainability_score=score,
            insights=self.calculate_insights(ordered, carbon, score),
            rejected_readings=batch.rejected,
        )

        log.info(
            "sustainability_analysis_complete",
            readings=len(ordered),
            rejected=batch.rejected,
            overall=score.overall,
            trend=score.trend.value,
        )
        return metrics

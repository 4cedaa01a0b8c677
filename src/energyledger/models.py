"""Data models for energy readings and the analysis reports built from them."""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Severity(str, Enum):
    """Severity, priority and risk level share one scale."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return ("low", "medium", "high").index(self.value)


class Trend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class FactorTrend(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class ScoreTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class OpportunityCategory(str, Enum):
    PEAK_REDUCTION = "peak-reduction"
    EFFICIENCY = "efficiency"
    RATE_OPTIMIZATION = "rate-optimization"
    DEMAND_RESPONSE = "demand-response"


class RecommendationType(str, Enum):
    IMMEDIATE = "immediate"
    SCHEDULED = "scheduled"
    STRATEGIC = "strategic"


class AlertType(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


class MaintenanceStatus(str, Enum):
    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"


class SustainabilityCategory(str, Enum):
    CARBON = "carbon"
    RENEWABLE = "renewable"
    EFFICIENCY = "efficiency"
    WASTE = "waste"


class QualityStatus(str, Enum):
    """Quality check result status."""

    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"


class ReportModel(BaseModel):
    """Base for report values; serialises with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


class EnergyReading(BaseModel):
    """Single timestamped usage value (kWh or kW).

    Naive timestamps are taken to be UTC; aware ones are converted to UTC.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    value: float = Field(ge=0, allow_inf_nan=False)

    @field_validator("timestamp")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        try:
            return value.astimezone(timezone.utc)
        except OverflowError as e:
            raise ValueError("timestamp is out of range once converted to UTC") from e


class ReadingBatch(BaseModel):
    """Validated readings, sorted by timestamp, plus the count of rejected records."""

    model_config = ConfigDict(frozen=True)

    readings: tuple[EnergyReading, ...] = ()
    rejected: int = Field(default=0, ge=0)

    @field_validator("readings")
    @classmethod
    def _sort(cls, v: tuple[EnergyReading, ...]) -> tuple[EnergyReading, ...]:
        return tuple(sorted(v, key=lambda r: r.timestamp))

    @property
    def values(self) -> list[float]:
        return [r.value for r in self.readings]

    def __len__(self) -> int:
        return len(self.readings)

    def __bool__(self) -> bool:
        return bool(self.readings)


# ---------------------------------------------------------------------------
# Cost analysis
# ---------------------------------------------------------------------------


class CostBreakdown(BaseModel):
    """Bill components recomputed from a reading set."""

    model_config = ConfigDict(frozen=True)

    id: str
    energy_data_id: str = ""
    peak_cost: float = Field(default=0.0, ge=0)
    off_peak_cost: float = Field(default=0.0, ge=0)
    demand_charges: float = Field(default=0.0, ge=0)
    fixed_charges: float = Field(default=0.0, ge=0)
    taxes: float = Field(default=0.0, ge=0)
    other_charges: float = Field(default=0.0, ge=0)
    created_at: datetime

    @property
    def energy_cost(self) -> float:
        return self.peak_cost + self.off_peak_cost

    @property
    def total(self) -> float:
        return (
            self.peak_cost
            + self.off_peak_cost
            + self.demand_charges
            + self.fixed_charges
            + self.taxes
            + self.other_charges
        )


class CostMetrics(ReportModel):
    average_cost_per_kwh: float = 0.0
    peak_cost_per_kwh: float = 0.0
    off_peak_cost_per_kwh: float = 0.0
    demand_cost_per_kw: float = 0.0


class PeriodCosts(ReportModel):
    total_cost: float = 0.0
    average_cost: float = 0.0
    peak_costs: float = 0.0
    off_peak_costs: float = 0.0


class CostComparison(ReportModel):
    current_period: PeriodCosts = Field(default_factory=PeriodCosts)
    previous_period: PeriodCosts = Field(default_factory=PeriodCosts)
    percentage_change: PeriodCosts = Field(default_factory=PeriodCosts)


class AnomalyImpact(ReportModel):
    cost: float
    efficiency: float


class AnomalyContext(ReportModel):
    time_of_day: str
    day_of_week: str
    seasonality: str


class CostAnomaly(ReportModel):
    date: datetime
    actual_cost: float
    expected_cost: float
    deviation: float = Field(ge=0)
    severity: Severity
    confidence: float
    impact: AnomalyImpact
    context: AnomalyContext
    root_cause: str


class ConfidenceInterval(ReportModel):
    lower: float
    upper: float


class CostForecast(ReportModel):
    date: datetime
    predicted_cost: float
    confidence_interval: ConfidenceInterval


class TimeOfUseCost(ReportModel):
    hour: int = Field(ge=0, le=23)
    weekday: int = Field(ge=0, le=6)
    cost: float = Field(ge=0)


class SensitivityFactor(ReportModel):
    factor: str
    impact: float


class RiskProfile(ReportModel):
    level: Severity
    factors: list[str]


class OpportunityInsights(ReportModel):
    key_factors: list[str]
    sensitivity_analysis: list[SensitivityFactor]
    risk_profile: RiskProfile


class CostSavingOpportunity(ReportModel):
    id: str
    description: str
    potential_savings: float
    implementation_cost: float | None = None
    payback_period: float | None = None
    category: OpportunityCategory
    priority: Severity
    confidence: float
    implementation_steps: list[str] = Field(default_factory=list)
    roi: float = 0.0
    ml_insights: OpportunityInsights | None = None


class HourlyUsage(ReportModel):
    hour: int
    avg_usage: float
    confidence: float


class WeekdayUsage(ReportModel):
    day: int
    avg_usage: float
    confidence: float


class MonthlyUsage(ReportModel):
    month: int
    avg_usage: float
    confidence: float


class UsagePatterns(ReportModel):
    daily: list[HourlyUsage] = Field(default_factory=list)
    weekly: list[WeekdayUsage] = Field(default_factory=list)
    seasonal: list[MonthlyUsage] = Field(default_factory=list)


class CostDriver(ReportModel):
    factor: str
    impact: float
    confidence: float


class PotentialShare(ReportModel):
    category: str
    amount: float
    confidence: float


class OptimizationPotential(ReportModel):
    total: float = 0.0
    breakdown: list[PotentialShare] = Field(default_factory=list)


class UsageInsights(ReportModel):
    """Descriptive hourly/weekly/monthly aggregates with sample-size confidence."""

    usage_patterns: UsagePatterns = Field(default_factory=UsagePatterns)
    cost_drivers: list[CostDriver] = Field(default_factory=list)
    optimization_potential: OptimizationPotential = Field(default_factory=OptimizationPotential)


class CostAnalysisReport(ReportModel):
    breakdown: CostBreakdown
    metrics: CostMetrics
    comparison: CostComparison
    forecast: list[CostForecast]
    anomalies: list[CostAnomaly]
    time_of_use: list[TimeOfUseCost]
    saving_opportunities: list[CostSavingOpportunity]
    ml_insights: UsageInsights
    rejected_readings: int = 0


# ---------------------------------------------------------------------------
# Demand profiling
# ---------------------------------------------------------------------------


class DemandFactor(ReportModel):
    factor: str
    contribution: float
    trend: FactorTrend


class DemandAlert(ReportModel):
    type: AlertType
    message: str
    threshold: float
    current_value: float


class RealTimeMetrics(ReportModel):
    load_factor: float = 0.0
    power_factor: float = 0.0
    demand_factors: list[DemandFactor] = Field(default_factory=list)
    alerts: list[DemandAlert] = Field(default_factory=list)


class PredictionContext(ReportModel):
    weather_impact: float = 0.0
    seasonality_impact: float = 0.0
    operational_impact: float = 0.0


class DemandRange(ReportModel):
    low: float = 0.0
    high: float = 0.0


class PeakContributor(ReportModel):
    source: str
    impact: float
    confidence: float


class PeakPrediction(ReportModel):
    timestamp: datetime
    predicted_demand: float = 0.0
    confidence: float = 0.0
    factors: list[str] = Field(default_factory=list)
    context: PredictionContext = Field(default_factory=PredictionContext)
    demand_range: DemandRange = Field(default_factory=DemandRange, alias="range")
    contributors: list[PeakContributor] = Field(default_factory=list)


class ForecastPoint(ReportModel):
    timestamp: datetime
    demand: float
    confidence: float


class WeekdayDemand(ReportModel):
    day: str
    avg_demand: float
    peak_time: str
    confidence: float


class SeasonalDemand(ReportModel):
    season: str
    avg_demand: float
    peak_demand: float
    confidence: float


class DemandPredictions(ReportModel):
    next_peak: PeakPrediction
    daily_forecast: list[ForecastPoint] = Field(default_factory=list)
    weekly_pattern: list[WeekdayDemand] = Field(default_factory=list)
    seasonal_trends: list[SeasonalDemand] = Field(default_factory=list)


class HourlyDemandPattern(ReportModel):
    hour: int
    avg_demand: float
    peak_probability: float


class NamedDemandPattern(ReportModel):
    """Weekday or month bucket, keyed by its display name."""

    name: str
    avg_demand: float
    peak_probability: float


class Correlation(ReportModel):
    factor: str
    correlation: float
    significance: float
    confidence: float | None = None


class DemandPatterns(ReportModel):
    daily: list[HourlyDemandPattern] = Field(default_factory=list)
    weekly: list[NamedDemandPattern] = Field(default_factory=list)
    monthly: list[NamedDemandPattern] = Field(default_factory=list)
    correlations: list[Correlation] = Field(default_factory=list)


class TimeWindow(ReportModel):
    start: datetime
    end: datetime


class Risk(ReportModel):
    description: str
    severity: Severity
    mitigation: str


class RecommendationDetails(ReportModel):
    description: str
    steps: list[str]
    estimated_savings: float
    implementation_cost: float | None = None
    payback_period: float | None = None
    requirements: list[str] = Field(default_factory=list)
    risks: list[Risk] = Field(default_factory=list)


class RecommendationInsights(ReportModel):
    confidence: float
    factors: list[str]
    impact_probability: float
    sensitivity_analysis: list[SensitivityFactor]


class DemandRecommendation(ReportModel):
    id: str
    type: RecommendationType
    action: str
    impact: float  # kW reduction
    priority: Severity
    time_window: TimeWindow
    details: RecommendationDetails
    ml_insights: RecommendationInsights


class DemandProfile(ReportModel):
    current_demand: float
    peak_demand: float
    predicted_peak: float
    demand_trend: Trend
    time_to_next_peak: float  # minutes
    recommendations: list[DemandRecommendation]
    real_time_metrics: RealTimeMetrics
    predictions: DemandPredictions
    patterns: DemandPatterns
    rejected_readings: int = 0


# ---------------------------------------------------------------------------
# Sustainability
# ---------------------------------------------------------------------------


class EmissionSource(ReportModel):
    source: str
    emissions: float
    percentage: float
    trend: Trend


class EmissionForecast(ReportModel):
    timestamp: datetime
    predicted_emissions: float
    confidence: float


class CarbonFootprint(ReportModel):
    total_emissions: float = 0.0  # kg CO2
    emissions_per_kwh: float = 0.0  # kg CO2/kWh
    carbon_intensity: float = 0.0  # g CO2/kWh
    reduction_from_baseline: float = 0.0  # percent
    sources: list[EmissionSource] = Field(default_factory=list)
    forecast: list[EmissionForecast] = Field(default_factory=list)


class RenewableGeneration(ReportModel):
    source: str
    amount: float
    efficiency: float
    availability: float


class RenewablePotential(ReportModel):
    solar: float = 0.0
    wind: float = 0.0
    storage: float = 0.0


class RenewableSavings(ReportModel):
    cost: float = 0.0
    carbon: float = 0.0


class RenewableEnergy(ReportModel):
    percentage: float = 0.0
    solar_contribution: float = 0.0
    wind_contribution: float = 0.0
    grid_usage: float = 0.0
    peak_renewable_hours: list[datetime] = Field(default_factory=list)
    generation: list[RenewableGeneration] = Field(default_factory=list)
    potential: RenewablePotential = Field(default_factory=RenewablePotential)
    savings: RenewableSavings = Field(default_factory=RenewableSavings)


class MaintenanceInfo(ReportModel):
    status: MaintenanceStatus
    next_service: datetime
    efficiency: float


class EquipmentScore(ReportModel):
    score: float = Field(ge=0, le=100)
    usage: float
    potential: float
    maintenance: MaintenanceInfo


class OptimizationStep(ReportModel):
    action: str
    impact: float
    cost: float


class EfficiencyOptimization(ReportModel):
    current: float = 0.0
    potential: float = 0.0
    steps: list[OptimizationStep] = Field(default_factory=list)


class EfficiencyMetrics(ReportModel):
    energy_per_square_foot: float = 0.0
    peak_efficiency: float = 0.0
    off_peak_efficiency: float = 0.0
    equipment_scores: dict[str, EquipmentScore] = Field(default_factory=dict)
    waste_energy: float = 0.0
    optimization: EfficiencyOptimization = Field(default_factory=EfficiencyOptimization)


class ScoreComponents(ReportModel):
    carbon_score: float = 0.0
    renewable_score: float = 0.0
    efficiency_score: float = 0.0
    waste_score: float = 0.0


class ScorePoint(ReportModel):
    timestamp: datetime
    score: int


class ScoreForecast(ReportModel):
    timestamp: datetime
    predicted_score: float
    confidence: float


class RecommendationImpact(ReportModel):
    metric: str
    value: float
    unit: str


class ImplementationPlan(ReportModel):
    steps: list[str]
    timeline: str
    requirements: list[str]
    risks: list[Risk]


class SustainabilityRecommendationInsights(ReportModel):
    confidence: float
    factors: list[str]
    sensitivity: list[SensitivityFactor]


class SustainabilityRecommendation(ReportModel):
    id: str
    category: SustainabilityCategory
    title: str
    description: str
    impact: RecommendationImpact
    priority: Severity
    estimated_cost: float | None = None
    payback_period: float | None = None
    implementation: ImplementationPlan
    insights: SustainabilityRecommendationInsights


class SustainabilityScore(ReportModel):
    overall: int = Field(default=0, ge=0, le=100)
    components: ScoreComponents = Field(default_factory=ScoreComponents)
    industry_comparison: float = 0.0  # percent vs benchmark
    trend: ScoreTrend = ScoreTrend.STABLE
    recommendations: list[SustainabilityRecommendation] = Field(default_factory=list)
    historical_progress: list[ScorePoint] = Field(default_factory=list)
    forecast: list[ScoreForecast] = Field(default_factory=list)


class SeasonalImpact(ReportModel):
    season: str
    impact: float
    confidence: float


class HourlyEfficiency(ReportModel):
    time_of_day: str
    efficiency: float
    confidence: float


class WeatherImpact(ReportModel):
    condition: str
    impact: float
    confidence: float


class SustainabilityPatterns(ReportModel):
    seasonal: list[SeasonalImpact] = Field(default_factory=list)
    daily: list[HourlyEfficiency] = Field(default_factory=list)
    weather: list[WeatherImpact] = Field(default_factory=list)


class UsageAnomaly(ReportModel):
    timestamp: datetime
    metric: str
    expected: float
    actual: float
    impact: float
    confidence: float


class ShortTermPrediction(ReportModel):
    metric: str
    value: float
    confidence: float
    horizon: str


class LongTermPrediction(ReportModel):
    metric: str
    trend: str
    confidence: float
    factors: list[str]


class SustainabilityPredictions(ReportModel):
    short_term: list[ShortTermPrediction] = Field(default_factory=list)
    long_term: list[LongTermPrediction] = Field(default_factory=list)


class SustainabilityInsights(ReportModel):
    patterns: SustainabilityPatterns = Field(default_factory=SustainabilityPatterns)
    anomalies: list[UsageAnomaly] = Field(default_factory=list)
    correlations: list[Correlation] = Field(default_factory=list)
    predictions: SustainabilityPredictions = Field(default_factory=SustainabilityPredictions)


class SustainabilityMetrics(ReportModel):
    carbon_footprint: CarbonFootprint
    renewable_energy: RenewableEnergy
    efficiency: EfficiencyMetrics
    sustainability_score: SustainabilityScore
    insights: SustainabilityInsights
    rejected_readings: int = 0


# ---------------------------------------------------------------------------
# Quality checks
# ---------------------------------------------------------------------------


class QualityCheckResult(BaseModel):
    """Result of a data quality check."""

    check_name: str
    status: QualityStatus
    metric_value: float | None = None
    threshold: float | None = None
    message: str
    checked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Bill analysis
# ---------------------------------------------------------------------------


class BillAnalysis(ReportModel):
    """Bill analysis enriched by the text-generation service."""

    available: Literal[True] = True
    breakdown: CostBreakdown
    metrics: CostMetrics
    forecast: list[CostForecast]
    time_of_use: list[TimeOfUseCost]
    anomalies: list[CostAnomaly]
    saving_opportunities: list[CostSavingOpportunity]


class AnalysisUnavailable(ReportModel):
    """Returned instead of a BillAnalysis when the service call fails."""

    available: Literal[False] = False
    reason: str
    metrics: CostMetrics = Field(default_factory=CostMetrics)
    comparison: CostComparison = Field(default_factory=CostComparison)
    forecast: list[CostForecast] = Field(default_factory=list)
    anomalies: list[CostAnomaly] = Field(default_factory=list)
    saving_opportunities: list[CostSavingOpportunity] = Field(default_factory=list)

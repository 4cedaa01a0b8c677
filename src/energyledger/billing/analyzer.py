"""Bill analysis backed by the external text-generation service.

Breakdown, metrics, forecast and time-of-use costs are computed locally.
Anomalies and saving opportunities come from the service; its replies are
validated against the schemas below and any failure yields an
``AnalysisUnavailable`` result instead of a partial report.
"""

from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from energyledger.analytics.cost import CostAnalyzer
from energyledger.analytics.stats import hour_of, safe_div, weekday_of
from energyledger.billing.client import TextGenerationClient
from energyledger.billing.features import baseline_usage, extract_features
from energyledger.cache import TTLCache
from energyledger.config import BillingSettings
from energyledger.errors import ServiceError
from energyledger.ingestion.readings import ReadingsInput, ensure_batch, fingerprint, make_id
from energyledger.models import (
    AnalysisUnavailable,
    AnomalyContext,
    AnomalyImpact,
    BillAnalysis,
    CostAnomaly,
    CostSavingOpportunity,
    EnergyReading,
    OpportunityCategory,
    OpportunityInsights,
    Severity,
)

log = structlog.get_logger()

BASELINE_DEVIATION = 0.5

BillResult = Union[BillAnalysis, AnalysisUnavailable]


class ReplyModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnomalyReply(ReplyModel):
    timestamp: datetime
    type: str = "spike"
    severity: Severity
    expected_value: float = Field(ge=0)
    actual_value: float = Field(ge=0)
    potential_causes: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0, le=1)
    impact: AnomalyImpact
    context: AnomalyContext

    @field_validator("timestamp")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        try:
            return v.astimezone(timezone.utc)
        except OverflowError as e:
            raise ValueError("timestamp is out of range once converted to UTC") from e


class AnomalyReplyEnvelope(ReplyModel):
    anomalies: list[AnomalyReply]


class ImplementationReply(ReplyModel):
    steps: list[str] = Field(default_factory=list)


class RecommendationReply(ReplyModel):
    title: str
    description: str
    estimated_savings: float
    implementation_cost: float | None = None
    payback_period: float | None = None
    priority: Severity
    confidence: float = Field(ge=0, le=1)
    implementation_steps: list[str] = Field(default_factory=list)
    implementation: ImplementationReply | None = None
    roi: float = 0.0
    ml_insights: OpportunityInsights | None = None

    @property
    def steps(self) -> list[str]:
        if self.implementation_steps or self.implementation is None:
            return self.implementation_steps
        return self.implementation.steps


class RecommendationReplyEnvelope(ReplyModel):
    recommendations: list[RecommendationReply]


def categorize_opportunity(title: str) -> OpportunityCategory:
    """Map a recommendation title onto a saving opportunity category by keyword."""
    lower = title.lower()
    if "peak" in lower or "time-of-use" in lower:
        return OpportunityCategory.PEAK_REDUCTION
    if "efficiency" in lower or "consumption" in lower:
        return OpportunityCategory.EFFICIENCY
    if "rate" in lower or "tariff" in lower:
        return OpportunityCategory.RATE_OPTIMIZATION
    return OpportunityCategory.DEMAND_RESPONSE


def determine_root_cause(anomaly: AnomalyReply, baseline: dict[str, float]) -> str:
    """Explain an anomaly by comparing it with the hourly and weekday baselines."""
    hourly = baseline.get(f"hour-{hour_of(anomaly.timestamp)}", 0.0)
    daily = baseline.get(f"day-{weekday_of(anomaly.timestamp)}", 0.0)
    hourly_dev = safe_div(abs(anomaly.actual_value - hourly), hourly)
    daily_dev = safe_div(abs(anomaly.actual_value - daily), daily)
    cause = anomaly.potential_causes[0] if anomaly.potential_causes else "unknown"

    if hourly_dev > BASELINE_DEVIATION and daily_dev > BASELINE_DEVIATION:
        return (
            f"Unusual activity detected for both time of day ({hourly_dev:.2f}x normal) "
            f"and day of week ({daily_dev:.2f}x normal). Primary cause: {cause}"
        )
    if hourly_dev > BASELINE_DEVIATION:
        return (
            f"Significant deviation from typical hourly pattern ({hourly_dev:.2f}x normal). "
            f"Likely cause: {cause}"
        )
    if daily_dev > BASELINE_DEVIATION:
        return (
            f"Unusual usage pattern for this day of week ({daily_dev:.2f}x normal). "
            f"Possible cause: {cause}"
        )
    if not anomaly.potential_causes:
        return "Multiple factors contributing"
    return f"Multiple factors contributing: {', '.join(anomaly.potential_causes)}"


class BillAnalyzer:
    """Combines local cost calculations with service-generated anomalies and advice."""

    def __init__(
        self,
        settings: BillingSettings | None = None,
        client: TextGenerationClient | None = None,
        cost_analyzer: CostAnalyzer | None = None,
        cache: TTLCache[BillAnalysis] | None = None,
    ) -> None:
        self.settings = settings or BillingSettings()
        self.client = client or TextGenerationClient(self.settings)
        self.cost = cost_analyzer or CostAnalyzer()
        if cache is None:
            cache = TTLCache(self.settings.cache_ttl_seconds, self.settings.cache_maxsize)
        self.cache = cache

    def analyze(self, readings: ReadingsInput) -> BillResult:
        """Analyze a bill's readings.

        Args:
            readings: Raw records or a validated batch

        Returns:
            A BillAnalysis, or AnalysisUnavailable when there is nothing to
            analyze or the service call or reply validation fails
        """
        batch = ensure_batch(readings)
        if not batch:
            return AnalysisUnavailable(reason="No valid readings to analyze")

        key = fingerprint(batch)
        cached = self.cache.get(key)
        if isinstance(cached, BillAnalysis):
            log.debug("bill_analysis_cache_hit", key=key[:12])
            return cached

        values = batch.readings
        breakdown = self.cost.calculate_breakdown(values)
        features = extract_features(values, breakdown, self.cost.settings)

        try:
            anomalies = self._detect_anomalies(values, features)
            opportunities = self._saving_opportunities(key, values, features)
        except (ServiceError, ValidationError) as e:
            log.warning("bill_analysis_unavailable", error=str(e), readings=len(values))
            return AnalysisUnavailable(reason=str(e))

        total_kwh = sum(r.value for r in values)
        peak_kwh = sum(r.value for r in values if self.cost.is_peak(r.timestamp))
        result = BillAnalysis(
            breakdown=breakdown,
            metrics=self.cost.calculate_metrics(breakdown, total_kwh, peak_kwh),
            forecast=self.cost.generate_daily_forecast(values),
            time_of_use=self.cost.generate_time_of_use_costs(values),
            anomalies=anomalies,
            saving_opportunities=opportunities,
        )
        self.cache.set(key, result)

        log.info(
            "bill_analysis_complete",
            readings=len(values),
            anomalies=len(anomalies),
            opportunities=len(opportunities),
        )
        return result

    def _detect_anomalies(
        self, readings: Sequence[EnergyReading], features: dict[str, Any]
    ) -> list[CostAnomaly]:
        reply = AnomalyReplyEnvelope.model_validate_json(self.client.detect_anomalies(features))
        baseline = baseline_usage(readings)

        anomalies = []
        for a in reply.anomalies:
            if a.confidence < self.settings.min_confidence:
                continue
            rate = self.cost.rate_at(a.timestamp)
            anomalies.append(
                CostAnomaly(
                    date=a.timestamp,
                    actual_cost=a.actual_value * rate,
                    expected_cost=a.expected_value * rate,
                    deviation=safe_div(abs(a.actual_value - a.expected_value), a.expected_value),
                    severity=a.severity,
                    confidence=a.confidence,
                    impact=a.impact,
                    context=a.context,
                    root_cause=determine_root_cause(a, baseline),
                )
            )
        return anomalies

    def _saving_opportunities(
        self, key: str, readings: Sequence[EnergyReading], features: dict[str, Any]
    ) -> list[CostSavingOpportunity]:
        insights = self.cost.generate_usage_insights(readings)
        payload = {
            **features,
            "usageInsights": insights.model_dump(mode="json", by_alias=True),
        }
        reply = RecommendationReplyEnvelope.model_validate_json(
            self.client.generate_recommendations(payload)
        )

        return [
            CostSavingOpportunity(
                id=make_id("bill", key, str(i), rec.title),
                description=rec.description,
                potential_savings=rec.estimated_savings,
                implementation_cost=rec.implementation_cost,
                payback_period=rec.payback_period,
                category=categorize_opportunity(rec.title),
                priority=rec.priority,
                confidence=rec.confidence,
                implementation_steps=rec.steps,
                roi=rec.roi,
                ml_insights=rec.ml_insights,
            )
            for i, rec in enumerate(reply.recommendations)
            if rec.confidence >= self.settings.min_confidence
        ]

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "BillAnalyzer":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

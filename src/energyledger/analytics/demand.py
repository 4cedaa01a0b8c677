"""Demand profiling over a rolling history of readings."""

import threading
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta

import structlog

from energyledger.analytics.stats import (
    MONTH_NAMES,
    WEEKDAY_NAMES,
    hour_of,
    mean,
    month_of,
    round_half_up,
    safe_div,
    season_of,
    utc_now,
    weekday_of,
)
from energyledger.config import DemandSettings
from energyledger.ingestion.readings import ReadingsInput, ensure_batch, make_id
from energyledger.models import (
    AlertType,
    Correlation,
    DemandAlert,
    DemandFactor,
    DemandPatterns,
    DemandPredictions,
    DemandProfile,
    DemandRange,
    DemandRecommendation,
    EnergyReading,
    FactorTrend,
    ForecastPoint,
    HourlyDemandPattern,
    NamedDemandPattern,
    PeakContributor,
    PeakPrediction,
    PredictionContext,
    RealTimeMetrics,
    RecommendationDetails,
    RecommendationInsights,
    RecommendationType,
    Risk,
    SeasonalDemand,
    SensitivityFactor,
    Severity,
    TimeWindow,
    Trend,
    WeekdayDemand,
)

log = structlog.get_logger()

Clock = Callable[[], datetime]

SEASONS = ("Winter", "Spring", "Summer", "Fall")
PEAK_PROBABILITY_SHARE = 0.9
SCHEDULED_LEAD = timedelta(hours=2)

DEMAND_CORRELATIONS = (
    Correlation(factor="Temperature", correlation=0.85, significance=0.95),
    Correlation(factor="Time of Day", correlation=0.75, significance=0.9),
    Correlation(factor="Day of Week", correlation=0.6, significance=0.85),
)

PEAK_CONTRIBUTORS = (
    PeakContributor(source="Base Load", impact=0.6, confidence=0.9),
    PeakContributor(source="Weather", impact=0.25, confidence=0.8),
    PeakContributor(source="Special Events", impact=0.15, confidence=0.7),
)

TREND_TO_FACTOR = {
    Trend.INCREASING: FactorTrend.UP,
    Trend.DECREASING: FactorTrend.DOWN,
    Trend.STABLE: FactorTrend.STABLE,
}


def analyze_trend(readings: Sequence[EnergyReading]) -> Trend:
    """Classify the average step between consecutive readings.

    Steps above +1 are increasing, below -1 decreasing; fewer than two
    readings are stable.
    """
    if len(readings) < 2:
        return Trend.STABLE

    values = [r.value for r in readings]
    average_delta = mean([b - a for a, b in zip(values, values[1:], strict=False)])
    if average_delta > 1:
        return Trend.INCREASING
    if average_delta < -1:
        return Trend.DECREASING
    return Trend.STABLE


class DemandAnalyzer:
    """Demand profiler that owns a rolling history buffer.

    Appends are serialised by a lock. Analysis runs against an immutable
    snapshot of the buffer, so concurrent readers never block each other.
    """

    def __init__(self, settings: DemandSettings | None = None, clock: Clock = utc_now) -> None:
        self.settings = settings or DemandSettings()
        self._clock = clock
        self._lock = threading.Lock()
        self._history: tuple[EnergyReading, ...] = ()

    @property
    def history(self) -> tuple[EnergyReading, ...]:
        return self._history

    def _trimmed(self, readings: Sequence[EnergyReading]) -> tuple[EnergyReading, ...]:
        cutoff = self._clock() - timedelta(days=self.settings.history_days)
        ordered = sorted(readings, key=lambda r: r.timestamp)
        return tuple(r for r in ordered if r.timestamp >= cutoff)

    def update_historical_data(self, readings: ReadingsInput) -> None:
        """Merge readings into the buffer, re-sort and drop anything older than the window."""
        batch = ensure_batch(readings)
        with self._lock:
            merged = self._history + batch.readings
            self._history = self._trimmed(merged)
            dropped = len(merged) - len(self._history)

        if dropped:
            log.debug("history_trimmed", dropped=dropped, retained=len(self._history))

    def replace_history(self, readings: ReadingsInput) -> None:
        """Swap the whole buffer for the given readings (still windowed)."""
        batch = ensure_batch(readings)
        with self._lock:
            self._history = self._trimmed(batch.readings)
        log.debug("history_replaced", retained=len(self._history))

    def calculate_peak_demand(self, history: Sequence[EnergyReading] | None = None) -> float:
        readings = self._history if history is None else history
        return max((r.value for r in readings), default=0.0)

    def calculate_real_time_metrics(self, readings: Sequence[EnergyReading]) -> RealTimeMetrics:
        s = self.settings
        current = readings[-1].value if readings else 0.0
        load_factor = safe_div(mean([r.value for r in readings]), current)

        demand_factors = [
            DemandFactor(
                factor="HVAC",
                contribution=0.4,
                trend=TREND_TO_FACTOR[analyze_trend(readings[-6:])],
            ),
            DemandFactor(factor="Lighting", contribution=0.2, trend=FactorTrend.STABLE),
            DemandFactor(factor="Equipment", contribution=0.4, trend=FactorTrend.UP),
        ]

        alerts = []
        if readings:
            if load_factor < s.load_factor_threshold:
                alerts.append(
                    DemandAlert(
                        type=AlertType.WARNING,
                        message="Low load factor indicates poor demand management",
                        threshold=s.load_factor_threshold,
                        current_value=load_factor,
                    )
                )
            if s.power_factor < s.power_factor_threshold:
                alerts.append(
                    DemandAlert(
                        type=AlertType.CRITICAL,
                        message="Low power factor may result in penalties",
                        threshold=s.power_factor_threshold,
                        current_value=s.power_factor,
                    )
                )

        return RealTimeMetrics(
            load_factor=load_factor,
            power_factor=s.power_factor,
            demand_factors=demand_factors,
            alerts=alerts,
        )

    def predict_next_peak(self, readings: Sequence[EnergyReading], now: datetime) -> PeakPrediction:
        """Project the busiest hour of day forward to its next occurrence.

        Needs at least ``min_prediction_points`` readings, otherwise a
        zero-confidence placeholder is returned.
        """
        s = self.settings
        if len(readings) < s.min_prediction_points:
            return PeakPrediction(timestamp=now, factors=["Insufficient data for prediction"])

        sums = [0.0] * 24
        counts = [0] * 24
        for r in readings:
            hour = hour_of(r.timestamp)
            sums[hour] += r.value
            counts[hour] += 1
        averages = [safe_div(sums[h], counts[h]) for h in range(24)]

        # first hour wins ties
        peak_hour = max(range(24), key=lambda h: (averages[h], -h))

        next_peak = now.replace(hour=peak_hour, minute=0, second=0, microsecond=0)
        if now.hour >= peak_hour:
            next_peak += timedelta(days=1)

        predicted = averages[peak_hour] * (
            1 + s.weather_impact + s.seasonality_impact + s.operational_impact
        )
        return PeakPrediction(
            timestamp=next_peak,
            predicted_demand=predicted,
            confidence=s.prediction_confidence,
            factors=[
                "Historical usage patterns",
                "Weather forecast",
                "Seasonal trends",
                "Operational schedule",
            ],
            context=PredictionContext(
                weather_impact=s.weather_impact,
                seasonality_impact=s.seasonality_impact,
                operational_impact=s.operational_impact,
            ),
            demand_range=DemandRange(
                low=predicted * (1 - s.prediction_range),
                high=predicted * (1 + s.prediction_range),
            ),
            contributors=list(PEAK_CONTRIBUTORS),
        )

    def generate_recommendations(
        self,
        current_demand: float,
        peak_demand: float,
        prediction: PeakPrediction,
        now: datetime,
    ) -> list[DemandRecommendation]:
        """Tiered actions: immediate when near the peak, scheduled before a close
        predicted peak, and always a strategic one."""
        rate = self.settings.energy_rate
        recommendations = []

        if current_demand > peak_demand * self.settings.peak_threshold:
            recommendations.append(
                DemandRecommendation(
                    id=make_id(RecommendationType.IMMEDIATE.value, now.isoformat(), current_demand),
                    type=RecommendationType.IMMEDIATE,
                    action="Reduce non-essential equipment usage",
                    impact=round_half_up(current_demand - peak_demand * 0.7, 1),
                    priority=Severity.HIGH,
                    time_window=TimeWindow(start=now, end=now + timedelta(minutes=30)),
                    details=RecommendationDetails(
                        description=(
                            "Immediate reduction of non-critical loads to avoid peak demand charges"
                        ),
                        steps=[
                            "Identify non-essential equipment",
                            "Gradually reduce HVAC load",
                            "Dim non-critical lighting",
                            "Postpone high-power operations",
                        ],
                        # 20% reduction over 100 hours
                        estimated_savings=current_demand * 0.2 * rate * 100,
                        requirements=["Load monitoring system", "Staff availability"],
                        risks=[
                            Risk(
                                description="Temporary comfort impact",
                                severity=Severity.LOW,
                                mitigation="Maintain minimum comfort levels",
                            )
                        ],
                    ),
                    ml_insights=RecommendationInsights(
                        confidence=0.9,
                        factors=["Current demand trend", "Historical response effectiveness"],
                        impact_probability=0.85,
                        sensitivity_analysis=[
                            SensitivityFactor(factor="Staff response time", impact=0.4),
                            SensitivityFactor(factor="Equipment flexibility", impact=0.6),
                        ],
                    ),
                )
            )

        if prediction.timestamp - now < SCHEDULED_LEAD:
            recommendations.append(
                DemandRecommendation(
                    id=make_id(
                        RecommendationType.SCHEDULED.value,
                        prediction.timestamp.isoformat(),
                        prediction.predicted_demand,
                    ),
                    type=RecommendationType.SCHEDULED,
                    action="Pre-cool facility before predicted peak",
                    impact=round_half_up(prediction.predicted_demand * 0.15, 1),
                    priority=Severity.MEDIUM,
                    time_window=TimeWindow(
                        start=prediction.timestamp - SCHEDULED_LEAD, end=prediction.timestamp
                    ),
                    details=RecommendationDetails(
                        description="Proactive thermal management to reduce peak load",
                        steps=[
                            "Adjust temperature setpoints",
                            "Enable thermal storage",
                            "Optimize equipment scheduling",
                            "Monitor building response",
                        ],
                        estimated_savings=prediction.predicted_demand * 0.15 * rate * 100,
                        implementation_cost=0,
                        requirements=["BMS control", "Temperature sensors"],
                        risks=[
                            Risk(
                                description="System response lag",
                                severity=Severity.MEDIUM,
                                mitigation="Start adjustments earlier",
                            )
                        ],
                    ),
                    ml_insights=RecommendationInsights(
                        confidence=0.85,
                        factors=["Weather forecast", "Building thermal mass"],
                        impact_probability=0.8,
                        sensitivity_analysis=[
                            SensitivityFactor(factor="Outside temperature", impact=0.7),
                            SensitivityFactor(factor="Occupancy level", impact=0.3),
                        ],
                    ),
                )
            )

        recommendations.append(
            DemandRecommendation(
                id=make_id(RecommendationType.STRATEGIC.value, now.isoformat(), peak_demand),
                type=RecommendationType.STRATEGIC,
                action="Implement automated load shifting",
                impact=round_half_up(peak_demand * 0.2, 1),
                priority=Severity.LOW,
                time_window=TimeWindow(start=now, end=now + timedelta(days=7)),
                details=RecommendationDetails(
                    description="Long-term demand management through automation",
                    steps=[
                        "Assess current capabilities",
                        "Design control strategy",
                        "Install automation system",
                        "Configure alerts and reporting",
                    ],
                    estimated_savings=peak_demand * 0.2 * rate * 1000,
                    implementation_cost=50000,
                    payback_period=24,
                    requirements=["Capital budget", "Technical expertise"],
                    risks=[
                        Risk(
                            description="Integration complexity",
                            severity=Severity.MEDIUM,
                            mitigation="Phased implementation",
                        )
                    ],
                ),
                ml_insights=RecommendationInsights(
                    confidence=0.75,
                    factors=["Historical peak patterns", "Equipment compatibility"],
                    impact_probability=0.7,
                    sensitivity_analysis=[
                        SensitivityFactor(factor="System reliability", impact=0.5),
                        SensitivityFactor(factor="User adoption", impact=0.5),
                    ],
                ),
            )
        )

        return recommendations

    def generate_predictions(
        self,
        readings: Sequence[EnergyReading],
        history: Sequence[EnergyReading],
        now: datetime,
    ) -> DemandPredictions:
        """Next peak from the batch; hourly, weekday and seasonal views from the history."""
        forecast = []
        for offset in range(24):
            ts = now + timedelta(hours=offset)
            same_hour = [r.value for r in history if hour_of(r.timestamp) == ts.hour]
            forecast.append(
                ForecastPoint(timestamp=ts, demand=mean(same_hour), confidence=0.9 - offset * 0.02)
            )

        weekly = []
        for day, name in enumerate(WEEKDAY_NAMES):
            day_readings = [r for r in history if weekday_of(r.timestamp) == day]
            by_hour: dict[int, list[float]] = {}
            for r in day_readings:
                by_hour.setdefault(hour_of(r.timestamp), []).append(r.value)
            peak_hour = max(sorted(by_hour), key=lambda h: mean(by_hour[h]), default=0)
            weekly.append(
                WeekdayDemand(
                    day=name,
                    avg_demand=mean([r.value for r in day_readings]),
                    peak_time=f"{peak_hour}:00",
                    confidence=0.85 if day_readings else 0.0,
                )
            )

        seasonal = []
        for season in SEASONS:
            values = [r.value for r in history if season_of(month_of(r.timestamp)) == season]
            seasonal.append(
                SeasonalDemand(
                    season=season,
                    avg_demand=mean(values),
                    peak_demand=max(values, default=0.0),
                    confidence=0.8 if values else 0.0,
                )
            )

        return DemandPredictions(
            next_peak=self.predict_next_peak(readings, now),
            daily_forecast=forecast,
            weekly_pattern=weekly,
            seasonal_trends=seasonal,
        )

    def generate_patterns(
        self, readings: Sequence[EnergyReading], peak_demand: float
    ) -> DemandPatterns:
        """Average demand and share of near-peak readings per hour, weekday and month."""
        threshold = peak_demand * PEAK_PROBABILITY_SHARE

        def bucket(size: int, key: Callable[[EnergyReading], int]) -> list[tuple[float, float]]:
            values: list[list[float]] = [[] for _ in range(size)]
            for r in readings:
                values[key(r)].append(r.value)
            return [
                (mean(v), safe_div(sum(1 for x in v if x > threshold), len(v))) for v in values
            ]

        hourly = bucket(24, lambda r: hour_of(r.timestamp))
        weekly = bucket(7, lambda r: weekday_of(r.timestamp))
        monthly = bucket(12, lambda r: month_of(r.timestamp) - 1)

        return DemandPatterns(
            daily=[
                HourlyDemandPattern(hour=h, avg_demand=avg, peak_probability=p)
                for h, (avg, p) in enumerate(hourly)
            ],
            weekly=[
                NamedDemandPattern(name=WEEKDAY_NAMES[d], avg_demand=avg, peak_probability=p)
                for d, (avg, p) in enumerate(weekly)
            ],
            monthly=[
                NamedDemandPattern(name=MONTH_NAMES[m][:3], avg_demand=avg, peak_probability=p)
                for m, (avg, p) in enumerate(monthly)
            ],
            correlations=list(DEMAND_CORRELATIONS),
        )

    def analyze_demand(self, recent: ReadingsInput) -> DemandProfile:
        """Merge the batch into the history and profile current demand.

        Args:
            recent: Latest readings; merged into the retained history

        Returns:
            Demand profile; an empty batch yields zero demand and no alerts,
            but the strategic recommendation is always present
        """
        batch = ensure_batch(recent)
        self.update_historical_data(batch)

        history = self.history
        now = self._clock()
        readings = sorted(batch.readings, key=lambda r: r.timestamp)

        current_demand = readings[-1].value if readings else 0.0
        peak_demand = self.calculate_peak_demand(history)
        trend = analyze_trend(readings)
        predictions = self.generate_predictions(readings, history, now)
        next_peak = predictions.next_peak

        recommendations = self.generate_recommendations(
            current_demand, peak_demand, next_peak, now
        )

        profile = DemandProfile(
            current_demand=current_demand,
            peak_demand=peak_demand,
            predicted_peak=next_peak.predicted_demand,
            demand_trend=trend,
            time_to_next_peak=max(0.0, (next_peak.timestamp - now).total_seconds() / 60),
            recommendations=recommendations,
            real_time_metrics=self.calculate_real_time_metrics(readings),
            predictions=predictions,
            patterns=self.generate_patterns(readings, peak_demand),
            rejected_readings=batch.rejected,
        )

        log.info(
            "demand_analysis_complete",
            readings=len(readings),
            history=len(history),
            trend=trend.value,
            recommendations=len(recommendations),
        )
        return profile

"""Facade bundling the analytics engines with fingerprint-keyed result caching."""

from typing import Union

import structlog

from energyledger.analytics.cost import CostAnalyzer
from energyledger.analytics.demand import DemandAnalyzer
from energyledger.analytics.sustainability import SustainabilityAnalyzer
from energyledger.cache import TTLCache
from energyledger.ingestion.readings import ReadingsInput, ensure_batch, fingerprint
from energyledger.models import CostAnalysisReport, DemandProfile, SustainabilityMetrics

log = structlog.get_logger()

CachedReport = Union[CostAnalysisReport, SustainabilityMetrics]


class AnalyticsService:
    """Runs the three engines for one tenant.

    Cost and sustainability reports are cached by the fingerprint of their
    input, so a changed reading set always misses. Demand profiles are never
    cached because each call updates the analyzer's history.
    """

    def __init__(
        self,
        cost: CostAnalyzer | None = None,
        demand: DemandAnalyzer | None = None,
        sustainability: SustainabilityAnalyzer | None = None,
        cache: TTLCache[CachedReport] | None = None,
    ) -> None:
        self.cost = cost or CostAnalyzer()
        self.demand = demand or DemandAnalyzer()
        self.sustainability = sustainability or SustainabilityAnalyzer()
        self.cache = cache

    def analyze_costs(
        self, current: ReadingsInput, previous: ReadingsInput | None = None
    ) -> CostAnalysisReport:
        current_batch = ensure_batch(current)
        previous_batch = ensure_batch(previous)
        key = f"cost:{fingerprint(current_batch)}:{fingerprint(previous_batch)}"

        cached = self._lookup(key)
        if isinstance(cached, CostAnalysisReport):
            return cached

        report = self.cost.analyze_costs(current_batch, previous_batch)
        self._store(key, report)
        return report

    def analyze_demand(self, recent: ReadingsInput) -> DemandProfile:
        return self.demand.analyze_demand(recent)

    def analyze_sustainability(self, readings: ReadingsInput) -> SustainabilityMetrics:
        batch = ensure_batch(readings)
        key = f"sustainability:{fingerprint(batch)}"

        cached = self._lookup(key)
        if isinstance(cached, SustainabilityMetrics):
            return cached

        metrics = self.sustainability.analyze_sustainability(batch)
        self._store(key, metrics)
        return metrics

    def _lookup(self, key: str) -> CachedReport | None:
        if self.cache is None:
            return None
        hit = self.cache.get(key)
        log.debug("report_cache_lookup", key=key[:24], hit=hit is not None)
        return hit

    def _store(self, key: str, report: CachedReport) -> None:
        if self.cache is not None:
            self.cache.set(key, report)


def analyze_costs(
    current: ReadingsInput, previous: ReadingsInput | None = None
) -> CostAnalysisReport:
    """Cost report from a fresh analyzer with settings from the environment."""
    return CostAnalyzer().analyze_costs(current, previous)


def analyze_sustainability(readings: ReadingsInput) -> SustainabilityMetrics:
    """Sustainability report from a fresh analyzer with settings from the environment."""
    return SustainabilityAnalyzer().analyze_sustainability(readings)

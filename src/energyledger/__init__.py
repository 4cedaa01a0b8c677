"""Cost, demand and sustainability analytics for utility energy readings."""

from energyledger.analytics import CostAnalyzer, DemandAnalyzer, SustainabilityAnalyzer
from energyledger.billing import BillAnalyzer, TextGenerationClient
from energyledger.cache import TTLCache
from energyledger.errors import EnergyLedgerError, InvalidInputError, ServiceError
from energyledger.ingestion import fingerprint, load_readings, parse_readings
from energyledger.models import (
    AnalysisUnavailable,
    BillAnalysis,
    CostAnalysisReport,
    DemandProfile,
    EnergyReading,
    ReadingBatch,
    SustainabilityMetrics,
)
from energyledger.service import AnalyticsService, analyze_costs, analyze_sustainability

__all__ = [
    "AnalysisUnavailable",
    "AnalyticsService",
    "BillAnalysis",
    "BillAnalyzer",
    "CostAnalysisReport",
    "CostAnalyzer",
    "DemandAnalyzer",
    "DemandProfile",
    "EnergyLedgerError",
    "EnergyReading",
    "InvalidInputError",
    "ReadingBatch",
    "ServiceError",
    "SustainabilityAnalyzer",
    "SustainabilityMetrics",
    "TTLCache",
    "TextGenerationClient",
    "analyze_costs",
    "analyze_sustainability",
    "fingerprint",
    "load_readings",
    "parse_readings",
]

"""Cost, demand and sustainability analytics engines."""

from energyledger.analytics.cost import CostAnalyzer
from energyledger.analytics.demand import DemandAnalyzer
from energyledger.analytics.sustainability import SustainabilityAnalyzer

__all__ = ["CostAnalyzer", "DemandAnalyzer", "SustainabilityAnalyzer"]

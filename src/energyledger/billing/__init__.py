"""Bill analysis through the external text-generation service."""

from energyledger.billing.analyzer import BillAnalyzer, categorize_opportunity
from energyledger.billing.client import TextGenerationClient
from energyledger.billing.features import extract_features

__all__ = ["BillAnalyzer", "TextGenerationClient", "categorize_opportunity", "extract_features"]

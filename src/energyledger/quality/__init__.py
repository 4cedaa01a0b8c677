"""Data quality checks."""

from energyledger.quality.checks import ReadingQualityChecker

__all__ = ["ReadingQualityChecker"]

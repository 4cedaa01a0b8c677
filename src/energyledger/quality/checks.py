"""Data quality checks for reading sets."""

from collections.abc import Sequence
from datetime import timedelta

import structlog

from energyledger.models import EnergyReading, QualityCheckResult, QualityStatus, ReadingBatch

log = structlog.get_logger()


class ReadingQualityChecker:
    """Runs data quality checks on a validated reading batch."""

    def __init__(
        self,
        min_readings: int = 24,
        max_gap: timedelta = timedelta(hours=1, minutes=15),
        max_pct_change: float = 50.0,
    ) -> None:
        self.min_readings = min_readings
        self.max_gap = max_gap
        self.max_pct_change = max_pct_change

    def check(self, batch: ReadingBatch) -> list[QualityCheckResult]:
        """Run all quality checks on a reading batch."""
        readings = sorted(batch.readings, key=lambda r: r.timestamp)
        results = [
            self._check_completeness(readings),
            self._check_rejected(batch),
            self._check_uniqueness(readings),
            self._check_no_gaps(readings),
            self._check_consistency(readings),
        ]

        passed = sum(1 for r in results if r.status == QualityStatus.PASS)
        log.info("reading_quality_complete", passed=passed, total=len(results))

        return results

    def _check_completeness(self, readings: Sequence[EnergyReading]) -> QualityCheckResult:
        count = len(readings)
        threshold = self.min_readings

        if count >= threshold:
            status = QualityStatus.PASS
            message = f"Found {count} readings (threshold: {threshold})"
        elif count >= threshold // 2:
            status = QualityStatus.WARN
            message = f"Low reading count: {count} (threshold: {threshold})"
        else:
            status = QualityStatus.FAIL
            message = f"Insufficient data: {count} readings (threshold: {threshold})"

        return QualityCheckResult(
            check_name="completeness",
            status=status,
            metric_value=count,
            threshold=threshold,
            message=message,
        )

    def _check_rejected(self, batch: ReadingBatch) -> QualityCheckResult:
        rejected = batch.rejected
        total = len(batch) + rejected

        if rejected == 0:
            status = QualityStatus.PASS
            message = "All records had a valid timestamp and value"
        else:
            pct = rejected / total * 100
            status = QualityStatus.FAIL if pct > 5 else QualityStatus.WARN
            message = f"Rejected {rejected} malformed records ({pct:.1f}%)"

        return QualityCheckResult(
            check_name="valid_records",
            status=status,
            metric_value=rejected,
            threshold=0,
            message=message,
        )

    def _check_uniqueness(self, readings: Sequence[EnergyReading]) -> QualityCheckResult:
        if not readings:
            return QualityCheckResult(
                check_name="uniqueness",
                status=QualityStatus.FAIL,
                message="No readings to check",
            )

        duplicates = len(readings) - len({r.timestamp for r in readings})

        if duplicates == 0:
            status = QualityStatus.PASS
            message = f"All {len(readings)} readings have unique timestamps"
        else:
            pct = duplicates / len(readings) * 100
            status = QualityStatus.FAIL if pct > 1 else QualityStatus.WARN
            message = f"Found {duplicates} duplicate timestamps ({pct:.1f}%)"

        return QualityCheckResult(
            check_name="uniqueness",
            status=status,
            metric_value=duplicates,
            threshold=0,
            message=message,
        )

    def _check_no_gaps(self, readings: Sequence[EnergyReading]) -> QualityCheckResult:
        if len(readings) < 2:
            return QualityCheckResult(
                check_name="no_gaps",
                status=QualityStatus.WARN,
                message="Not enough readings to check for gaps",
            )

        gaps = sum(
            1
            for prev, curr in zip(readings, readings[1:], strict=False)
            if curr.timestamp - prev.timestamp > self.max_gap
        )

        if gaps == 0:
            status = QualityStatus.PASS
            message = "No gaps detected in hourly data"
        elif gaps <= 3:
            status = QualityStatus.WARN
            message = f"Found {gaps} gaps in hourly data"
        else:
            status = QualityStatus.FAIL
            message = f"Found {gaps} gaps in hourly data (data may be incomplete)"

        return QualityCheckResult(
            check_name="no_gaps",
            status=status,
            metric_value=gaps,
            threshold=0,
            message=message,
        )

    def _check_consistency(self, readings: Sequence[EnergyReading]) -> QualityCheckResult:
        if len(readings) < 2:
            return QualityCheckResult(
                check_name="value_consistency",
                status=QualityStatus.WARN,
                message="Not enough readings to check consistency",
            )

        spike_count = 0
        for prev, curr in zip(readings, readings[1:], strict=False):
            if prev.value > 0:
                pct_change = abs(curr.value - prev.value) / prev.value * 100
                if pct_change > self.max_pct_change:
                    spike_count += 1

        if spike_count == 0:
            status = QualityStatus.PASS
            message = "Usage changes are consistent (no sudden spikes)"
        elif spike_count <= 5:
            status = QualityStatus.WARN
            message = f"Found {spike_count} unusual usage changes (>{self.max_pct_change:g}% step)"
        else:
            status = QualityStatus.FAIL
            message = f"Found {spike_count} unusual usage spikes - check data quality"

        return QualityCheckResult(
            check_name="value_consistency",
            status=status,
            metric_value=spike_count,
            threshold=0,
            message=message,
        )

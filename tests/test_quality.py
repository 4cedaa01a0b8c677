"""Tests for reading quality checks."""

from datetime import datetime, timedelta, timezone

import pytest

from energyledger.ingestion import parse_readings
from energyledger.models import EnergyReading, QualityCheckResult, QualityStatus, ReadingBatch
from energyledger.quality import ReadingQualityChecker

BASE = datetime(2024, 3, 1, tzinfo=timezone.utc)


@pytest.fixture
def checker() -> ReadingQualityChecker:
    return ReadingQualityChecker()


@pytest.fixture
def sample_batch() -> ReadingBatch:
    """Two days of smooth hourly readings."""
    return ReadingBatch(
        readings=tuple(
            EnergyReading(timestamp=BASE + timedelta(hours=i), value=50.0 + (i % 24))
            for i in range(48)
        )
    )


def result_for(results: list[QualityCheckResult], name: str) -> QualityCheckResult:
    return next(r for r in results if r.check_name == name)


class TestReadingQualityChecks:
    def test_all_pass(self, checker: ReadingQualityChecker, sample_batch: ReadingBatch) -> None:
        results = checker.check(sample_batch)
        assert len(results) == 5
        assert all(r.status == QualityStatus.PASS for r in results)

    def test_completeness_fail_with_few_readings(self, checker: ReadingQualityChecker) -> None:
        batch = ReadingBatch(
            readings=tuple(
                EnergyReading(timestamp=BASE + timedelta(hours=i), value=1.0) for i in range(5)
            )
        )
        completeness = result_for(checker.check(batch), "completeness")
        assert completeness.status == QualityStatus.FAIL

    def test_completeness_warn(self, checker: ReadingQualityChecker) -> None:
        batch = ReadingBatch(
            readings=tuple(
                EnergyReading(timestamp=BASE + timedelta(hours=i), value=1.0) for i in range(12)
            )
        )
        assert result_for(checker.check(batch), "completeness").status == QualityStatus.WARN

    def test_rejected_records_reported(self, checker: ReadingQualityChecker) -> None:
        raw: list[dict[str, object]] = [
            {"timestamp": (BASE + timedelta(hours=i)).isoformat(), "value": 1} for i in range(30)
        ]
        raw.append({"timestamp": "garbage", "value": 1})
        valid = result_for(checker.check(parse_readings(raw)), "valid_records")
        assert valid.status == QualityStatus.WARN
        assert valid.metric_value == 1

    def test_duplicate_timestamps_fail(
        self, checker: ReadingQualityChecker, sample_batch: ReadingBatch
    ) -> None:
        duplicated = ReadingBatch(readings=sample_batch.readings + sample_batch.readings[:5])
        uniqueness = result_for(checker.check(duplicated), "uniqueness")
        assert uniqueness.status == QualityStatus.FAIL
        assert uniqueness.metric_value == 5

    def test_empty_batch(self, checker: ReadingQualityChecker) -> None:
        results = checker.check(ReadingBatch())
        assert result_for(results, "uniqueness").status == QualityStatus.FAIL
        assert result_for(results, "no_gaps").status == QualityStatus.WARN

    def test_gaps_detected(self, checker: ReadingQualityChecker) -> None:
        hours = [0, 1, 2, 5, 6, 7]
        batch = ReadingBatch(
            readings=tuple(
                EnergyReading(timestamp=BASE + timedelta(hours=h), value=1.0) for h in hours
            )
        )
        gaps = result_for(checker.check(batch), "no_gaps")
        assert gaps.status == QualityStatus.WARN
        assert gaps.metric_value == 1

    def test_spikes_detected(
        self, checker: ReadingQualityChecker, sample_batch: ReadingBatch
    ) -> None:
        readings = list(sample_batch.readings)
        readings[10] = EnergyReading(timestamp=readings[10].timestamp, value=500.0)
        results = checker.check(ReadingBatch(readings=tuple(readings)))
        consistency = result_for(results, "value_consistency")
        assert consistency.status == QualityStatus.WARN
        assert consistency.metric_value == 2

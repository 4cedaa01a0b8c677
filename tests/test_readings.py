"""Tests for reading ingestion."""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from energyledger.analytics.cost import CostAnalyzer
from energyledger.errors import InvalidInputError
from energyledger.ingestion import (
    ensure_batch,
    fingerprint,
    load_readings,
    make_id,
    parse_readings,
)
from energyledger.models import EnergyReading, ReadingBatch

BASE = datetime(2024, 3, 1, tzinfo=timezone.utc)


@pytest.fixture
def raw_records() -> list[dict[str, object]]:
    return [
        {"timestamp": (BASE + timedelta(hours=2)).isoformat(), "value": 30.0},
        {"timestamp": BASE.isoformat(), "value": 10.0},
        {"timestamp": (BASE + timedelta(hours=1)).isoformat(), "value": 20.0},
    ]


class TestParseReadings:
    def test_sorted_by_timestamp(self, raw_records: list[dict[str, object]]) -> None:
        batch = parse_readings(raw_records)
        assert batch.values == [10.0, 20.0, 30.0]
        assert batch.rejected == 0

    def test_malformed_records_excluded_and_counted(
        self, raw_records: list[dict[str, object]]
    ) -> None:
        records = raw_records + [
            {"timestamp": "yesterday-ish", "value": 5.0},
            {"timestamp": BASE.isoformat(), "value": -3.0},
            {"value": 1.0},
        ]
        batch = parse_readings(records)
        assert len(batch) == 3
        assert batch.rejected == 3

    def test_offset_beyond_utc_range_is_rejected(self) -> None:
        records = [
            {"timestamp": "2024-03-01T10:00:00Z", "value": 100},
            {"timestamp": "9999-12-31T23:00:00-05:00", "value": 1},
        ]
        batch = parse_readings(records)
        assert batch.values == [100.0]
        assert batch.rejected == 1

    def test_out_of_range_record_does_not_abort_analysis(self) -> None:
        report = CostAnalyzer().analyze_costs(
            [
                {"timestamp": "2024-03-01T10:00:00Z", "value": 100},
                {"timestamp": "9999-12-31T23:00:00-05:00", "value": 1},
            ]
        )
        assert report.rejected_readings == 1
        assert report.breakdown.peak_cost == pytest.approx(15.0)

    def test_accepts_models(self) -> None:
        reading = EnergyReading(timestamp=BASE, value=1.0)
        batch = parse_readings([reading])
        assert batch.readings == (reading,)


class TestEnsureBatch:
    def test_none_is_empty(self) -> None:
        assert ensure_batch(None) == ReadingBatch()

    def test_batch_passes_through(self) -> None:
        batch = ReadingBatch(readings=(EnergyReading(timestamp=BASE, value=1.0),))
        assert ensure_batch(batch) is batch


class TestFingerprint:
    def test_order_independent(self, raw_records: list[dict[str, object]]) -> None:
        assert fingerprint(raw_records) == fingerprint(list(reversed(raw_records)))

    def test_changes_with_values(self, raw_records: list[dict[str, object]]) -> None:
        changed = [dict(r) for r in raw_records]
        changed[0]["value"] = 31.0
        assert fingerprint(raw_records) != fingerprint(changed)

    def test_make_id_deterministic(self) -> None:
        assert make_id("a", 1) == make_id("a", 1)
        assert make_id("a", 1) != make_id("a", 2)


class TestLoadReadings:
    def test_json_list(self, tmp_path: Path, raw_records: list[dict[str, object]]) -> None:
        path = tmp_path / "readings.json"
        path.write_text(json.dumps(raw_records))
        batch = load_readings(path)
        assert batch.values == [10.0, 20.0, 30.0]

    def test_json_object_with_readings_key(
        self, tmp_path: Path, raw_records: list[dict[str, object]]
    ) -> None:
        path = tmp_path / "readings.json"
        path.write_text(json.dumps({"readings": raw_records}))
        assert len(load_readings(path)) == 3

    def test_csv(self, tmp_path: Path) -> None:
        path = tmp_path / "readings.csv"
        path.write_text(
            "timestamp,value\n"
            "2024-03-01T00:00:00Z,10\n"
            "2024-03-01T01:00:00Z,abc\n"
            "2024-03-01T02:00:00Z,12.5\n"
        )
        batch = load_readings(path)
        assert batch.values == [10.0, 12.5]
        assert batch.rejected == 1

    def test_csv_missing_columns(self, tmp_path: Path) -> None:
        path = tmp_path / "readings.csv"
        path.write_text("time,kwh\n2024-03-01T00:00:00Z,10\n")
        with pytest.raises(InvalidInputError):
            load_readings(path)

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "readings.json"
        path.write_text("{not json")
        with pytest.raises(InvalidInputError):
            load_readings(path)

    def test_wrong_json_shape(self, tmp_path: Path) -> None:
        path = tmp_path / "readings.json"
        path.write_text(json.dumps({"data": []}))
        with pytest.raises(InvalidInputError):
            load_readings(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(InvalidInputError):
            load_readings(tmp_path / "missing.json")

    def test_unsupported_suffix(self, tmp_path: Path) -> None:
        path = tmp_path / "readings.txt"
        path.write_text("")
        with pytest.raises(InvalidInputError):
            load_readings(path)

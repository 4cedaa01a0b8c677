"""Turn raw reading records into validated, sorted reading batches."""

import csv
import hashlib
import json
import uuid
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Union

import structlog
from pydantic import ValidationError

from energyledger.errors import InvalidInputError
from energyledger.models import EnergyReading, ReadingBatch

log = structlog.get_logger()

ID_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "energyledger")

RawReading = Union[EnergyReading, Mapping[str, Any]]
ReadingsInput = Union[ReadingBatch, Iterable[RawReading]]


def parse_readings(raw: Iterable[RawReading]) -> ReadingBatch:
    """Validate each record independently and sort the survivors by timestamp.

    Records with an unparseable timestamp or a negative/non-finite value are
    dropped, logged and counted in ``ReadingBatch.rejected``.
    """
    readings: list[EnergyReading] = []
    rejected = 0

    for index, record in enumerate(raw):
        if isinstance(record, EnergyReading):
            readings.append(record)
            continue
        try:
            readings.append(EnergyReading.model_validate(record))
        except ValidationError as e:
            rejected += 1
            log.warning(
                "reading_rejected",
                index=index,
                errors=[err["msg"] for err in e.errors()],
            )

    readings.sort(key=lambda r: r.timestamp)

    if rejected:
        log.info("readings_parsed", accepted=len(readings), rejected=rejected)

    return ReadingBatch(readings=tuple(readings), rejected=rejected)


def ensure_batch(readings: ReadingsInput | None) -> ReadingBatch:
    """Accept an existing batch, any iterable of records, or None."""
    if readings is None:
        return ReadingBatch()
    if isinstance(readings, ReadingBatch):
        return readings
    return parse_readings(readings)


def load_readings(path: Path) -> ReadingBatch:
    """Load readings from a JSON array or a CSV file with timestamp,value columns.

    A JSON object with a top-level ``readings`` key is accepted as well.
    """
    suffix = path.suffix.lower()
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise InvalidInputError(f"Cannot read {path}: {e}") from e

    if suffix == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise InvalidInputError(f"Invalid JSON in {path}: {e}") from e
        if isinstance(data, dict):
            data = data.get("readings")
        if not isinstance(data, list):
            raise InvalidInputError(f"{path} must contain a list of readings")
        records = data
    elif suffix == ".csv":
        reader = csv.DictReader(text.splitlines())
        if reader.fieldnames is None or not {"timestamp", "value"} <= set(reader.fieldnames):
            raise InvalidInputError(f"{path} needs 'timestamp' and 'value' columns")
        records = list(reader)
    else:
        raise InvalidInputError(f"Unsupported file type: {path.suffix or '(none)'}")

    log.info("readings_loaded", path=str(path), records=len(records))
    return parse_readings(records)


def fingerprint(readings: ReadingsInput) -> str:
    """SHA-256 over the sorted (timestamp, value) pairs of a reading set."""
    batch = ensure_batch(readings)
    digest = hashlib.sha256()
    for reading in sorted(batch.readings, key=lambda r: (r.timestamp, r.value)):
        digest.update(f"{reading.timestamp.isoformat()}|{reading.value!r};".encode())
    return digest.hexdigest()


def make_id(*parts: object) -> str:
    """Deterministic identifier derived from the content it names."""
    return str(uuid.uuid5(ID_NAMESPACE, ":".join(str(p) for p in parts)))

"""Reading normalisation and file loading."""

from energyledger.ingestion.readings import (
    ensure_batch,
    fingerprint,
    load_readings,
    make_id,
    parse_readings,
)

__all__ = ["parse_readings", "load_readings", "ensure_batch", "fingerprint", "make_id"]

"""Chunked persistence of new spring records."""

import json
import logging
from typing import Iterator, List, Sequence, TypeVar

from soakmap.models import SpringRecord, WriteResult

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100
DRY_RUN_SAMPLE_SIZE = 2

T = TypeVar("T")


def chunk(items: Sequence[T], size: int) -> Iterator[List[T]]:
    if size <= 0:
        raise ValueError("chunk size must be positive")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def _write_one_by_one(batch: List[SpringRecord], store) -> WriteResult:
    result = WriteResult()
    for record in batch:
        try:
            if store.upsert_one(record):
                result.inserted += 1
            else:
                result.skipped += 1
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to insert %r: %s", record.name, exc)
            result.errors += 1
    return result


def write_springs(
    records: List[SpringRecord],
    store,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    dry_run: bool = False,
) -> WriteResult:
    """Insert records in chunks, skipping slugs that already exist.

    A chunk that fails as a whole is retried record by record, so one bad row
    only costs itself.
    """
    if dry_run:
        logger.info("[DRY RUN] Would insert %d springs", len(records))
        if records:
            sample = [record.to_row() for record in records[:DRY_RUN_SAMPLE_SIZE]]
            logger.info("Sample: %s", json.dumps(sample, indent=2, default=str))
        return WriteResult()

    total = WriteResult()
    batches = list(chunk(records, batch_size))
    for index, batch in enumerate(batches, start=1):
        logger.info("Writing batch %d/%d (%d records)", index, len(batches), len(batch))
        try:
            inserted = store.upsert_batch(batch)
        except Exception as exc:  # noqa: BLE001
            logger.error("Batch %d failed: %s; retrying records individually", index, exc)
            total.merge(_write_one_by_one(batch, store))
            continue

        total.inserted += inserted
        total.skipped += len(batch) - inserted

    return total

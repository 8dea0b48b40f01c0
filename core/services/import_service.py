"""Bulk photo import: extract, filter, deduplicate, persist."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from loguru import logger

from core.models import PhotoMetadata
from core.services.interfaces import ImportResult, MetadataExtractor


class ImportService:
    """Import a batch of photos into a record store in a single transaction.

    `store` is anything with `insert_bulk_detailed(metadata_list)`, normally
    `infrastructure.record_store.RecordStore`.
    """

    def __init__(self, store, extractor: MetadataExtractor) -> None:
        self._store = store
        self._extractor = extractor

    def import_batch(self, raw_items: Iterable[Any]) -> ImportResult:
        """Extract metadata for every item, then insert the batch.

        Extractor errors propagate unchanged and nothing is written. A failed
        commit raises `LocalPersistenceFailed` and also writes nothing.
        """
        metadata = [self._extractor.extract(item) for item in raw_items]
        logger.info("Extracted metadata for {} item(s)", len(metadata))
        return self.import_metadata(metadata)

    def import_metadata(self, metadata_list: Iterable[PhotoMetadata]) -> ImportResult:
        """Insert already-extracted metadata with dedup and location filtering."""
        result = self._store.insert_bulk_detailed(metadata_list)
        logger.info(
            "Import finished: {} imported, {} skipped (no location), {} skipped (duplicate)",
            result.imported,
            result.skipped_no_location,
            result.skipped_duplicate,
        )
        return result

"""Cursor paging over remote queries."""

from __future__ import annotations

from loguru import logger

from core.errors import CatalogError, RemoteOperationFailed
from core.services.interfaces import RemoteDatabase, RemoteRecord


def fetch_all_records(database: RemoteDatabase, record_type: str, stage: str) -> list[RemoteRecord]:
    """Page through every entry of `record_type`, keeping only successful ones.

    A failing page aborts with `RemoteOperationFailed`; no partial list is returned.
    """
    records: list[RemoteRecord] = []
    cursor: str | None = None
    pages = 0
    while True:
        try:
            page = database.query(record_type, cursor)
        except CatalogError:
            raise
        except Exception as ex:  # pylint: disable=broad-exception-caught
            logger.error("{} query failed after {} page(s): {}", stage, pages, ex)
            raise RemoteOperationFailed(stage, ex) from ex
        pages += 1
        records.extend(r.record for r in page.results if r.ok and r.record is not None)
        logger.debug("{} page {}: total so far {}", stage, pages, len(records))
        cursor = page.cursor
        if cursor is None:
            return records

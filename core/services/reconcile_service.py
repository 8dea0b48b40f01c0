"""Read-side reconciliation against the private mirror and public store.

Counts page through remote queries until the cursor runs out; a failing page
aborts the count rather than returning a partial number. `delete_public`
removes this user's public points in bounded batches.
"""

from __future__ import annotations

from loguru import logger

from core.errors import CatalogError, RemoteOperationFailed
from core.services.account import require_available_account
from core.services.interfaces import (
    MAX_BATCH_SIZE,
    ReconciliationReport,
    RemoteDatabase,
)
from core.services.publish_service import PUBLIC_RECORD_TYPE
from core.services.remote_paging import fetch_all_records

PRIVATE_RECORD_TYPE = "PhotoRecord"


class ReconcileService:
    """Remote counts, public cleanup, and the local/remote report."""

    def __init__(
        self,
        private_db: RemoteDatabase,
        public_db: RemoteDatabase,
        batch_size: int = MAX_BATCH_SIZE,
        private_record_type: str = PRIVATE_RECORD_TYPE,
        public_record_type: str = PUBLIC_RECORD_TYPE,
    ) -> None:
        self._private_db = private_db
        self._public_db = public_db
        self._batch_size = max(1, min(int(batch_size), MAX_BATCH_SIZE))
        self._private_type = private_record_type
        self._public_type = public_record_type

    def count_private(self) -> int:
        require_available_account(self._private_db)
        total = len(fetch_all_records(self._private_db, self._private_type, "private count"))
        logger.info("Private mirror holds {} record(s)", total)
        return total

    def count_public(self) -> int:
        require_available_account(self._public_db)
        total = len(fetch_all_records(self._public_db, self._public_type, "public count"))
        logger.info("Public store holds {} record(s)", total)
        return total

    def delete_public(self) -> int:
        """Delete every public point visible to this user; return confirmed deletions.

        The remote refuses to delete points created by other users; those and
        any other per-record failures are counted as not deleted.
        """
        require_available_account(self._public_db)
        records = fetch_all_records(self._public_db, self._public_type, "public delete scan")
        keys = [r.key for r in records]
        if not keys:
            logger.info("No public records to delete")
            return 0

        logger.info("Deleting {} public record(s)", len(keys))
        deleted = 0
        for start in range(0, len(keys), self._batch_size):
            batch = keys[start : start + self._batch_size]
            try:
                modify = self._public_db.modify_records(deleting=batch)
            except CatalogError:
                raise
            except Exception as ex:  # pylint: disable=broad-exception-caught
                logger.error("Delete batch at offset {} failed: {}", start, ex)
                raise RemoteOperationFailed(f"public delete batch at offset {start}", ex) from ex
            for item in modify.deleted:
                if item.ok:
                    deleted += 1
                else:
                    logger.warning("Failed to delete {}: {}", item.key, item.error)
            logger.info("Deleted batch: {}/{}", deleted, len(keys))

        logger.info("Deleted {} public record(s)", deleted)
        return deleted

    def reconcile(self, store) -> ReconciliationReport:
        """Compare local counts from `store` with both remote counts."""
        return ReconciliationReport(
            local_count=store.count(),
            unpublished_count=store.count_unpublished(),
            private_count=self.count_private(),
            public_count=self.count_public(),
        )

"""Publishing of local records to the shared public database.

Unpublished records are projected to `PublicPhotoPoint` rows keyed by their
dedup hash and uploaded in sequential batches. Only keys the remote confirms
are marked published locally; per-key failures are reported, not raised.
"""

from __future__ import annotations

from collections import defaultdict

from loguru import logger

from core.errors import CatalogError, InvalidUsername, RemoteOperationFailed
from core.models import PhotoRecord, PublicPhotoPoint
from core.services.account import require_available_account
from core.services.interfaces import (
    MAX_BATCH_SIZE,
    PublishResult,
    RemoteDatabase,
    RemoteRecord,
)

PUBLIC_RECORD_TYPE = "PublicPhotoPoint"


class PublishService:
    """Upload unpublished records from `store` to `public_db`.

    `store` needs `fetch_unpublished()` and `mark_published(records)`.
    """

    def __init__(
        self,
        store,
        public_db: RemoteDatabase,
        batch_size: int = MAX_BATCH_SIZE,
        record_type: str = PUBLIC_RECORD_TYPE,
    ) -> None:
        self._store = store
        self._public_db = public_db
        self._batch_size = max(1, min(int(batch_size), MAX_BATCH_SIZE))
        self._record_type = record_type

    def publish(self, username: str) -> PublishResult:
        """Publish every unpublished, complete record under `username`.

        Raises:
            InvalidUsername: `username` is blank; no remote call is made.
            NotSignedIn: The public database session has no usable account.
            NetworkUnavailable: The account check could not reach the remote.
            RemoteOperationFailed: A batch call failed as a whole. Keys
                confirmed by earlier batches are still marked published.
        """
        username = (username or "").strip()
        if not username:
            raise InvalidUsername()
        require_available_account(self._public_db)

        result = PublishResult()
        unpublished = self._store.fetch_unpublished()
        if not unpublished:
            logger.info("No unpublished records to publish")
            return result

        by_key: dict[str, list[PhotoRecord]] = defaultdict(list)
        outbound: list[RemoteRecord] = []
        for record in unpublished:
            if not record.unique_hash or record.latitude is None or record.longitude is None:
                result.skipped_incomplete += 1
                continue
            if record.unique_hash not in by_key:
                point = PublicPhotoPoint.from_record(record, username)
                outbound.append(
                    RemoteRecord(self._record_type, point.unique_hash, point.to_fields())
                )
            by_key[record.unique_hash].append(record)

        if not outbound:
            logger.warning(
                "No valid records to publish ({} incomplete)", result.skipped_incomplete
            )
            return result

        logger.info("Publishing {} record(s) as '{}'", len(outbound), username)
        confirmed: set[str] = set()
        for start in range(0, len(outbound), self._batch_size):
            batch = outbound[start : start + self._batch_size]
            try:
                modify = self._public_db.modify_records(saving=batch)
            except Exception as ex:  # pylint: disable=broad-exception-caught
                logger.error("Publish batch at offset {} failed: {}", start, ex)
                self._mark_confirmed(by_key, confirmed)
                if isinstance(ex, CatalogError):
                    raise
                raise RemoteOperationFailed(f"publish batch at offset {start}", ex) from ex

            sent = {r.key for r in batch}
            for item in modify.saved:
                if item.key not in sent:
                    continue
                if item.ok:
                    confirmed.add(item.key)
                else:
                    logger.warning("Failed to publish {}: {}", item.key, item.error)
                    result.failed.append((item.key, str(item.error)))
            logger.info("Published batch: {}/{}", len(confirmed), len(outbound))

        result.published_count = self._mark_confirmed(by_key, confirmed)
        logger.info("Published {} record(s)", result.published_count)
        return result

    def _mark_confirmed(self, by_key: dict[str, list[PhotoRecord]], confirmed: set[str]) -> int:
        records = [r for key in confirmed for r in by_key.get(key, [])]
        if not records:
            return 0
        return self._store.mark_published(records)

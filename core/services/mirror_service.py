"""Mirroring of local records into the user's private database.

The mirror holds one entry per local row, keyed by the row id. A sync saves
rows that are missing or whose fields changed, and deletes entries whose local
row no longer exists. Writes go out in sequential batches of at most 400.
"""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from core.errors import CatalogError, RemoteOperationFailed
from core.services.account import require_available_account
from core.services.interfaces import (
    MAX_BATCH_SIZE,
    MirrorResult,
    ModifyResult,
    RemoteDatabase,
    RemoteRecord,
)
from core.services.reconcile_service import PRIVATE_RECORD_TYPE
from core.services.remote_paging import fetch_all_records


class MirrorService:
    """Keep `private_db` in step with the rows of `store`.

    `store` needs `fetch_all()`.
    """

    def __init__(
        self,
        store,
        private_db: RemoteDatabase,
        batch_size: int = MAX_BATCH_SIZE,
        record_type: str = PRIVATE_RECORD_TYPE,
    ) -> None:
        self._store = store
        self._private_db = private_db
        self._batch_size = max(1, min(int(batch_size), MAX_BATCH_SIZE))
        self._record_type = record_type

    def sync(self) -> MirrorResult:
        """Bring the private mirror in line with the local store.

        Raises:
            NotSignedIn: The private database session has no usable account.
            NetworkUnavailable: The account check could not reach the remote.
            RemoteOperationFailed: A query page or a batch call failed as a whole.
        """
        require_available_account(self._private_db)
        result = MirrorResult()

        local = {
            str(r.id): RemoteRecord(self._record_type, str(r.id), r.to_mirror_fields())
            for r in self._store.fetch_all()
            if r.id is not None
        }
        remote = {
            r.key: r.fields
            for r in fetch_all_records(self._private_db, self._record_type, "mirror scan")
        }

        to_save: list[RemoteRecord] = []
        for key, record in local.items():
            if remote.get(key) == record.fields:
                result.unchanged += 1
            else:
                to_save.append(record)
        to_delete = sorted(key for key in remote if key not in local)

        for start in range(0, len(to_save), self._batch_size):
            batch = to_save[start : start + self._batch_size]
            modify = self._modify(f"mirror save batch at offset {start}", saving=batch)
            for item in modify.saved:
                if item.ok:
                    result.saved += 1
                else:
                    logger.warning("Failed to mirror {}: {}", item.key, item.error)
                    result.failed.append((item.key, str(item.error)))

        for start in range(0, len(to_delete), self._batch_size):
            batch_keys = to_delete[start : start + self._batch_size]
            modify = self._modify(f"mirror delete batch at offset {start}", deleting=batch_keys)
            for item in modify.deleted:
                if item.ok:
                    result.deleted += 1
                else:
                    logger.warning("Failed to remove mirror entry {}: {}", item.key, item.error)
                    result.failed.append((item.key, str(item.error)))

        logger.info(
            "Mirror sync: {} saved, {} deleted, {} unchanged, {} failed",
            result.saved,
            result.deleted,
            result.unchanged,
            len(result.failed),
        )
        return result

    def _modify(
        self,
        stage: str,
        saving: Sequence[RemoteRecord] = (),
        deleting: Sequence[str] = (),
    ) -> ModifyResult:
        try:
            return self._private_db.modify_records(saving=saving, deleting=deleting)
        except CatalogError:
            raise
        except Exception as ex:  # pylint: disable=broad-exception-caught
            logger.error("{} failed: {}", stage, ex)
            raise RemoteOperationFailed(stage, ex) from ex

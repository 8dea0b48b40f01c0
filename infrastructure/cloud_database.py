"""Remote record databases implementing the `RemoteDatabase` protocol.

`InMemoryCloudDatabase` keeps records in a process-local dict shared between
sessions created with `as_user`. `JsonFileCloudDatabase` adds persistence to a
JSON file so separate CLI runs see the same private mirror and public store.

Both behave like a multi-writer cloud store: saves are last-writer-wins per
key, each record remembers the user that created it, and only that user may
delete it.
"""

from __future__ import annotations

from collections.abc import Sequence
import json
from pathlib import Path
from typing import Any

from loguru import logger

from core.errors import RemoteOperationFailed
from core.services.interfaces import (
    MAX_BATCH_SIZE,
    AccountStatus,
    ModifyResult,
    QueryPage,
    RecordResult,
    RemoteRecord,
)

DEFAULT_PAGE_SIZE = 400


class InMemoryCloudDatabase:
    """Process-local remote database session for `user_id`."""

    def __init__(
        self,
        user_id: str | None,
        page_size: int = DEFAULT_PAGE_SIZE,
        storage: dict[str, dict[str, Any]] | None = None,
    ) -> None:
        self._user_id = user_id
        self._page_size = max(1, int(page_size or DEFAULT_PAGE_SIZE))
        # key -> {"record_type": str, "fields": dict, "created_by": str}
        self._records: dict[str, dict[str, Any]] = storage if storage is not None else {}

    @property
    def user_id(self) -> str | None:
        return self._user_id

    def as_user(self, user_id: str | None) -> InMemoryCloudDatabase:
        """Return a session for another user over the same records."""
        return InMemoryCloudDatabase(user_id, self._page_size, self._records)

    def account_status(self) -> AccountStatus:
        return AccountStatus.AVAILABLE if self._user_id else AccountStatus.NO_ACCOUNT

    def _require_account(self) -> None:
        if not self._user_id:
            raise RemoteOperationFailed("authentication", "no signed-in account")

    def query(self, record_type: str, cursor: str | None = None) -> QueryPage:
        """Return one page of `record_type` records ordered by key."""
        self._require_account()
        try:
            offset = int(cursor) if cursor else 0
        except ValueError as ex:
            raise RemoteOperationFailed("query", f"invalid cursor {cursor!r}") from ex
        keys = sorted(k for k, v in self._records.items() if v["record_type"] == record_type)
        page_keys = keys[offset : offset + self._page_size]
        results = [
            RecordResult(
                key=k,
                record=RemoteRecord(record_type, k, dict(self._records[k]["fields"])),
            )
            for k in page_keys
        ]
        next_offset = offset + len(page_keys)
        next_cursor = str(next_offset) if next_offset < len(keys) else None
        return QueryPage(results=results, cursor=next_cursor)

    def modify_records(
        self,
        saving: Sequence[RemoteRecord] = (),
        deleting: Sequence[str] = (),
    ) -> ModifyResult:
        """Apply saves then deletes, reporting each key's outcome."""
        self._require_account()
        if len(saving) > MAX_BATCH_SIZE or len(deleting) > MAX_BATCH_SIZE:
            raise RemoteOperationFailed(
                "modify records",
                f"batch limit exceeded ({len(saving)} saves, {len(deleting)} deletes, "
                f"max {MAX_BATCH_SIZE})",
            )

        result = ModifyResult()
        for record in saving:
            existing = self._records.get(record.key)
            created_by = existing["created_by"] if existing else self._user_id
            self._records[record.key] = {
                "record_type": record.record_type,
                "fields": dict(record.fields),
                "created_by": created_by,
            }
            result.saved.append(RecordResult(key=record.key, record=record))

        for key in deleting:
            existing = self._records.get(key)
            if existing is None:
                result.deleted.append(RecordResult(key=key, error="record not found"))
            elif existing["created_by"] != self._user_id:
                result.deleted.append(RecordResult(key=key, error="permission denied"))
            else:
                del self._records[key]
                result.deleted.append(RecordResult(key=key))

        self._after_modify()
        return result

    def _after_modify(self) -> None:
        """Hook for subclasses that persist records."""


class JsonFileCloudDatabase(InMemoryCloudDatabase):
    """`InMemoryCloudDatabase` persisted to a JSON file after each modify."""

    def __init__(
        self,
        path: str | Path,
        user_id: str | None,
        page_size: int = DEFAULT_PAGE_SIZE,
        storage: dict[str, dict[str, Any]] | None = None,
    ) -> None:
        self._path = Path(path)
        super().__init__(user_id, page_size, storage if storage is not None else self._load())

    def as_user(self, user_id: str | None) -> JsonFileCloudDatabase:
        return JsonFileCloudDatabase(self._path, user_id, self._page_size, self._records)

    def _load(self) -> dict[str, dict[str, Any]]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as ex:
            raise RemoteOperationFailed("load remote store", ex) from ex
        if not isinstance(data, dict):
            raise RemoteOperationFailed("load remote store", f"unexpected content in {self._path}")
        return data

    def _after_modify(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(self._records, f, indent=2, sort_keys=True)
            tmp.replace(self._path)
        except OSError as ex:
            raise RemoteOperationFailed("persist remote store", ex) from ex
        logger.debug("Remote store written: {} ({} records)", self._path, len(self._records))

"""Test configuration and fixtures for the catalog tests."""

from collections.abc import Sequence
from datetime import datetime, timezone
import random
from typing import Generator

import pytest
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine
from sqlmodel.pool import StaticPool

from core.models import PhotoMetadata
from core.services.interfaces import (
    AccountStatus,
    ModifyResult,
    QueryPage,
    RecordResult,
    RemoteRecord,
)
from infrastructure.cloud_database import InMemoryCloudDatabase
from infrastructure.record_store import RecordStore


@pytest.fixture(name="engine")
def engine_fixture() -> Generator[Engine, None, None]:
    """In-memory SQLite engine shared across sessions."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="store")
def store_fixture(engine: Engine) -> RecordStore:
    return RecordStore(engine, rng=random.Random(1234))


def make_meta(
    asset_id: str | None = "asset-1",
    filename: str | None = "IMG_0001.HEIC",
    latitude: float | None = 37.7749,
    longitude: float | None = -122.4194,
    capture_date: datetime | None = None,
) -> PhotoMetadata:
    return PhotoMetadata(
        asset_id=asset_id,
        latitude=latitude,
        longitude=longitude,
        capture_date=capture_date or datetime(2024, 1, 15, 14, 30, tzinfo=timezone.utc),
        filename=filename,
    )


class ScriptedCloudDatabase(InMemoryCloudDatabase):
    """In-memory remote with injectable failures and call accounting."""

    def __init__(self, user_id: str | None = "alice", page_size: int = 400, storage=None) -> None:
        super().__init__(user_id, page_size, storage)
        self.status = AccountStatus.AVAILABLE if user_id else AccountStatus.NO_ACCOUNT
        self.status_error: Exception | None = None
        self.fail_save_keys: set[str] = set()
        self.fail_delete_keys: set[str] = set()
        self.modify_errors: dict[int, Exception] = {}
        self.query_errors: dict[int, Exception] = {}
        self.failed_query_entries: set[str] = set()
        self.modify_calls: list[tuple[list[str], list[str]]] = []
        self.query_calls = 0
        self.status_calls = 0

    def account_status(self) -> AccountStatus:
        self.status_calls += 1
        if self.status_error is not None:
            raise self.status_error
        return self.status

    def query(self, record_type: str, cursor: str | None = None) -> QueryPage:
        call = self.query_calls
        self.query_calls += 1
        if call in self.query_errors:
            raise self.query_errors[call]
        page = super().query(record_type, cursor)
        page.results = [
            RecordResult(key=r.key, error="unreadable")
            if r.key in self.failed_query_entries
            else r
            for r in page.results
        ]
        return page

    def modify_records(
        self,
        saving: Sequence[RemoteRecord] = (),
        deleting: Sequence[str] = (),
    ) -> ModifyResult:
        call = len(self.modify_calls)
        self.modify_calls.append(([r.key for r in saving], list(deleting)))
        if call in self.modify_errors:
            raise self.modify_errors[call]
        good_saves = [r for r in saving if r.key not in self.fail_save_keys]
        good_deletes = [k for k in deleting if k not in self.fail_delete_keys]
        result = super().modify_records(good_saves, good_deletes)
        result.saved.extend(
            RecordResult(key=r.key, error="server rejected record")
            for r in saving
            if r.key in self.fail_save_keys
        )
        result.deleted.extend(
            RecordResult(key=k, error="server rejected delete")
            for k in deleting
            if k in self.fail_delete_keys
        )
        return result

    @property
    def remote_calls(self) -> int:
        return self.status_calls + self.query_calls + len(self.modify_calls)


@pytest.fixture(name="public_db")
def public_db_fixture() -> ScriptedCloudDatabase:
    return ScriptedCloudDatabase("alice")


@pytest.fixture(name="private_db")
def private_db_fixture() -> ScriptedCloudDatabase:
    return ScriptedCloudDatabase("alice")

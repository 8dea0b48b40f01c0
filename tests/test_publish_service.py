"""Tests for publishing local records to the public store."""

from conftest import ScriptedCloudDatabase, make_meta
import pytest

from core.errors import InvalidUsername, NetworkUnavailable, NotSignedIn, RemoteOperationFailed
from core.models import PhotoRecord
from core.services.interfaces import AccountStatus
from core.services.publish_service import PUBLIC_RECORD_TYPE, PublishService
from infrastructure.record_store import RecordStore


def _seed(store: RecordStore, count: int) -> list[str]:
    store.insert_bulk([make_meta(asset_id=f"id{i:04d}") for i in range(count)])
    return sorted(r.unique_hash for r in store.fetch_all())


def _published_hashes(store: RecordStore) -> set[str]:
    return {r.unique_hash for r in store.fetch_all() if r.is_published}


@pytest.mark.parametrize("username", ["", "   ", "\t"])
def test_blank_username_makes_no_remote_calls(
    store: RecordStore, public_db: ScriptedCloudDatabase, username: str
) -> None:
    _seed(store, 2)
    with pytest.raises(InvalidUsername):
        PublishService(store, public_db).publish(username)
    assert public_db.remote_calls == 0
    assert store.count_unpublished() == 2


def test_not_signed_in_fails_before_transfer(store: RecordStore) -> None:
    _seed(store, 1)
    db = ScriptedCloudDatabase("alice")
    db.status = AccountStatus.NO_ACCOUNT
    with pytest.raises(NotSignedIn):
        PublishService(store, db).publish("alice")
    assert db.modify_calls == []


def test_connection_failure_is_network_unavailable(store: RecordStore) -> None:
    _seed(store, 1)
    db = ScriptedCloudDatabase("alice")
    db.status_error = ConnectionError("offline")
    with pytest.raises(NetworkUnavailable):
        PublishService(store, db).publish("alice")
    assert db.modify_calls == []


def test_partial_batch_marks_only_confirmed(
    store: RecordStore, public_db: ScriptedCloudDatabase
) -> None:
    """3 unpublished, remote confirms 2 and rejects 1."""
    hashes = _seed(store, 3)
    public_db.fail_save_keys = {hashes[1]}

    result = PublishService(store, public_db).publish("alice")

    assert result.published_count == 2
    assert result.failed == [(hashes[1], "server rejected record")]
    assert _published_hashes(store) == {hashes[0], hashes[2]}
    assert [r.unique_hash for r in store.fetch_unpublished()] == [hashes[1]]


def test_public_points_carry_username_and_coordinates(
    store: RecordStore, public_db: ScriptedCloudDatabase
) -> None:
    (unique_hash,) = _seed(store, 1)
    PublishService(store, public_db).publish("  alice  ")

    page = public_db.query(PUBLIC_RECORD_TYPE)
    (entry,) = page.results
    assert entry.key == unique_hash
    fields = entry.record.fields
    assert fields["username"] == "alice"
    assert fields["uniqueHash"] == unique_hash
    assert fields["latitude"] == pytest.approx(37.7749)
    assert fields["longitude"] == pytest.approx(-122.4194)
    assert fields["photoCreationDate"] == "2024-01-15T14:30:00+00:00"


def test_uploads_in_bounded_sequential_batches(
    store: RecordStore, public_db: ScriptedCloudDatabase
) -> None:
    _seed(store, 9)
    result = PublishService(store, public_db, batch_size=4).publish("alice")

    assert [len(saves) for saves, _ in public_db.modify_calls] == [4, 4, 1]
    assert result.published_count == 9
    assert store.count_unpublished() == 0


def test_batch_size_is_capped_at_remote_limit(
    store: RecordStore, public_db: ScriptedCloudDatabase
) -> None:
    _seed(store, 401)
    result = PublishService(store, public_db, batch_size=1000).publish("alice")
    assert [len(saves) for saves, _ in public_db.modify_calls] == [400, 1]
    assert result.published_count == 401


def test_batch_exception_keeps_prior_batches(
    store: RecordStore, public_db: ScriptedCloudDatabase
) -> None:
    hashes = _seed(store, 5)
    public_db.modify_errors = {1: RuntimeError("zone busy")}
    service = PublishService(store, public_db, batch_size=2)

    with pytest.raises(RemoteOperationFailed) as info:
        service.publish("alice")

    assert isinstance(info.value.cause, RuntimeError)
    first_batch = set(public_db.modify_calls[0][0])
    assert _published_hashes(store) == first_batch
    assert len(public_db.query(PUBLIC_RECORD_TYPE).results) == 2
    assert store.count_unpublished() == len(hashes) - 2


def test_already_published_records_are_not_resent(
    store: RecordStore, public_db: ScriptedCloudDatabase
) -> None:
    _seed(store, 2)
    service = PublishService(store, public_db)
    assert service.publish("alice").published_count == 2

    again = service.publish("alice")

    assert again.published_count == 0
    assert len(public_db.modify_calls) == 1


def test_incomplete_records_are_skipped(
    store: RecordStore, public_db: ScriptedCloudDatabase
) -> None:
    _seed(store, 1)
    store.insert_if_absent(make_meta(asset_id=None))

    result = PublishService(store, public_db).publish("alice")

    assert result.published_count == 1
    assert result.skipped_incomplete == 1
    unpublished = store.fetch_unpublished()
    assert len(unpublished) == 1
    assert unpublished[0].unique_hash is None


def test_shared_hash_marks_every_matching_record(public_db: ScriptedCloudDatabase) -> None:
    """Rows that slipped past dedup share one remote key and are marked together."""

    class ListStore:
        def __init__(self, records: list[PhotoRecord]) -> None:
            self.records = records
            self.marked: list[PhotoRecord] = []

        def fetch_unpublished(self) -> list[PhotoRecord]:
            return [r for r in self.records if not r.is_published]

        def mark_published(self, records) -> int:
            records = list(records)
            for r in records:
                r.is_published = True
            self.marked.extend(records)
            return len(records)

    twins = [PhotoRecord.from_metadata(make_meta()) for _ in range(2)]
    for i, r in enumerate(twins):
        r.id = i + 1
    list_store = ListStore(twins)

    result = PublishService(list_store, public_db).publish("alice")

    assert public_db.modify_calls[0][0] == [twins[0].unique_hash]
    assert result.published_count == 2
    assert all(r.is_published for r in twins)

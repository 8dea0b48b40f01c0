"""Tests for the SQLite record store."""

from datetime import datetime, timedelta, timezone
from unittest import mock

from conftest import make_meta
import pytest
from sqlalchemy.exc import OperationalError

from core.errors import DuplicateSkipped, LocalPersistenceFailed, NoLocationData
from core.models import PhotoMetadata
from core.services.dedup import compute_unique_hash, strip_extension
from core.services.interfaces import InsertOutcome
from infrastructure.record_store import RecordStore


def test_unique_hash_joins_asset_id_and_stem() -> None:
    assert compute_unique_hash("ABC/L0/001", "IMG_0001.HEIC") == "ABC/L0/001_IMG_0001"
    assert strip_extension("archive.tar.gz") == "archive.tar"
    assert strip_extension("noext") == "noext"


@pytest.mark.parametrize("asset_id,filename", [(None, "a.jpg"), ("id", None), ("", "a.jpg")])
def test_unique_hash_absent_without_both_parts(asset_id, filename) -> None:
    assert compute_unique_hash(asset_id, filename) is None


def test_insert_if_absent_inserts_once(store: RecordStore) -> None:
    """Same asset id and filename stem twice leaves exactly one row."""
    assert store.insert_if_absent(make_meta()) is InsertOutcome.INSERTED
    assert store.insert_if_absent(make_meta()) is InsertOutcome.SKIPPED_DUPLICATE
    assert store.count() == 1


def test_duplicate_ignores_extension(store: RecordStore) -> None:
    store.insert_if_absent(make_meta(filename="IMG_0001.HEIC"))
    outcome = store.insert_if_absent(make_meta(filename="IMG_0001.JPG"))
    assert outcome is InsertOutcome.SKIPPED_DUPLICATE
    assert store.count() == 1


@pytest.mark.parametrize(
    "lat,lon",
    [(None, None), (10.0, None), (None, 20.0), (float("nan"), 20.0), (10.0, float("inf"))],
)
def test_insert_without_location_is_skipped(store: RecordStore, lat, lon) -> None:
    outcome = store.insert_if_absent(make_meta(latitude=lat, longitude=lon))
    assert outcome is InsertOutcome.SKIPPED_NO_LOCATION
    assert store.count() == 0


def test_records_without_hash_are_never_deduplicated(store: RecordStore) -> None:
    store.insert_if_absent(make_meta(asset_id=None))
    store.insert_if_absent(make_meta(asset_id=None))
    assert store.count() == 2
    assert all(r.unique_hash is None for r in store.fetch_all())


def test_save_record_raises_for_skips(store: RecordStore) -> None:
    store.save_record(make_meta())
    with pytest.raises(DuplicateSkipped):
        store.save_record(make_meta())
    with pytest.raises(NoLocationData):
        store.save_record(make_meta(asset_id="other", latitude=None))


def test_insert_bulk_suppresses_in_batch_duplicates(store: RecordStore) -> None:
    store.insert_if_absent(make_meta(asset_id="existing"))
    before = store.count()
    batch = [
        make_meta(asset_id="a"),
        make_meta(asset_id="b"),
        make_meta(asset_id="b", filename="IMG_0001.JPG"),
        make_meta(asset_id="b"),
        make_meta(asset_id="existing"),
        make_meta(asset_id="c", latitude=None),
    ]

    inserted = store.insert_bulk(batch)

    assert inserted == 2
    assert store.count() - before == 2
    hashes = sorted(r.unique_hash for r in store.fetch_all())
    assert hashes == ["a_IMG_0001", "b_IMG_0001", "existing_IMG_0001"]


def test_insert_bulk_detailed_counts(store: RecordStore) -> None:
    result = store.insert_bulk_detailed(
        [make_meta(asset_id="a"), make_meta(asset_id="a"), PhotoMetadata()]
    )
    assert (result.imported, result.skipped_duplicate, result.skipped_no_location) == (1, 1, 1)


def test_insert_bulk_failure_writes_nothing(store: RecordStore) -> None:
    with mock.patch("infrastructure.record_store.Session.commit") as commit:
        commit.side_effect = OperationalError("COMMIT", {}, Exception("disk full"))
        with pytest.raises(LocalPersistenceFailed) as info:
            store.insert_bulk([make_meta(asset_id="a"), make_meta(asset_id="b")])
    assert info.value.stage == "bulk insert"
    assert store.count() == 0


def test_fetch_all_newest_first(store: RecordStore) -> None:
    for i in range(3):
        store.insert_if_absent(make_meta(asset_id=f"id{i}"))
    ids = [r.id for r in store.fetch_all()]
    assert ids == sorted(ids, reverse=True)


def test_random_sample_smaller_store_returns_all(store: RecordStore) -> None:
    store.insert_bulk([make_meta(asset_id=f"id{i}") for i in range(3)])
    sample = store.fetch_random_sample(10)
    assert len(sample) == 3
    assert len({r.id for r in sample}) == 3


def test_random_sample_is_distinct_subset(store: RecordStore) -> None:
    store.insert_bulk([make_meta(asset_id=f"id{i}") for i in range(25)])
    all_ids = {r.id for r in store.fetch_all()}
    sample = store.fetch_random_sample(10)
    ids = [r.id for r in sample]
    assert len(ids) == 10
    assert len(set(ids)) == 10
    assert set(ids) <= all_ids


def test_random_sample_non_positive(store: RecordStore) -> None:
    store.insert_if_absent(make_meta())
    assert store.fetch_random_sample(0) == []


def test_delete_all(store: RecordStore) -> None:
    store.insert_bulk([make_meta(asset_id=f"id{i}") for i in range(4)])
    assert store.delete_all() == 4
    assert store.count() == 0


def test_delete_at_uses_snapshot_positions(store: RecordStore) -> None:
    store.insert_bulk([make_meta(asset_id=f"id{i}") for i in range(4)])
    snapshot = store.fetch_all()
    doomed = {snapshot[0].id, snapshot[2].id}

    assert store.delete_at([0, 2], snapshot) == 2

    remaining = {r.id for r in store.fetch_all()}
    assert remaining.isdisjoint(doomed)
    assert len(remaining) == 2


def test_delete_at_out_of_range_deletes_nothing(store: RecordStore) -> None:
    store.insert_if_absent(make_meta())
    snapshot = store.fetch_all()
    with pytest.raises(IndexError):
        store.delete_at([0, 5], snapshot)
    assert store.count() == 1


def test_fetch_unpublished_and_mark_published(store: RecordStore) -> None:
    store.insert_bulk([make_meta(asset_id=f"id{i}") for i in range(3)])
    unpublished = store.fetch_unpublished()
    assert len(unpublished) == 3

    assert store.mark_published(unpublished[:2]) == 2
    assert all(r.is_published for r in unpublished[:2])

    remaining = store.fetch_unpublished()
    assert [r.id for r in remaining] == [unpublished[2].id]
    assert store.count_unpublished() == 1
    # Already published rows are not counted again.
    assert store.mark_published(unpublished[:2]) == 0


def test_open_creates_database_file(tmp_path) -> None:
    db_path = tmp_path / "nested" / "catalog.db"
    store = RecordStore.open(db_path)
    store.insert_if_absent(make_meta())
    assert db_path.exists()
    assert RecordStore.open(db_path).count() == 1


def test_datetimes_round_trip_as_utc(store: RecordStore) -> None:
    taken = datetime(2024, 1, 15, 16, 30, tzinfo=timezone(timedelta(hours=2)))
    store.insert_if_absent(make_meta(asset_id="aware", capture_date=taken))
    store.insert_if_absent(make_meta(asset_id="naive", capture_date=datetime(2024, 1, 15, 14, 30)))

    records = store.fetch_all()

    assert len(records) == 2
    for record in records:
        assert record.capture_date == datetime(2024, 1, 15, 14, 30, tzinfo=timezone.utc)
        assert record.capture_date.tzinfo == timezone.utc
        assert record.saved_at.tzinfo == timezone.utc
    assert all(r.id is not None for r in store.fetch_unpublished())

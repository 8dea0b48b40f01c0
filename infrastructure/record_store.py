"""SQLite persistence for photo records.

Provides deduplicating single and bulk inserts, ordered and predicate fetches,
random sampling, deletes, and the publish flag update. Every public method runs
in its own transaction; a failed transaction is rolled back and surfaced as
`LocalPersistenceFailed`.

Dedup is check-then-insert without a uniqueness constraint, so two stores
writing the same database concurrently can both pass the check.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
import random

from loguru import logger
from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, col, create_engine, select

from core.errors import DuplicateSkipped, LocalPersistenceFailed, NoLocationData
from core.models import PhotoMetadata, PhotoRecord
from core.services.interfaces import ImportResult, InsertOutcome

# Stay well under SQLite's bound-parameter limit for IN (...) lookups.
_LOOKUP_CHUNK = 500


def _chunks(items: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class RecordStore:
    """Local durable store of `PhotoRecord` rows."""

    def __init__(self, engine: Engine, rng: random.Random | None = None) -> None:
        self._engine = engine
        self._rng = rng or random.Random()

    @classmethod
    def open(cls, db_path: str | Path) -> RecordStore:
        """Open (creating if needed) the SQLite database at `db_path`."""
        path = Path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(f"sqlite:///{path}", connect_args={"check_same_thread": False})
        SQLModel.metadata.create_all(engine)
        logger.info("Opened record store: {}", path)
        return cls(engine)

    @contextmanager
    def _transaction(self, stage: str) -> Iterator[Session]:
        with Session(self._engine, expire_on_commit=False) as session:
            try:
                yield session
                session.commit()
            except SQLAlchemyError as ex:
                session.rollback()
                logger.error("Transaction '{}' rolled back: {}", stage, ex)
                raise LocalPersistenceFailed(stage, ex) from ex

    def _existing_hashes(self, session: Session, hashes: Iterable[str]) -> set[str]:
        wanted = sorted(set(hashes))
        found: set[str] = set()
        for chunk in _chunks(wanted, _LOOKUP_CHUNK):
            rows = session.exec(
                select(PhotoRecord.unique_hash).where(col(PhotoRecord.unique_hash).in_(chunk))
            ).all()
            found.update(h for h in rows if h)
        return found

    # Inserts
    def insert_if_absent(self, metadata: PhotoMetadata) -> InsertOutcome:
        """Persist `metadata` unless it lacks a location or its hash is stored."""
        if not metadata.has_location:
            return InsertOutcome.SKIPPED_NO_LOCATION
        unique_hash = metadata.unique_hash
        with self._transaction("insert record") as session:
            if unique_hash and self._existing_hashes(session, [unique_hash]):
                logger.debug("Duplicate skipped: {}", unique_hash)
                return InsertOutcome.SKIPPED_DUPLICATE
            session.add(PhotoRecord.from_metadata(metadata))
        return InsertOutcome.INSERTED

    def save_record(self, metadata: PhotoMetadata) -> None:
        """Strict single insert: raise instead of returning a skip outcome."""
        outcome = self.insert_if_absent(metadata)
        if outcome is InsertOutcome.SKIPPED_NO_LOCATION:
            raise NoLocationData(metadata.filename)
        if outcome is InsertOutcome.SKIPPED_DUPLICATE:
            raise DuplicateSkipped(str(metadata.unique_hash))

    def insert_bulk_detailed(self, metadata_list: Iterable[PhotoMetadata]) -> ImportResult:
        """Insert many items in one transaction and report per-outcome counts.

        A hash seen earlier in the same call counts as a duplicate, exactly like
        a hash already in the store. Nothing is written if the commit fails.
        """
        items = list(metadata_list)
        result = ImportResult()
        located = []
        for meta in items:
            if meta.has_location:
                located.append(meta)
            else:
                result.skipped_no_location += 1

        with self._transaction("bulk insert") as session:
            seen = self._existing_hashes(session, (m.unique_hash for m in located if m.unique_hash))
            for meta in located:
                unique_hash = meta.unique_hash
                if unique_hash:
                    if unique_hash in seen:
                        result.skipped_duplicate += 1
                        continue
                    seen.add(unique_hash)
                session.add(PhotoRecord.from_metadata(meta))
                result.imported += 1

        logger.info(
            "Bulk insert: {} inserted, {} without location, {} duplicate",
            result.imported,
            result.skipped_no_location,
            result.skipped_duplicate,
        )
        return result

    def insert_bulk(self, metadata_list: Iterable[PhotoMetadata]) -> int:
        """Insert many items in one transaction; return the inserted count."""
        return self.insert_bulk_detailed(metadata_list).imported

    # Queries
    def fetch_all(self) -> list[PhotoRecord]:
        """Return every record, newest `saved_at` first."""
        with self._transaction("fetch all") as session:
            stmt = select(PhotoRecord).order_by(
                col(PhotoRecord.saved_at).desc(), col(PhotoRecord.id).desc()
            )
            return list(session.exec(stmt).all())

    def fetch_unpublished(self) -> list[PhotoRecord]:
        """Return records not yet confirmed by the public store, newest first."""
        with self._transaction("fetch unpublished") as session:
            stmt = (
                select(PhotoRecord)
                .where(col(PhotoRecord.is_published).is_(False))
                .order_by(col(PhotoRecord.saved_at).desc(), col(PhotoRecord.id).desc())
            )
            return list(session.exec(stmt).all())

    def count(self) -> int:
        with self._transaction("count") as session:
            return int(session.exec(select(func.count()).select_from(PhotoRecord)).one())

    def count_unpublished(self) -> int:
        with self._transaction("count unpublished") as session:
            stmt = (
                select(func.count())
                .select_from(PhotoRecord)
                .where(col(PhotoRecord.is_published).is_(False))
            )
            return int(session.exec(stmt).one())

    def fetch_random_sample(self, n: int) -> list[PhotoRecord]:
        """Return up to `n` distinct records drawn uniformly without replacement."""
        if n <= 0:
            return []
        with self._transaction("random sample") as session:
            ids = [i for i in session.exec(select(PhotoRecord.id)).all() if i is not None]
            picked = self._rng.sample(ids, min(n, len(ids)))
            if not picked:
                return []
            rows = session.exec(select(PhotoRecord).where(col(PhotoRecord.id).in_(picked))).all()
        by_id = {r.id: r for r in rows}
        return [by_id[i] for i in picked if i in by_id]

    # Deletes
    def delete_all(self) -> int:
        """Delete every record; return how many were removed."""
        with self._transaction("delete all") as session:
            rows = session.exec(select(PhotoRecord)).all()
            for row in rows:
                session.delete(row)
        logger.info("Deleted all {} records", len(rows))
        return len(rows)

    def delete_at(self, indices: Iterable[int], current_list: Sequence[PhotoRecord]) -> int:
        """Delete rows by position in `current_list`.

        `current_list` must be the exact snapshot the positions were taken
        from; a list mutated since then deletes the wrong rows.
        """
        positions = sorted(set(indices))
        for idx in positions:
            if idx < 0 or idx >= len(current_list):
                raise IndexError(f"Record index out of range: {idx}")
        ids = [current_list[idx].id for idx in positions if current_list[idx].id is not None]
        if not ids:
            return 0
        with self._transaction("delete records") as session:
            rows = session.exec(select(PhotoRecord).where(col(PhotoRecord.id).in_(ids))).all()
            for row in rows:
                session.delete(row)
        logger.info("Deleted {} record(s) at positions {}", len(rows), positions)
        return len(rows)

    # Publish flag
    def mark_published(self, records: Iterable[PhotoRecord]) -> int:
        """Flip `is_published` for `records` in one transaction; return rows changed."""
        targets = [r for r in records if r.id is not None]
        if not targets:
            return 0
        ids = [r.id for r in targets]
        with self._transaction("mark published") as session:
            rows = session.exec(
                select(PhotoRecord).where(
                    col(PhotoRecord.id).in_(ids), col(PhotoRecord.is_published).is_(False)
                )
            ).all()
            for row in rows:
                row.is_published = True
                session.add(row)
        for record in targets:
            record.is_published = True
        return len(rows)

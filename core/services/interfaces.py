"""Core service interfaces and shared data structures.

This module defines the collaborator protocols the pipelines depend on (photo
metadata extraction and the remote record databases) together with the simple
dataclasses that carry results between the core, infrastructure, and UI
layers.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from core.models import PhotoMetadata

# Remote stores accept at most this many saves or deletes per modify call.
MAX_BATCH_SIZE = 400


class InsertOutcome(Enum):
    """Result of inserting a single metadata item."""

    INSERTED = "inserted"
    SKIPPED_DUPLICATE = "skipped-duplicate"
    SKIPPED_NO_LOCATION = "skipped-no-location"


@dataclass
class ImportResult:
    """Outcome of a bulk import.

    Attributes:
        imported: Records written to the local store.
        skipped_no_location: Items dropped because a coordinate was missing.
        skipped_duplicate: Items whose dedup hash was already stored or
            appeared earlier in the same batch.
    """

    imported: int = 0
    skipped_no_location: int = 0
    skipped_duplicate: int = 0

    @property
    def total(self) -> int:
        return self.imported + self.skipped_no_location + self.skipped_duplicate


@dataclass
class PublishResult:
    """Outcome of a publish run.

    Attributes:
        published_count: Records confirmed by the public store and marked.
        failed: Tuples of (unique_hash, reason) for per-key remote failures.
        skipped_incomplete: Unpublished records lacking hash or coordinates.
    """

    published_count: int = 0
    failed: list[tuple[str, str]] = field(default_factory=list)
    skipped_incomplete: int = 0


@dataclass
class MirrorResult:
    """Outcome of a private mirror sync.

    Attributes:
        saved: Records created or updated in the mirror.
        deleted: Mirror entries removed because their local row is gone.
        unchanged: Records already mirrored with identical fields.
        failed: Tuples of (key, reason) for per-key remote failures.
    """

    saved: int = 0
    deleted: int = 0
    unchanged: int = 0
    failed: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class ReconciliationReport:
    """Local versus remote record tallies."""

    local_count: int
    unpublished_count: int
    private_count: int
    public_count: int


class AccountStatus(Enum):
    AVAILABLE = "available"
    NO_ACCOUNT = "no-account"
    RESTRICTED = "restricted"
    TEMPORARILY_UNAVAILABLE = "temporarily-unavailable"
    COULD_NOT_DETERMINE = "could-not-determine"


@dataclass(frozen=True)
class RemoteRecord:
    """A record as stored in a remote database, identified by `key`."""

    record_type: str
    key: str
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RecordResult:
    """Per-key outcome of a remote query entry, save, or delete."""

    key: str
    record: RemoteRecord | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class QueryPage:
    """One page of query results plus the cursor for the next page."""

    results: list[RecordResult]
    cursor: str | None = None


@dataclass
class ModifyResult:
    saved: list[RecordResult] = field(default_factory=list)
    deleted: list[RecordResult] = field(default_factory=list)


class MetadataExtractor(Protocol):
    """Turns an opaque photo handle into `PhotoMetadata`."""

    def extract(self, handle: Any) -> PhotoMetadata:
        """Return metadata for `handle`; I/O errors propagate unchanged."""
        raise NotImplementedError


class RemoteDatabase(Protocol):
    """A paged, batch-modifiable remote record database.

    Calls block until the remote answers. Whole-call failures raise; per-key
    failures are reported in the returned results.
    """

    def account_status(self) -> AccountStatus:
        """Return the session's account availability."""
        raise NotImplementedError

    def query(self, record_type: str, cursor: str | None = None) -> QueryPage:
        """Return one page of records of `record_type`, resuming from `cursor`."""
        raise NotImplementedError

    def modify_records(
        self,
        saving: Sequence[RemoteRecord] = (),
        deleting: Sequence[str] = (),
    ) -> ModifyResult:
        """Upsert `saving` and delete `deleting` keys (at most MAX_BATCH_SIZE each)."""
        raise NotImplementedError

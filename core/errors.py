"""Exception taxonomy for import, publish, and reconciliation operations."""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for all catalog failures surfaced to callers."""


class NoLocationData(CatalogError):
    """Photo has no GPS coordinates; filtered out rather than stored."""

    def __init__(self, filename: str | None = None) -> None:
        self.filename = filename
        super().__init__(f"Photo has no location data: {filename or 'unknown'}")


class DuplicateSkipped(CatalogError):
    """Informational: a record with the same dedup hash already exists."""

    def __init__(self, unique_hash: str) -> None:
        self.unique_hash = unique_hash
        super().__init__(f"Duplicate photo skipped: {unique_hash}")


class InvalidUsername(CatalogError):
    def __init__(self) -> None:
        super().__init__("Username cannot be empty. Please enter a valid username.")


class NotSignedIn(CatalogError):
    def __init__(self, status: object | None = None) -> None:
        self.status = status
        super().__init__("Not signed in to the remote account. Please sign in and try again.")


class NetworkUnavailable(CatalogError):
    def __init__(self, cause: BaseException | None = None) -> None:
        self.cause = cause
        super().__init__(
            "Network connection unavailable. Please check your internet connection."
        )


class RemoteOperationFailed(CatalogError):
    """A remote call failed as a whole; `cause` holds the underlying error."""

    def __init__(self, stage: str, cause: BaseException | str | None = None) -> None:
        self.stage = stage
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Remote operation failed during {stage}{detail}")


class LocalPersistenceFailed(CatalogError):
    """A local store transaction failed and was rolled back."""

    def __init__(self, stage: str, cause: BaseException | None = None) -> None:
        self.stage = stage
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Local database failure during {stage}{detail}")

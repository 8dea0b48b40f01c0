"""Core domain models for photo metadata, stored records, and public points."""

from dataclasses import dataclass
from datetime import datetime, timezone
import math
from typing import Any

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, SQLModel

from core.services.dedup import compute_unique_hash


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UtcDateTime(TypeDecorator):
    """DateTime column stored as naive UTC and loaded back as aware UTC."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return as_utc(value).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return as_utc(value)


@dataclass
class PhotoMetadata:
    """Metadata extracted from a single photo; every field may be missing."""

    asset_id: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    capture_date: datetime | None = None
    filename: str | None = None

    @property
    def has_location(self) -> bool:
        """True when both coordinates are present and finite."""
        return (
            self.latitude is not None
            and self.longitude is not None
            and math.isfinite(self.latitude)
            and math.isfinite(self.longitude)
        )

    @property
    def unique_hash(self) -> str | None:
        """Dedup key derived from asset id and filename stem."""
        return compute_unique_hash(self.asset_id, self.filename)


class PhotoRecord(SQLModel, table=True):
    """A single persisted photo row.

    Rows are only written when both coordinates are present; `is_published`
    flips to True once the public store confirms the row's `unique_hash`.
    """

    __tablename__ = "photo_records"

    id: int | None = Field(default=None, primary_key=True)
    saved_at: datetime = Field(default_factory=utc_now, sa_type=UtcDateTime, index=True)
    asset_id: str | None = None
    unique_hash: str | None = Field(default=None, index=True)
    latitude: float | None = None
    longitude: float | None = None
    capture_date: datetime | None = Field(default=None, sa_type=UtcDateTime)
    filename: str | None = None
    is_published: bool = Field(default=False, index=True)

    @classmethod
    def from_metadata(cls, metadata: PhotoMetadata) -> "PhotoRecord":
        return cls(
            saved_at=utc_now(),
            asset_id=metadata.asset_id,
            unique_hash=metadata.unique_hash,
            latitude=metadata.latitude,
            longitude=metadata.longitude,
            capture_date=as_utc(metadata.capture_date) if metadata.capture_date else None,
            filename=metadata.filename,
        )

    def to_mirror_fields(self) -> dict[str, Any]:
        """Field mapping for the private mirror; dates are ISO-8601 UTC strings."""
        return {
            "assetId": self.asset_id,
            "uniqueHash": self.unique_hash,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "photoCreationDate": (
                as_utc(self.capture_date).isoformat() if self.capture_date else None
            ),
            "filename": self.filename,
            "savedAt": as_utc(self.saved_at).isoformat(),
            "isPublished": bool(self.is_published),
        }


@dataclass(frozen=True)
class PublicPhotoPoint:
    """Projection of a record written to the shared public store."""

    username: str
    unique_hash: str
    latitude: float
    longitude: float
    capture_date: datetime | None = None

    @classmethod
    def from_record(cls, record: PhotoRecord, username: str) -> "PublicPhotoPoint":
        """Build a point from `record`; caller guarantees hash and coordinates."""
        return cls(
            username=username,
            unique_hash=str(record.unique_hash),
            latitude=float(record.latitude),  # type: ignore[arg-type]
            longitude=float(record.longitude),  # type: ignore[arg-type]
            capture_date=record.capture_date,
        )

    def to_fields(self) -> dict[str, Any]:
        """Remote field mapping; dates are ISO-8601 strings."""
        fields: dict[str, Any] = {
            "username": self.username,
            "uniqueHash": self.unique_hash,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }
        if self.capture_date is not None:
            fields["photoCreationDate"] = as_utc(self.capture_date).isoformat()
        return fields

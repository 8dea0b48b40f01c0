"""Lightweight view model wrapper around `PhotoRecord`."""

from __future__ import annotations

from dataclasses import dataclass

from core.models import PhotoRecord

DISPLAY_DT_FMT = "%Y-%m-%d %H:%M"


@dataclass
class PhotoVM:
    """Expose display-ready properties for a stored record."""

    record: PhotoRecord

    @property
    def file_name(self) -> str:
        return self.record.filename or "N/A"

    @property
    def location(self) -> str:
        """`(lat, lon)` with six decimals."""
        lat = self.record.latitude or 0.0
        lon = self.record.longitude or 0.0
        return f"({lat:.6f}, {lon:.6f})"

    @property
    def capture_date(self) -> str:
        dt = self.record.capture_date
        return dt.strftime(DISPLAY_DT_FMT) if dt else "N/A"

    @property
    def saved_at(self) -> str:
        return self.record.saved_at.strftime(DISPLAY_DT_FMT)

    @property
    def asset_id(self) -> str:
        return self.record.asset_id or "N/A"

    @property
    def status(self) -> str:
        return "published" if self.record.is_published else "local"

    def describe(self, index: int) -> str:
        """Multi-line summary used when printing record samples."""
        return "\n".join(
            [
                f"[{index}] Record:",
                f"  - Filename: {self.file_name}",
                f"  - Location: {self.location}",
                f"  - Creation Date: {self.capture_date}",
                f"  - Saved At: {self.saved_at}",
                f"  - Asset ID: {self.asset_id}",
                f"  - Status: {self.status}",
            ]
        )

"""ViewModel orchestrating import, publish, and reconciliation for any front end."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path
from typing import TypeVar

from loguru import logger

from app.viewmodels.photo_vm import PhotoVM
from core.errors import CatalogError, NotSignedIn
from core.models import PhotoRecord
from core.services.import_service import ImportService
from core.services.interfaces import (
    ImportResult,
    MirrorResult,
    PublishResult,
    ReconciliationReport,
)
from core.services.mirror_service import MirrorService
from core.services.publish_service import PublishService
from core.services.reconcile_service import ReconcileService
from infrastructure.exif_extractor import IMAGE_EXTENSIONS, is_image_file

T = TypeVar("T")


def collect_image_paths(paths: Iterable[str | Path], extensions: Iterable[str]) -> list[Path]:
    """Expand files and directories (recursively) into image file paths."""
    exts = {e.lower() for e in extensions}
    found: list[Path] = []
    for raw in paths:
        path = Path(raw)
        candidates = sorted(p for p in path.rglob("*") if p.is_file()) if path.is_dir() else [path]
        found.extend(p for p in candidates if is_image_file(p, exts))
    return found


class CatalogVM:
    """Main application view-model.

    Holds the state a presentation layer shows (record count, current record
    list, progress and error messages, busy flag) and turns every failure into
    `error_message` so callers get a value or a single description.
    """

    def __init__(
        self,
        store,
        import_service: ImportService,
        publish_service: PublishService,
        reconcile_service: ReconcileService,
        extensions: Iterable[str] | None = None,
        mirror_service: MirrorService | None = None,
    ) -> None:
        """Create a CatalogVM.

        Args:
            store: `RecordStore` (or compatible) holding local records.
            import_service: Pipeline used by `import_paths`.
            publish_service: Pipeline used by `publish`.
            reconcile_service: Remote counting and public cleanup.
            extensions: File suffixes treated as photos when scanning folders.
            mirror_service: Optional private mirror synced after local changes.
        """
        self._store = store
        self._importer = import_service
        self._publisher = publish_service
        self._reconciler = reconcile_service
        self._extensions = list(extensions or IMAGE_EXTENSIONS)
        self._mirror = mirror_service
        self.records: list[PhotoRecord] = []
        self.record_count = 0
        self.progress_message = ""
        self.error_message: str | None = None
        self.is_busy = False

    def _run(self, progress: str, action: Callable[[], T]) -> T | None:
        self.is_busy = True
        self.error_message = None
        self.progress_message = progress
        logger.info(progress)
        try:
            return action()
        except (CatalogError, OSError) as ex:
            logger.error("{} failed: {}", progress, ex)
            self.error_message = str(ex)
            self.progress_message = ""
            return None
        finally:
            self.is_busy = False

    def load_record_count(self) -> int:
        try:
            self.record_count = self._store.count()
        except CatalogError as ex:
            self.error_message = f"Failed to load count: {ex}"
        return self.record_count

    def refresh_records(self) -> list[PhotoRecord]:
        """Reload the newest-first record snapshot used by `delete_records_at`."""
        try:
            self.records = self._store.fetch_all()
            self.record_count = len(self.records)
        except CatalogError as ex:
            self.error_message = f"Failed to load records: {ex}"
        return self.records

    def _sync_mirror(self) -> MirrorResult | None:
        """Push local changes to the private mirror, when one is configured.

        A signed-out private session skips the sync; other failures become
        `error_message` without undoing the local change.
        """
        if self._mirror is None:
            return None
        try:
            return self._mirror.sync()
        except NotSignedIn as ex:
            logger.warning("Private mirror skipped: {}", ex)
        except CatalogError as ex:
            logger.error("Private mirror sync failed: {}", ex)
            self.error_message = f"Private mirror sync failed: {ex}"
        return None

    def import_paths(self, paths: Iterable[str | Path]) -> ImportResult | None:
        def _do() -> ImportResult:
            files = collect_image_paths(paths, self._extensions)
            self.progress_message = f"Found {len(files)} photo file(s). Importing..."
            result = self._importer.import_batch(files)
            self.progress_message = (
                f"Imported {result.imported} photo(s); skipped {result.skipped_no_location} "
                f"without location and {result.skipped_duplicate} duplicate(s)."
            )
            return result

        result = self._run("Scanning photos...", _do)
        self.load_record_count()
        if result is not None and result.imported:
            self._sync_mirror()
        return result

    def random_records(self, count: int) -> list[PhotoVM]:
        sample = self._run(
            f"Selecting {count} random record(s)...",
            lambda: self._store.fetch_random_sample(count),
        )
        return [PhotoVM(r) for r in sample or []]

    def delete_all_records(self) -> int | None:
        deleted = self._run("Deleting all records...", self._store.delete_all)
        if deleted is not None:
            self.progress_message = f"Deleted {deleted} record(s)."
            self._sync_mirror()
        self.refresh_records()
        return deleted

    def delete_records_at(self, indices: Iterable[int]) -> int | None:
        """Delete by position in the last `refresh_records` snapshot."""
        positions = list(indices)
        try:
            deleted = self._run(
                "Deleting selected records...",
                lambda: self._store.delete_at(positions, self.records),
            )
        except IndexError as ex:
            self.error_message = str(ex)
            self.progress_message = ""
            return None
        if deleted:
            self.progress_message = f"Deleted {deleted} record(s)."
            self._sync_mirror()
        self.refresh_records()
        return deleted

    def publish(self, username: str) -> PublishResult | None:
        result = self._run("Publishing records...", lambda: self._publisher.publish(username))
        if result is not None:
            self.progress_message = f"Published {result.published_count} record(s)."
            if result.failed:
                self.progress_message += f" {len(result.failed)} failed."
            if result.published_count:
                self._sync_mirror()
        return result

    def sync_private_mirror(self) -> MirrorResult | None:
        if self._mirror is None:
            self.error_message = "Private mirror is disabled."
            return None
        mirror = self._mirror
        result = self._run("Syncing private mirror...", mirror.sync)
        if result is not None:
            self.progress_message = (
                f"Mirror synced: {result.saved} saved, {result.deleted} removed, "
                f"{result.unchanged} unchanged."
            )
            if result.failed:
                self.progress_message += f" {len(result.failed)} failed."
        return result

    def load_remote_counts(self) -> ReconciliationReport | None:
        report = self._run(
            "Querying remote databases...", lambda: self._reconciler.reconcile(self._store)
        )
        if report is not None:
            self.progress_message = "Remote counts loaded."
        return report

    def delete_public_records(self) -> int | None:
        deleted = self._run("Deleting public records...", self._reconciler.delete_public)
        if deleted is not None:
            self.progress_message = f"Deleted {deleted} public record(s)."
        return deleted

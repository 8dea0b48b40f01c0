from __future__ import annotations

import argparse
from pathlib import Path
import sys

from loguru import logger

from app.viewmodels.catalog_vm import CatalogVM
from core.services.import_service import ImportService
from core.services.mirror_service import MirrorService
from core.services.publish_service import PublishService
from core.services.reconcile_service import ReconcileService
from infrastructure.cloud_database import JsonFileCloudDatabase
from infrastructure.exif_extractor import PillowMetadataExtractor
from infrastructure.logging import find_latest_log_file, init_logging
from infrastructure.record_store import RecordStore
from infrastructure.settings import JsonSettings

BASE_DIR = Path(__file__).parent


def build_vm(settings: JsonSettings) -> CatalogVM:
    """Wire store, remotes, and services from `settings`."""
    store = RecordStore.open(settings.get_path("database.path", "data/catalog.db"))
    user_id = settings.get("remote.user_id")
    page_size = settings.get_int("remote.page_size", 400)
    batch_size = settings.get_int("remote.batch_size", 400)
    private_type = settings.get("remote.private_record_type", "PhotoRecord")
    private_db = JsonFileCloudDatabase(
        settings.get_path("remote.private_path"), user_id, page_size=page_size
    )
    public_db = JsonFileCloudDatabase(
        settings.get_path("remote.public_path"), user_id, page_size=page_size
    )
    mirror = None
    if settings.get("remote.mirror_private", True):
        mirror = MirrorService(store, private_db, batch_size=batch_size, record_type=private_type)
    extractor = PillowMetadataExtractor()
    logger.debug("HEIF support: {}", extractor.heif_supported)
    return CatalogVM(
        store,
        ImportService(store, extractor),
        PublishService(
            store,
            public_db,
            batch_size=batch_size,
            record_type=settings.get("remote.public_record_type", "PublicPhotoPoint"),
        ),
        ReconcileService(
            private_db,
            public_db,
            batch_size=batch_size,
            private_record_type=private_type,
            public_record_type=settings.get("remote.public_record_type", "PublicPhotoPoint"),
        ),
        extensions=settings.get("import.extensions"),
        mirror_service=mirror,
    )


def _build_parser(default_sample: int) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Geotagged photo catalog")
    parser.add_argument("--settings", help="Path to settings.json")
    sub = parser.add_subparsers(dest="command", required=True)

    p_import = sub.add_parser("import", help="Import photos from files or folders")
    p_import.add_argument("paths", nargs="+")
    sub.add_parser("count", help="Show the local record count")
    sub.add_parser("list", help="List local records, newest first")
    p_sample = sub.add_parser("sample", help="Print random records")
    p_sample.add_argument("-n", type=int, default=default_sample)
    sub.add_parser("delete-all", help="Delete every local record")
    p_delete = sub.add_parser("delete", help="Delete records by position in `list` output")
    p_delete.add_argument("indices", nargs="+", type=int)
    p_publish = sub.add_parser("publish", help="Publish unpublished records")
    p_publish.add_argument("username")
    sub.add_parser("counts", help="Compare local, private, and public counts")
    sub.add_parser("delete-public", help="Delete your records from the public store")
    sub.add_parser("mirror", help="Sync local records to the private mirror")
    sub.add_parser("logs", help="Print the newest log file path")
    return parser


def _dispatch(vm: CatalogVM, args: argparse.Namespace) -> None:
    cmd = args.command
    if cmd == "import":
        vm.import_paths(args.paths)
    elif cmd == "count":
        vm.load_record_count()
        print(f"Total records: {vm.record_count}")
    elif cmd == "list":
        for idx, record in enumerate(vm.refresh_records()):
            flag = "*" if record.is_published else " "
            location = f"({record.latitude}, {record.longitude})"
            print(f"{idx:5d} {flag} {record.filename or 'N/A'} {location}")
    elif cmd == "sample":
        items = vm.random_records(args.n)
        print(f"====== Random {args.n} Records ======")
        print(f"Total records selected: {len(items)}")
        for idx, item in enumerate(items, start=1):
            print(item.describe(idx))
    elif cmd == "delete-all":
        vm.delete_all_records()
    elif cmd == "delete":
        vm.refresh_records()
        vm.delete_records_at(args.indices)
    elif cmd == "publish":
        vm.publish(args.username)
    elif cmd == "counts":
        report = vm.load_remote_counts()
        if report is not None:
            print(f"Local records:   {report.local_count} ({report.unpublished_count} unpublished)")
            print(f"Private mirror:  {report.private_count}")
            print(f"Public store:    {report.public_count}")
    elif cmd == "delete-public":
        vm.delete_public_records()
    elif cmd == "mirror":
        vm.sync_private_mirror()


def main(argv: list[str] | None = None) -> int:
    settings_path = JsonSettings.resolve_path(BASE_DIR / "settings.json")
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--settings")
    known, _ = pre.parse_known_args(argv)
    settings = JsonSettings(known.settings or settings_path)

    log_dir = init_logging(
        settings.get_path("logging.dir"), level=settings.get("logging.level", "INFO")
    )
    args = _build_parser(settings.get_int("sample.size", 10)).parse_args(argv)
    if args.command == "logs":
        latest = find_latest_log_file(log_dir)
        print(latest if latest else f"No log files in {log_dir}")
        return 0

    vm = build_vm(settings)
    _dispatch(vm, args)
    if vm.error_message:
        print(f"Error: {vm.error_message}", file=sys.stderr)
        return 1
    if vm.progress_message:
        print(vm.progress_message)
    logger.info("Command '{}' finished", args.command)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

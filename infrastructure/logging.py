"""Logging initialization utilities using loguru."""

from __future__ import annotations

from pathlib import Path
import sys

from loguru import logger

APP_DIR_NAME = "GeoCatalog"


def get_log_directory() -> str:
    """Get the default log directory path."""
    return str(Path.home() / ".local" / "state" / APP_DIR_NAME / "logs")


def init_logging(
    log_dir: str | Path | None = None,
    level: str = "INFO",
    console_level: str | None = "WARNING",
) -> Path:
    """Initialize rotating file logging under `log_dir` and return the directory.

    When `console_level` is set, records at or above it also go to stderr.
    """
    log_path = Path(log_dir) if log_dir else Path(get_log_directory())
    log_path.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(
        str(log_path / "catalog_{time:YYYYMMDD}.log"),
        rotation="10 MB",
        retention="10 days",
        compression="zip",
        enqueue=True,
        backtrace=False,
        diagnose=False,
        level=level.upper(),
    )
    if console_level:
        logger.add(sys.stderr, level=console_level.upper(), format="{level}: {message}")
    return log_path


def find_latest_log_file(log_dir: str | Path | None = None) -> Path | None:
    """Find the latest log file in the specified directory."""
    log_path = Path(log_dir) if log_dir else Path(get_log_directory())
    try:
        if not log_path.exists():
            return None
        log_files = list(log_path.glob("catalog_*.log"))
        if not log_files:
            return None
        return max(log_files, key=lambda p: p.stat().st_mtime)
    except OSError:
        return None

"""Photo metadata extraction from image files via Pillow.

Reads GPS coordinates and the original capture time from EXIF, takes the file
name from the path, and derives a stable asset identifier from the file's
contents so a renamed or moved copy of the same photo keeps its identity.
HEIC/HEIF files are readable when pillow-heif is installed.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
import hashlib
import math
from pathlib import Path
from typing import Any

from loguru import logger
from PIL import Image

from core.models import PhotoMetadata

try:  # pragma: no cover - optional dependency
    from pillow_heif import register_heif_opener  # type: ignore

    register_heif_opener()
    PIL_HEIF_AVAILABLE = True
except ImportError:  # pragma: no cover - optional dependency
    PIL_HEIF_AVAILABLE = False

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".heic", ".heif", ".tif", ".tiff"}
HEIF_EXTENSIONS = {".heic", ".heif"}

# EXIF tag ids
_GPS_IFD = 0x8825
_EXIF_IFD = 0x8769
_GPS_LATITUDE_REF = 1
_GPS_LATITUDE = 2
_GPS_LONGITUDE_REF = 3
_GPS_LONGITUDE = 4
_DATETIME_ORIGINAL = 36867
_DATETIME = 306

MAX_LATITUDE = 90.0
MAX_LONGITUDE = 180.0

EXIF_DT_FMT = "%Y:%m:%d %H:%M:%S"


def is_image_file(path: Path, extensions: Iterable[str] | None = None) -> bool:
    """True for image files, excluding macOS `._` resource forks.

    `extensions` overrides `IMAGE_EXTENSIONS`; entries compare case-insensitively.
    """
    exts = IMAGE_EXTENSIONS if extensions is None else {e.lower() for e in extensions}
    return not path.name.startswith("._") and path.suffix.lower() in exts


def gps_to_decimal(value: Any, ref: str | bytes | None) -> float | None:
    """Convert an EXIF GPS value to signed decimal degrees.

    `value` is either a (degrees, minutes, seconds) triple of numbers or
    rationals, or a single number of degrees. South and West refs negate it.
    Zero-denominator rationals (written by cameras without a fix) read as NaN
    and yield None.
    """
    if value is None:
        return None
    try:
        if isinstance(value, (tuple, list)):
            parts = [float(v) for v in value]
            if not parts:
                return None
            degrees = parts[0]
            if len(parts) > 1:
                degrees += parts[1] / 60.0
            if len(parts) > 2:
                degrees += parts[2] / 3600.0
        else:
            degrees = float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    if not math.isfinite(degrees):
        return None
    if isinstance(ref, bytes):
        ref = ref.decode("ascii", errors="ignore")
    if ref and ref.strip().upper() in {"S", "W"}:
        degrees = -degrees
    return degrees


def parse_exif_datetime(value: Any) -> datetime | None:
    """Parse an EXIF `YYYY:MM:DD HH:MM:SS` string as UTC; None when invalid."""
    if not value:
        return None
    text = value.decode("ascii", errors="ignore") if isinstance(value, bytes) else str(value)
    text = text.strip().rstrip("\x00")
    try:
        return datetime.strptime(text[:19], EXIF_DT_FMT).replace(tzinfo=timezone.utc)
    except ValueError:
        logger.debug("Invalid EXIF datetime: {}", text)
        return None


def coordinates_from_gps(gps: Mapping[int, Any]) -> tuple[float | None, float | None]:
    """Return (latitude, longitude) from a GPS IFD mapping.

    Both are None unless both axes parse and fall within valid ranges.
    """
    if not gps:
        return None, None
    lat = gps_to_decimal(gps.get(_GPS_LATITUDE), gps.get(_GPS_LATITUDE_REF))
    lon = gps_to_decimal(gps.get(_GPS_LONGITUDE), gps.get(_GPS_LONGITUDE_REF))
    if lat is None or lon is None:
        return None, None
    if abs(lat) > MAX_LATITUDE or abs(lon) > MAX_LONGITUDE:
        logger.debug("GPS coordinates out of range: {}, {}", lat, lon)
        return None, None
    return lat, lon


def file_asset_id(path: Path, chunk_size: int = 1 << 20) -> str:
    """SHA-1 of the file contents."""
    digest = hashlib.sha1()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


class PillowMetadataExtractor:
    """`MetadataExtractor` for image files on disk.

    Unreadable files raise `OSError` (Pillow's `UnidentifiedImageError` is a
    subclass); a readable image without GPS simply yields no coordinates.
    """

    def __init__(self) -> None:
        self.heif_supported = bool(PIL_HEIF_AVAILABLE)

    def extract(self, handle: str | Path) -> PhotoMetadata:
        path = Path(handle)
        if not self.heif_supported and path.suffix.lower() in HEIF_EXTENSIONS:
            logger.warning("pillow-heif is not installed; {} may be unreadable", path.name)
        meta = PhotoMetadata(asset_id=file_asset_id(path), filename=path.name)
        with Image.open(path) as im:
            exif = im.getexif()
            gps = exif.get_ifd(_GPS_IFD)
            meta.latitude, meta.longitude = coordinates_from_gps(gps)
            original = exif.get_ifd(_EXIF_IFD).get(_DATETIME_ORIGINAL)
            meta.capture_date = parse_exif_datetime(original or exif.get(_DATETIME))
        if not meta.has_location:
            logger.debug("No GPS data in {}", path.name)
        return meta


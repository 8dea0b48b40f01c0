"""Dedup key derivation for imported photos.

The key joins the photo source's stable asset identifier with the file name
minus its extension, so the same photo exported as JPEG or HEIC collapses to
one record.
"""

from __future__ import annotations

import os


def strip_extension(filename: str) -> str:
    """Return `filename` without its last extension (`IMG_1.HEIC` -> `IMG_1`)."""
    stem, _ext = os.path.splitext(filename)
    return stem


def compute_unique_hash(asset_id: str | None, filename: str | None) -> str | None:
    """Return `<asset_id>_<stem>` or None when either part is missing or empty."""
    if not asset_id or not filename:
        return None
    return f"{asset_id}_{strip_extension(filename)}"

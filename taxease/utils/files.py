"""Helpers for presenting picked documents."""

from __future__ import annotations

import math

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")
_PREVIEWABLE_SCHEMES = ("file://", "content://", "http://", "https://")


def format_file_size(size_bytes: int) -> str:
    if size_bytes <= 0:
        return "0 Bytes"
    exponent = min(int(math.log(size_bytes, 1024)), len(_SIZE_UNITS) - 1)
    value = round(size_bytes / 1024**exponent, 2)
    return f"{value:g} {_SIZE_UNITS[exponent]}"


def is_valid_image_uri(uri: str | None) -> bool:
    """True when the URI points somewhere an image preview can be loaded from."""
    if not uri or not isinstance(uri, str):
        return False
    return uri.startswith(_PREVIEWABLE_SCHEMES)


__all__ = ["format_file_size", "is_valid_image_uri"]

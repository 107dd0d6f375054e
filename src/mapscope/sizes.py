"""Byte measurement and human-readable size formatting."""

from __future__ import annotations

import gzip

BYTE_SIZES = ["B", "KB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB"]
SIZE_BASE = 1024


def byte_length(text: str) -> int:
    """UTF-8 encoded length, so multi-byte characters count fully."""
    return len(text.encode("utf-8", "surrogatepass"))


def gzip_size(text: str) -> int:
    """Size of *text* compressed with gzip at the highest level."""
    if not text:
        return 0
    return len(gzip.compress(text.encode("utf-8", "surrogatepass"), compresslevel=9, mtime=0))


def format_bytes(size: int, decimals: int = 2) -> str:
    if size == 0:
        return f"0 {BYTE_SIZES[0]}"

    exponent = 0
    value = float(size)
    while value >= SIZE_BASE and exponent < len(BYTE_SIZES) - 1:
        value /= SIZE_BASE
        exponent += 1

    # Drop trailing zeros: 1.50 -> 1.5, 2.00 -> 2
    text = f"{value:.{decimals}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text} {BYTE_SIZES[exponent]}"


def format_percent(value: float, total: float, digits: int = 2) -> str:
    if not total:
        return f"{0:.{digits}f}"
    return f"{100.0 * value / total:.{digits}f}"

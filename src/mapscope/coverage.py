"""Runtime coverage: reading DevTools coverage files and covered sizes."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from urllib.parse import urlparse

from mapscope.errors import AppError, ErrorCode
from mapscope.ranges import find_covered_ranges
from mapscope.sizes import byte_length
from mapscope.source import column_length, column_slice, detect_eol, encode_columns
from mapscope.types import Bundle, ColumnRange, CoverageRange, FileDataMap, MappingRange

logger = logging.getLogger(__name__)

PATH_SEPARATOR_REGEX = re.compile(r"[/\\]")


def _normalize(ranges: list[ColumnRange]) -> list[ColumnRange]:
    """Sort ranges and join the overlapping ones."""
    result: list[ColumnRange] = []
    for item in sorted(ranges, key=lambda r: r.start):
        if result and item.start <= result[-1].end:
            last = result[-1]
            result[-1] = ColumnRange(last.start, max(last.end, item.end))
        else:
            result.append(item)
    return result


def convert_ranges_to_line_ranges(
    text: str, ranges: list[CoverageRange]
) -> list[list[ColumnRange]]:
    """Convert whole-text exclusive ranges into inclusive ranges per line.

    Offsets and columns are UTF-16 code units, as DevTools reports them.
    """
    eol = detect_eol(text)
    offset = 0
    line_ranges: list[list[ColumnRange]] = []

    for line in text.split(eol):
        line_length = column_length(line)
        line_start = offset
        line_end = offset + line_length
        # Jump over the EOL to the next line
        offset = line_end + len(eol)

        if line_length == 0:
            line_ranges.append([])
            continue

        last_index = line_length - 1
        current: list[ColumnRange] = []

        for rng in ranges:
            start_index = rng.start - line_start
            end_index = rng.end - line_start - 1

            if rng.start <= line_start and line_end <= rng.end:
                # Range includes the whole line
                found = ColumnRange(0, last_index)
            elif line_start <= rng.start and rng.end <= line_end:
                found = ColumnRange(start_index, end_index)
            elif line_start <= rng.start <= line_end:
                # Starts within the line
                found = ColumnRange(start_index, last_index)
            elif line_start <= rng.end <= line_end:
                # Ends within the line
                found = ColumnRange(0, end_index)
            else:
                continue

            if found.start <= found.end:
                current.append(found)

        line_ranges.append(_normalize(current))

    return line_ranges


def get_path_parts(path: str) -> list[str]:
    return [part for part in PATH_SEPARATOR_REGEX.split(path) if part]


def _read_coverages(coverage_filename: str) -> list[tuple[list[str], str, list[CoverageRange]]]:
    try:
        data = json.loads(Path(coverage_filename).read_text(encoding="utf-8"))
        return [
            (
                list(reversed(get_path_parts(urlparse(entry["url"]).path or ""))),
                entry["text"],
                [CoverageRange(r["start"], r["end"]) for r in entry["ranges"]],
            )
            for entry in data
        ]
    except (OSError, ValueError, KeyError, TypeError) as e:
        raise AppError(ErrorCode.CANNOT_OPEN_COVERAGE_FILE, cause=e) from e


def add_coverage_ranges(bundles: list[Bundle], coverage_filename: str | None) -> list[Bundle]:
    """Attach per-line coverage ranges to the bundles matching coverage URLs.

    A coverage entry is matched by comparing its URL path with the bundle
    path segment by segment, starting from the file name, until at most one
    bundle is left. Entries whose URL has no path (scripts inlined into an
    HTML page) are ignored.
    """
    if not coverage_filename:
        return bundles

    bundle_paths = [
        (list(reversed(get_path_parts(bundle.code))), index)
        for index, bundle in enumerate(bundles)
        if not isinstance(bundle.code, bytes)
    ]

    for coverage_parts, text, ranges in _read_coverages(coverage_filename):
        if not coverage_parts:
            continue

        matching = bundle_paths
        for i, part in enumerate(coverage_parts):
            matching = [
                (parts, index) for parts, index in matching
                if i < len(parts) and parts[i] == part
            ]
            if len(matching) <= 1:
                break

        if len(matching) == 1:
            _, bundle_index = matching[0]
            bundles[bundle_index].coverage_ranges = convert_ranges_to_line_ranges(text, ranges)
            logger.debug("coverage matched %s", bundles[bundle_index].code)

    if all(bundle.coverage_ranges is None for bundle in bundles):
        raise AppError(ErrorCode.NO_COVERAGE_MATCHES)

    return bundles


def set_covered_sizes(
    line: str,
    files: FileDataMap,
    mapping_ranges: list[MappingRange],
    covered_ranges: list[ColumnRange],
) -> FileDataMap:
    """Add the covered bytes of one line to each source's ``covered_size``."""
    encoded = encode_columns(line)
    for rng in find_covered_ranges(mapping_ranges, covered_ranges):
        data = files[rng.source]
        size = byte_length(column_slice(encoded, rng.start, rng.end))
        data.covered_size = (data.covered_size or 0) + size

    return files


_PERCENT_COLORS = [
    (0.0, (0xFF, 0x00, 0x00)),
    (0.5, (0xFF, 0xFF, 0x00)),
    (1.0, (0x00, 0xFF, 0x00)),
]


def get_color_by_percent(percent: float) -> str:
    """Heat map color from red (0) through yellow to green (1)."""
    i = 1
    while i < len(_PERCENT_COLORS) - 1 and percent >= _PERCENT_COLORS[i][0]:
        i += 1

    lower_percent, lower = _PERCENT_COLORS[i - 1]
    upper_percent, upper = _PERCENT_COLORS[i]
    range_percent = (percent - lower_percent) / (upper_percent - lower_percent)

    r, g, b = (
        int(lo * (1 - range_percent) + hi * range_percent)
        for lo, hi in zip(lower, upper)
    )
    return f"rgb({r}, {g}, {b})"

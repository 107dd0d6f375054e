"""Byte attribution for a single bundle.

Pipeline: strip the sourceMappingURL comment -> translate mappings into
per-line ranges -> merge ranges -> measure sizes per source -> overlay
coverage -> adjust source paths.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from contextlib import closing

from mapscope.config import ExploreOptions
from mapscope.coverage import set_covered_sizes
from mapscope.errors import AppError, ErrorCode
from mapscope.position_map import PositionMap, load_source_map
from mapscope.ranges import merge_ranges
from mapscope.sizes import byte_length, gzip_size
from mapscope.source import GeneratedFile, column_slice, is_eol_at_position
from mapscope.types import (
    EOL_KEY,
    NO_SOURCE_KEY,
    SOURCE_MAP_COMMENT_KEY,
    SPECIAL_FILENAMES,
    UNMAPPED_KEY,
    Bundle,
    ColumnRange,
    ExploreBundleResult,
    FileData,
    FileDataMap,
    FileSizes,
    MappingRange,
)

logger = logging.getLogger(__name__)

# Longest EOL sequence (\r\n)
_MAX_EOL_LENGTH = 2


def get_bundle_name(bundle: Bundle) -> str:
    return "Buffer" if isinstance(bundle.code, bytes) else bundle.code


def explore_bundle(bundle: Bundle, options: ExploreOptions) -> ExploreBundleResult:
    """Analyze one bundle. Raises AppError when the bundle cannot be analyzed."""
    name = get_bundle_name(bundle)
    logger.debug("exploring %s", name)

    position_map, content = load_source_map(bundle.code, bundle.map)
    with closing(position_map):
        sizes = compute_file_sizes(position_map, content, options, bundle.coverage_ranges)

    files = adjust_source_paths(sizes.files, options)
    if options.sort:
        files = dict(sorted(files.items()))

    return ExploreBundleResult(
        bundle_name=name,
        files=files,
        mapped_bytes=sizes.mapped_bytes,
        unmapped_bytes=sizes.unmapped_bytes,
        eol_bytes=sizes.eol_bytes,
        source_map_comment_bytes=sizes.source_map_comment_bytes,
        total_bytes=sizes.total_bytes,
    )


# ── Mapping-to-range translation ──────────────────────────────────


def _is_referencing_eol(
    position_map: PositionMap,
    generated_line: int,
    column: int,
    source: str | None,
    max_column_index: int,
    eol_sources: set[str],
) -> bool:
    """Check if a mapping points at an EOL of its original source.

    Some compilers (notably TypeScript) emit such mappings, which land one
    or two columns past the end of the generated line.
    """
    if column - max_column_index > _MAX_EOL_LENGTH:
        return False

    if source is None:
        return False

    # A source is checked once per bundle
    if source in eol_sources:
        return True

    content = position_map.source_content_for(source)
    if not content:
        return False

    position = position_map.original_position_for(generated_line, column)
    if position.line is None or position.column is None:
        return False

    if is_eol_at_position(content, position.line, position.column):
        eol_sources.add(source)
        return True

    return False


def compute_mapping_ranges(
    position_map: PositionMap,
    generated: GeneratedFile,
    *,
    border_checks: bool = True,
) -> dict[int, list[MappingRange]]:
    """Build the attributed column ranges of every mapped generated line.

    Keys are 0-based line indexes; lines without mappings have no entry.
    """
    mapping_ranges: dict[int, list[MappingRange]] = {}
    eol_sources: set[str] = set()

    for item in position_map.for_each_mapping():
        line_index = item.generated_line - 1
        line = generated.line_at(item.generated_line)

        if line is None:
            raise AppError(ErrorCode.INVALID_MAPPING_LINE, {
                "generated_line": item.generated_line,
                "max_line": len(generated.lines),
            })

        column_count = generated.column_count(item.generated_line)
        max_column_index = column_count - 1

        if border_checks:
            column = max(item.generated_column, item.last_generated_column or 0)
            if column > max_column_index and not _is_referencing_eol(
                position_map, item.generated_line, column, item.source,
                max_column_index, eol_sources,
            ):
                raise AppError(ErrorCode.INVALID_MAPPING_COLUMN, {
                    "generated_line": item.generated_line,
                    "generated_column": column,
                    "max_column": column_count,
                })

        start = item.generated_column
        if item.last_generated_column is None:
            end = max_column_index
        else:
            end = min(item.last_generated_column, max_column_index)

        # Mappings pointing past the line content cover no bytes
        if end < start:
            continue

        source = NO_SOURCE_KEY if item.source is None else item.source
        mapping_ranges.setdefault(line_index, []).append(MappingRange(start, end, source))

    return mapping_ranges


# ── Size accumulation ─────────────────────────────────────────────


def compute_file_sizes(
    position_map: PositionMap,
    content: str,
    options: ExploreOptions,
    coverage_ranges: list[list[ColumnRange]] | None = None,
) -> FileSizes:
    """Calculate the number of bytes contributed by each source file."""
    generated = GeneratedFile(content)
    mapping_ranges = compute_mapping_ranges(
        position_map, generated, border_checks=not options.no_border_checks,
    )

    # Compressed sizes do not add up, so gzip mode never reports unmapped bytes
    only_mapped = options.only_mapped or options.gzip
    get_size: Callable[[str], int] = gzip_size if options.gzip else byte_length

    if options.gzip and coverage_ranges is not None:
        logger.warning("coverage is ignored when measuring gzip sizes")
        coverage_ranges = None

    files: FileDataMap = {}
    mapped_bytes = 0

    for line_index in sorted(mapping_ranges):
        line = generated.lines[line_index]
        encoded = generated.encoded_line_at(line_index + 1)
        merged = merge_ranges(mapping_ranges[line_index])

        for rng in merged:
            size = get_size(column_slice(encoded, rng.start, rng.end))
            files.setdefault(rng.source, FileData()).size += size
            mapped_bytes += size

        if coverage_ranges is not None and line_index < len(coverage_ranges):
            set_covered_sizes(line, files, merged, coverage_ranges[line_index])

    if coverage_ranges is not None:
        for data in files.values():
            if data.covered_size is None:
                data.covered_size = 0

    comment_bytes = get_size(generated.source_map_comment)
    eol_bytes = generated.eol_bytes
    total_bytes = get_size(content)
    unmapped_bytes: int | None = None

    if comment_bytes and not options.exclude_source_map_comment:
        files[SOURCE_MAP_COMMENT_KEY] = FileData(comment_bytes)

    if not only_mapped:
        unmapped_bytes = total_bytes - mapped_bytes - comment_bytes - eol_bytes
        files[UNMAPPED_KEY] = FileData(unmapped_bytes)

    if eol_bytes > 0:
        files[EOL_KEY] = FileData(eol_bytes)

    if options.exclude_source_map_comment:
        total_bytes -= comment_bytes

    logger.debug(
        "%d sources, %d/%d bytes mapped", len(files), mapped_bytes, total_bytes,
    )

    return FileSizes(
        files=files,
        mapped_bytes=mapped_bytes,
        unmapped_bytes=unmapped_bytes,
        eol_bytes=eol_bytes,
        source_map_comment_bytes=comment_bytes,
        total_bytes=total_bytes,
    )


# ── Source path adjustment ────────────────────────────────────────

_PATH_SEPARATOR_REGEX = re.compile(r"(/)")


def get_common_path_prefix(paths: list[str]) -> str:
    """Longest shared prefix of *paths* that ends at a path separator.

    Only the lexicographically first and last paths need comparing.
    """
    if len(paths) < 2:
        return ""

    ordered = sorted(paths)
    first = _PATH_SEPARATOR_REGEX.split(ordered[0])
    last = _PATH_SEPARATOR_REGEX.split(ordered[-1])

    i = 0
    while i < len(first) and i < len(last) and first[i] == last[i]:
        i += 1

    prefix = "".join(first[:i])
    return prefix[: prefix.rfind("/") + 1]


def _rename_sources(files: FileDataMap, rename: Callable[[str], str]) -> FileDataMap:
    result: FileDataMap = {}
    for name, data in files.items():
        new_name = name if name in SPECIAL_FILENAMES else rename(name)
        if new_name in result:
            # Two sources collapsed into one name
            merged = result[new_name]
            merged.size += data.size
            if data.covered_size is not None:
                merged.covered_size = (merged.covered_size or 0) + data.covered_size
        else:
            result[new_name] = FileData(data.size, data.covered_size)
    return result


def adjust_source_paths(files: FileDataMap, options: ExploreOptions) -> FileDataMap:
    """Strip the common source prefix and apply the replace rules in order."""
    if not options.no_root:
        prefix = get_common_path_prefix([f for f in files if f not in SPECIAL_FILENAMES])
        if prefix:
            files = _rename_sources(files, lambda source: source[len(prefix):])

    for pattern, replacement in options.replace_map.items():
        regex = re.compile(pattern)
        files = _rename_sources(files, lambda source, r=regex, w=replacement: r.sub(w, source))

    return files

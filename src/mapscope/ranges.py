"""Column range merging and range intersection."""

from __future__ import annotations

from collections.abc import Sequence

from mapscope.types import ColumnRange, MappingRange


def merge_ranges(ranges: list[MappingRange]) -> list[MappingRange]:
    """Merge consecutive ranges that share a source and touch each other.

    Ranges are expected in line order. Two neighbours merge only when
    ``next.start - prev.end == 1`` and their sources are equal.
    """
    if len(ranges) <= 1:
        return ranges

    merged: list[MappingRange] = []
    current = ranges[0]

    for prev, item in zip(ranges, ranges[1:]):
        if item.source == prev.source and item.start - prev.end == 1:
            current = MappingRange(current.start, item.end, current.source)
        else:
            merged.append(current)
            current = item

    merged.append(current)
    return merged


def _check_sorted(ranges: Sequence[ColumnRange | MappingRange], what: str) -> None:
    for prev, item in zip(ranges, ranges[1:]):
        if item.start <= prev.end:
            raise ValueError(
                f"{what} ranges must be sorted and non-overlapping: "
                f"[{prev.start}, {prev.end}] then [{item.start}, {item.end}]"
            )


def find_covered_ranges(
    mapping_ranges: Sequence[MappingRange],
    covered_ranges: Sequence[ColumnRange],
) -> list[MappingRange]:
    """Intersect mapping ranges with coverage ranges of the same line.

    Both inputs must be sorted by ``start`` and free of overlaps; a
    ValueError is raised otherwise. Each index only moves forward, so the
    sweep is linear in the total number of ranges.
    """
    _check_sorted(mapping_ranges, "mapping")
    _check_sorted(covered_ranges, "coverage")

    result: list[MappingRange] = []
    i = 0
    j = 0

    while i < len(mapping_ranges) and j < len(covered_ranges):
        mapping = mapping_ranges[i]
        covered = covered_ranges[j]

        if mapping.start <= covered.end and covered.start <= mapping.end:
            result.append(MappingRange(
                max(mapping.start, covered.start),
                min(mapping.end, covered.end),
                mapping.source,
            ))

            # A coverage range may span several mapping ranges
            following = mapping_ranges[i + 1] if i + 1 < len(mapping_ranges) else None
            if (
                following is not None
                and following.start <= covered.end
                and following.end >= covered.start
            ):
                i += 1
            else:
                j += 1
        elif mapping.end < covered.start:
            i += 1

        if covered.end < mapping.start:
            j += 1

    return result

"""Tests for range merging and the covered range sweep."""

from __future__ import annotations

import pytest

from mapscope.ranges import find_covered_ranges, merge_ranges
from mapscope.types import ColumnRange, MappingRange


class TestMergeRanges:
    def test_empty(self):
        assert merge_ranges([]) == []

    def test_single_range_unchanged(self):
        ranges = [MappingRange(0, 5, "a.js")]
        assert merge_ranges(ranges) == ranges

    def test_contiguous_same_source(self):
        ranges = [
            MappingRange(0, 4, "a.js"),
            MappingRange(5, 9, "a.js"),
            MappingRange(10, 12, "a.js"),
        ]
        assert merge_ranges(ranges) == [MappingRange(0, 12, "a.js")]

    def test_gap_keeps_ranges_apart(self):
        ranges = [MappingRange(0, 4, "a.js"), MappingRange(6, 9, "a.js")]
        assert merge_ranges(ranges) == ranges

    def test_different_sources_not_merged(self):
        ranges = [MappingRange(0, 4, "a.js"), MappingRange(5, 9, "b.js")]
        assert merge_ranges(ranges) == ranges

    def test_alternating_sources(self):
        ranges = [
            MappingRange(0, 1, "a.js"),
            MappingRange(2, 3, "a.js"),
            MappingRange(4, 5, "b.js"),
            MappingRange(6, 7, "a.js"),
            MappingRange(8, 9, "a.js"),
        ]
        assert merge_ranges(ranges) == [
            MappingRange(0, 3, "a.js"),
            MappingRange(4, 5, "b.js"),
            MappingRange(6, 9, "a.js"),
        ]

    def test_keeps_order(self):
        ranges = [MappingRange(10, 12, "b.js"), MappingRange(0, 4, "a.js")]
        assert merge_ranges(ranges) == ranges


class TestFindCoveredRanges:
    def test_example(self):
        mappings = [
            MappingRange(5, 12, "foo"),
            MappingRange(17, 19, "bar"),
            MappingRange(20, 21, "bar"),
        ]
        covered = [ColumnRange(1, 2), ColumnRange(3, 6), ColumnRange(8, 11), ColumnRange(18, 20)]

        result = find_covered_ranges(mappings, covered)

        assert result == [
            MappingRange(5, 6, "foo"),
            MappingRange(8, 11, "foo"),
            MappingRange(18, 19, "bar"),
            MappingRange(20, 20, "bar"),
        ]
        sizes: dict[str, int] = {}
        for r in result:
            sizes[r.source] = sizes.get(r.source, 0) + r.end - r.start + 1
        assert sizes == {"foo": 6, "bar": 3}

    def test_no_coverage(self):
        assert find_covered_ranges([MappingRange(0, 5, "a.js")], []) == []

    def test_no_mappings(self):
        assert find_covered_ranges([], [ColumnRange(0, 5)]) == []

    def test_disjoint(self):
        mappings = [MappingRange(0, 3, "a.js")]
        covered = [ColumnRange(5, 9)]
        assert find_covered_ranges(mappings, covered) == []

    def test_coverage_spanning_several_mappings(self):
        mappings = [
            MappingRange(0, 3, "a.js"),
            MappingRange(4, 7, "b.js"),
            MappingRange(8, 11, "c.js"),
        ]
        covered = [ColumnRange(2, 9)]
        assert find_covered_ranges(mappings, covered) == [
            MappingRange(2, 3, "a.js"),
            MappingRange(4, 7, "b.js"),
            MappingRange(8, 9, "c.js"),
        ]

    def test_single_column_overlap(self):
        mappings = [MappingRange(0, 4, "a.js")]
        covered = [ColumnRange(4, 8)]
        assert find_covered_ranges(mappings, covered) == [MappingRange(4, 4, "a.js")]

    def test_unsorted_mappings_rejected(self):
        mappings = [MappingRange(5, 9, "a.js"), MappingRange(0, 3, "b.js")]
        with pytest.raises(ValueError, match="mapping ranges must be sorted"):
            find_covered_ranges(mappings, [ColumnRange(0, 9)])

    def test_overlapping_coverage_rejected(self):
        covered = [ColumnRange(0, 5), ColumnRange(3, 9)]
        with pytest.raises(ValueError, match="coverage ranges must be sorted"):
            find_covered_ranges([MappingRange(0, 9, "a.js")], covered)

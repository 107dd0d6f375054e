"""Data model shared by the attribution engine and its callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from mapscope.errors import ExploreError

# Reserved FileDataMap keys
UNMAPPED_KEY = "[unmapped]"
SOURCE_MAP_COMMENT_KEY = "[sourceMappingURL]"
NO_SOURCE_KEY = "[no source]"
EOL_KEY = "[EOLs]"

SPECIAL_FILENAMES = (UNMAPPED_KEY, SOURCE_MAP_COMMENT_KEY, NO_SOURCE_KEY, EOL_KEY)

# Code or map file: a filesystem path or raw content
File = str | bytes


@dataclass(frozen=True)
class ColumnRange:
    """Inclusive column range within one generated line."""

    start: int
    end: int


@dataclass(frozen=True)
class MappingRange:
    """Inclusive column range attributed to an original source."""

    start: int
    end: int
    source: str


@dataclass(frozen=True)
class CoverageRange:
    """Exclusive offset range over the whole generated text."""

    start: int
    end: int


@dataclass
class FileData:
    size: int = 0
    covered_size: int | None = None

    def to_dict(self) -> dict[str, int]:
        data = {"size": self.size}
        if self.covered_size is not None:
            data["coveredSize"] = self.covered_size
        return data


FileDataMap = dict[str, FileData]


@dataclass
class Bundle:
    """A generated file with an optional explicit source map."""

    code: File
    map: File | None = None
    coverage_ranges: list[list[ColumnRange]] | None = None


@dataclass(frozen=True)
class FileSizes:
    """Totals produced by the byte-size accumulator for one bundle."""

    files: FileDataMap
    mapped_bytes: int
    unmapped_bytes: int | None
    eol_bytes: int
    source_map_comment_bytes: int
    total_bytes: int


@dataclass(frozen=True)
class ExploreBundleResult:
    """The size report of a single analyzed bundle."""

    bundle_name: str
    files: FileDataMap
    mapped_bytes: int
    unmapped_bytes: int | None
    eol_bytes: int
    source_map_comment_bytes: int
    total_bytes: int

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "bundleName": self.bundle_name,
            "totalBytes": self.total_bytes,
            "mappedBytes": self.mapped_bytes,
        }
        if self.unmapped_bytes is not None:
            payload["unmappedBytes"] = self.unmapped_bytes
        payload["eolBytes"] = self.eol_bytes
        payload["sourceMapCommentBytes"] = self.source_map_comment_bytes
        payload["files"] = {name: data.to_dict() for name, data in self.files.items()}
        return payload


@dataclass
class ExploreResult:
    """Outcome of exploring a batch of bundles."""

    bundles: list[ExploreBundleResult] = field(default_factory=list)
    errors: list[ExploreError] = field(default_factory=list)
    output: str | None = None

"""Shared test helpers for the mapscope test suite."""

from __future__ import annotations

import base64
import json
from collections.abc import Iterator

from mapscope.position_map import MappingItem, OriginalPosition

_BASE64_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"


class FakePositionMap:
    """In-memory PositionMap serving a fixed list of mappings."""

    def __init__(
        self,
        mappings: list[MappingItem],
        contents: dict[str, str] | None = None,
        positions: dict[tuple[int, int], OriginalPosition] | None = None,
    ) -> None:
        self.mappings = mappings
        self.contents = contents or {}
        self.positions = positions or {}
        self.closed = False

    def original_position_for(self, line: int, column: int) -> OriginalPosition:
        return self.positions.get((line, column), OriginalPosition(None, None, None))

    def for_each_mapping(self) -> Iterator[MappingItem]:
        yield from self.mappings

    def source_content_for(self, source: str) -> str | None:
        return self.contents.get(source)

    def close(self) -> None:
        self.closed = True


def mapping(source: str | None, line: int, column: int, last: int | None = None) -> MappingItem:
    return MappingItem(source, line, column, last)


def encode_vlq(value: int) -> str:
    vlq = (value << 1) if value >= 0 else ((-value) << 1) | 1
    chars = []
    while True:
        digit = vlq & 31
        vlq >>= 5
        if vlq:
            digit |= 32
        chars.append(_BASE64_CHARS[digit])
        if not vlq:
            return "".join(chars)


def encode_mappings(lines: list[list[tuple[int, int, int, int]]]) -> str:
    """Encode ``(generated_column, source_index, source_line, source_column)``
    segments, one list per generated line, into a ``mappings`` string."""
    prev_source = prev_line = prev_column = 0
    encoded_lines = []

    for segments in lines:
        prev_generated = 0
        encoded = []
        for gen_col, src, src_line, src_col in segments:
            encoded.append("".join(encode_vlq(v) for v in (
                gen_col - prev_generated,
                src - prev_source,
                src_line - prev_line,
                src_col - prev_column,
            )))
            prev_generated, prev_source, prev_line, prev_column = gen_col, src, src_line, src_col
        encoded_lines.append(",".join(encoded))

    return ";".join(encoded_lines)


def make_source_map(
    sources: list[str],
    lines: list[list[tuple[int, int, int, int]]],
    contents: list[str] | None = None,
) -> str:
    data = {
        "version": 3,
        "sources": sources,
        "names": [],
        "mappings": encode_mappings(lines),
    }
    if contents is not None:
        data["sourcesContent"] = contents
    return json.dumps(data)


def inline_comment(source_map: str) -> str:
    payload = base64.b64encode(source_map.encode("utf-8")).decode("ascii")
    return f"//# sourceMappingURL=data:application/json;charset=utf-8;base64,{payload}"


def two_source_bundle() -> str:
    """A two-line bundle whose lines come from src/a.js and src/b.js."""
    source_map = make_source_map(
        ["src/a.js", "src/b.js"],
        [[(0, 0, 0, 0)], [(0, 1, 0, 0)]],
    )
    return f"var a = 1;\nvar b = 2;\n{inline_comment(source_map)}"

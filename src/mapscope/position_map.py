"""Position map access: the decoder protocol and source map loading.

The attribution engine only talks to a :class:`PositionMap`. The default
implementation wraps the ``sourcemap`` decoder; tests and callers with
their own decoder can pass any object with the same methods.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from urllib.parse import unquote

import sourcemap
from sourcemap.objects import SourceMapIndex, Token

from mapscope.errors import AppError, ErrorCode
from mapscope.source import COMMENT_REGEX, MAP_FILE_COMMENT_REGEX
from mapscope.types import File

logger = logging.getLogger(__name__)

# Anti-XSSI prefix some servers put in front of source maps
_XSSI_PREFIXES = (")]}'", ")]}")


@dataclass(frozen=True)
class OriginalPosition:
    """Original location of a generated position. Lines are 1-based."""

    source: str | None
    line: int | None
    column: int | None


@dataclass(frozen=True)
class MappingItem:
    """One mapping entry. ``generated_line`` is 1-based, columns are 0-based.

    ``last_generated_column`` is the inclusive end of the entry on its line,
    or None when the entry runs to the end of the line.
    """

    source: str | None
    generated_line: int
    generated_column: int
    last_generated_column: int | None


class PositionMap(Protocol):
    def original_position_for(self, line: int, column: int) -> OriginalPosition: ...

    def for_each_mapping(self) -> Iterator[MappingItem]: ...

    def source_content_for(self, source: str) -> str | None: ...

    def close(self) -> None: ...


class SourceMapPositionMap:
    """PositionMap backed by a decoded ``sourcemap`` index."""

    def __init__(self, raw: str) -> None:
        text = raw.lstrip("\ufeff")
        if text.startswith(_XSSI_PREFIXES):
            text = text.split("\n", 1)[1] if "\n" in text else ""

        try:
            data = json.loads(text)
            if "sections" in data:
                self._index, self._contents = _decode_sections(data["sections"])
            else:
                self._index, self._contents = _decode(data)
        except (ValueError, KeyError, TypeError, IndexError, AttributeError) as e:
            raise AppError(ErrorCode.INVALID_SOURCE_MAP, cause=e) from e

    def original_position_for(self, line: int, column: int) -> OriginalPosition:
        try:
            token = self._index.lookup(line - 1, column)
        except IndexError:
            return OriginalPosition(None, None, None)
        if token.src is None:
            return OriginalPosition(None, None, None)
        return OriginalPosition(token.src, token.src_line + 1, token.src_col)

    def for_each_mapping(self) -> Iterator[MappingItem]:
        tokens = sorted(self._index, key=lambda t: (t.dst_line, t.dst_col))

        for k, token in enumerate(tokens):
            following = tokens[k + 1] if k + 1 < len(tokens) else None
            last_column = None
            if following is not None and following.dst_line == token.dst_line:
                if following.dst_col == token.dst_col:
                    # The later entry at the same column wins the range
                    continue
                last_column = following.dst_col - 1

            yield MappingItem(
                source=token.src,
                generated_line=token.dst_line + 1,
                generated_column=token.dst_col,
                last_generated_column=last_column,
            )

    def source_content_for(self, source: str) -> str | None:
        return self._contents.get(source)

    def close(self) -> None:
        self._index = []
        self._contents = {}

    def __enter__(self) -> SourceMapPositionMap:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def _decode(data: dict) -> tuple[SourceMapIndex, dict[str, str | None]]:
    data.setdefault("names", [])
    # Tokens and sourcesContent are keyed by the sourceRoot-joined name
    source_root = data.pop("sourceRoot", None)
    if source_root:
        data["sources"] = [os.path.join(source_root, s) for s in data["sources"]]
    index = sourcemap.loads(json.dumps(data))
    contents = data.get("sourcesContent") or []
    return index, dict(zip(data["sources"], contents))


def _decode_sections(sections: list[dict]) -> tuple[SourceMapIndex, dict[str, str | None]]:
    """Decode an indexed source map into one index of shifted tokens.

    Each section's column offset only applies to its first generated line.
    """
    tokens: list[Token] = []
    contents: dict[str, str | None] = {}
    sources: list[str] = []

    for section in sections:
        offset = section["offset"]
        line_offset, column_offset = offset["line"], offset["column"]
        # Sections referencing a map by url are not supported
        index, section_contents = _decode(section["map"])

        for token in index:
            tokens.append(Token(
                token.dst_line + line_offset,
                token.dst_col + (column_offset if token.dst_line == 0 else 0),
                token.src,
                token.src_line,
                token.src_col,
                token.name,
            ))
        contents.update(section_contents)
        sources.extend(s for s in index.sources if s not in sources)

    tokens.sort(key=lambda t: (t.dst_line, t.dst_col))
    line_index: list[list[int]] = [[] for _ in range(tokens[-1].dst_line + 1 if tokens else 0)]
    lookup: dict[tuple[int, int], Token] = {}
    for token in tokens:
        line_index[token.dst_line].append(token.dst_col)
        lookup[(token.dst_line, token.dst_col)] = token

    return SourceMapIndex({"sections": sections}, tokens, line_index, lookup, sources), contents


def get_file_content(file: File) -> str:
    """Read a path or decode raw bytes as UTF-8 text."""
    if isinstance(file, bytes):
        return file.decode("utf-8", errors="replace")
    try:
        return Path(file).read_bytes().decode("utf-8", errors="replace")
    except OSError as e:
        raise AppError(ErrorCode.CANNOT_OPEN_FILE, {"filename": file}, cause=e) from e


def _decode_inline_comment(content: str) -> str | None:
    match = COMMENT_REGEX.search(content)
    if match is None:
        return None

    payload = match.group(5).strip()
    if payload.endswith("*/"):
        payload = payload[:-2].rstrip()

    if match.group(4) != "base64":
        return unquote(payload)
    try:
        return base64.b64decode(payload).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise AppError(ErrorCode.INVALID_SOURCE_MAP, cause=e) from e


def _find_map_file(content: str, code_path: str) -> Path | None:
    match = MAP_FILE_COMMENT_REGEX.search(content)
    if match is None:
        return None
    url = match.group(1) or match.group(2)
    if not url or url.startswith("data:"):
        return None
    return Path(code_path).parent / unquote(url)


def load_source_map(code: File, map_file: File | None = None) -> tuple[SourceMapPositionMap, str]:
    """Decode the source map of a bundle and return it with the bundle's text.

    An explicit *map_file* wins. Otherwise the inline data-URL comment is
    tried, then a file comment resolved next to *code* (only when *code* is
    a path).
    """
    content = get_file_content(code)

    if map_file is not None:
        logger.debug("using explicit source map for %s", _name(code))
        return SourceMapPositionMap(get_file_content(map_file)), content

    raw = _decode_inline_comment(content)
    if raw is None and not isinstance(code, bytes):
        map_path = _find_map_file(content, code)
        if map_path is not None:
            logger.debug("using referenced source map %s", map_path)
            raw = get_file_content(str(map_path))

    if raw is None:
        raise AppError(ErrorCode.NO_SOURCE_MAP)

    return SourceMapPositionMap(raw), content


def _name(code: File) -> str:
    return "Buffer" if isinstance(code, bytes) else code

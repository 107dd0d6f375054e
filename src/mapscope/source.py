"""Generated file text: line endings and the sourceMappingURL comment."""

from __future__ import annotations

import re

LF = "\n"
CR_LF = "\r\n"

# Inline data-URL comment, e.g. //# sourceMappingURL=data:application/json;base64,eyJ2...
COMMENT_REGEX = re.compile(
    r"^\s*?/[/*][@#]\s+?sourceMappingURL=data:"
    r"(((?:application|text)/json)(?:;charset=([^;,]+?)?)?)?(?:;(base64))?,(.*?)$",
    re.MULTILINE,
)

# File reference comment, e.g. //# sourceMappingURL=bundle.js.map
MAP_FILE_COMMENT_REGEX = re.compile(
    r"(?://[@#][ \t]+sourceMappingURL=([^\s'\"`]+?)[ \t]*$)"
    r"|(?:/\*[@#][ \t]+sourceMappingURL=([^*]+?)[ \t]*(?:\*/){1}[ \t]*$)",
    re.MULTILINE,
)


def detect_eol(content: str) -> str:
    """Return the line ending used by *content*, assuming only one kind is used."""
    return CR_LF if CR_LF in content else LF


def get_first_regex_match(regex: re.Pattern[str], text: str) -> str | None:
    match = regex.search(text)
    return match.group(0) if match else None


def get_source_map_comment(content: str) -> str:
    """Extract the inline or file sourceMappingURL comment, or an empty string."""
    comment = (
        get_first_regex_match(COMMENT_REGEX, content)
        or get_first_regex_match(MAP_FILE_COMMENT_REGEX, content)
        or ""
    )
    return comment.strip()


def encode_columns(text: str) -> bytes:
    """UTF-16 code units of *text*, two bytes each. Source map columns count these."""
    return text.encode("utf-16-le", "surrogatepass")


def column_length(text: str) -> int:
    return len(encode_columns(text)) // 2


def column_slice(encoded: bytes, start: int, end: int) -> str:
    """Text between the inclusive UTF-16 columns *start* and *end* of an encoded line."""
    return encoded[2 * start : 2 * (end + 1)].decode("utf-16-le", "surrogatepass")


def is_eol_at_position(text: str, line: int, column: int) -> bool:
    """Check whether a 1-based *line* / 0-based UTF-16 *column* points at a line ending."""
    eol = detect_eol(text)
    eol_length = len(eol)

    line_offset = 0
    for _ in range(1, line):
        line_offset = text.find(eol, line_offset)
        if line_offset == -1:
            return False
        line_offset += eol_length

    line_end = text.find(eol, line_offset)
    if line_end == -1:
        return False
    return column_length(text[line_offset:line_end]) == column


class GeneratedFile:
    """Generated bundle text with the source map comment split off.

    ``lines`` holds the analyzable content: the sourceMappingURL comment is
    removed and trailing whitespace dropped before splitting on ``eol``.
    Leading text is kept as-is so line and column numbers stay aligned with
    the source map. Columns are UTF-16 code units, as in the source map.
    """

    def __init__(self, content: str) -> None:
        self.content = content
        self.eol = detect_eol(content)
        self.source_map_comment = get_source_map_comment(content)

        analyzable = content
        if self.source_map_comment:
            analyzable = analyzable.replace(self.source_map_comment, "", 1)
        self.lines = analyzable.rstrip().split(self.eol)
        self._encoded: dict[int, bytes] = {}

    def line_at(self, n: int) -> str | None:
        """Return the 1-indexed line, or None if out of range."""
        if 1 <= n <= len(self.lines):
            return self.lines[n - 1]
        return None

    def encoded_line_at(self, n: int) -> bytes:
        """UTF-16 encoding of the 1-indexed line, computed once per line."""
        encoded = self._encoded.get(n)
        if encoded is None:
            encoded = self._encoded[n] = encode_columns(self.lines[n - 1])
        return encoded

    def column_count(self, n: int) -> int:
        """Number of UTF-16 columns on the 1-indexed line."""
        return len(self.encoded_line_at(n)) // 2

    @property
    def eol_count(self) -> int:
        return self.content.count(self.eol)

    @property
    def eol_bytes(self) -> int:
        return self.eol_count * len(self.eol.encode("utf-8"))

"""Attribute the bytes of a JSON document to its key paths.

Paths join object keys with ``.`` and collapse array items to ``[]``, so
``{"a": [{"b": 1}, {"b": 22}]}`` gives ``{"a[].b": 3}``. Only leaf values
are counted; punctuation, keys and whitespace are not.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass

from mapscope.sizes import byte_length

_TOKEN_REGEX = re.compile(
    r"""
    (?P<space>\s+)
    | (?P<punct>[{}\[\],:])
    | (?P<string>"(?:\\["bfnrt/\\]|\\u[a-fA-F0-9]{4}|[^"\\])*")
    | (?P<number>-?(?:0|[1-9][0-9]*)(?:\.[0-9]+)?(?:[eE][-+]?[0-9]+)?)
    | (?P<literal>true|false|null)
    """,
    re.VERBOSE,
)


class JsonSyntaxError(ValueError):
    def __init__(self, message: str, offset: int) -> None:
        self.offset = offset
        super().__init__(f"{message} at offset {offset}")


@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    offset: int


def tokenize(text: str) -> list[Token]:
    tokens: list[Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_REGEX.match(text, pos)
        if match is None:
            raise JsonSyntaxError(f"Unexpected character {text[pos]!r}", pos)
        kind = match.lastgroup or ""
        if kind != "space":
            value = match.group()
            tokens.append(Token(value if kind == "punct" else kind, value, pos))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, text: str) -> None:
        self.tokens = tokenize(text)
        self.pos = 0
        self.end = len(text)

    def next(self) -> Token:
        if self.pos >= len(self.tokens):
            raise JsonSyntaxError("Unexpected end of input", self.end)
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def expect(self, kind: str) -> Token:
        token = self.next()
        if token.kind != kind:
            raise JsonSyntaxError(f"Expected {kind!r}, got {token.value!r}", token.offset)
        return token

    def parse(self, sizes: dict[str, int]) -> None:
        """Parse one value, adding leaf sizes to *sizes*.

        Open containers are kept on an explicit stack, so nesting depth is
        not bounded by the recursion limit.
        """
        # (closing token, path of the container)
        stack: list[tuple[str, str]] = []
        path = ""

        while True:
            token = self.next()

            if token.kind == "{":
                if not self._consume("}"):
                    stack.append(("}", path))
                    path = self._member_path(path)
                    continue
            elif token.kind == "[":
                if not self._consume("]"):
                    stack.append(("]", path))
                    path = f"{path}[]"
                    continue
            elif token.kind in ("string", "number", "literal"):
                sizes[path] = sizes.get(path, 0) + byte_length(token.value)
            else:
                raise JsonSyntaxError(f"Unexpected token {token.value!r}", token.offset)

            # Value complete: close finished containers, then step to the next item
            while stack:
                closing, parent = stack[-1]
                if self._consume(closing):
                    stack.pop()
                    continue
                self.expect(",")
                path = self._member_path(parent) if closing == "}" else f"{parent}[]"
                break
            else:
                return

    def _member_path(self, parent: str) -> str:
        key = json.loads(self.expect("string").value)
        self.expect(":")
        return f"{parent}.{key}" if parent else key

    def _consume(self, kind: str) -> bool:
        if self.pos < len(self.tokens) and self.tokens[self.pos].kind == kind:
            self.pos += 1
            return True
        return False


def explore_json(text: str) -> dict[str, int]:
    """Return the leaf value bytes of *text* keyed by path. Raises JsonSyntaxError."""
    parser = _Parser(text)
    sizes: dict[str, int] = {}
    parser.parse(sizes)

    if parser.pos < len(parser.tokens):
        token = parser.tokens[parser.pos]
        raise JsonSyntaxError(f"Unexpected trailing token {token.value!r}", token.offset)

    return sizes

"""Error codes, per-bundle error records and their terminal rendering."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from mapscope.sizes import format_percent

if TYPE_CHECKING:
    from mapscope.types import ExploreResult


class ErrorCode(Enum):
    UNKNOWN = "Unknown"
    NO_BUNDLES = "NoBundles"
    NO_SOURCE_MAP = "NoSourceMap"
    INVALID_SOURCE_MAP = "InvalidSourceMap"
    ONE_SOURCE_SOURCE_MAP = "OneSourceSourceMap"
    UNMAPPED_BYTES = "UnmappedBytes"
    INVALID_MAPPING_LINE = "InvalidMappingLine"
    INVALID_MAPPING_COLUMN = "InvalidMappingColumn"
    CANNOT_OPEN_FILE = "CannotOpenFile"
    CANNOT_SAVE_FILE = "CannotSaveFile"
    CANNOT_OPEN_COVERAGE_FILE = "CannotOpenCoverageFile"
    NO_COVERAGE_MATCHES = "NoCoverageMatches"


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


SOURCE_MAP_INFO_URL = (
    "https://github.com/danvk/source-map-explorer/blob/master/README.md"
    "#generating-source-maps"
)


def get_error_message(code: ErrorCode, context: dict[str, Any] | None = None) -> str:
    """Build the user-facing message for an error code."""
    ctx = context or {}

    if code == ErrorCode.NO_BUNDLES:
        return "No file(s) provided"

    if code == ErrorCode.NO_SOURCE_MAP:
        return f"Unable to find a source map.\nSee {SOURCE_MAP_INFO_URL}"

    if code == ErrorCode.INVALID_SOURCE_MAP:
        return "Unable to decode the source map."

    if code == ErrorCode.ONE_SOURCE_SOURCE_MAP:
        return "\n".join([
            f"Your source map only contains one source ({ctx.get('filename')})",
            "This can happen if you use browserify+uglifyjs, for example, "
            "and don't set the --in-source-map flag to uglify.",
            f"See {SOURCE_MAP_INFO_URL}",
        ])

    if code == ErrorCode.UNMAPPED_BYTES:
        unmapped = ctx["unmapped_bytes"]
        total = ctx["total_bytes"]
        pct = format_percent(unmapped, total, 2)
        return f"Unable to map {unmapped}/{total} bytes ({pct}%)"

    if code == ErrorCode.INVALID_MAPPING_LINE:
        return (
            f"Your source map refers to generated line {ctx['generated_line']}, "
            f"but the source only contains {ctx['max_line']} line(s).\n"
            "Check that you are using the correct source map."
        )

    if code == ErrorCode.INVALID_MAPPING_COLUMN:
        return (
            f"Your source map refers to generated column {ctx['generated_column']} "
            f"on line {ctx['generated_line']}, but the source only contains "
            f"{ctx['max_column']} column(s) on that line.\n"
            "Check that you are using the correct source map."
        )

    if code == ErrorCode.CANNOT_OPEN_FILE:
        return "Unable to open file"

    if code == ErrorCode.CANNOT_SAVE_FILE:
        return "Unable to save output to file"

    if code == ErrorCode.CANNOT_OPEN_COVERAGE_FILE:
        return "Error opening coverage file"

    if code == ErrorCode.NO_COVERAGE_MATCHES:
        return "No matched bundles found for coverages"

    return "Unknown error"


class AppError(Exception):
    """Failure carrying an ErrorCode and the values used in its message.

    *context* keeps the structured values (e.g. ``generated_line`` and
    ``max_line`` for InvalidMappingLine) so callers can inspect them
    without parsing the message.
    """

    def __init__(
        self,
        code: ErrorCode,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.code = code
        self.context = dict(context or {})
        self.cause = cause
        message = get_error_message(code, self.context)
        if cause is not None:
            message = f"{message} {cause}"
        self.message = message
        super().__init__(message)


@dataclass(frozen=True)
class ExploreError:
    """A per-bundle error or warning attached to an explore result."""

    bundle_name: str
    code: ErrorCode
    message: str
    is_warning: bool = False

    @property
    def severity(self) -> Severity:
        return Severity.WARNING if self.is_warning else Severity.ERROR

    def to_dict(self) -> dict[str, Any]:
        return {
            "bundleName": self.bundle_name,
            "code": self.code.value,
            "message": self.message,
            "isWarning": self.is_warning,
        }


class ExploreFailed(Exception):
    """Raised by ``explore`` when none of the bundles could be analyzed."""

    def __init__(self, result: ExploreResult) -> None:
        self.result = result
        messages = [e.message for e in result.errors if not e.is_warning]
        super().__init__(f"{len(messages)} error(s): {'; '.join(messages)}")


# ANSI color codes
_COLORS = {
    Severity.ERROR: "\033[1;31m",    # bold red
    Severity.WARNING: "\033[1;33m",  # bold yellow
}
_BOLD = "\033[1m"
_BLUE = "\033[1;34m"
_RESET = "\033[0m"


class DiagnosticRenderer:
    """Renders explore errors as ``error[Code]: message`` blocks."""

    def __init__(self, *, color: bool = True) -> None:
        self.color = color

    def _c(self, code: str) -> str:
        return code if self.color else ""

    def render(self, error: ExploreError) -> str:
        sev = error.severity
        color = _COLORS[sev]
        first, *rest = error.message.split("\n")

        lines = [
            f"{self._c(color)}{sev.value}[{error.code.value}]{self._c(_RESET)}"
            f"{self._c(_BOLD)}: {first}{self._c(_RESET)}",
            f"  {self._c(_BLUE)}-->{self._c(_RESET)} {error.bundle_name}",
        ]
        for note in rest:
            lines.append(f"  {self._c(_BLUE)}={self._c(_RESET)} note: {note}")

        return "\n".join(lines)

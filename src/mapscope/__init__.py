"""mapscope: attribute bundle bytes back to original sources."""

from __future__ import annotations

__version__ = "0.1.0"

from mapscope.api import explore, get_bundles
from mapscope.config import ExploreOptions, OutputOptions
from mapscope.errors import AppError, ErrorCode, ExploreError, ExploreFailed
from mapscope.attribution import explore_bundle
from mapscope.types import Bundle, ExploreBundleResult, ExploreResult, FileData

__all__ = [
    "AppError",
    "Bundle",
    "ErrorCode",
    "ExploreBundleResult",
    "ExploreError",
    "ExploreFailed",
    "ExploreOptions",
    "ExploreResult",
    "FileData",
    "OutputOptions",
    "explore",
    "explore_bundle",
    "get_bundles",
]

"""Formatting and saving explore output."""

from __future__ import annotations

import json
import os
from pathlib import Path

from mapscope.config import ExploreOptions
from mapscope.errors import AppError, ErrorCode
from mapscope.tree import build_tree, make_merged_bundle
from mapscope.types import ExploreBundleResult, ExploreResult


def format_output(results: list[ExploreBundleResult], options: ExploreOptions) -> str | None:
    """Render results in the requested format, or None when no output was asked for."""
    if options.output is None:
        return None

    fmt = options.output.format

    if fmt == "json":
        return json.dumps({"results": [r.to_dict() for r in results]}, indent=2)

    if fmt == "tsv":
        return output_as_tsv(results)

    if fmt == "tree":
        if len(results) > 1:
            results = [make_merged_bundle(results), *results]
        trees = [
            {"bundleName": r.bundle_name, "totalBytes": r.total_bytes,
             "tree": build_tree(r.files).to_dict()}
            for r in results
        ]
        return json.dumps({"trees": trees}, indent=2, ensure_ascii=False)

    raise ValueError(f"Unknown output format: {fmt}")


def output_as_tsv(results: list[ExploreBundleResult]) -> str:
    lines = ["Source\tSize"]

    for index, bundle in enumerate(results):
        if index > 0:
            # Separate bundles by empty line
            lines.append("")

        for source, data in sorted(bundle.files.items(), key=lambda item: -item[1].size):
            lines.append(f"{source}\t{data.size}")

    return os.linesep.join(lines)


def save_output_to_file(result: ExploreResult, options: ExploreOptions) -> None:
    if options.output is None or not options.output.filename or result.output is None:
        return

    path = Path(options.output.filename)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(result.output, encoding="utf-8")
    except OSError as e:
        raise AppError(ErrorCode.CANNOT_SAVE_FILE, cause=e) from e

"""Batch API: analyze several bundles and collect results and errors."""

from __future__ import annotations

import glob
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed

from mapscope.config import ExploreOptions
from mapscope.coverage import add_coverage_ranges
from mapscope.errors import AppError, ErrorCode, ExploreError, ExploreFailed
from mapscope.attribution import explore_bundle, get_bundle_name
from mapscope.output import format_output, save_output_to_file
from mapscope.types import (
    SPECIAL_FILENAMES,
    UNMAPPED_KEY,
    Bundle,
    ExploreBundleResult,
    ExploreResult,
)

logger = logging.getLogger(__name__)

BundlesAndFileTokens = list[Bundle | str] | Bundle | str


def explore(
    bundles_and_file_tokens: BundlesAndFileTokens,
    options: ExploreOptions | None = None,
) -> ExploreResult:
    """Analyze bundles and/or file tokens (paths or glob patterns).

    Per-bundle failures are collected in ``ExploreResult.errors``.
    Raises AppError for batch-level failures and ExploreFailed when no
    bundle could be analyzed.
    """
    options = options or ExploreOptions()

    if not isinstance(bundles_and_file_tokens, list):
        bundles_and_file_tokens = [bundles_and_file_tokens]

    if not bundles_and_file_tokens:
        raise AppError(ErrorCode.NO_BUNDLES)

    bundles = [item for item in bundles_and_file_tokens if isinstance(item, Bundle)]
    file_tokens = [item for item in bundles_and_file_tokens if isinstance(item, str)]
    bundles.extend(get_bundles(file_tokens))

    if not bundles:
        raise AppError(ErrorCode.NO_BUNDLES)

    bundles = add_coverage_ranges(bundles, options.coverage)

    results, errors = _explore_all(bundles, options)
    results.sort(key=lambda r: r.bundle_name)
    errors.sort(key=lambda e: e.bundle_name)
    errors.extend(get_post_explore_errors(results))

    result = ExploreResult(bundles=results, errors=errors)
    logger.info("explored %d of %d bundle(s)", len(results), len(bundles))

    if not results:
        raise ExploreFailed(result)

    result.output = format_output(results, options)
    save_output_to_file(result, options)

    return result


def _explore_one(bundle: Bundle, options: ExploreOptions) -> ExploreBundleResult | ExploreError:
    try:
        return explore_bundle(bundle, options)
    except AppError as e:
        logger.debug("failed to explore %s: %s", get_bundle_name(bundle), e.code.value)
        return ExploreError(get_bundle_name(bundle), e.code, e.message)


def _explore_all(
    bundles: list[Bundle], options: ExploreOptions
) -> tuple[list[ExploreBundleResult], list[ExploreError]]:
    outcomes: list[ExploreBundleResult | ExploreError] = []

    if options.jobs > 1 and len(bundles) > 1:
        with ThreadPoolExecutor(max_workers=options.jobs) as pool:
            futures = [pool.submit(_explore_one, bundle, options) for bundle in bundles]
            for future in as_completed(futures):
                outcomes.append(future.result())
    else:
        outcomes = [_explore_one(bundle, options) for bundle in bundles]

    results = [o for o in outcomes if isinstance(o, ExploreBundleResult)]
    errors = [o for o in outcomes if isinstance(o, ExploreError)]
    return results, errors


def get_post_explore_errors(results: list[ExploreBundleResult]) -> list[ExploreError]:
    """Warnings about suspicious but successfully analyzed bundles."""
    errors: list[ExploreError] = []

    for result in results:
        sources = [name for name in result.files if name not in SPECIAL_FILENAMES]
        # Only reported when a single bundle was explored
        if len(sources) == 1 and len(results) == 1:
            errors.append(ExploreError(
                result.bundle_name,
                ErrorCode.ONE_SOURCE_SOURCE_MAP,
                AppError(ErrorCode.ONE_SOURCE_SOURCE_MAP, {"filename": sources[0]}).message,
                is_warning=True,
            ))

        unmapped = result.files.get(UNMAPPED_KEY)
        if unmapped is not None and unmapped.size > 0:
            errors.append(ExploreError(
                result.bundle_name,
                ErrorCode.UNMAPPED_BYTES,
                AppError(ErrorCode.UNMAPPED_BYTES, {
                    "unmapped_bytes": unmapped.size,
                    "total_bytes": result.total_bytes,
                }).message,
                is_warning=True,
            ))

    return errors


def _expand_glob(pattern: str) -> list[str]:
    filenames = glob.glob(pattern, recursive=True)
    # Pick up the source maps next to matched scripts
    if pattern.endswith(".js"):
        filenames.extend(glob.glob(f"{pattern}.map", recursive=True))
    return sorted(filenames)


def get_bundles(file_tokens: list[str]) -> list[Bundle]:
    """Expand file tokens into bundles, pairing ``x.js`` with ``x.js.map``."""
    filenames: list[str] = []
    for token in file_tokens:
        if glob.has_magic(token):
            filenames.extend(_expand_glob(token))
        else:
            filenames.append(token)

    map_filenames = {name for name in filenames if name.endswith(".map")}
    code_filenames = [name for name in filenames if not name.endswith(".map")]

    return [
        Bundle(code=code, map=f"{code}.map" if f"{code}.map" in map_filenames else None)
        for code in code_filenames
    ]

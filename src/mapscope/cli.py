"""mapscope CLI."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from mapscope import __version__
from mapscope.api import explore as explore_bundles
from mapscope.config import OutputOptions, load_config_or_default
from mapscope.errors import AppError, DiagnosticRenderer, ExploreError, ExploreFailed
from mapscope.json_sizes import JsonSyntaxError, explore_json


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _render_errors(errors: list[ExploreError], *, color: bool) -> None:
    renderer = DiagnosticRenderer(color=color)
    for error in errors:
        click.echo(renderer.render(error), err=True)


@click.group()
@click.version_option(__version__, prog_name="mapscope")
def main() -> None:
    """Analyze and debug space usage through source maps."""


@main.command()
@click.argument("files", nargs=-1, required=True)
@click.option("--json", "fmt", flag_value="json", help="Output JSON.")
@click.option("--tsv", "fmt", flag_value="tsv", default=True, help="Output tab-separated values.")
@click.option("--tree", "fmt", flag_value="tree", help="Output the size trees as JSON.")
@click.option("-m", "--only-mapped", is_flag=True, help="Exclude unmapped bytes.")
@click.option("--exclude-source-map", is_flag=True,
              help="Exclude the sourceMappingURL comment from the results.")
@click.option("--no-root", is_flag=True, help="Keep the path prefix shared by all sources.")
@click.option("--no-border-checks", is_flag=True,
              help="Skip checking that mappings stay inside the generated lines.")
@click.option("--gzip", is_flag=True, help="Measure gzip sizes. Implies --only-mapped.")
@click.option("--sort", is_flag=True, help="Sort sources by name.")
@click.option("--coverage", type=click.Path(), default=None,
              help="Chrome DevTools coverage JSON file.")
@click.option("--replace", multiple=True, help="Source name pattern to replace.")
@click.option("--with", "with_", multiple=True, help="Replacement for the matching --replace.")
@click.option("--output", "output_file", type=click.Path(), default=None,
              help="Save the output to a file instead of printing it.")
@click.option("--jobs", type=int, default=None, help="Number of bundles analyzed in parallel.")
@click.option("--no-color", is_flag=True, help="Disable colored diagnostics.")
@click.option("-v", "--verbose", is_flag=True, help="Log progress to stderr.")
def explore(
    files: tuple[str, ...],
    fmt: str,
    only_mapped: bool,
    exclude_source_map: bool,
    no_root: bool,
    no_border_checks: bool,
    gzip: bool,
    sort: bool,
    coverage: str | None,
    replace: tuple[str, ...],
    with_: tuple[str, ...],
    output_file: str | None,
    jobs: int | None,
    no_color: bool,
    verbose: bool,
) -> None:
    """Attribute the bytes of FILES to their original sources."""
    _setup_logging(verbose)
    color = sys.stderr.isatty() and not no_color

    if len(replace) != len(with_):
        raise click.UsageError("--replace and --with must be given the same number of times")

    options = load_config_or_default(Path.cwd()).explore
    options.only_mapped = options.only_mapped or only_mapped
    options.exclude_source_map_comment = options.exclude_source_map_comment or exclude_source_map
    options.no_root = options.no_root or no_root
    options.no_border_checks = options.no_border_checks or no_border_checks
    options.gzip = options.gzip or gzip
    options.sort = options.sort or sort
    options.coverage = coverage or options.coverage
    options.replace_map.update(zip(replace, with_))
    if jobs is not None:
        options.jobs = jobs
    options.output = OutputOptions(format=fmt, filename=output_file)

    try:
        result = explore_bundles(list(files), options)
    except ExploreFailed as e:
        _render_errors(e.result.errors, color=color)
        raise SystemExit(1)
    except AppError as e:
        click.echo(f"error: {e.message}", err=True)
        raise SystemExit(1)

    _render_errors(result.errors, color=color)

    if output_file:
        click.echo(f"output saved to {output_file}", err=True)
    elif result.output is not None:
        click.echo(result.output)


@main.command(name="json")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--tsv", is_flag=True, help="Output tab-separated values.")
def json_command(file: str, tsv: bool) -> None:
    """Attribute the bytes of a JSON FILE to its key paths."""
    try:
        sizes = explore_json(Path(file).read_text(encoding="utf-8"))
    except JsonSyntaxError as e:
        click.echo(f"error: {file}: {e}", err=True)
        raise SystemExit(1)

    ordered = sorted(sizes.items(), key=lambda item: -item[1])
    if tsv:
        click.echo("Path\tSize")
        for path, size in ordered:
            click.echo(f"{path}\t{size}")
    else:
        click.echo(json.dumps(dict(ordered), indent=2))

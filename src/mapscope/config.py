"""Explore options and mapscope.toml loading."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_FILENAME = "mapscope.toml"

OUTPUT_FORMATS = ("json", "tsv", "tree")


@dataclass
class OutputOptions:
    format: str = "json"
    filename: str | None = None


@dataclass
class ExploreOptions:
    """Flags consumed by the attribution engine and the batch API."""

    only_mapped: bool = False
    exclude_source_map_comment: bool = False
    no_root: bool = False
    no_border_checks: bool = False
    # Ordered pattern -> replacement rules applied to source names
    replace_map: dict[str, str] = field(default_factory=dict)
    gzip: bool = False
    sort: bool = False
    coverage: str | None = None
    output: OutputOptions | None = None
    jobs: int = 1


@dataclass
class MapscopeConfig:
    explore: ExploreOptions = field(default_factory=ExploreOptions)


def find_config(start_path: Path | None = None) -> Path | None:
    """Return the nearest mapscope.toml at or above *start_path*, if any."""
    start = (start_path or Path.cwd()).resolve()
    directory = start.parent if start.is_file() else start
    for candidate_dir in (directory, *directory.parents):
        candidate = candidate_dir / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def load_config(path: Path) -> MapscopeConfig:
    """Parse a mapscope.toml file into a MapscopeConfig."""
    with open(path, "rb") as f:
        data = tomllib.load(f)

    config = MapscopeConfig()

    if "explore" in data:
        exp = data["explore"]
        config.explore = ExploreOptions(
            only_mapped=exp.get("only_mapped", False),
            exclude_source_map_comment=exp.get("exclude_source_map_comment", False),
            no_root=exp.get("no_root", False),
            no_border_checks=exp.get("no_border_checks", False),
            gzip=exp.get("gzip", False),
            sort=exp.get("sort", False),
            coverage=exp.get("coverage"),
            jobs=exp.get("jobs", 1),
        )

    if "replace" in data:
        # tomllib keeps table order, which is the order rules are applied in
        config.explore.replace_map = {str(k): str(v) for k, v in data["replace"].items()}

    return config


def load_config_or_default(start_path: Path | None = None) -> MapscopeConfig:
    """Load the nearest mapscope.toml, or defaults when there is none."""
    path = find_config(start_path)
    return load_config(path) if path is not None else MapscopeConfig()

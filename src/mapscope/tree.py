"""Presentation tree built from a FileDataMap."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from mapscope.coverage import get_color_by_percent
from mapscope.attribution import get_common_path_prefix
from mapscope.sizes import format_bytes, format_percent
from mapscope.types import ExploreBundleResult, FileData, FileDataMap

COMBINED_BUNDLE_NAME = "[combined]"
WEBPACK_FILENAME_PREFIX = "webpack:///"


@dataclass
class TreeNode:
    name: str
    area: int = 0
    covered_size: int | None = None
    background_color: str | None = None
    children: list[TreeNode] | None = None
    title: str = ""

    def child(self, name: str) -> TreeNode:
        """Return the child called *name*, creating it when missing."""
        if self.children is None:
            self.children = []
        for node in self.children:
            if node.name == name:
                return node
        node = TreeNode(name)
        self.children.append(node)
        return node

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "title": self.title, "area": self.area}
        if self.covered_size is not None:
            data["coveredSize"] = self.covered_size
            data["backgroundColor"] = self.background_color
        if self.children is not None:
            data["children"] = [c.to_dict() for c in self.children]
        return data


def split_filename(filename: str) -> list[str]:
    """Split a source name on ``/``, keeping ``webpack:///`` as one part."""
    index = filename.find(WEBPACK_FILENAME_PREFIX)
    if index == -1:
        return filename.split("/")

    parts = [
        *filename[:index].split("/"),
        WEBPACK_FILENAME_PREFIX,
        *filename[index + len(WEBPACK_FILENAME_PREFIX):].split("/"),
    ]
    return [p for p in parts if p]


def _node_path(parts: list[str], depth: int) -> str:
    return "/".join(parts[: depth + 1])


def get_tree_nodes_map(files: FileDataMap) -> dict[str, list[str]]:
    """Map every source to its tree path, collapsing unshared path parts.

    At each depth, a part whose path prefix no other source shares is joined
    with the rest of its parts into a single label, so ``a/b/c.js`` alone
    under ``a`` becomes the one node ``a/b/c.js``.
    """
    parts_by_source = {source: split_filename(source) for source in files}
    max_depth = max((len(p) for p in parts_by_source.values()), default=0)

    for depth in range(max_depth):
        shared = Counter(
            _node_path(parts, depth)
            for parts in parts_by_source.values()
            if depth < len(parts) and parts[depth]
        )
        for source, parts in parts_by_source.items():
            if depth < len(parts) and parts[depth] and shared[_node_path(parts, depth)] == 1:
                parts_by_source[source] = [*parts[:depth], "/".join(parts[depth:])]

    return parts_by_source


def set_node_data(node: TreeNode, data: FileData) -> None:
    size = node.area + data.size

    if data.covered_size is not None:
        covered = (node.covered_size or 0) + data.covered_size
        node.covered_size = covered
        node.background_color = get_color_by_percent(covered / size if size else 0)

    node.area = size


def add_node(parts: list[str], data: FileData, root: TreeNode) -> None:
    # Zero-size entries (e.g. an empty [unmapped]) get no node
    if data.size == 0:
        return

    node = root
    set_node_data(node, data)
    for part in parts:
        node = node.child(part)
        set_node_data(node, data)


def add_size_to_title(node: TreeNode, total: int) -> None:
    """Set ``name • size • percent`` titles on *node* and its descendants."""
    title_parts = [node.name, format_bytes(node.area), f"{format_percent(node.area, total, 1)}%"]

    # Coverage is shown on leaves only
    if node.covered_size is not None and node.children is None:
        title_parts.append(f"Coverage: {format_percent(node.covered_size, node.area, 1)}%")

    node.title = " • ".join(title_parts)

    for child in node.children or []:
        add_size_to_title(child, total)


def build_tree(files: FileDataMap) -> TreeNode:
    """Build the titled size tree of one bundle under a ``/`` root."""
    nodes_map = get_tree_nodes_map({k: v for k, v in files.items() if v.size})
    root = TreeNode("/")

    for source, parts in nodes_map.items():
        add_node(parts, files[source], root)

    add_size_to_title(root, root.area)
    return root


def make_merged_bundle(results: list[ExploreBundleResult]) -> ExploreBundleResult:
    """Combine several bundles into one, each under its own top-level node."""
    prefix = get_common_path_prefix([r.bundle_name for r in results])
    files: FileDataMap = {}

    for result in results:
        bundle_prefix = result.bundle_name[len(prefix):]
        for name, data in result.files.items():
            files[f"{bundle_prefix}/{name}"] = data

    return ExploreBundleResult(
        bundle_name=COMBINED_BUNDLE_NAME,
        files=files,
        mapped_bytes=sum(r.mapped_bytes for r in results),
        unmapped_bytes=sum(r.unmapped_bytes or 0 for r in results),
        eol_bytes=sum(r.eol_bytes for r in results),
        source_map_comment_bytes=sum(r.source_map_comment_bytes for r in results),
        total_bytes=sum(r.total_bytes for r in results),
    )

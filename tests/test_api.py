"""Tests for the batch explore API and output formatting."""

from __future__ import annotations

import json

import pytest

from mapscope.api import explore, get_bundles
from mapscope.config import ExploreOptions, OutputOptions
from mapscope.errors import AppError, ErrorCode, ExploreFailed
from mapscope.output import format_output
from mapscope.types import Bundle
from tests.helpers import inline_comment, make_source_map, two_source_bundle


@pytest.fixture
def bundle_dir(tmp_path):
    (tmp_path / "one.js").write_text(two_source_bundle())
    (tmp_path / "two.js").write_text(two_source_bundle())
    return tmp_path


def single_source_bundle() -> str:
    source_map = make_source_map(["src/only.js"], [[(0, 0, 0, 0)]])
    return f"var only = 1;\n{inline_comment(source_map)}"


class TestGetBundles:
    def test_plain_files(self):
        bundles = get_bundles(["a.js", "b.js"])
        assert bundles == [Bundle("a.js"), Bundle("b.js")]

    def test_map_paired_with_code(self):
        bundles = get_bundles(["a.js", "a.js.map", "b.js"])
        assert bundles == [Bundle("a.js", "a.js.map"), Bundle("b.js")]

    def test_glob_picks_up_maps(self, tmp_path):
        (tmp_path / "a.js").write_text("")
        (tmp_path / "a.js.map").write_text("")
        (tmp_path / "b.js").write_text("")

        bundles = get_bundles([str(tmp_path / "*.js")])

        assert bundles == [
            Bundle(str(tmp_path / "a.js"), str(tmp_path / "a.js.map")),
            Bundle(str(tmp_path / "b.js")),
        ]


class TestExplore:
    def test_no_bundles(self):
        with pytest.raises(AppError) as exc_info:
            explore([])
        assert exc_info.value.code == ErrorCode.NO_BUNDLES

    def test_glob_without_matches(self, tmp_path):
        with pytest.raises(AppError) as exc_info:
            explore(str(tmp_path / "*.js"))
        assert exc_info.value.code == ErrorCode.NO_BUNDLES

    def test_single_bundle(self, bundle_dir):
        result = explore(str(bundle_dir / "one.js"))

        assert len(result.bundles) == 1
        assert result.errors == []
        assert result.output is None
        assert result.bundles[0].files["a.js"].size == 10

    def test_results_sorted_by_bundle_name(self, bundle_dir):
        result = explore([str(bundle_dir / "two.js"), str(bundle_dir / "one.js")])
        assert [r.bundle_name for r in result.bundles] == [
            str(bundle_dir / "one.js"),
            str(bundle_dir / "two.js"),
        ]

    def test_parallel_jobs(self, bundle_dir):
        options = ExploreOptions(jobs=4)
        result = explore(str(bundle_dir / "*.js"), options)
        assert len(result.bundles) == 2
        assert result.bundles[0].bundle_name < result.bundles[1].bundle_name

    def test_bundle_objects(self):
        result = explore(Bundle(two_source_bundle().encode()))
        assert result.bundles[0].bundle_name == "Buffer"

    def test_partial_failure_is_reported(self, bundle_dir):
        (bundle_dir / "plain.js").write_text("var a = 1;")

        result = explore([str(bundle_dir / "one.js"), str(bundle_dir / "plain.js")])

        assert len(result.bundles) == 1
        [error] = result.errors
        assert error.code == ErrorCode.NO_SOURCE_MAP
        assert error.bundle_name == str(bundle_dir / "plain.js")
        assert not error.is_warning

    def test_all_failed(self, tmp_path):
        (tmp_path / "plain.js").write_text("var a = 1;")

        with pytest.raises(ExploreFailed) as exc_info:
            explore(str(tmp_path / "plain.js"))

        assert exc_info.value.result.bundles == []
        assert exc_info.value.result.errors[0].code == ErrorCode.NO_SOURCE_MAP

    def test_one_source_warning(self, tmp_path):
        (tmp_path / "single.js").write_text(single_source_bundle())

        result = explore(str(tmp_path / "single.js"))

        [warning] = result.errors
        assert warning.code == ErrorCode.ONE_SOURCE_SOURCE_MAP
        assert warning.is_warning
        assert "src/only.js" in warning.message

    def test_unmapped_bytes_warning(self, tmp_path):
        source_map = make_source_map(["src/a.js", "src/b.js"], [[(4, 0, 0, 0)], [(0, 1, 0, 0)]])
        content = f"var a = 1;\nvar b = 2;\n{inline_comment(source_map)}"
        (tmp_path / "bundle.js").write_text(content)

        result = explore(str(tmp_path / "bundle.js"))

        [warning] = result.errors
        assert warning.code == ErrorCode.UNMAPPED_BYTES
        assert warning.message.startswith("Unable to map 4/")

    def test_json_output_saved(self, bundle_dir, tmp_path):
        out = tmp_path / "reports" / "sizes.json"
        options = ExploreOptions(output=OutputOptions("json", str(out)))

        result = explore(str(bundle_dir / "one.js"), options)

        saved = json.loads(out.read_text())
        assert saved == json.loads(result.output)
        assert saved["results"][0]["files"]["a.js"] == {"size": 10}

    def test_cannot_save_output(self, bundle_dir):
        blocker = bundle_dir / "blocker"
        blocker.write_text("")
        options = ExploreOptions(output=OutputOptions("json", str(blocker / "out.json")))

        with pytest.raises(AppError) as exc_info:
            explore(str(bundle_dir / "one.js"), options)
        assert exc_info.value.code == ErrorCode.CANNOT_SAVE_FILE

    def test_coverage(self, bundle_dir, tmp_path):
        coverage = tmp_path / "coverage.json"
        coverage.write_text(json.dumps([{
            "url": "http://localhost/one.js",
            "ranges": [{"start": 0, "end": 5}],
            "text": "var a = 1;\nvar b = 2;\n",
        }]))

        result = explore(str(bundle_dir / "one.js"), ExploreOptions(coverage=str(coverage)))

        files = result.bundles[0].files
        assert files["a.js"].covered_size == 5
        assert files["b.js"].covered_size == 0


class TestFormatOutput:
    def test_no_output_requested(self, bundle_dir):
        results = explore(str(bundle_dir / "one.js")).bundles
        assert format_output(results, ExploreOptions()) is None

    def test_tsv(self, bundle_dir):
        results = explore(str(bundle_dir / "*.js")).bundles
        lines = format_output(results, ExploreOptions(output=OutputOptions("tsv"))).splitlines()

        assert lines[0] == "Source\tSize"
        assert "" in lines
        first_bundle = lines[1:lines.index("")]
        sizes = [int(line.split("\t")[1]) for line in first_bundle]
        assert sizes == sorted(sizes, reverse=True)

    def test_tree_has_combined_bundle_first(self, bundle_dir):
        results = explore(str(bundle_dir / "*.js")).bundles
        data = json.loads(format_output(results, ExploreOptions(output=OutputOptions("tree"))))

        names = [t["bundleName"] for t in data["trees"]]
        assert names == ["[combined]", str(bundle_dir / "one.js"), str(bundle_dir / "two.js")]
        assert data["trees"][0]["tree"]["name"] == "/"

    def test_unknown_format(self, bundle_dir):
        results = explore(str(bundle_dir / "one.js")).bundles
        with pytest.raises(ValueError):
            format_output(results, ExploreOptions(output=OutputOptions("html")))

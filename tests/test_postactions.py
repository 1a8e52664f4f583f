"""Tests for post-action resolution, execution and the merge algorithms."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from template_wizard.errors import PostActionError
from template_wizard.models import (
    CreationStatus,
    GenerationUnit,
    InstantiationResult,
    PostActionSpec,
    TemplateDescriptor,
    TemplateType,
)
from template_wizard.postactions import (
    FormatJsonPostAction,
    MakeExecutablePostAction,
    MergeGlobalPostAction,
    MergePostAction,
    PostActionResolver,
    failed_postaction_path,
    merge_json,
    merge_lines,
)

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _unit(name: str = "Main", post_actions=()) -> GenerationUnit:
    return GenerationUnit(
        name=name,
        template=TemplateDescriptor(
            identity="page.blank",
            name="Blank",
            template_type=TemplateType.PAGE,
            post_actions=list(post_actions),
        ),
    )


def _result(output_path: Path, *outputs: str) -> InstantiationResult:
    return InstantiationResult(
        status=CreationStatus.SUCCESS,
        output_path=str(output_path),
        primary_outputs=list(outputs),
    )


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# merge_lines
# ---------------------------------------------------------------------------


class TestMergeLines:

    def test_inserts_before_next_anchor(self):
        target = ["pages:\n", "end\n"]
        source = ["pages:\n", "  - Main\n", "end\n"]

        assert merge_lines(target, source) == ["pages:\n", "  - Main\n", "end\n"]

    def test_successive_merges_keep_order(self):
        merged = merge_lines(["pages:\n", "end\n"], ["pages:\n", "  - Main\n", "end\n"])
        merged = merge_lines(merged, ["pages:\n", "  - Settings\n", "end\n"])

        assert merged == ["pages:\n", "  - Main\n", "  - Settings\n", "end\n"]

    def test_merging_twice_is_a_no_op(self):
        source = ["pages:\n", "  - Main\n", "end\n"]
        once = merge_lines(["pages:\n", "end\n"], source)

        assert merge_lines(once, source) == once

    def test_lines_after_last_anchor_follow_it(self):
        assert merge_lines(["a\n", "b\n"], ["a\n", "x\n"]) == ["a\n", "x\n", "b\n"]

    def test_without_anchor_appends(self):
        assert merge_lines(["a\n"], ["x\n", "y"]) == ["a\n", "x\n", "y\n"]

    def test_terminates_last_target_line(self):
        assert merge_lines(["a\n", "end"], ["new\n"]) == ["a\n", "end\n", "new\n"]

    def test_ignores_blank_source_lines(self):
        assert merge_lines(["a\n"], ["\n", "a\n", "   \n"]) == ["a\n"]

    def test_anchor_search_moves_forward(self):
        # The second "item" anchors on the later occurrence, not the first.
        target = ["item\n", "sep\n", "item\n"]
        source = ["sep\n", "new\n", "item\n"]

        assert merge_lines(target, source) == ["item\n", "sep\n", "new\n", "item\n"]


# ---------------------------------------------------------------------------
# merge_json
# ---------------------------------------------------------------------------


class TestMergeJson:

    def test_objects_merge_recursively(self):
        target = {"name": "App", "settings": {"theme": "light"}}
        source = {"settings": {"language": "en"}}

        assert merge_json(target, source) == {
            "name": "App",
            "settings": {"theme": "light", "language": "en"},
        }

    def test_arrays_gain_missing_items(self):
        assert merge_json({"features": ["A"]}, {"features": ["A", "B"]}) == {"features": ["A", "B"]}

    def test_scalars_are_replaced(self):
        assert merge_json({"version": 1}, {"version": 2}) == {"version": 2}

    def test_does_not_mutate_target(self):
        target = {"features": []}
        merge_json(target, {"features": ["A"]})

        assert target == {"features": []}


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


class TestMergePostAction:

    def test_merges_text_and_removes_source(self, tmp_path):
        target = _write(tmp_path / "Shell.txt", "pages:\nend\n")
        source = _write(tmp_path / "Shell_postaction.txt", "pages:\n  - Main\nend\n")

        MergePostAction(source, target).execute()

        assert target.read_text() == "pages:\n  - Main\nend\n"
        assert not source.exists()

    def test_merges_json_structurally(self, tmp_path):
        target = _write(tmp_path / "app.json", '{"name": "App", "features": []}')
        source = _write(tmp_path / "app_postaction.json", '{"features": ["Settings"]}')

        MergePostAction(source, target).execute()

        assert json.loads(target.read_text()) == {"name": "App", "features": ["Settings"]}

    def test_missing_target_keeps_changes_in_failed_file(self, tmp_path):
        target = tmp_path / "Shell.txt"
        source = _write(tmp_path / "Shell_postaction.txt", "  - Main\n")

        with pytest.raises(PostActionError, match="Shell_failedpostaction.txt"):
            MergePostAction(source, target).execute()

        assert (tmp_path / "Shell_failedpostaction.txt").read_text() == "  - Main\n"
        assert not source.exists()
        assert not target.exists()

    def test_missing_source_raises(self, tmp_path):
        target = _write(tmp_path / "Shell.txt", "x\n")

        with pytest.raises(PostActionError, match="merge source not found"):
            MergePostAction(tmp_path / "nope.txt", target).execute()

    def test_invalid_json_raises(self, tmp_path):
        target = _write(tmp_path / "app.json", "{not json")
        source = _write(tmp_path / "app_postaction.json", "{}")

        with pytest.raises(PostActionError, match="invalid JSON"):
            MergePostAction(source, target).execute()

    def test_repr_describes_files(self, tmp_path):
        action = MergeGlobalPostAction(tmp_path / "app_gpostaction.json", tmp_path / "app.json")

        assert repr(action) == "MergeGlobalPostAction(app_gpostaction.json -> app.json)"


class TestMakeExecutablePostAction:

    def test_sets_executable_bits(self, tmp_path):
        script = _write(tmp_path / "run.sh", "#!/bin/sh\n")
        script.chmod(0o644)

        MakeExecutablePostAction([script]).execute()

        assert os.access(script, os.X_OK)

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(PostActionError, match="file not found"):
            MakeExecutablePostAction([tmp_path / "run.sh"]).execute()


class TestFormatJsonPostAction:

    def test_pretty_prints(self, tmp_path):
        path = _write(tmp_path / "app.json", '{"a": [1, 2]}')

        FormatJsonPostAction(path).execute()

        assert path.read_text() == '{\n  "a": [\n    1,\n    2\n  ]\n}\n'

    def test_invalid_json_raises(self, tmp_path):
        path = _write(tmp_path / "app.json", "nope")

        with pytest.raises(PostActionError, match="not valid JSON"):
            FormatJsonPostAction(path).execute()


def test_failed_postaction_path():
    assert failed_postaction_path(Path("out/Settings.xaml")) == Path(
        "out/Settings_failedpostaction.xaml"
    )


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class TestFindForUnit:

    def test_no_actions(self, tmp_path):
        resolver = PostActionResolver(tmp_path)

        assert resolver.find_for_unit(_unit(), _result(tmp_path, "Views/MainPage.txt")) == []

    def test_postaction_outputs_become_merges(self, tmp_path):
        resolver = PostActionResolver(tmp_path)

        actions = resolver.find_for_unit(
            _unit(), _result(tmp_path, "Views/MainPage.txt", "Shell_postaction.txt")
        )

        assert len(actions) == 1
        assert isinstance(actions[0], MergePostAction)
        assert actions[0].source == tmp_path / "Shell_postaction.txt"
        assert actions[0].target == tmp_path / "Shell.txt"

    def test_suffix_after_marker_is_ignored(self, tmp_path):
        resolver = PostActionResolver(tmp_path)

        actions = resolver.find_for_unit(_unit(), _result(tmp_path, "Shell_postaction_Main.txt"))

        assert actions[0].target == tmp_path / "Shell.txt"

    def test_json_merges_are_followed_by_formatting(self, tmp_path):
        resolver = PostActionResolver(tmp_path)

        actions = resolver.find_for_unit(_unit(), _result(tmp_path, "app_postaction.json"))

        assert [type(a) for a in actions] == [MergePostAction, FormatJsonPostAction]
        assert actions[1].path == tmp_path / "app.json"

    def test_declared_actions_come_first_with_name_token(self, tmp_path):
        unit = _unit(post_actions=[
            PostActionSpec(kind="make_executable", files=["scripts/__name__.sh"]),
            PostActionSpec(kind="format_json", files=["config/__name__.json"]),
        ])
        resolver = PostActionResolver(tmp_path)

        actions = resolver.find_for_unit(unit, _result(tmp_path, "Shell_postaction.txt"))

        assert [type(a) for a in actions] == [
            MakeExecutablePostAction,
            FormatJsonPostAction,
            MergePostAction,
        ]
        assert actions[0].files == [tmp_path / "scripts" / "Main.sh"]
        assert actions[1].path == tmp_path / "config" / "Main.json"

    def test_declared_merge(self, tmp_path):
        unit = _unit(post_actions=[
            PostActionSpec(kind="merge", source="extra/__name__.txt", target="Shell.txt"),
        ])

        actions = PostActionResolver(tmp_path).find_for_unit(unit, _result(tmp_path))

        assert actions[0].source == tmp_path / "extra" / "Main.txt"
        assert actions[0].target == tmp_path / "Shell.txt"

    def test_uses_result_output_path(self, tmp_path):
        other = tmp_path / "elsewhere"
        resolver = PostActionResolver(tmp_path / "out")

        actions = resolver.find_for_unit(_unit(), _result(other, "Shell_postaction.txt"))

        assert actions[0].target == other / "Shell.txt"

    @pytest.mark.parametrize(
        "spec,message",
        [
            (PostActionSpec(kind="merge", source="a.txt"), "requires 'source' and 'target'"),
            (PostActionSpec(kind="make_executable"), "requires 'files'"),
            (PostActionSpec(kind="format_json", files=["a.json", "b.json"]), "exactly one file"),
            (PostActionSpec(kind="delete"), "unknown post-action kind"),
        ],
    )
    def test_invalid_declarations_raise(self, tmp_path, spec, message):
        resolver = PostActionResolver(tmp_path)

        with pytest.raises(PostActionError, match=message):
            resolver.find_for_unit(_unit(post_actions=[spec]), _result(tmp_path))


class TestFindGlobal:

    def test_collects_global_merges_then_formatting(self, tmp_path):
        _write(tmp_path / "app.json", "{}")
        _write(tmp_path / "app_gpostaction_Settings.json", "{}")
        _write(tmp_path / "app_gpostaction_Store.json", "{}")
        _write(tmp_path / "docs" / "notes_gpostaction.md", "x\n")
        _write(tmp_path / "Shell_postaction.txt", "x\n")

        actions = PostActionResolver(tmp_path).find_global([_unit()])

        assert [type(a) for a in actions] == [
            MergeGlobalPostAction,
            MergeGlobalPostAction,
            MergeGlobalPostAction,
            FormatJsonPostAction,
        ]
        assert [a.source.name for a in actions[:3]] == [
            "app_gpostaction_Settings.json",
            "app_gpostaction_Store.json",
            "notes_gpostaction.md",
        ]
        assert {a.target for a in actions[:2]} == {tmp_path / "app.json"}
        assert actions[2].target == tmp_path / "docs" / "notes.md"
        assert actions[3].path == tmp_path / "app.json"

    def test_nothing_for_placeholders_only(self, tmp_path):
        _write(tmp_path / "app_gpostaction.json", "{}")

        assert PostActionResolver(tmp_path).find_global([GenerationUnit(name="App")]) == []

    def test_nothing_without_output_dir(self, tmp_path):
        assert PostActionResolver(tmp_path / "missing").find_global([_unit()]) == []

    def test_empty_output(self, tmp_path):
        assert PostActionResolver(tmp_path).find_global([_unit()]) == []

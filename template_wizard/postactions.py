"""Post-actions and their resolution.

A post-action is deferred file-system work applied after a unit (or the whole
run) has been materialized.  ``PostActionResolver`` discovers them:

* per unit, from the template descriptor's declarative ``post_actions`` and
  from ``*_postaction.*`` files among the unit's primary outputs;
* globally, from ``*_gpostaction.*`` files anywhere in the output tree.

Merge sources name their target: ``Shell_postaction.txt`` merges into
``Shell.txt``.  Anything after the marker is ignored, so several templates can
contribute to one target (``app_gpostaction_Settings.json`` and
``app_gpostaction_Store.json`` both merge into ``app.json``).

Resolution never touches the file system beyond reading the output tree;
side effects only happen in ``PostAction.execute``.  Actions are returned in
execution order: merges first, then the JSON formatting of merged targets.
"""

from __future__ import annotations

import json
import stat
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Sequence

from template_wizard.errors import PostActionError
from template_wizard.models import GenerationUnit, InstantiationResult, PostActionSpec
from template_wizard.templates import NAME_TOKEN

POSTACTION_SUFFIX = "_postaction"
GLOBAL_POSTACTION_SUFFIX = "_gpostaction"
FAILED_POSTACTION_SUFFIX = "_failedpostaction"


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


class PostAction(ABC):
    """A unit of deferred file-system work."""

    name: str = "postaction"

    @abstractmethod
    def execute(self) -> None:
        """Apply the action.  Raises on failure."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.describe()})"

    def describe(self) -> str:
        return self.name


class MergePostAction(PostAction):
    """Merge the contents of *source* into *target* and delete *source*.

    JSON files are merged structurally (see :func:`merge_json`); every other
    file is merged line by line (see :func:`merge_lines`).  When *target* does
    not exist the unmerged content is kept in a ``*_failedpostaction`` file next
    to it so the user can apply it by hand.
    """

    name = "merge"

    def __init__(self, source: Path, target: Path) -> None:
        self.source = Path(source)
        self.target = Path(target)

    def describe(self) -> str:
        return f"{self.source.name} -> {self.target.name}"

    def execute(self) -> None:
        if not self.source.is_file():
            raise PostActionError(self.name, f"merge source not found: {self.source}")

        source_text = self.source.read_text(encoding="utf-8")

        if not self.target.is_file():
            failed = failed_postaction_path(self.target)
            failed.write_text(source_text, encoding="utf-8")
            self.source.unlink()
            raise PostActionError(
                self.name,
                f"merge target not found: {self.target} (changes kept in {failed.name})",
            )

        target_text = self.target.read_text(encoding="utf-8")
        if self.target.suffix == ".json":
            merged = _merge_json_text(target_text, source_text, self.target)
        else:
            merged = "".join(
                merge_lines(
                    target_text.splitlines(keepends=True),
                    source_text.splitlines(keepends=True),
                )
            )

        self.target.write_text(merged, encoding="utf-8")
        self.source.unlink()


class MergeGlobalPostAction(MergePostAction):
    """Merge produced by a ``*_gpostaction`` file, run once after all units."""

    name = "global-merge"


class MakeExecutablePostAction(PostAction):
    """Set the executable bits on generated scripts."""

    name = "make-executable"

    def __init__(self, files: Sequence[Path]) -> None:
        self.files = [Path(f) for f in files]

    def describe(self) -> str:
        return ", ".join(f.name for f in self.files)

    def execute(self) -> None:
        for path in self.files:
            if not path.is_file():
                raise PostActionError(self.name, f"file not found: {path}")
            current = path.stat().st_mode
            path.chmod(current | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


class FormatJsonPostAction(PostAction):
    """Rewrite a JSON file with two-space indentation and a trailing newline."""

    name = "format-json"

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def describe(self) -> str:
        return self.path.name

    def execute(self) -> None:
        if not self.path.is_file():
            raise PostActionError(self.name, f"file not found: {self.path}")
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise PostActionError(self.name, f"{self.path.name} is not valid JSON: {exc}") from exc
        self.path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class PostActionResolver:
    """Discovers the post-actions applicable to a unit or to a whole run."""

    def __init__(self, output_path: str | Path) -> None:
        self.output_path = Path(output_path)

    def find_for_unit(
        self, unit: GenerationUnit, result: InstantiationResult
    ) -> list[PostAction]:
        """Return the ordered post-actions for one successfully generated unit.

        Declarative actions come first, in declared order, followed by the
        merges of ``*_postaction`` files found among the unit's outputs.
        """
        base = Path(result.output_path) if result.output_path else self.output_path
        actions: list[PostAction] = []

        if unit.template is not None:
            for spec in unit.template.post_actions:
                actions.append(self._from_spec(spec, unit.name, base))

        merge_sources = sorted(
            base / rel for rel in result.primary_outputs
            if POSTACTION_SUFFIX in Path(rel).stem
        )
        merges = [
            MergePostAction(source, _strip_marker(source, POSTACTION_SUFFIX))
            for source in merge_sources
        ]
        actions.extend(merges)
        actions.extend(_format_merged_json(merges))
        return actions

    def find_global(self, units: Sequence[GenerationUnit]) -> list[PostAction]:
        """Return the ordered post-actions applying to the whole run.

        Nothing is returned when no unit was actually generated.
        """
        if not any(not unit.is_placeholder for unit in units):
            return []
        if not self.output_path.is_dir():
            return []

        sources = sorted(
            p for p in self.output_path.rglob("*")
            if p.is_file() and GLOBAL_POSTACTION_SUFFIX in p.stem
        )
        merges = [
            MergeGlobalPostAction(source, _strip_marker(source, GLOBAL_POSTACTION_SUFFIX))
            for source in sources
        ]
        return [*merges, *_format_merged_json(merges)]

    def _from_spec(self, spec: PostActionSpec, unit_name: str, base: Path) -> PostAction:
        def resolve(rel: str) -> Path:
            return base / rel.replace(NAME_TOKEN, unit_name)

        if spec.kind == "merge":
            if not spec.source or not spec.target:
                raise PostActionError(spec.kind, "merge requires 'source' and 'target'")
            return MergePostAction(resolve(spec.source), resolve(spec.target))
        if spec.kind == "make_executable":
            if not spec.files:
                raise PostActionError(spec.kind, "make_executable requires 'files'")
            return MakeExecutablePostAction([resolve(f) for f in spec.files])
        if spec.kind == "format_json":
            if len(spec.files) != 1:
                raise PostActionError(spec.kind, "format_json requires exactly one file")
            return FormatJsonPostAction(resolve(spec.files[0]))
        raise PostActionError(spec.kind, f"unknown post-action kind '{spec.kind}'")


# ---------------------------------------------------------------------------
# Merge algorithms
# ---------------------------------------------------------------------------


def merge_lines(target: list[str], source: list[str]) -> list[str]:
    """Merge *source* lines into *target*.

    Source lines already present in the target (searching forward from the
    previous match) are anchors.  Every other source line is inserted just
    before the next anchor, or right after the last anchor when none follows.
    With no anchor at all the new lines are appended.  Blank source lines are
    ignored, which keeps merging the same source twice a no-op.
    """
    result = list(target)
    if result and not result[-1].endswith("\n"):
        result[-1] += "\n"

    pending: list[str] = []
    cursor = 0
    anchored = False
    for line in source:
        if not line.strip():
            continue
        found = _find_line(result, line, cursor)
        if found is None:
            pending.append(line if line.endswith("\n") else line + "\n")
            continue
        result[found:found] = pending
        cursor = found + len(pending) + 1
        pending = []
        anchored = True

    if pending:
        insert_at = cursor if anchored else len(result)
        result[insert_at:insert_at] = pending
    return result


def merge_json(target: Any, source: Any) -> Any:
    """Deep-merge JSON values: objects merge by key, arrays gain missing items.

    Scalars from *source* replace the target's value.
    """
    if isinstance(target, dict) and isinstance(source, dict):
        merged = dict(target)
        for key, value in source.items():
            merged[key] = merge_json(merged[key], value) if key in merged else value
        return merged
    if isinstance(target, list) and isinstance(source, list):
        return target + [item for item in source if item not in target]
    return source


def failed_postaction_path(target: Path) -> Path:
    """``Settings.xaml`` -> ``Settings_failedpostaction.xaml`` in the same directory."""
    return target.with_name(f"{target.stem}{FAILED_POSTACTION_SUFFIX}{target.suffix}")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _find_line(lines: list[str], line: str, start: int) -> int | None:
    wanted = line.rstrip()
    for index in range(start, len(lines)):
        if lines[index].rstrip() == wanted:
            return index
    return None


def _merge_json_text(target_text: str, source_text: str, target: Path) -> str:
    try:
        merged = merge_json(json.loads(target_text), json.loads(source_text))
    except json.JSONDecodeError as exc:
        raise PostActionError("merge", f"cannot merge invalid JSON into {target.name}: {exc}") from exc
    return json.dumps(merged, ensure_ascii=False)


def _strip_marker(source: Path, marker: str) -> Path:
    """``App_postaction.xaml`` or ``App_postaction_Main.xaml`` -> ``App.xaml``."""
    head, _, _ = source.stem.partition(marker)
    return source.with_name(f"{head}{source.suffix}")


def _format_merged_json(merges: list[MergePostAction]) -> list[PostAction]:
    targets: list[Path] = []
    for merge in merges:
        if merge.target.suffix == ".json" and merge.target not in targets:
            targets.append(merge.target)
    return [FormatJsonPostAction(target) for target in targets]

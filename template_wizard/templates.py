"""Jinja2 template rendering for template instantiation.

Provides the TemplateRenderer class which loads the files of one catalog
template and renders them with the unit's parameters.  ``*.j2`` files are
rendered, every other file is copied verbatim.  The ``__name__`` token in file
and directory names is replaced with the instance name being generated.
"""

from __future__ import annotations

import asyncio
import re
import shutil
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from template_wizard.utils import to_pascal

NAME_TOKEN = "__name__"
TEMPLATE_SUFFIX = ".j2"


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders the file tree of a single template.

    Undefined variables raise instead of rendering as empty strings, so a
    template referencing a parameter the unit does not carry fails loudly.
    """

    def __init__(self, template_dir: str | Path) -> None:
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape([]),
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )
        # Name filters for instance names and parameters
        self.env.filters["slugify"] = _slugify_filter
        self.env.filters["pascal_case"] = _pascal_case_filter
        self.env.filters["snake_case"] = _snake_case_filter
        self.env.filters["camel_case"] = _camel_case_filter

    # -- Single template rendering -----------------------------------------

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        """Render a single template (path relative to the template directory)."""
        template = self.env.get_template(template_path)
        return template.render(**context)

    # -- Tree rendering (async) --------------------------------------------

    def plan_tree(self, instance_name: str) -> list[tuple[Path, str]]:
        """Return ``(source file, relative output path)`` pairs for the template tree.

        Output paths have the ``.j2`` suffix stripped and the ``__name__``
        token replaced with *instance_name*.  Sorted for a deterministic
        write order.
        """
        if not self.template_dir.is_dir():
            return []

        planned: list[tuple[Path, str]] = []
        for source in sorted(p for p in self.template_dir.rglob("*") if p.is_file()):
            rel = source.relative_to(self.template_dir).as_posix()
            if rel.endswith(TEMPLATE_SUFFIX):
                rel = rel[: -len(TEMPLATE_SUFFIX)]
            planned.append((source, rel.replace(NAME_TOKEN, instance_name)))
        return planned

    async def render_tree(
        self,
        output_dir: str | Path,
        instance_name: str,
        context: dict[str, Any],
        *,
        dry_run: bool = False,
    ) -> list[str]:
        """Render every file of the template into *output_dir*.

        Args:
            output_dir: Target directory where rendered files are written.
            instance_name: Replaces the ``__name__`` token in output paths.
            context: Template context variables.
            dry_run: Compute the output list without writing anything.

        Returns:
            Written paths, relative to *output_dir*.
        """
        out_base = Path(output_dir)
        written: list[str] = []

        for source, rel in self.plan_tree(instance_name):
            if not dry_run:
                target = out_base / rel
                if source.name.endswith(TEMPLATE_SUFFIX):
                    template_key = source.relative_to(self.template_dir).as_posix()
                    content = self.render(template_key, context)
                    await asyncio.to_thread(_write_file, target, content)
                else:
                    await asyncio.to_thread(_copy_file, source, target)
            written.append(rel)

        return written


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------

def _slugify_filter(value: str) -> str:
    """Convert a string to a URL/filename-safe slug."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower().strip())
    return slug.strip("-")


def _pascal_case_filter(value: str) -> str:
    """Same conversion as the ``root_namespace`` parameter."""
    return to_pascal(value)


def _snake_case_filter(value: str) -> str:
    """Convert ``SomeThing`` or ``some-thing`` to ``some_thing``."""
    s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", value)
    s2 = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s1)
    return re.sub(r"[-\s]+", "_", s2).lower()


def _camel_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``someThing``."""
    pascal = _pascal_case_filter(value)
    if pascal:
        return pascal[0].lower() + pascal[1:]
    return ""


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _write_file(path: Path, content: str) -> None:
    """Synchronous helper: create parent dirs and write content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _copy_file(source: Path, target: Path) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(source, target)

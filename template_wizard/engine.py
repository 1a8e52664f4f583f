"""Template engine boundary.

The orchestrator only depends on the ``TemplateEngine`` protocol.
``JinjaTemplateEngine`` is the bundled implementation: it renders the files of
a catalog template into the run output directory with ``TemplateRenderer``.

Engine failures are *reported* through ``InstantiationResult.status``; the
engine itself does not raise for template or file-system problems.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from jinja2 import TemplateError, UndefinedError

from template_wizard.models import CreationStatus, InstantiationResult, TemplateDescriptor
from template_wizard.templates import TemplateRenderer


class TemplateEngine(Protocol):
    """Materializes one template instance."""

    async def instantiate(
        self,
        template: TemplateDescriptor,
        name: str,
        output_path: str | Path,
        parameters: dict[str, str],
        update_check_disabled: bool,
        preview_only: bool,
    ) -> InstantiationResult: ...


class JinjaTemplateEngine:
    """Renders catalog templates with Jinja2.

    The render context is the unit's parameters plus ``name`` (the instance
    name).  The bundled catalog has no remote source, so there is nothing for
    ``update_check_disabled`` to skip; the flag is accepted for the contract.
    """

    async def instantiate(
        self,
        template: TemplateDescriptor,
        name: str,
        output_path: str | Path,
        parameters: dict[str, str],
        update_check_disabled: bool = False,
        preview_only: bool = False,
    ) -> InstantiationResult:
        output_dir = Path(output_path)

        if template.source_dir is None or not Path(template.source_dir).is_dir():
            return InstantiationResult(
                status=CreationStatus.NOT_FOUND,
                message=f"Template content for '{template.identity}' was not found",
                output_path=str(output_dir),
            )

        renderer = TemplateRenderer(template.source_dir)
        context = {**parameters, "name": name}

        try:
            written = await renderer.render_tree(
                output_dir, name, context, dry_run=preview_only
            )
        except UndefinedError as exc:
            return InstantiationResult(
                status=CreationStatus.MISSING_MANDATORY_PARAM,
                message=str(exc),
                output_path=str(output_dir),
            )
        except (TemplateError, OSError) as exc:
            return InstantiationResult(
                status=CreationStatus.CREATE_FAILED,
                message=f"{type(exc).__name__}: {exc}",
                output_path=str(output_dir),
            )

        return InstantiationResult(
            status=CreationStatus.SUCCESS,
            output_path=str(output_dir),
            primary_outputs=written,
        )

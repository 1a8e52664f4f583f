"""Command-line entry point.

Usage::

    python -m template_wizard ./templates --project-name App --project-type blank \\
        --framework mvvm --page Main:page.blank --feature Settings:feature.settings
    python -m template_wizard ./templates --list
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional, Sequence

from rich.markup import escape
from rich.table import Table

from template_wizard.catalog import CatalogError, FileSystemCatalog
from template_wizard.config import TelemetryConfig, WizardConfig
from template_wizard.context import GenerationContext
from template_wizard.errors import WizardError
from template_wizard.models import GenerationOutcome, SelectedTemplate, Selection
from template_wizard.orchestrator import GenController
from template_wizard.utils import console, format_duration, print_error, print_success, print_summary_table


def _selected_template(value: str) -> SelectedTemplate:
    """Parse ``NAME:TEMPLATE_ID``."""
    name, sep, template_id = value.partition(":")
    if not sep or not name.strip() or not template_id.strip():
        raise argparse.ArgumentTypeError(f"expected NAME:TEMPLATE_ID, got '{value}'")
    return SelectedTemplate(name=name.strip(), template_id=template_id.strip())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="template_wizard",
        description="Template wizard -- generate a project and its pages from a template catalog",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python -m template_wizard ./templates --list\n"
            "  python -m template_wizard ./templates --project-name App --project-type blank \\\n"
            "      --framework mvvm --page Main:page.blank -o ./out\n"
        ),
    )
    parser.add_argument("templates", help="Template catalog directory")
    parser.add_argument("--list", action="store_true", help="List the catalog and exit")
    parser.add_argument("--output", "-o", default="./output", help="Output directory (default: ./output)")
    parser.add_argument("--project-name", default=None, help="Name of the project to generate")
    parser.add_argument("--project-type", default="blank", help="Project archetype (default: blank)")
    parser.add_argument("--framework", default="mvvm", help="Framework identifier (default: mvvm)")
    parser.add_argument(
        "--page", dest="pages", action="append", type=_selected_template, default=[],
        metavar="NAME:TEMPLATE", help="Add a page (repeatable)",
    )
    parser.add_argument(
        "--feature", dest="features", action="append", type=_selected_template, default=[],
        metavar="NAME:TEMPLATE", help="Add a feature (repeatable)",
    )
    parser.add_argument("--telemetry-endpoint", default=None, help="HTTP endpoint for usage events")
    parser.add_argument("--no-telemetry", action="store_true", help="Disable usage telemetry")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show verbose trace events")
    return parser


def _print_catalog(templates_dir: Path) -> None:
    catalog = FileSystemCatalog(templates_dir)
    table = Table(
        title=f"Templates v{escape(catalog.version())}", show_header=True, header_style="bold cyan"
    )
    table.add_column("Identity", no_wrap=True)
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Depends on", style="dim")
    for template in catalog.all():
        table.add_row(
            escape(template.identity),
            escape(template.name),
            template.template_type.value,
            escape(", ".join(template.dependencies)),
        )
    console.print(table)


async def _generate(controller: GenController, selection: Selection) -> GenerationOutcome:
    try:
        return await controller.generate(selection)
    finally:
        await controller.context.telemetry.aclose()


def main(argv: Optional[Sequence[str]] = None) -> None:
    """CLI entry point for ``python -m template_wizard``."""
    parser = build_parser()
    args = parser.parse_args(argv)

    templates_dir = Path(args.templates)
    try:
        if args.list:
            _print_catalog(templates_dir)
            return
    except CatalogError as exc:
        print_error(f"Error: {escape(str(exc))}")
        sys.exit(1)

    if not args.project_name:
        parser.error("--project-name is required to generate")

    output_dir = Path(args.output)
    if output_dir.exists() and any(output_dir.iterdir()):
        # A failed run discards the output directory, so it must start empty.
        print_error(f"Error: output directory is not empty: {escape(str(output_dir))}")
        sys.exit(1)

    config = WizardConfig(
        output_dir=output_dir,
        templates_dir=templates_dir,
        verbose=args.verbose,
        telemetry=TelemetryConfig(
            enabled=not args.no_telemetry,
            endpoint=args.telemetry_endpoint,
        ),
    )
    try:
        context = GenerationContext.from_config(config)
    except CatalogError as exc:
        print_error(f"Error: {escape(str(exc))}")
        sys.exit(1)

    controller = GenController(context)
    selection = controller.get_user_selection(
        lambda: Selection(
            project_name=args.project_name,
            project_type=args.project_type,
            framework=args.framework,
            pages=args.pages,
            features=args.features,
        )
    )
    if selection is None:
        sys.exit(1)

    try:
        outcome = asyncio.run(_generate(controller, selection))
    except WizardError as exc:
        # Rejected before anything was generated.
        print_error(f"Error: {escape(str(exc))}")
        sys.exit(1)

    print_summary_table(
        {
            "Project": selection.project_name,
            "Output": str(output_dir.resolve()),
            "Units generated": str(outcome.units_generated),
            "Duration": format_duration(outcome.elapsed_seconds),
        },
        title="Generation Results",
    )

    if outcome.success:
        print_success("Generation completed successfully!")
    else:
        print_error("Generation failed.")
        sys.exit(1)

"""Run-scoped generation context.

Everything a generation run needs from the outside world is carried by a
``GenerationContext`` handed to ``GenController``; nothing is looked up from
process-wide state.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from template_wizard import __version__
from template_wizard.catalog import FileSystemCatalog, TemplateCatalog
from template_wizard.config import WizardConfig
from template_wizard.engine import JinjaTemplateEngine, TemplateEngine
from template_wizard.shell import ConsoleShell, HostShell
from template_wizard.telemetry import ConsoleSink, HttpTelemetrySink, TelemetryClient, TelemetrySink


@dataclass
class GenerationContext:
    """Collaborators and output location of one wizard session."""

    output_path: Path
    catalog: TemplateCatalog
    engine: TemplateEngine
    shell: HostShell
    telemetry: TelemetryClient
    tool_version: str = __version__

    @classmethod
    def from_config(cls, config: WizardConfig) -> "GenerationContext":
        """Build the default console context described by *config*."""
        sinks: list[TelemetrySink] = []
        if config.telemetry.console or config.verbose:
            sinks.append(ConsoleSink(verbose=config.verbose))
        if config.telemetry.endpoint:
            sinks.append(HttpTelemetrySink(config.telemetry.endpoint, config.telemetry.timeout))

        output_path = Path(config.output_dir)
        return cls(
            output_path=output_path,
            catalog=FileSystemCatalog(config.templates_dir),
            engine=JinjaTemplateEngine(),
            shell=ConsoleShell(output_path),
            telemetry=TelemetryClient(sinks, enabled=config.telemetry.enabled),
        )

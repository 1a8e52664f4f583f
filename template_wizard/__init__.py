"""Template wizard -- project and page scaffolding from a template catalog.

Turns a wizard selection into generation units, instantiates them through a
template engine, applies post-actions to the generated tree and reports usage
telemetry for what was generated.

Quick usage::

    from template_wizard import GenController, GenerationContext, Selection, WizardConfig

    context = GenerationContext.from_config(WizardConfig(templates_dir="templates"))
    controller = GenController(context)
    outcome = await controller.generate(
        Selection(project_name="App", project_type="blank", framework="mvvm")
    )
"""

__version__ = "0.1.0"

from template_wizard.config import TelemetryConfig, WizardConfig
from template_wizard.context import GenerationContext
from template_wizard.models import (
    CreationStatus,
    GenerationOutcome,
    GenerationUnit,
    InstantiationResult,
    SelectedTemplate,
    Selection,
    TemplateDescriptor,
    TemplateType,
)
from template_wizard.orchestrator import GenController

__all__ = [
    "__version__",
    "CreationStatus",
    "GenController",
    "GenerationContext",
    "GenerationOutcome",
    "GenerationUnit",
    "InstantiationResult",
    "SelectedTemplate",
    "Selection",
    "TelemetryConfig",
    "TemplateDescriptor",
    "TemplateType",
    "WizardConfig",
]

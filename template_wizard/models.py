"""Pydantic v2 models for the template wizard.

Defines the selection handed over by the wizard UI, the template catalog
entries, the generation units composed from a selection and the results the
template engine reports for each unit.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class TemplateType(str, Enum):
    """Classification of a catalog template."""
    PROJECT = "project"
    PAGE = "page"
    DEV_FEATURE = "devfeature"
    CONSUMER_FEATURE = "consumerfeature"
    OTHER = "other"


class CreationStatus(str, Enum):
    """Outcome reported by the template engine for one instantiation."""
    SUCCESS = "success"
    CREATE_FAILED = "create_failed"
    MISSING_MANDATORY_PARAM = "missing_mandatory_param"
    INVALID_PARAM_VALUES = "invalid_param_values"
    NOT_FOUND = "not_found"
    CANCELLED = "cancelled"


# ---------------------------------------------------------------------------
# Catalog models
# ---------------------------------------------------------------------------

class PostActionSpec(BaseModel):
    """Declarative post-action attached to a template descriptor.

    ``kind`` selects the action (``merge``, ``make_executable`` or
    ``format_json``).  Paths are relative to the run output directory and may
    contain the ``__name__`` token, replaced by the unit's instance name.
    """
    model_config = ConfigDict(frozen=True)

    kind: str = Field(..., description="Action kind")
    source: str = Field(default="", description="Merge source file")
    target: str = Field(default="", description="Merge target file")
    files: list[str] = Field(default_factory=list, description="Files the action applies to")


class TemplateDescriptor(BaseModel):
    """A read-only template catalog entry."""
    model_config = ConfigDict(frozen=True)

    identity: str = Field(..., description="Unique template identity, e.g. 'page.blank'")
    name: str = Field(..., description="Display name")
    template_type: TemplateType = Field(default=TemplateType.OTHER)
    default_name: str = Field(default="", description="Instance name used when added as a dependency")
    project_types: list[str] = Field(default_factory=list)
    frameworks: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(
        default_factory=list, description="Identities of templates this one requires"
    )
    post_actions: list[PostActionSpec] = Field(default_factory=list)
    source_dir: Optional[Path] = Field(default=None, description="Directory holding the template files")

    def supports(self, project_type: str, framework: str) -> bool:
        """Return ``True`` when the template applies to the project type and framework.

        Empty ``project_types``/``frameworks`` lists mean "any".
        """
        type_ok = not self.project_types or project_type in self.project_types
        framework_ok = not self.frameworks or framework in self.frameworks
        return type_ok and framework_ok


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

class SelectedTemplate(BaseModel):
    """A page or feature chosen in the wizard."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Instance name chosen by the user")
    template_id: str = Field(..., description="Catalog identity of the template")


class Selection(BaseModel):
    """The user's wizard selection.  Immutable once created."""
    model_config = ConfigDict(frozen=True)

    project_name: str = Field(..., description="Name of the project to create")
    project_type: str = Field(..., description="Project archetype, e.g. 'blank' or 'splitview'")
    framework: str = Field(..., description="Target framework identifier, e.g. 'mvvmlight'")
    pages: list[SelectedTemplate] = Field(default_factory=list)
    features: list[SelectedTemplate] = Field(default_factory=list)

    def describe(self) -> str:
        """Return a multi-line human-readable summary of the selection."""
        lines = [
            f"Project: {self.project_name}",
            f"Project type: {self.project_type}",
            f"Framework: {self.framework}",
        ]
        if self.pages:
            lines.append("Pages: " + ", ".join(f"{p.name} ({p.template_id})" for p in self.pages))
        if self.features:
            lines.append(
                "Features: " + ", ".join(f"{f.name} ({f.template_id})" for f in self.features)
            )
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

class GenerationUnit(BaseModel):
    """One template instance to materialize.

    A unit whose ``template`` is ``None`` is a placeholder: it is never
    instantiated nor tracked.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Unique instance name (relative name under the output dir)")
    template: Optional[TemplateDescriptor] = Field(default=None)
    parameters: dict[str, str] = Field(default_factory=dict)

    @property
    def is_placeholder(self) -> bool:
        return self.template is None

    @property
    def template_type(self) -> Optional[TemplateType]:
        return self.template.template_type if self.template is not None else None

    @property
    def correlation_key(self) -> Optional[str]:
        """``"{template identity}_{instance name}"``, or ``None`` for placeholders."""
        if self.template is None:
            return None
        return f"{self.template.identity}_{self.name}"


class InstantiationResult(BaseModel):
    """Result of materializing one generation unit."""
    model_config = ConfigDict(frozen=True)

    status: CreationStatus = Field(...)
    message: Optional[str] = Field(default=None, description="Engine diagnostic")
    output_path: str = Field(default="", description="Directory the unit was written to")
    primary_outputs: list[str] = Field(
        default_factory=list, description="Written files, relative to output_path"
    )

    @property
    def succeeded(self) -> bool:
        return self.status == CreationStatus.SUCCESS


class GenerationOutcome(BaseModel):
    """What ``GenController.generate`` reports back to its caller."""

    success: bool = Field(default=False)
    cancelled: bool = Field(default=False, description="True when a failure cancelled the run")
    error: Optional[str] = Field(default=None)
    units_generated: int = Field(default=0, ge=0)
    elapsed_seconds: float = Field(default=0.0, ge=0.0)
    results: dict[str, Any] = Field(
        default_factory=dict, description="Correlation key -> result status"
    )

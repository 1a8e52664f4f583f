"""Shared pytest fixtures for the template wizard test suite.

Provides reusable fixtures for:
- The bundled fixture template catalog
- An in-memory catalog of descriptors without files
- A recording template engine, host shell and post-action resolver
- A telemetry client backed by a memory sink
- A ``GenerationContext`` factory wiring them together
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import pytest

from template_wizard.catalog import StaticCatalog
from template_wizard.context import GenerationContext
from template_wizard.models import (
    CreationStatus,
    InstantiationResult,
    SelectedTemplate,
    Selection,
    TemplateDescriptor,
    TemplateType,
)
from template_wizard.postactions import PostAction, PostActionResolver
from template_wizard.telemetry import MemorySink, TelemetryClient


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

@pytest.fixture
def templates_dir() -> Path:
    """The fixture template catalog shipped with the tests."""
    path = Path(__file__).parent / "fixtures" / "templates"
    assert path.is_dir(), f"Fixture templates not found at {path}"
    return path


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Run output directory (not created up front, like a fresh wizard run)."""
    return tmp_path / "out"


# ---------------------------------------------------------------------------
# Recording collaborators
# ---------------------------------------------------------------------------

class RecordingEngine:
    """Template engine double.

    Records every call and fails the units named in *failures* with the
    given message.
    """

    def __init__(
        self,
        failures: Optional[dict[str, str]] = None,
        log: Optional[list[str]] = None,
    ) -> None:
        self.failures = failures or {}
        self.log = log if log is not None else []
        self.calls: list[dict[str, Any]] = []

    @property
    def names(self) -> list[str]:
        return [call["name"] for call in self.calls]

    async def instantiate(
        self,
        template: TemplateDescriptor,
        name: str,
        output_path: str | Path,
        parameters: dict[str, str],
        update_check_disabled: bool,
        preview_only: bool,
    ) -> InstantiationResult:
        self.calls.append({
            "template": template.identity,
            "name": name,
            "output_path": Path(output_path),
            "parameters": parameters,
            "update_check_disabled": update_check_disabled,
            "preview_only": preview_only,
        })
        self.log.append(f"instantiate:{name}")

        if name in self.failures:
            return InstantiationResult(
                status=CreationStatus.CREATE_FAILED,
                message=self.failures[name],
                output_path=str(output_path),
            )

        return InstantiationResult(
            status=CreationStatus.SUCCESS,
            output_path=str(output_path),
        )


class RecordingShell:
    """Host shell double that remembers everything it was asked to do."""

    def __init__(self) -> None:
        self.progress: list[str] = []
        self.dialogs: list[Any] = []
        self.closed = 0
        self.cancellations: list[bool] = []

    def show_progress_message(self, text: str) -> None:
        self.progress.append(text)

    def show_modal_dialog(self, content: Any) -> None:
        self.dialogs.append(content)

    def close_partial_output(self) -> None:
        self.closed += 1

    def cancel_run(self, show_confirmation: bool = True) -> None:
        self.cancellations.append(show_confirmation)


class RecordingAction(PostAction):
    """Post-action that appends its label to a shared log, or raises."""

    def __init__(self, label: str, log: list[str], error: Optional[Exception] = None) -> None:
        self.label = label
        self.log = log
        self.error = error

    def describe(self) -> str:
        return self.label

    def execute(self) -> None:
        if self.error is not None:
            raise self.error
        self.log.append(self.label)


class RecordingResolver(PostActionResolver):
    """Resolver returning one recording action per unit and one global action."""

    def __init__(
        self,
        output_path: Path,
        log: list[str],
        failing_units: Optional[dict[str, Exception]] = None,
    ) -> None:
        super().__init__(output_path)
        self.log = log
        self.failing_units = failing_units or {}
        self.global_calls = 0

    def find_for_unit(self, unit, result):
        return [RecordingAction(f"unit:{unit.name}", self.log, self.failing_units.get(unit.name))]

    def find_global(self, units):
        self.global_calls += 1
        return [RecordingAction("global", self.log)]


@pytest.fixture
def run_log() -> list[str]:
    """Shared ordered log of engine calls and post-action executions."""
    return []


@pytest.fixture
def engine(run_log) -> RecordingEngine:
    return RecordingEngine(log=run_log)


@pytest.fixture
def make_engine(run_log):
    """Factory for engines failing specific units."""

    def _make(**kwargs: Any) -> RecordingEngine:
        return RecordingEngine(log=run_log, **kwargs)

    return _make


@pytest.fixture
def make_resolver(output_dir, run_log):
    """Factory for recording resolvers; *failing_units* maps unit name -> exception."""

    def _make(failing_units: Optional[dict[str, Exception]] = None) -> RecordingResolver:
        return RecordingResolver(output_dir, run_log, failing_units)

    return _make


@pytest.fixture
def shell() -> RecordingShell:
    return RecordingShell()


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

def _descriptor(identity: str, template_type: TemplateType, **kwargs: Any) -> TemplateDescriptor:
    name = kwargs.pop("name", identity.split(".")[-1].title())
    return TemplateDescriptor(identity=identity, name=name, template_type=template_type, **kwargs)


@pytest.fixture
def catalog() -> StaticCatalog:
    """In-memory catalog: two projects, three pages, three features and a misc template."""
    return StaticCatalog(
        [
            _descriptor(
                "proj.blank", TemplateType.PROJECT, name="Blank Project",
                project_types=["blank"], frameworks=["mvvm"],
            ),
            _descriptor(
                "proj.tabs", TemplateType.PROJECT, name="Tabbed Project",
                project_types=["tabs"], frameworks=["mvvm", "codebehind"],
            ),
            _descriptor("page.blank", TemplateType.PAGE, name="Blank"),
            _descriptor("page.grid", TemplateType.PAGE, name="Grid"),
            _descriptor(
                "page.settings", TemplateType.PAGE, name="Settings",
                dependencies=["feature.storage"],
            ),
            _descriptor(
                "feature.storage", TemplateType.DEV_FEATURE, name="Storage",
                default_name="SettingsStorage", dependencies=["feature.json"],
            ),
            _descriptor(
                "feature.json", TemplateType.DEV_FEATURE, name="Json Helper",
                default_name="Json",
            ),
            _descriptor("feature.toast", TemplateType.CONSUMER_FEATURE, name="Toast"),
            _descriptor("misc.editorconfig", TemplateType.OTHER, name="EditorConfig"),
        ],
        version="9.9.9",
    )


@pytest.fixture
def app_selection() -> Selection:
    """Project 'App' with a single 'Main' blank page."""
    return Selection(
        project_name="App",
        project_type="blank",
        framework="mvvm",
        pages=[SelectedTemplate(name="Main", template_id="page.blank")],
    )


# ---------------------------------------------------------------------------
# Telemetry
# ---------------------------------------------------------------------------

@pytest.fixture
def memory_sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def telemetry(memory_sink) -> TelemetryClient:
    return TelemetryClient([memory_sink])


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------

@pytest.fixture
def make_context(output_dir, catalog, engine, shell, telemetry):
    """Factory building a ``GenerationContext``; collaborators can be overridden."""

    def _make(**overrides: Any) -> GenerationContext:
        values: dict[str, Any] = {
            "output_path": output_dir,
            "catalog": catalog,
            "engine": engine,
            "shell": shell,
            "telemetry": telemetry,
            "tool_version": "0.1.0-test",
        }
        values.update(overrides)
        return GenerationContext(**values)

    return _make


@pytest.fixture
def context(make_context) -> GenerationContext:
    return make_context()

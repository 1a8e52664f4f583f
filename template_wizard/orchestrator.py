"""Generation orchestrator.

``GenController`` drives one wizard run:

1. compose the selection into generation units,
2. instantiate each unit in order through the template engine and run its
   post-actions,
3. run the global post-actions,
4. report usage telemetry for what was generated.

Units are processed strictly one after another: a unit's post-actions may
write files the next unit reads.  Any failure in steps 2-3 is terminal for
the run: the partial output is discarded, the error is reported to telemetry
and to the user, and the run is cancelled.
"""

from __future__ import annotations

import time
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Sequence

from template_wizard.composer import compose
from template_wizard.context import GenerationContext
from template_wizard.errors import CorrelationKeyCollision, GenerationError, WizardBackout
from template_wizard.models import (
    GenerationOutcome,
    GenerationUnit,
    InstantiationResult,
    Selection,
    TemplateType,
)
from template_wizard.postactions import PostAction, PostActionResolver
from template_wizard.shell import ErrorDialog
from template_wizard.tracker import TRACKING_FAILED_MESSAGE, ResultTracker

Composer = Callable[..., Iterable[GenerationUnit]]

_FEATURE_MESSAGE = "Adding feature {name} ({template})..."

_STATUS_MESSAGES: dict[TemplateType, str] = {
    TemplateType.PROJECT: "Adding project {name}...",
    TemplateType.PAGE: "Adding page {name} ({template})...",
    TemplateType.DEV_FEATURE: _FEATURE_MESSAGE,
    TemplateType.CONSUMER_FEATURE: _FEATURE_MESSAGE,
}


def status_text(unit: GenerationUnit) -> Optional[str]:
    """Progress message for *unit*, or ``None`` for unclassified templates."""
    if unit.template is None:
        return None
    message = _STATUS_MESSAGES.get(unit.template.template_type)
    if message is None:
        return None
    return message.format(name=unit.name, template=unit.template.name)


# ---------------------------------------------------------------------------
# Run state
# ---------------------------------------------------------------------------


class ResultMap(Mapping[str, InstantiationResult]):
    """Insertion-ordered correlation key -> result mapping that never overwrites."""

    def __init__(self) -> None:
        self._results: dict[str, InstantiationResult] = {}

    def add(self, key: str, result: InstantiationResult) -> None:
        if key in self._results:
            raise CorrelationKeyCollision(key)
        self._results[key] = result

    def __getitem__(self, key: str) -> InstantiationResult:
        return self._results[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)


@dataclass
class GenerationRun:
    """State owned by a single ``generate`` call."""

    units: list[GenerationUnit]
    results: ResultMap = field(default_factory=ResultMap)
    elapsed_seconds: float = 0.0

    @property
    def units_generated(self) -> int:
        return sum(1 for result in self.results.values() if result.succeeded)


def ensure_unique_keys(units: Sequence[GenerationUnit]) -> None:
    """Raise ``CorrelationKeyCollision`` when two units share a correlation key."""
    seen: set[str] = set()
    for unit in units:
        key = unit.correlation_key
        if key is None:
            continue
        if key in seen:
            raise CorrelationKeyCollision(key)
        seen.add(key)


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------


class GenController:
    """Drives selection, generation, post-actions, rollback and tracking."""

    def __init__(
        self,
        context: GenerationContext,
        *,
        composer: Composer = compose,
        resolver: Optional[PostActionResolver] = None,
        tracker: Optional[ResultTracker] = None,
    ) -> None:
        self.context = context
        self.composer = composer
        self.resolver = resolver or PostActionResolver(context.output_path)
        self.tracker = tracker or ResultTracker(context.telemetry)

    # -- Selection -----------------------------------------------------------

    def get_user_selection(
        self, selector: Callable[[], Optional[Selection]]
    ) -> Optional[Selection]:
        """Run the selection step and track whether the wizard completed.

        *selector* returns the user's ``Selection``, ``None`` when the user
        cancelled, or raises ``WizardBackout`` when they backed out.
        """
        shell = self.context.shell
        try:
            shell.show_progress_message("")
            selection = selector()
            if selection is not None:
                self.context.telemetry.track_wizard_completed()
                return selection
            self.context.telemetry.track_wizard_cancelled()
        except WizardBackout:
            pass
        except Exception as exc:
            self.show_error(exc)

        shell.cancel_run()
        return None

    # -- Generation ----------------------------------------------------------

    async def generate(self, selection: Selection) -> GenerationOutcome:
        """Generate everything *selection* asks for.

        Composition errors and duplicate units propagate to the caller before
        anything is written.  Failures while generating are reported and
        returned as a cancelled outcome.
        """
        run = GenerationRun(units=list(self.composer(selection, self.context.catalog)))
        ensure_unique_keys(run.units)

        started = time.monotonic()
        failure: Optional[Exception] = None
        try:
            for unit in run.units:
                failure = await self._generate_unit(unit, run.results)
                if failure is not None:
                    break
            else:
                self._execute(self.resolver.find_global(run.units))
        except Exception as exc:
            failure = exc

        run.elapsed_seconds = time.monotonic() - started

        if failure is not None:
            self._rollback(failure, selection)
            return GenerationOutcome(
                success=False,
                cancelled=True,
                error=str(failure),
                units_generated=run.units_generated,
                elapsed_seconds=run.elapsed_seconds,
                results={key: result.status.value for key, result in run.results.items()},
            )

        self._track(run, selection.framework)
        return GenerationOutcome(
            success=True,
            units_generated=run.units_generated,
            elapsed_seconds=run.elapsed_seconds,
            results={key: result.status.value for key, result in run.results.items()},
        )

    async def _generate_unit(
        self, unit: GenerationUnit, results: ResultMap
    ) -> Optional[GenerationError]:
        """Instantiate one unit and run its post-actions.

        Returns the ``GenerationError`` when the engine did not report
        success; post-action exceptions propagate.
        """
        template = unit.template
        if template is None:
            return None

        text = status_text(unit)
        if text:
            self.context.shell.show_progress_message(text)

        self.context.telemetry.trace(
            f"Generating the template {template.name} to {self.context.output_path}."
        )

        result = await self.context.engine.instantiate(
            template,
            unit.name,
            self.context.output_path,
            dict(unit.parameters),
            update_check_disabled=False,
            preview_only=False,
        )
        results.add(unit.correlation_key, result)

        if not result.succeeded:
            return GenerationError(unit.name, template.name, result.message)

        self._execute(self.resolver.find_for_unit(unit, result))
        return None

    @staticmethod
    def _execute(actions: Sequence[PostAction]) -> None:
        for action in actions:
            action.execute()

    def _track(self, run: GenerationRun, framework: str) -> None:
        try:
            self.tracker.track(run.units, run.results, run.elapsed_seconds, framework)
        except Exception as exc:
            self.context.telemetry.exception(exc, TRACKING_FAILED_MESSAGE)

    # -- Failure reporting ---------------------------------------------------

    def _rollback(self, error: Exception, selection: Selection) -> None:
        try:
            self.context.shell.close_partial_output()
        finally:
            self.show_error(error, selection)
            self.context.shell.cancel_run(show_confirmation=False)

    def show_error(self, error: BaseException, selection: Optional[Selection] = None) -> None:
        """Report *error* to telemetry and show the error dialog."""
        self.context.telemetry.error(str(error))
        self.context.telemetry.exception(error, self._exception_track_message(selection))
        self.context.shell.show_modal_dialog(
            ErrorDialog(error, self.context.tool_version, self.context.catalog.version())
        )

    def _exception_track_message(self, selection: Optional[Selection]) -> str:
        lines = [f"Templates v: '{self.context.catalog.version()}'"]
        if selection is not None:
            lines.append(selection.describe())
        return "\n".join(lines)

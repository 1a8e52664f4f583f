"""Generation result tracking.

Correlates instantiation results with their generation units and emits one
usage event per generated unit.  Tracking is best effort: any exception is
converted into a single exception event and never reaches the caller.
"""

from __future__ import annotations

from typing import Mapping, Sequence

from template_wizard.models import GenerationUnit, InstantiationResult, TemplateType
from template_wizard.telemetry import TelemetryClient

TRACKING_FAILED_MESSAGE = "Exception tracking telemetry for Template Generation."


def count_pages(units: Sequence[GenerationUnit]) -> int:
    """Number of generated units whose template is a page, whatever their order."""
    return sum(1 for unit in units if unit.template_type == TemplateType.PAGE)


class ResultTracker:
    """Emits project/page/feature generation events for a finished run."""

    def __init__(self, telemetry: TelemetryClient) -> None:
        self.telemetry = telemetry

    def track(
        self,
        units: Sequence[GenerationUnit],
        results: Mapping[str, InstantiationResult],
        elapsed_seconds: float,
        framework: str,
    ) -> None:
        try:
            pages_added = count_pages(units)

            for unit in units:
                if unit.template is None:
                    continue

                # A missing key means the orchestrator lost a result: let it raise.
                result = results[unit.correlation_key]
                if unit.template.template_type == TemplateType.PROJECT:
                    self.telemetry.track_project_generated(
                        unit.template, framework, result, pages_added, elapsed_seconds
                    )
                else:
                    self.telemetry.track_page_or_feature_generated(
                        unit.template, framework, result
                    )
        except Exception as exc:
            self.telemetry.exception(exc, TRACKING_FAILED_MESSAGE)

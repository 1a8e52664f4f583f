"""Template wizard configuration.

Typed configuration for a wizard session.  All settings use Pydantic v2
models so they are validated at construction time and can be serialised
to/from JSON or read from environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field


_TRUE_VALUES = {"1", "true", "yes", "on"}


class TelemetryConfig(BaseModel):
    """Where usage telemetry is delivered."""

    enabled: bool = Field(default=True)
    endpoint: Optional[str] = Field(
        default=None, description="HTTP endpoint receiving events as JSON; None disables HTTP delivery"
    )
    timeout: float = Field(default=5.0, gt=0, description="Per-request timeout in seconds")
    console: bool = Field(default=False, description="Echo events to the console")


class WizardConfig(BaseModel):
    """Global template wizard configuration.

    Instances are created once by the CLI entry point (or the hosting IDE)
    and then passed to ``GenController`` through a ``GenerationContext``.
    """

    output_dir: Path = Field(default=Path("./output"))
    templates_dir: Path = Field(default=Path("./templates"))
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    verbose: bool = Field(default=False, description="Show verbose trace events")

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file.

        Returns:
            The path where the file was written.
        """
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "WizardConfig":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "WizardConfig":
        """Build a ``WizardConfig`` from environment variables.

        Recognised variables (all optional):
            WIZARD_OUTPUT_DIR, WIZARD_TEMPLATES_DIR, WIZARD_VERBOSE,
            WIZARD_TELEMETRY_ENABLED, WIZARD_TELEMETRY_ENDPOINT,
            WIZARD_TELEMETRY_TIMEOUT.
        """
        telemetry_kwargs: dict[str, Any] = {}
        if os.environ.get("WIZARD_TELEMETRY_ENABLED"):
            telemetry_kwargs["enabled"] = (
                os.environ["WIZARD_TELEMETRY_ENABLED"].strip().lower() in _TRUE_VALUES
            )
        if os.environ.get("WIZARD_TELEMETRY_ENDPOINT"):
            telemetry_kwargs["endpoint"] = os.environ["WIZARD_TELEMETRY_ENDPOINT"]
        if os.environ.get("WIZARD_TELEMETRY_TIMEOUT"):
            telemetry_kwargs["timeout"] = float(os.environ["WIZARD_TELEMETRY_TIMEOUT"])

        return cls(
            output_dir=Path(os.environ.get("WIZARD_OUTPUT_DIR", "./output")),
            templates_dir=Path(os.environ.get("WIZARD_TEMPLATES_DIR", "./templates")),
            verbose=os.environ.get("WIZARD_VERBOSE", "").strip().lower() in _TRUE_VALUES,
            telemetry=TelemetryConfig(**telemetry_kwargs),
        )

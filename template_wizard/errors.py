"""Exceptions raised by the template wizard."""

from __future__ import annotations


class WizardError(Exception):
    """Base class for all template wizard errors."""


class WizardBackout(WizardError):
    """Raised by a selection step when the user backs out of the wizard.

    Not an error from the user's point of view: the run is cancelled without
    an error report.
    """


class CompositionError(WizardError):
    """Raised when a selection cannot be turned into generation units."""


class CorrelationKeyCollision(WizardError):
    """Raised when two generation units share a template identity and instance name."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Duplicate generation unit '{key}'")


class GenerationError(WizardError):
    """A unit's instantiation did not report success."""

    def __init__(self, unit_name: str, template_name: str, message: str | None) -> None:
        self.unit_name = unit_name
        self.template_name = template_name
        self.engine_message = message or ""
        super().__init__(
            f"Error generating '{unit_name}' from template '{template_name}': "
            f"{self.engine_message or 'no diagnostic available'}"
        )


class PostActionError(WizardError):
    """Raised when a post-action cannot be resolved or executed."""

    def __init__(self, action: str, message: str) -> None:
        self.action = action
        super().__init__(f"Post-action '{action}' failed: {message}")

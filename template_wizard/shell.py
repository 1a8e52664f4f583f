"""Host shell boundary.

The hosting environment (an IDE, or the console for the CLI) shows progress,
hosts modal dialogs, discards partially generated output and cancels the
wizard.  ``ConsoleShell`` implements the contract with Rich.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Any, Protocol

from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from template_wizard.utils import console, print_warning


class HostShell(Protocol):
    """What the orchestrator needs from its host."""

    def show_progress_message(self, text: str) -> None: ...

    def show_modal_dialog(self, content: Any) -> None: ...

    def close_partial_output(self) -> None: ...

    def cancel_run(self, show_confirmation: bool = True) -> None: ...


class ErrorDialog:
    """Content of the dialog shown when a run fails."""

    def __init__(self, error: BaseException, tool_version: str, templates_version: str) -> None:
        self.error = error
        self.tool_version = tool_version
        self.templates_version = templates_version

    @property
    def title(self) -> str:
        return "Template generation failed"

    @property
    def message(self) -> str:
        return str(self.error)

    def render(self) -> str:
        return (
            f"{type(self.error).__name__}: {self.error}\n\n"
            f"Wizard version: {self.tool_version}\n"
            f"Templates version: {self.templates_version}"
        )

    def __rich__(self) -> Panel:
        return Panel(
            Text(self.render()),
            title=f"[bold]{self.title}[/bold]",
            border_style="red",
        )


class ConsoleShell:
    """Rich console implementation of ``HostShell``.

    ``close_partial_output`` removes the whole run output directory.
    """

    def __init__(self, output_path: str | Path) -> None:
        self.output_path = Path(output_path)
        self.cancelled = False

    def show_progress_message(self, text: str) -> None:
        if text:
            console.print(f"  [cyan]{escape(text)}[/cyan]", highlight=False)

    def show_modal_dialog(self, content: Any) -> None:
        console.print(content)

    def close_partial_output(self) -> None:
        if self.output_path.is_dir():
            shutil.rmtree(self.output_path)
            print_warning(f"Discarded partial output in {escape(str(self.output_path))}")

    def cancel_run(self, show_confirmation: bool = True) -> None:
        self.cancelled = True
        if show_confirmation:
            print_warning("Wizard cancelled.")

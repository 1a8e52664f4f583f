"""Usage telemetry.

``TelemetryClient`` is a fire-and-forget dispatcher: ``emit`` puts the event on
an ``asyncio.Queue`` drained by a background task, so emitting never blocks
and never fails the generation pipeline.  Outside an event loop events are
handed to a single background thread instead.  Sink failures are swallowed
and reported on the console.  Callers that need delivery to complete await
``flush()`` or ``aclose()``, or call ``wait()`` from synchronous code.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import traceback
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional, Protocol

import httpx
from pydantic import BaseModel, Field
from rich.markup import escape

from template_wizard.models import InstantiationResult, TemplateDescriptor
from template_wizard.utils import console


class TelemetryEventKind(str, Enum):
    """Named event kinds understood by telemetry consumers."""
    WIZARD_COMPLETED = "wizard-completed"
    WIZARD_CANCELLED = "wizard-cancelled"
    PROJECT_GENERATED = "project-generated"
    PAGE_OR_FEATURE_GENERATED = "page-or-feature-generated"
    VERBOSE_TRACE = "verbose-trace"
    ERROR = "error"
    EXCEPTION = "exception"


class TelemetryEvent(BaseModel):
    """A single telemetry event."""

    kind: TelemetryEventKind = Field(...)
    message: str = Field(default="")
    properties: dict[str, Any] = Field(default_factory=dict)
    metrics: dict[str, float] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------


class TelemetrySink(Protocol):
    """Destination of telemetry events."""

    async def send(self, event: TelemetryEvent) -> None: ...


class MemorySink:
    """Keeps every event in memory.  Used by tests and embedding hosts."""

    def __init__(self) -> None:
        self.events: list[TelemetryEvent] = []

    async def send(self, event: TelemetryEvent) -> None:
        self.events.append(event)

    def of_kind(self, kind: TelemetryEventKind) -> list[TelemetryEvent]:
        return [e for e in self.events if e.kind == kind]


class ConsoleSink:
    """Echoes events on the Rich console."""

    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose

    async def send(self, event: TelemetryEvent) -> None:
        if event.kind == TelemetryEventKind.VERBOSE_TRACE and not self.verbose:
            return
        style = "red" if event.kind in (TelemetryEventKind.ERROR, TelemetryEventKind.EXCEPTION) else "dim"
        summary = event.message or ", ".join(f"{k}={v}" for k, v in event.properties.items())
        console.print(f"[{style}]telemetry {event.kind.value}: {escape(summary)}[/{style}]", highlight=False)


class HttpTelemetrySink:
    """POSTs each event as JSON to a collector endpoint."""

    def __init__(self, endpoint: str, timeout: float = 5.0) -> None:
        self.endpoint = endpoint
        self.timeout = timeout

    async def send(self, event: TelemetryEvent) -> None:
        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout, connect=3.0)) as client:
            response = await client.post(self.endpoint, json=event.model_dump(mode="json"))
            response.raise_for_status()


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class TelemetryClient:
    """Non-blocking telemetry dispatcher with typed helpers per event kind."""

    def __init__(self, sinks: Iterable[TelemetrySink] = (), enabled: bool = True) -> None:
        self.sinks: list[TelemetrySink] = list(sinks)
        self.enabled = enabled
        self._queue: Optional[asyncio.Queue[TelemetryEvent]] = None
        self._worker: Optional[asyncio.Task[None]] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: list[concurrent.futures.Future[None]] = []

    # -- Dispatch ------------------------------------------------------------

    def emit(self, event: TelemetryEvent) -> None:
        """Queue *event* for delivery and return immediately.

        Without a running event loop the event goes to a background thread
        that runs its own loop, one event at a time in emission order.
        """
        if not self.enabled or not self.sinks:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._submit(event)
            return

        if self._queue is None or self._loop is not loop:
            self._loop = loop
            self._queue = asyncio.Queue()
            self._worker = loop.create_task(self._drain(self._queue))
        self._queue.put_nowait(event)

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until events emitted outside an event loop are delivered."""
        pending, self._pending = self._pending, []
        _, not_done = concurrent.futures.wait(pending, timeout=timeout)
        self._pending.extend(not_done)

    async def flush(self) -> None:
        """Wait until every emitted event has been handed to the sinks."""
        pending, self._pending = self._pending, []
        for future in pending:
            await asyncio.wrap_future(future)
        if self._queue is not None and self._loop is asyncio.get_running_loop():
            await self._queue.join()

    async def aclose(self) -> None:
        """Flush pending events and stop the background worker."""
        await self.flush()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None
        self._queue = None
        self._loop = None
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    def _submit(self, event: TelemetryEvent) -> None:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="telemetry")
        self._pending = [f for f in self._pending if not f.done()]
        self._pending.append(self._executor.submit(asyncio.run, self._deliver(event)))

    async def _drain(self, queue: asyncio.Queue[TelemetryEvent]) -> None:
        while True:
            event = await queue.get()
            try:
                await self._deliver(event)
            finally:
                queue.task_done()

    async def _deliver(self, event: TelemetryEvent) -> None:
        for sink in self.sinks:
            try:
                await sink.send(event)
            except Exception as exc:
                console.print(
                    f"[dim]Telemetry sink {type(sink).__name__} failed: {escape(str(exc))}[/dim]",
                    highlight=False,
                )

    # -- Typed helpers ---------------------------------------------------------

    def track_wizard_completed(self, wizard_type: str = "new-project") -> None:
        self.emit(TelemetryEvent(
            kind=TelemetryEventKind.WIZARD_COMPLETED,
            properties={"wizard_type": wizard_type},
        ))

    def track_wizard_cancelled(self, wizard_type: str = "new-project") -> None:
        self.emit(TelemetryEvent(
            kind=TelemetryEventKind.WIZARD_CANCELLED,
            properties={"wizard_type": wizard_type},
        ))

    def track_project_generated(
        self,
        template: TemplateDescriptor,
        framework: str,
        result: InstantiationResult,
        pages_added: int,
        elapsed_seconds: float,
    ) -> None:
        self.emit(TelemetryEvent(
            kind=TelemetryEventKind.PROJECT_GENERATED,
            properties={
                "template_identity": template.identity,
                "template_name": template.name,
                "framework": framework,
                "status": result.status.value,
                "message": result.message or "",
            },
            metrics={"pages_added": float(pages_added), "elapsed_seconds": elapsed_seconds},
        ))

    def track_page_or_feature_generated(
        self,
        template: TemplateDescriptor,
        framework: str,
        result: InstantiationResult,
    ) -> None:
        self.emit(TelemetryEvent(
            kind=TelemetryEventKind.PAGE_OR_FEATURE_GENERATED,
            properties={
                "template_identity": template.identity,
                "template_name": template.name,
                "template_type": template.template_type.value,
                "framework": framework,
                "status": result.status.value,
                "message": result.message or "",
            },
        ))

    def trace(self, message: str) -> None:
        self.emit(TelemetryEvent(kind=TelemetryEventKind.VERBOSE_TRACE, message=message))

    def error(self, message: str) -> None:
        self.emit(TelemetryEvent(kind=TelemetryEventKind.ERROR, message=message))

    def exception(self, exc: BaseException, message: str = "") -> None:
        self.emit(TelemetryEvent(
            kind=TelemetryEventKind.EXCEPTION,
            message=message,
            properties={
                "exception_type": type(exc).__name__,
                "exception": str(exc),
                "traceback": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            },
        ))

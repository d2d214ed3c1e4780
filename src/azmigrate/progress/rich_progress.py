"""Rich-based progress reporter for terminal output."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from azmigrate.core.models import TransferStatus


if TYPE_CHECKING:
    from types import TracebackType

    from rich.console import Console

    from azmigrate.core.models import MigrationUnit, TransferResult


class RichProgressReporter:
    """Progress reporter using Rich for terminal display.

    Shows one overall bar for the batch plus the units currently in flight.
    Called only from the scheduler's aggregating thread.

    Example:
        with RichProgressReporter() as reporter:
            report = orchestrator.run(request, transfer, progress=reporter)
    """

    def __init__(self, console: Console | None = None) -> None:
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console,
        )
        self._overall: TaskID | None = None
        self._active: dict[str, TaskID] = {}
        self._failed = 0
        self._started = False

    def __enter__(self) -> RichProgressReporter:
        self._progress.start()
        self._started = True
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self._progress.stop()
        self._started = False

    def start(self, total: int) -> None:
        """Begin a batch of ``total`` unit transfers."""
        # Auto-start if not in context manager
        if not self._started:
            self._progress.start()
            self._started = True
        self._overall = self._progress.add_task("Transferring", total=total)

    def unit_started(self, unit: MigrationUnit) -> None:
        self._active[unit.key] = self._progress.add_task(unit.key, total=None)

    def unit_finished(self, result: TransferResult) -> None:
        task_id = self._active.pop(result.unit.key, None)
        if task_id is not None:
            self._progress.remove_task(task_id)
        if result.status is TransferStatus.FAILED:
            self._failed += 1
            self._progress.console.print(
                f"[red]failed[/red] {result.unit.key}: {result.error}"
            )
        if self._overall is not None:
            description = "Transferring"
            if self._failed:
                description = f"Transferring ([red]{self._failed} failed[/red])"
            self._progress.update(self._overall, advance=1, description=description)

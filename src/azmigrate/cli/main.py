"""CLI entry point and shared plumbing for azmigrate commands."""

from __future__ import annotations

import logging
import signal
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler

from azmigrate.cli.formatting import print_report
from azmigrate.config import load_endpoint
from azmigrate.core.cancellation import CancellationToken
from azmigrate.core.exceptions import ConfigurationError
from azmigrate.core.models import WorkflowMode
from azmigrate.progress.rich_progress import RichProgressReporter


if TYPE_CHECKING:
    from collections.abc import Iterator

    from azmigrate.core.models import MigrationReport, ResourceEndpoint, ResourceKind
    from azmigrate.core.ports import TransferFunction
    from azmigrate.core.services import MigrationOrchestrator, WorkflowRequest


app = typer.Typer(
    name="azmigrate",
    help="Migrate PostgreSQL, Blob Storage and Container Registry data "
    "between Azure subscriptions.",
    no_args_is_help=True,
)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    """Send ``azmigrate`` log records to stderr (and optionally a file)."""
    logger = logging.getLogger("azmigrate")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)
    logger.propagate = False

    console_handler = RichHandler(
        console=Console(stderr=True), show_path=False, rich_tracebacks=verbose
    )
    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)
        logger.setLevel(logging.DEBUG)


@app.callback()
def callback(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug logging."
    ),
    log_file: Path | None = typer.Option(
        None, "--log-file", help="Also write a debug log to this file."
    ),
) -> None:
    """Migrate Azure resources from a source subscription to a target one."""
    configure_logging(verbose, log_file)


def load_endpoints(
    source: Path, target: Path, kind: ResourceKind
) -> tuple[ResourceEndpoint, ResourceEndpoint]:
    """Load both endpoint files, exiting with a hint on configuration errors."""
    try:
        return load_endpoint(source, kind), load_endpoint(target, kind)
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        if e.recovery_hint:
            typer.echo(f"Hint: {e.recovery_hint}", err=True)
        raise typer.Exit(1) from None


@contextmanager
def cancel_on_interrupt(token: CancellationToken) -> Iterator[None]:
    """Turn the first Ctrl-C into a cancellation request."""

    def handler(signum: int, frame: object) -> None:
        if token.cancelled:
            raise KeyboardInterrupt
        typer.echo(
            "Cancelling: waiting for in-flight transfers (Ctrl-C again to abort)",
            err=True,
        )
        token.cancel()

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def run_workflow(
    orchestrator: MigrationOrchestrator,
    request: WorkflowRequest,
    transfer_fn: TransferFunction | None = None,
) -> MigrationReport:
    """Run a workflow with progress display and Ctrl-C cancellation."""
    token = CancellationToken()
    transferring = request.mode in (WorkflowMode.FULL, WorkflowMode.INCREMENTAL)
    with cancel_on_interrupt(token):
        if not transferring:
            return orchestrator.run(request, transfer_fn, cancel=token)
        with RichProgressReporter() as progress:
            return orchestrator.run(
                request, transfer_fn, cancel=token, progress=progress
            )


def finish(report: MigrationReport) -> NoReturn:
    """Print the report and exit with its status."""
    console = Console()
    print_report(console, report)
    raise typer.Exit(report.exit_code)


def main() -> None:
    """Entry point for the CLI."""
    app()

"""Blob Storage migration command."""

from __future__ import annotations

from pathlib import Path

import typer

from azmigrate.adapters.scratch import ScratchSpace
from azmigrate.cli import factories
from azmigrate.cli.main import app, finish, load_endpoints, run_workflow
from azmigrate.core.diff import DiffPolicy, newer_timestamp
from azmigrate.core.models import ResourceKind, WorkflowMode
from azmigrate.core.services import MigrationOrchestrator, WorkflowRequest


@app.command()
def storage(
    source: Path = typer.Argument(..., help="Source storage account config (JSON)."),
    target: Path = typer.Argument(..., help="Target storage account config (JSON)."),
    verify_only: bool = typer.Option(
        False, "--verify-only", help="Only compare blob counts; transfer nothing."
    ),
    skip_download: bool = typer.Option(
        False,
        "--skip-download",
        help="Upload files already in --temp-dir instead of downloading again.",
    ),
    temp_dir: Path | None = typer.Option(
        None,
        "--temp-dir",
        help="Directory for downloaded blobs. A generated one is removed afterwards.",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Copy every blob, even when the target copy is up to date.",
    ),
    concurrency: int = typer.Option(
        1,
        "--concurrency",
        "-j",
        envvar="AZMIGRATE_CONCURRENCY",
        min=1,
        help="Maximum number of blobs copied at once.",
    ),
    retries: int = typer.Option(
        1,
        "--retries",
        envvar="AZMIGRATE_RETRIES",
        min=1,
        help="Attempts per blob before it is recorded as failed.",
    ),
) -> None:
    """Copy blob containers from SOURCE to TARGET.

    Blobs that are missing on the target, or older there than on the
    source, are downloaded to a scratch directory and uploaded. Blob counts
    and sizes of every container are compared afterwards.
    """
    if skip_download and temp_dir is None:
        typer.echo("Error: --skip-download needs --temp-dir", err=True)
        raise typer.Exit(1)

    src, tgt = load_endpoints(source, target, ResourceKind.STORAGE)
    az = factories.azure_cli()
    credentials = factories.credential_provider(az)
    adapter = factories.blob_adapter(credentials)
    orchestrator = MigrationOrchestrator(
        adapter, credentials, scheduler=factories.scheduler(retries)
    )
    request = WorkflowRequest(
        source=src,
        target=tgt,
        mode=WorkflowMode.VERIFY_ONLY if verify_only else WorkflowMode.FULL,
        policy=DiffPolicy(comparator=newer_timestamp, force=force),
        concurrency=concurrency,
        name="storage",
    )

    if verify_only:
        finish(run_workflow(orchestrator, request))

    with ScratchSpace.create(temp_dir, "storage_migration") as scratch:
        transfer = factories.blob_copy_transfer(
            adapter, src, tgt, scratch.path, skip_download
        )
        report = run_workflow(orchestrator, request, transfer)
    finish(report)

"""Container Registry migration command."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import typer

from azmigrate.cli import factories
from azmigrate.cli.main import app, finish, load_endpoints, run_workflow
from azmigrate.core.diff import DiffPolicy, digest_changed
from azmigrate.core.models import ResourceKind, WorkflowMode
from azmigrate.core.services import MigrationOrchestrator, WorkflowRequest


DEFAULT_DAYS = 7


def select_mode(diff_only: bool, verify_only: bool, bounded: bool) -> WorkflowMode:
    """Workflow mode for the acr command's flags."""
    if diff_only:
        return WorkflowMode.DIFF_ONLY
    if verify_only:
        return WorkflowMode.VERIFY_ONLY
    return WorkflowMode.INCREMENTAL if bounded else WorkflowMode.FULL


@app.command()
def acr(
    source: Path = typer.Argument(..., help="Source registry config (JSON)."),
    target: Path = typer.Argument(..., help="Target registry config (JSON)."),
    days: int = typer.Option(
        DEFAULT_DAYS,
        "--days",
        min=0,
        help="Only sync images updated in the last N days.",
    ),
    all_images: bool = typer.Option(
        False, "--all-images", help="Sync all images regardless of age."
    ),
    diff_only: bool = typer.Option(
        False,
        "--diff-only",
        help="Only show differences. Exits 1 if the target is missing images.",
    ),
    verify_only: bool = typer.Option(
        False, "--verify-only", help="Only compare tag digests; transfer nothing."
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Re-import every tag in the window, even when digests match.",
    ),
    concurrency: int = typer.Option(
        1,
        "--concurrency",
        "-j",
        envvar="AZMIGRATE_CONCURRENCY",
        min=1,
        help="Maximum number of imports running at once.",
    ),
    retries: int = typer.Option(
        1,
        "--retries",
        envvar="AZMIGRATE_RETRIES",
        min=1,
        help="Attempts per image before it is recorded as failed.",
    ),
) -> None:
    """Import image tags from SOURCE into TARGET.

    Tags updated within the last --days days (default 7) that are missing
    on the target, or whose digest differs, are imported with az acr import.
    """
    if diff_only and verify_only:
        typer.echo("Error: --diff-only and --verify-only are exclusive", err=True)
        raise typer.Exit(1)

    src, tgt = load_endpoints(source, target, ResourceKind.REGISTRY)
    window = None if all_images else timedelta(days=days)
    az = factories.azure_cli()
    credentials = factories.credential_provider(az)
    orchestrator = MigrationOrchestrator(
        factories.registry_adapter(az),
        credentials,
        scheduler=factories.scheduler(retries),
    )
    request = WorkflowRequest(
        source=src,
        target=tgt,
        mode=select_mode(diff_only, verify_only, window is not None),
        policy=DiffPolicy(comparator=digest_changed, window=window, force=force),
        concurrency=concurrency,
        name="acr",
    )

    transfer = None
    if request.mode in (WorkflowMode.FULL, WorkflowMode.INCREMENTAL):
        transfer = factories.registry_import_transfer(credentials, src, tgt, az)
    finish(run_workflow(orchestrator, request, transfer))

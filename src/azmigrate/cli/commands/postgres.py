"""PostgreSQL migration command."""

from __future__ import annotations

from pathlib import Path

import typer

from azmigrate.adapters.scratch import ScratchSpace
from azmigrate.cli import factories
from azmigrate.cli.main import app, finish, load_endpoints, run_workflow
from azmigrate.core.diff import DiffPolicy, fewer_rows
from azmigrate.core.models import ResourceKind, WorkflowMode
from azmigrate.core.services import MigrationOrchestrator, WorkflowRequest


@app.command()
def postgres(
    source: Path = typer.Argument(..., help="Source server config (JSON)."),
    target: Path = typer.Argument(..., help="Target server config (JSON)."),
    verify_only: bool = typer.Option(
        False, "--verify-only", help="Only compare row counts; transfer nothing."
    ),
    skip_backup: bool = typer.Option(
        False,
        "--skip-backup",
        help="Restore existing dumps from --backup-dir instead of running pg_dump.",
    ),
    backup_dir: Path | None = typer.Option(
        None,
        "--backup-dir",
        help="Directory for dump files. Defaults to a new timestamped temp directory.",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Recreate every database, even when the target looks up to date.",
    ),
    concurrency: int = typer.Option(
        1,
        "--concurrency",
        "-j",
        envvar="AZMIGRATE_CONCURRENCY",
        min=1,
        help="Maximum number of databases copied at once.",
    ),
    retries: int = typer.Option(
        1,
        "--retries",
        envvar="AZMIGRATE_RETRIES",
        min=1,
        help="Attempts per database before it is recorded as failed.",
    ),
) -> None:
    """Dump databases from SOURCE and restore them on TARGET.

    Each configured database is dumped with pg_dump, dropped and recreated
    on the target, then restored with pg_restore. Row counts of every table
    are compared afterwards.
    """
    if skip_backup and backup_dir is None:
        typer.echo("Error: --skip-backup needs --backup-dir", err=True)
        raise typer.Exit(1)

    src, tgt = load_endpoints(source, target, ResourceKind.POSTGRES)
    az = factories.azure_cli()
    credentials = factories.credential_provider(az)
    adapter = factories.postgres_adapter(credentials)
    orchestrator = MigrationOrchestrator(
        adapter, credentials, scheduler=factories.scheduler(retries)
    )
    request = WorkflowRequest(
        source=src,
        target=tgt,
        mode=WorkflowMode.VERIFY_ONLY if verify_only else WorkflowMode.FULL,
        policy=DiffPolicy(comparator=fewer_rows, force=force),
        concurrency=concurrency,
        name="postgres",
    )

    if verify_only:
        finish(run_workflow(orchestrator, request))

    scratch = ScratchSpace.create(backup_dir, "pg_migration", keep=True)
    transfer = factories.dump_restore_transfer(
        adapter, credentials, src, tgt, scratch.path, skip_backup
    )
    report = run_workflow(orchestrator, request, transfer)
    typer.echo(f"Backup location: {scratch.path}")
    finish(report)

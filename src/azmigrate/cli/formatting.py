"""Shared formatting helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

import typer
from rich.table import Table
from rich.text import Text

from azmigrate.core.formatting import format_size, status_to_color
from azmigrate.core.models import TransferStatus


if TYPE_CHECKING:
    from datetime import datetime

    from rich.console import Console

    from azmigrate.core.models import MigrationReport, TransferPlan


def _format_status_with_color(status: str) -> Text:
    """Format a status string with its color (see status_to_color)."""
    color = status_to_color(status)
    return Text(status, style=color) if color else Text(status)


def _format_time(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


def print_plan(console: Console, plan: TransferPlan) -> None:
    """Print the units a run would transfer and why."""
    if plan.is_empty:
        console.print(f"Target is up to date ({plan.considered} unit(s) checked).")
        return

    table = Table(title="Differences")
    table.add_column("Unit")
    table.add_column("Reason")
    table.add_column("Last modified")
    table.add_column("Size", justify="right")
    for planned in plan:
        table.add_row(
            planned.unit.key,
            _format_status_with_color(str(planned.reason)),
            _format_time(planned.unit.last_modified),
            format_size(planned.unit.size),
        )
    console.print(table)


def print_results(console: Console, report: MigrationReport) -> None:
    """Print units that did not transfer cleanly."""
    problems = [r for r in report.results if r.status is not TransferStatus.SUCCEEDED]
    if not problems:
        return

    table = Table(title="Transfer problems")
    table.add_column("Unit")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Detail")
    for result in problems:
        table.add_row(
            result.unit.key,
            _format_status_with_color(str(result.status)),
            str(result.attempts),
            result.error or "",
        )
    console.print(table)


def print_verification(console: Console, report: MigrationReport) -> None:
    """Print per-unit verification verdicts."""
    if not report.verification:
        return

    table = Table(title="Verification")
    table.add_column("Unit")
    table.add_column("Result")
    table.add_column("Detail")
    for result in report.verification:
        verdict = "match" if result.match else "mismatch"
        table.add_row(
            result.unit.key, _format_status_with_color(verdict), result.detail
        )
    console.print(table)


def print_summary(console: Console, report: MigrationReport) -> None:
    """Print aggregate counts and any fatal failure."""
    if report.plan is not None:
        console.print(
            f"Planned: {len(report.plan)} of {report.plan.considered} unit(s)"
        )
    if report.results:
        console.print(
            f"Transferred: {report.succeeded}  Failed: {report.failed}  "
            f"Skipped: {report.skipped}  Total: {report.total}"
        )
    if report.verification:
        matched = len(report.verification) - report.mismatches
        console.print(f"Verified: {matched}/{len(report.verification)} match")
    if report.cancelled:
        console.print("[yellow]Cancelled before all units were transferred.[/yellow]")
    if report.failure is not None:
        typer.echo(f"Error: {report.failure.message}", err=True)
        if report.failure.hint:
            typer.echo(f"Hint: {report.failure.hint}", err=True)


def print_report(console: Console, report: MigrationReport) -> None:
    """Print every section of a report that has content."""
    if report.plan is not None and not report.results:
        print_plan(console, report.plan)
    print_results(console, report)
    print_verification(console, report)
    print_summary(console, report)

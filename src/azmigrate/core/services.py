"""Core domain services for azmigrate."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from azmigrate.core.cancellation import CancellationToken
from azmigrate.core.diff import DiffPolicy, plan
from azmigrate.core.exceptions import AzmigrateError
from azmigrate.core.models import (
    MigrationReport,
    MigrationUnit,
    ResourceEndpoint,
    SelectionReason,
    WorkflowFailure,
    WorkflowMode,
    WorkflowStage,
)
from azmigrate.core.ports import (
    CredentialPort,
    ProgressReporter,
    ResourceAdapter,
    TransferFunction,
    UnitFilter,
)
from azmigrate.core.scheduler import TransferScheduler
from azmigrate.core.verifier import Verifier


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WorkflowRequest:
    """A single workflow invocation, validated once at workflow start.

    Attributes:
        source: Endpoint to copy from.
        target: Endpoint to copy to.
        mode: Which named workflow to run.
        policy: Diff policy (comparator, window, force).
        concurrency: Maximum transfers in flight.
        name: Label used in the report (defaults to the resource kind).
    """

    source: ResourceEndpoint
    target: ResourceEndpoint
    mode: WorkflowMode = WorkflowMode.FULL
    policy: DiffPolicy = field(default_factory=DiffPolicy)
    concurrency: int = 1
    name: str = ""

    def __post_init__(self) -> None:
        """Validate that both endpoints agree and the mode is consistent."""
        if self.source.kind is not self.target.kind:
            raise ValueError(
                f"Source is {self.source.kind} but target is {self.target.kind}"
            )
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if self.mode is WorkflowMode.INCREMENTAL and self.policy.window is None:
            raise ValueError("Incremental workflows need a bounded time window")

    @property
    def label(self) -> str:
        return self.name or str(self.source.kind)


class MigrationOrchestrator:
    """Composes credentials, enumeration, diffing, transfer and verification.

    Each call to run() walks the workflow state machine
    ``configured -> credentials -> enumerating -> planning -> transferring
    -> verifying -> reported``. Fatal errors (credential denial, enumeration
    failure) jump straight to ``reported`` with a failure summary. Per-unit
    transfer failures are recorded and the workflow carries on.
    """

    def __init__(
        self,
        adapter: ResourceAdapter,
        credentials: CredentialPort,
        scheduler: TransferScheduler | None = None,
        verifier: Verifier | None = None,
    ) -> None:
        self._adapter = adapter
        self._credentials = credentials
        self._scheduler = scheduler or TransferScheduler()
        self._verifier = verifier or Verifier(adapter)

    def run(
        self,
        request: WorkflowRequest,
        transfer_fn: TransferFunction | None = None,
        *,
        cancel: CancellationToken | None = None,
        progress: ProgressReporter | None = None,
    ) -> MigrationReport:
        """Run one workflow and return its report.

        Args:
            request: The workflow to run.
            transfer_fn: Copies one unit. Required for full and incremental
                workflows, ignored otherwise.
            cancel: Optional cancellation token for the transfer stage.
            progress: Optional progress reporter for the transfer stage.

        Returns:
            The finalized MigrationReport. Fatal errors are reported in
            ``report.failure`` rather than raised.

        Raises:
            ValueError: If a transferring workflow has no transfer_fn.
        """
        transferring = request.mode in (WorkflowMode.FULL, WorkflowMode.INCREMENTAL)
        if transferring and transfer_fn is None:
            raise ValueError(f"{request.mode} workflows need a transfer function")

        report = MigrationReport(workflow=request.label, mode=request.mode)
        report = report.with_stage(WorkflowStage.CONFIGURED)
        logger.info(
            "%s: %s -> %s (%s)",
            request.label,
            request.source.describe(),
            request.target.describe(),
            request.mode,
        )

        try:
            report = report.with_stage(WorkflowStage.CREDENTIALS)
            self._resolve_credentials(request)

            if request.mode is WorkflowMode.VERIFY_ONLY:
                report = report.with_stage(WorkflowStage.VERIFYING)
                report = self._verify(report, request)
                return report.finalize()

            report = report.with_stage(WorkflowStage.ENUMERATING)
            source_units, target_units = self._enumerate(request)

            report = report.with_stage(WorkflowStage.PLANNING)
            transfer_plan = plan(source_units, target_units, request.policy)
            report = report.with_plan(transfer_plan)
            logger.info(
                "Plan: %d unit(s) to transfer (%d missing, %d stale) of %d considered",
                len(transfer_plan),
                transfer_plan.count(SelectionReason.MISSING),
                transfer_plan.count(SelectionReason.STALE),
                transfer_plan.considered,
            )

            if request.mode is WorkflowMode.DIFF_ONLY:
                return report.finalize()

            assert transfer_fn is not None
            report = report.with_stage(WorkflowStage.TRANSFERRING)
            batch = self._scheduler.execute(
                transfer_plan,
                transfer_fn,
                request.concurrency,
                cancel=cancel,
                progress=progress,
            )
            report = report.with_results(batch.results, cancelled=batch.cancelled)
            logger.info(
                "Transferred %d, failed %d, skipped %d",
                report.succeeded,
                report.failed,
                report.skipped,
            )

            if report.cancelled:
                logger.warning("Workflow cancelled; skipping verification")
                return report.finalize()

            report = report.with_stage(WorkflowStage.VERIFYING)
            report = self._verify(report, request)
        except AzmigrateError as e:
            stage = report.stages[-1]
            logger.error("%s failed during %s: %s", request.label, stage, e)
            report = report.with_failure(
                WorkflowFailure(
                    error=type(e).__name__,
                    message=str(e),
                    stage=stage,
                    hint=e.recovery_hint,
                )
            )

        return report.finalize()

    def _resolve_credentials(self, request: WorkflowRequest) -> None:
        for endpoint in (request.source, request.target):
            self._credentials.resolve(endpoint, endpoint.credential_kind)

    def _enumerate(
        self, request: WorkflowRequest
    ) -> tuple[list[MigrationUnit], list[MigrationUnit]]:
        source_units = list(self._adapter.list(request.source, UnitFilter()))
        logger.info(
            "Found %d unit(s) on %s", len(source_units), request.source.describe()
        )
        if not source_units:
            return source_units, []

        target_filter = UnitFilter(scopes=_scopes(source_units))
        target_units = list(self._adapter.list(request.target, target_filter))
        logger.info(
            "Found %d unit(s) on %s", len(target_units), request.target.describe()
        )
        return source_units, target_units

    def _verify(
        self, report: MigrationReport, request: WorkflowRequest
    ) -> MigrationReport:
        cutoff = request.policy.cutoff(datetime.now(UTC))
        unit_filter = UnitFilter(scopes=request.source.units, modified_since=cutoff)
        units = list(self._adapter.verification_units(request.source, unit_filter))
        results = self._verifier.reconcile(request.source, request.target, units)
        matched = sum(1 for r in results if r.match)
        logger.info("Verified %d unit(s): %d match", len(results), matched)
        return report.with_verification(tuple(results))


def _scopes(units: Iterable[MigrationUnit]) -> tuple[str, ...]:
    """Distinct unit scopes in first-seen order."""
    return tuple(dict.fromkeys(unit.scope for unit in units if unit.scope))

"""Transfer scheduler: runs a plan's transfers with bounded concurrency.

The scheduler is transport-agnostic. It only sees a TransferFunction that
returns on success or raises on failure, and records the outcome of each
unit in a MigrationReport. Results are aggregated on the calling thread;
workers never touch shared state.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, wait
from typing import TYPE_CHECKING, cast

from azmigrate.core.cancellation import CancellationToken
from azmigrate.core.exceptions import UnitSkipped
from azmigrate.core.models import (
    MigrationReport,
    MigrationUnit,
    PlannedUnit,
    TransferPlan,
    TransferResult,
    TransferStatus,
)
from azmigrate.core.ports import NullProgressReporter


if TYPE_CHECKING:
    from collections.abc import Callable
    from concurrent.futures import Future

    from azmigrate.core.ports import ExecutorFactory, ProgressReporter, TransferFunction


logger = logging.getLogger(__name__)

CANCELLED_BEFORE_START = "cancelled before start"


class TransferScheduler:
    """Executes transfer plans with retry and partial-failure semantics."""

    def __init__(
        self,
        executor_factory: ExecutorFactory | None = None,
        *,
        max_retries: int = 1,
        backoff_base: float = 1.0,
        backoff_max: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the scheduler.

        Args:
            executor_factory: Builds an executor for a given worker count.
                When None, units run inline one at a time.
            max_retries: Maximum attempts per unit; 1 means no retry.
            backoff_base: Delay in seconds before the second attempt. Each
                further attempt doubles it.
            backoff_max: Upper bound on a single backoff delay.
            clock: Monotonic clock used to time units.
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self._executor_factory = executor_factory
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._backoff_max = backoff_max
        self._clock = clock

    @property
    def max_retries(self) -> int:
        return self._max_retries

    def backoff_delay(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-based)."""
        delay: float = self._backoff_base * (2 ** (attempt - 1))
        return min(delay, self._backoff_max)

    def execute(
        self,
        plan: TransferPlan,
        transfer_fn: TransferFunction,
        concurrency_limit: int = 1,
        *,
        cancel: CancellationToken | None = None,
        progress: ProgressReporter | None = None,
    ) -> MigrationReport:
        """Transfer every planned unit and report the outcomes.

        A unit that exhausts its retries is recorded as failed and the batch
        continues. When ``cancel`` is set, no new unit starts; in-flight
        units finish and the rest are recorded as skipped.

        Args:
            plan: Units to transfer.
            transfer_fn: Copies one unit; raises on failure.
            concurrency_limit: Maximum transfers in flight at once.
            cancel: Optional cancellation token.
            progress: Optional progress reporter.

        Returns:
            MigrationReport with one TransferResult per planned unit, in plan
            order, and ``cancelled`` set if the batch was cut short.
        """
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be at least 1")
        if cancel is None:
            cancel = CancellationToken()
        if progress is None:
            progress = NullProgressReporter()

        planned = list(plan.units)
        progress.start(len(planned))
        results: dict[int, TransferResult] = {}

        if concurrency_limit == 1 or self._executor_factory is None:
            self._run_sequential(planned, transfer_fn, cancel, progress, results)
        else:
            self._run_parallel(
                planned, transfer_fn, concurrency_limit, cancel, progress, results
            )

        ordered: list[TransferResult] = []
        for index, item in enumerate(planned):
            result = results.get(index)
            if result is None:
                result = TransferResult(
                    unit=item.unit,
                    status=TransferStatus.SKIPPED,
                    error=CANCELLED_BEFORE_START,
                )
            ordered.append(result)

        if cancel.cancelled and len(results) < len(planned):
            logger.warning(
                "Cancelled: %d of %d unit(s) never started",
                len(planned) - len(results),
                len(planned),
            )
        return MigrationReport(plan=plan).with_results(
            tuple(ordered), cancelled=cancel.cancelled
        )

    def _run_sequential(
        self,
        planned: list[PlannedUnit],
        transfer_fn: TransferFunction,
        cancel: CancellationToken,
        progress: ProgressReporter,
        results: dict[int, TransferResult],
    ) -> None:
        for index, item in enumerate(planned):
            if cancel.cancelled:
                break
            progress.unit_started(item.unit)
            result = self._run_unit(item.unit, transfer_fn, cancel)
            results[index] = result
            progress.unit_finished(result)

    def _run_parallel(
        self,
        planned: list[PlannedUnit],
        transfer_fn: TransferFunction,
        limit: int,
        cancel: CancellationToken,
        progress: ProgressReporter,
        results: dict[int, TransferResult],
    ) -> None:
        assert self._executor_factory is not None
        queue = deque(enumerate(planned))
        in_flight: dict[Future[object], int] = {}

        with self._executor_factory(limit) as executor:
            while queue or in_flight:
                while queue and len(in_flight) < limit and not cancel.cancelled:
                    index, item = queue.popleft()
                    progress.unit_started(item.unit)
                    future = executor.submit(
                        self._run_unit, item.unit, transfer_fn, cancel
                    )
                    in_flight[future] = index

                if not in_flight:
                    break

                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in done:
                    index = in_flight.pop(future)
                    result = cast("TransferResult", future.result())
                    results[index] = result
                    progress.unit_finished(result)

    def _run_unit(
        self,
        unit: MigrationUnit,
        transfer_fn: TransferFunction,
        cancel: CancellationToken,
    ) -> TransferResult:
        """Attempt one unit up to max_retries times. Never raises."""
        started = self._clock()
        attempts = 0
        last_error: Exception | None = None

        while attempts < self._max_retries:
            if attempts and cancel.cancelled:
                break
            attempts += 1
            try:
                transfer_fn(unit)
            except UnitSkipped as e:
                logger.info("Skipped %s: %s", unit.key, e)
                return TransferResult(
                    unit=unit,
                    status=TransferStatus.SKIPPED,
                    error=str(e),
                    duration=self._clock() - started,
                    attempts=attempts,
                )
            except Exception as e:
                last_error = e
                logger.warning(
                    "Transfer of %s failed (attempt %d/%d): %s",
                    unit.key,
                    attempts,
                    self._max_retries,
                    e,
                )
                if attempts < self._max_retries and cancel.wait(
                    self.backoff_delay(attempts)
                ):
                    break
            else:
                logger.info("Transferred %s", unit.key)
                return TransferResult(
                    unit=unit,
                    status=TransferStatus.SUCCEEDED,
                    duration=self._clock() - started,
                    attempts=attempts,
                )

        return TransferResult(
            unit=unit,
            status=TransferStatus.FAILED,
            error=_describe(last_error),
            duration=self._clock() - started,
            attempts=attempts,
        )


def _describe(error: Exception | None) -> str:
    if error is None:
        return "not attempted"
    message = str(error)
    return message if message else type(error).__name__

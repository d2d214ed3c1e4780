"""Unit tests for the transfer scheduler."""

from __future__ import annotations

import threading
import time
from typing import Any

import pytest

from azmigrate.adapters.executor import SynchronousExecutor, thread_pool_factory
from azmigrate.core.cancellation import CancellationToken
from azmigrate.core.exceptions import UnitSkipped
from azmigrate.core.models import (
    MigrationUnit,
    PlannedUnit,
    SelectionReason,
    TransferPlan,
    TransferStatus,
)
from azmigrate.core.scheduler import CANCELLED_BEFORE_START, TransferScheduler


def _plan(*keys: str) -> TransferPlan:
    return TransferPlan(
        units=tuple(
            PlannedUnit(MigrationUnit(k), SelectionReason.MISSING) for k in keys
        ),
        considered=len(keys),
    )


class RecordingProgress:
    def __init__(self) -> None:
        self.total: int | None = None
        self.started: list[str] = []
        self.finished: list[str] = []

    def start(self, total: int) -> None:
        self.total = total

    def unit_started(self, unit: MigrationUnit) -> None:
        self.started.append(unit.key)

    def unit_finished(self, result: Any) -> None:
        self.finished.append(result.unit.key)


@pytest.mark.core
@pytest.mark.tra("Scheduler.Execute")
@pytest.mark.tier(1)
class TestExecute:
    """Tests for TransferScheduler.execute()."""

    def test_all_units_succeed(self) -> None:
        copied: list[str] = []
        report = TransferScheduler().execute(_plan("a", "b"), lambda u: copied.append(u.key))
        assert copied == ["a", "b"]
        assert report.succeeded == 2
        assert report.exit_code == 0

    def test_partial_failure_continues(self) -> None:
        """One failing unit does not stop the batch."""

        def transfer(unit: MigrationUnit) -> None:
            if unit.key == "b":
                raise RuntimeError("network reset")

        report = TransferScheduler().execute(_plan("a", "b", "c"), transfer)
        assert (report.succeeded, report.failed, report.skipped) == (2, 1, 0)
        failed = [r for r in report.results if r.status is TransferStatus.FAILED]
        assert failed[0].unit.key == "b"
        assert failed[0].error == "network reset"

    def test_counts_add_up_to_plan_size(self) -> None:
        def transfer(unit: MigrationUnit) -> None:
            if unit.key == "skip":
                raise UnitSkipped("no dump")
            if unit.key == "bad":
                raise ValueError("bad")

        report = TransferScheduler().execute(_plan("ok", "skip", "bad"), transfer)
        assert report.succeeded + report.failed + report.skipped == 3

    def test_unit_skipped_is_recorded(self) -> None:
        def transfer(unit: MigrationUnit) -> None:
            raise UnitSkipped("No dump found")

        report = TransferScheduler().execute(_plan("db"), transfer)
        assert report.results[0].status is TransferStatus.SKIPPED
        assert report.results[0].error == "No dump found"

    def test_results_in_plan_order(self) -> None:
        report = TransferScheduler(SynchronousExecutor).execute(
            _plan("c", "a", "b"), lambda u: None, concurrency_limit=2
        )
        assert [r.unit.key for r in report.results] == ["c", "a", "b"]

    def test_empty_plan(self) -> None:
        report = TransferScheduler().execute(_plan(), lambda u: None)
        assert report.total == 0
        assert not report.cancelled

    def test_error_without_message_uses_type_name(self) -> None:
        def transfer(unit: MigrationUnit) -> None:
            raise TimeoutError

        report = TransferScheduler().execute(_plan("a"), transfer)
        assert report.results[0].error == "TimeoutError"

    def test_progress_is_reported(self) -> None:
        progress = RecordingProgress()
        TransferScheduler().execute(_plan("a", "b"), lambda u: None, progress=progress)
        assert progress.total == 2
        assert progress.started == ["a", "b"]
        assert progress.finished == ["a", "b"]

    def test_invalid_limit_rejected(self) -> None:
        with pytest.raises(ValueError, match="concurrency_limit"):
            TransferScheduler().execute(_plan("a"), lambda u: None, concurrency_limit=0)

    def test_sequential_without_factory(self) -> None:
        """Without an executor factory, units run inline even with a limit > 1."""
        threads: set[str] = set()
        TransferScheduler().execute(
            _plan("a", "b"),
            lambda u: threads.add(threading.current_thread().name),
            concurrency_limit=4,
        )
        assert threads == {threading.current_thread().name}


@pytest.mark.core
@pytest.mark.tra("Scheduler.Retry")
@pytest.mark.tier(1)
class TestRetry:
    """Tests for retry with backoff."""

    def test_retry_until_success(self) -> None:
        attempts: list[int] = []

        def flaky(unit: MigrationUnit) -> None:
            attempts.append(1)
            if len(attempts) < 3:
                raise ConnectionError("reset")

        scheduler = TransferScheduler(max_retries=3, backoff_base=0.0)
        report = scheduler.execute(_plan("a"), flaky)
        assert report.results[0].status is TransferStatus.SUCCEEDED
        assert report.results[0].attempts == 3

    def test_retries_exhausted(self) -> None:
        def broken(unit: MigrationUnit) -> None:
            raise ConnectionError("reset")

        scheduler = TransferScheduler(max_retries=2, backoff_base=0.0)
        result = scheduler.execute(_plan("a"), broken).results[0]
        assert result.status is TransferStatus.FAILED
        assert result.attempts == 2

    def test_skip_is_not_retried(self) -> None:
        calls: list[int] = []

        def skip(unit: MigrationUnit) -> None:
            calls.append(1)
            raise UnitSkipped("missing")

        TransferScheduler(max_retries=3, backoff_base=0.0).execute(_plan("a"), skip)
        assert len(calls) == 1

    def test_backoff_doubles_and_caps(self) -> None:
        scheduler = TransferScheduler(backoff_base=1.0, backoff_max=5.0)
        assert [scheduler.backoff_delay(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]

    def test_invalid_retries_rejected(self) -> None:
        with pytest.raises(ValueError, match="max_retries"):
            TransferScheduler(max_retries=0)


@pytest.mark.core
@pytest.mark.tra("Scheduler.Concurrency")
@pytest.mark.tier(2)
class TestConcurrency:
    """Tests for the concurrency bound with a real thread pool."""

    def test_in_flight_never_exceeds_limit(self) -> None:
        lock = threading.Lock()
        in_flight = 0
        peak = 0

        def transfer(unit: MigrationUnit) -> None:
            nonlocal in_flight, peak
            with lock:
                in_flight += 1
                peak = max(peak, in_flight)
            time.sleep(0.02)
            with lock:
                in_flight -= 1

        scheduler = TransferScheduler(thread_pool_factory)
        report = scheduler.execute(
            _plan(*[f"u{i}" for i in range(12)]), transfer, concurrency_limit=3
        )
        assert report.succeeded == 12
        assert 1 <= peak <= 3

    def test_factory_receives_limit(self) -> None:
        sizes: list[int] = []

        def factory(workers: int) -> SynchronousExecutor:
            sizes.append(workers)
            return SynchronousExecutor(workers)

        TransferScheduler(factory).execute(_plan("a", "b"), lambda u: None, 2)
        assert sizes == [2]


@pytest.mark.core
@pytest.mark.tra("Scheduler.Cancellation")
@pytest.mark.tier(1)
class TestCancellation:
    """Tests for cooperative cancellation."""

    def test_cancel_marks_unstarted_units_skipped(self) -> None:
        token = CancellationToken()

        def transfer(unit: MigrationUnit) -> None:
            if unit.key == "b":
                token.cancel()

        report = TransferScheduler().execute(
            _plan("a", "b", "c", "d"), transfer, cancel=token
        )
        assert report.cancelled
        assert [r.status for r in report.results] == [
            TransferStatus.SUCCEEDED,
            TransferStatus.SUCCEEDED,
            TransferStatus.SKIPPED,
            TransferStatus.SKIPPED,
        ]
        assert report.results[2].error == CANCELLED_BEFORE_START
        assert report.exit_code == 1

    def test_cancel_before_start_runs_nothing(self) -> None:
        token = CancellationToken()
        token.cancel()
        calls: list[str] = []
        report = TransferScheduler(SynchronousExecutor).execute(
            _plan("a", "b"), lambda u: calls.append(u.key), 2, cancel=token
        )
        assert calls == []
        assert report.skipped == 2

    def test_cancel_stops_retries(self) -> None:
        token = CancellationToken()
        calls: list[int] = []

        def failing(unit: MigrationUnit) -> None:
            calls.append(1)
            token.cancel()
            raise ConnectionError("reset")

        scheduler = TransferScheduler(max_retries=5, backoff_base=10.0)
        result = scheduler.execute(_plan("a"), failing, cancel=token).results[0]
        assert len(calls) == 1
        assert result.status is TransferStatus.FAILED

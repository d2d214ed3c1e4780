"""Executor adapters implementing ExecutorPort."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Callable


class SynchronousExecutor:
    """Runs each submitted transfer inline on the calling thread.

    Useful in tests: the scheduler's parallel path can be exercised
    deterministically, with every future already resolved on return.
    """

    def __init__(self, max_workers: int | None = None) -> None:
        self.max_workers = max_workers
        self.submitted = 0

    def submit(
        self,
        fn: Callable[..., object],
        *args: object,
        **kwargs: object,
    ) -> Future[object]:
        """Call ``fn`` now and wrap its outcome in a completed future."""
        self.submitted += 1
        future: Future[object] = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future

    def __enter__(self) -> SynchronousExecutor:
        return self

    def __exit__(
        self, exc_type: object, exc_val: object, exc_tb: object
    ) -> object | None:
        return None


class ThreadPoolExecutorAdapter:
    """Worker pool for unit transfers.

    Keeps thread management out of ``azmigrate.core``; the scheduler only
    sees ExecutorPort.
    """

    def __init__(self, max_workers: int) -> None:
        """Create a pool with ``max_workers`` transfer threads.

        Args:
            max_workers: Number of worker threads, normally the workflow's
                concurrency limit.
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="transfer"
        )

    def submit(
        self,
        fn: Callable[..., object],
        *args: object,
        **kwargs: object,
    ) -> Future[object]:
        return self._executor.submit(fn, *args, **kwargs)

    def __enter__(self) -> ThreadPoolExecutorAdapter:
        self._executor.__enter__()
        return self

    def __exit__(
        self, exc_type: object, exc_val: object, exc_tb: object
    ) -> object | None:
        # Waits for in-flight transfers before returning.
        return self._executor.__exit__(exc_type, exc_val, exc_tb)  # type: ignore[arg-type]


def thread_pool_factory(max_workers: int) -> ThreadPoolExecutorAdapter:
    """ExecutorFactory that builds a thread pool of the requested size."""
    return ThreadPoolExecutorAdapter(max_workers)

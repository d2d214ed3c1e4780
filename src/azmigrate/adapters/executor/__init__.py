"""Executor adapters for running transfers in parallel."""

from azmigrate.adapters.executor.executor import (
    SynchronousExecutor,
    ThreadPoolExecutorAdapter,
    thread_pool_factory,
)


__all__ = ["SynchronousExecutor", "ThreadPoolExecutorAdapter", "thread_pool_factory"]

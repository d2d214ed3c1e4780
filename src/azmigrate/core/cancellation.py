"""Cooperative cancellation for transfer batches."""

from __future__ import annotations

import threading


class CancellationToken:
    """Flag checked by the scheduler before each unit and between retries.

    Setting the token never interrupts a transfer that is already running.

    Example:
        >>> token = CancellationToken()
        >>> token.cancelled
        False
        >>> token.cancel()
        >>> token.cancelled
        True
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """True once cancel() has been called."""
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds, waking early on cancellation.

        Returns:
            True if cancellation was requested.
        """
        return self._event.wait(timeout)

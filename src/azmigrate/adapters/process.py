"""Runs external tools (az, pg_dump, pg_restore) as child processes."""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from azmigrate.core.exceptions import CommandError


logger = logging.getLogger(__name__)

SECRET_FLAGS = frozenset({"--password", "-p", "--account-key", "--sas-token"})
"""Flags whose following argument must never be logged."""

REDACTED = "***"

_STDERR_TAIL = 2000

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


def redact(command: Sequence[str]) -> list[str]:
    """Copy of ``command`` with the values of secret flags masked.

    Example:
        >>> redact(["az", "acr", "import", "--password", "hunter2"])
        ['az', 'acr', 'import', '--password', '***']
    """
    masked: list[str] = []
    hide_next = False
    for arg in command:
        if hide_next:
            masked.append(REDACTED)
            hide_next = False
            continue
        flag, sep, _ = arg.partition("=")
        if sep and flag in SECRET_FLAGS:
            masked.append(f"{flag}={REDACTED}")
            continue
        masked.append(arg)
        hide_next = arg in SECRET_FLAGS
    return masked


class CommandRunner:
    """Thin wrapper over ``subprocess.run`` that raises CommandError.

    Output is captured as text. Extra environment variables (such as
    ``PGPASSWORD``) are merged over the parent environment and are never
    logged.
    """

    def __init__(
        self, runner: Runner = subprocess.run, timeout: float | None = None
    ) -> None:
        self._runner = runner
        self._timeout = timeout

    def run(
        self,
        command: Sequence[str],
        env: Mapping[str, str] | None = None,
    ) -> str:
        """Run ``command`` and return its standard output.

        Raises:
            CommandError: If the tool is missing, times out or exits non-zero.
        """
        shown = redact(command)
        logger.debug("Running %s", " ".join(shown))
        kwargs: dict[str, Any] = {
            "capture_output": True,
            "text": True,
            "check": False,
        }
        if env:
            kwargs["env"] = {**os.environ, **env}
        if self._timeout is not None:
            kwargs["timeout"] = self._timeout

        try:
            completed = self._runner(list(command), **kwargs)  # nosec B603
        except FileNotFoundError as e:
            raise CommandError(
                f"{command[0]} not found", command=shown
            ) from e
        except subprocess.TimeoutExpired as e:
            raise CommandError(
                f"{command[0]} timed out after {e.timeout}s", command=shown
            ) from e

        if completed.returncode != 0:
            stderr = (completed.stderr or "").strip()[-_STDERR_TAIL:]
            raise CommandError(
                f"{command[0]} exited with status {completed.returncode}: "
                f"{stderr or 'no error output'}",
                command=shown,
                returncode=completed.returncode,
                stderr=stderr,
            )
        return completed.stdout or ""

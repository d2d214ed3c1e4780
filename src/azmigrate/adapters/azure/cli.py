"""JSON interface to the ``az`` command line."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from azmigrate.adapters.process import CommandRunner
from azmigrate.core.exceptions import CommandError


if TYPE_CHECKING:
    from azmigrate.adapters.process import Runner


logger = logging.getLogger(__name__)


class AzureCli:
    """Runs ``az`` subcommands scoped to a subscription and decodes JSON.

    Every call adds ``--output json --only-show-errors`` and, when a
    subscription is given, ``--subscription``. The CLI reuses the caller's
    ``az login`` session; this class never stores tokens itself.

    Example:
        >>> az = AzureCli()
        >>> az.run("acr", "repository", "list", "--name", "myacr",
        ...        subscription="0000")  # doctest: +SKIP
        ['api', 'web']
    """

    def __init__(
        self,
        runner: CommandRunner | None = None,
        executable: str = "az",
    ) -> None:
        self._runner = runner or CommandRunner()
        self._executable = executable

    @classmethod
    def with_subprocess(cls, runner: Runner) -> AzureCli:
        """Build an AzureCli over a custom ``subprocess.run`` replacement."""
        return cls(CommandRunner(runner))

    def command(self, *args: str, subscription: str | None = None) -> list[str]:
        """The full argv for ``az <args>``."""
        argv = [self._executable, *args]
        if subscription:
            argv += ["--subscription", subscription]
        argv += ["--output", "json", "--only-show-errors"]
        return argv

    def run(self, *args: str, subscription: str | None = None) -> Any:
        """Run ``az <args>`` and return the decoded JSON output.

        Returns None when the command prints nothing (e.g. ``acr import``).

        Raises:
            CommandError: If ``az`` fails or prints something that is not JSON.
        """
        argv = self.command(*args, subscription=subscription)
        output = self._runner.run(argv).strip()
        if not output:
            return None
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise CommandError(
                f"az {' '.join(args[:3])} returned invalid JSON",
                command=argv[:3],
            ) from e

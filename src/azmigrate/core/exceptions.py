"""Domain exceptions for azmigrate.

All library errors inherit from AzmigrateError, allowing callers to catch
any library exception with a single except clause. Each exception provides
a recovery_hint property with guidance on resolving the error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from pathlib import Path

    from azmigrate.core.models import CredentialKind, ResourceEndpoint


class AzmigrateError(Exception):
    """Base class for all azmigrate exceptions.

    Catch this to handle any error from the library.
    """

    @property
    def recovery_hint(self) -> str | None:
        """Optional guidance on how to resolve this error."""
        return None


class ConfigurationError(AzmigrateError):
    """Raised for malformed or incomplete endpoint configuration.

    Always raised before any remote call is made.

    Attributes:
        path: The configuration file that failed to load, if any.
        field: The offending field name, if known.
    """

    def __init__(
        self,
        message: str,
        path: Path | None = None,
        field: str | None = None,
    ) -> None:
        self.path = path
        self.field = field
        super().__init__(message)

    @property
    def recovery_hint(self) -> str:
        """Point at the file and field to fix."""
        if self.path is not None and self.field is not None:
            return f"Check the '{self.field}' field in {self.path.name}"
        if self.path is not None:
            return f"Check {self.path.name} for JSON syntax and required fields"
        return "Check the endpoint configuration"


class CredentialUnavailable(AzmigrateError):
    """Raised when the secret backend denies access or the secret is missing.

    Attributes:
        endpoint: The endpoint the credential was requested for.
        kind: The kind of credential requested.
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        endpoint: ResourceEndpoint,
        kind: CredentialKind,
        cause: Exception | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.kind = kind
        self.cause = cause
        super().__init__(message)

    @property
    def recovery_hint(self) -> str:
        """Suggest checking login and access for the subscription."""
        return (
            f"Run 'az login' and confirm access to subscription "
            f"{self.endpoint.subscription} for {self.endpoint.name}"
        )


class EnumerationError(AzmigrateError):
    """Raised when listing units on an endpoint fails.

    Attributes:
        endpoint: The endpoint being enumerated.
        cause: The underlying transport or driver exception, if any.
    """

    def __init__(
        self,
        message: str,
        endpoint: ResourceEndpoint,
        cause: Exception | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.cause = cause
        super().__init__(message)

    @property
    def recovery_hint(self) -> str:
        """Suggest checking reachability of the endpoint."""
        return f"Verify that {self.endpoint.name} is reachable from this machine"


class TransferError(AzmigrateError):
    """Raised when copying one unit fails.

    Non-fatal: the scheduler records it against the unit and continues.

    Attributes:
        key: Identity key of the unit that failed.
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        key: str,
        cause: Exception | None = None,
    ) -> None:
        self.key = key
        self.cause = cause
        super().__init__(message)


class CommandError(AzmigrateError):
    """Raised when an external tool (az, pg_dump, pg_restore) fails.

    Attributes:
        command: The command line with secret arguments redacted.
        returncode: Process exit status, or None if it never started.
        stderr: Tail of the process standard error.
    """

    def __init__(
        self,
        message: str,
        command: list[str],
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)

    @property
    def recovery_hint(self) -> str | None:
        """Suggest installing the tool when it could not be started."""
        if self.returncode is None and self.command:
            return f"Install '{self.command[0]}' and make sure it is on PATH"
        return None


class UnitSkipped(AzmigrateError):  # noqa: N818
    """Raised by a transfer function to record a unit as skipped.

    Used when a resume flag (skip backup, skip download) finds no local
    copy to resume from.
    """

    pass

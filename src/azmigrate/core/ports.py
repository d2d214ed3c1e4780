"""Port interfaces for hexagonal architecture.

Ports define contracts that adapters must implement. The core domain
depends only on these protocols, never on concrete implementations.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable


if TYPE_CHECKING:
    from concurrent.futures import Future
    from datetime import datetime

    from azmigrate.core.models import (
        Credential,
        CredentialKind,
        MigrationUnit,
        ResourceEndpoint,
        TransferResult,
    )

TransferFunction = Callable[["MigrationUnit"], None]
"""Copies one unit from source to target.

Returns on success. Raises UnitSkipped to record the unit as skipped and
any other exception to record a failed attempt.
"""


@dataclass(frozen=True, slots=True)
class UnitFilter:
    """Narrows an enumeration pass.

    Attributes:
        scopes: Databases, containers or repositories to enumerate. Empty
            means the endpoint's configured units (or everything, for a
            registry with no configured repositories).
        modified_since: Only units modified at or after this instant.
            Honored by adapters whose units carry timestamps.
    """

    scopes: tuple[str, ...] = field(default=())
    modified_since: datetime | None = None


@runtime_checkable
class CredentialPort(Protocol):
    """Resolves short-lived secrets for an endpoint."""

    def resolve(self, endpoint: ResourceEndpoint, kind: CredentialKind) -> Credential:
        """Return a credential that has not expired.

        Raises:
            CredentialUnavailable: If the backend denies access or the
                secret does not exist.
        """
        ...


@runtime_checkable
class SecretBackend(Protocol):
    """Secret store the credential provider reads from (Key Vault, az CLI)."""

    def fetch(self, endpoint: ResourceEndpoint, kind: CredentialKind) -> Credential:
        """Fetch a fresh credential, bypassing any cache.

        Raises:
            CredentialUnavailable: If access is denied or the secret is missing.
        """
        ...


@runtime_checkable
class ResourceAdapter(Protocol):
    """Enumerates and fingerprints units of one resource type.

    One adapter exists per resource type (PostgreSQL, Blob Storage,
    Container Registry). The orchestrator drives it for both endpoints.
    """

    def list(
        self, endpoint: ResourceEndpoint, unit_filter: UnitFilter
    ) -> Iterator[MigrationUnit]:
        """Enumerate live units on the endpoint.

        Returns a lazy, finite sequence. Every call re-enumerates; results
        are never cached across calls.

        Raises:
            EnumerationError: If the backend is unreachable.
        """
        ...

    def verification_units(
        self, endpoint: ResourceEndpoint, unit_filter: UnitFilter
    ) -> Iterable[MigrationUnit]:
        """Units to reconcile for a verify pass (tables, containers, tags).

        Raises:
            EnumerationError: If the backend is unreachable.
        """
        ...

    def fingerprint(self, endpoint: ResourceEndpoint, unit: MigrationUnit) -> Any:
        """Comparable fingerprint of a verification unit, None if absent.

        Raises:
            EnumerationError: If the backend is unreachable.
        """
        ...


@runtime_checkable
class ProgressReporter(Protocol):
    """Reports transfer progress to the user.

    This protocol defines the contract for progress display adapters.
    The core domain uses this to report progress without depending
    on any specific UI library.
    """

    def start(self, total: int) -> None:
        """Begin a batch of ``total`` unit transfers."""
        ...

    def unit_started(self, unit: MigrationUnit) -> None:
        """A unit has been handed to a worker."""
        ...

    def unit_finished(self, result: TransferResult) -> None:
        """A unit reached its final status."""
        ...


class NullProgressReporter:
    """A ProgressReporter that produces no output.

    Used as the default when no progress reporting is desired.
    """

    def start(self, total: int) -> None:
        """Do nothing."""
        _ = total

    def unit_started(self, unit: MigrationUnit) -> None:
        """Do nothing."""
        _ = unit

    def unit_finished(self, result: TransferResult) -> None:
        """Do nothing."""
        _ = result


@runtime_checkable
class ExecutorPort(Protocol):
    """Executor for parallel task execution.

    Abstracts over concurrent.futures executors to allow dependency injection
    and testing. The core domain uses this protocol instead of directly
    importing ThreadPoolExecutor, maintaining "concurrency at the edges".
    """

    def submit(
        self, fn: Callable[..., object], *args: object, **kwargs: object
    ) -> Future[object]:  # type: ignore[name-defined, unused-ignore]
        """Submit a function for execution."""
        ...

    def __enter__(self) -> ExecutorPort:
        """Enter context manager."""
        ...

    def __exit__(
        self, exc_type: object, exc_val: object, exc_tb: object
    ) -> object | None:
        """Exit context manager."""
        ...


ExecutorFactory = Callable[[int], ExecutorPort]
"""Builds an executor sized for the given number of workers."""

"""Core domain models for azmigrate.

These models are pure Python dataclasses with no I/O dependencies.
They represent the endpoints, units, plans and reports of a migration run.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any, Self


DEFAULT_SECRET_NAME = "postgresql-admin-password"


class ResourceKind(StrEnum):
    """The three resource types that can be migrated."""

    POSTGRES = "postgres"
    STORAGE = "storage"
    REGISTRY = "registry"


class CredentialKind(StrEnum):
    """Secrets the provider knows how to resolve."""

    DATABASE_PASSWORD = "database-password"
    STORAGE_ACCOUNT_KEY = "storage-account-key"
    REGISTRY_PASSWORD = "registry-password"


_REQUIRED_CREDENTIALS: dict[ResourceKind, CredentialKind] = {
    ResourceKind.POSTGRES: CredentialKind.DATABASE_PASSWORD,
    ResourceKind.STORAGE: CredentialKind.STORAGE_ACCOUNT_KEY,
    ResourceKind.REGISTRY: CredentialKind.REGISTRY_PASSWORD,
}


@dataclass(frozen=True, slots=True)
class ResourceEndpoint:
    """One side (source or target) of a migration.

    Attributes:
        kind: Resource type of the endpoint.
        subscription: Azure subscription identifier.
        name: PostgreSQL host, storage account name, or registry name.
        resource_group: Resource group (storage accounts only).
        username: Database administrator login (PostgreSQL only).
        keyvault: Key Vault holding the database password (PostgreSQL only).
        secret_name: Name of the password secret in the Key Vault.
        units: Configured databases, containers or repositories. An empty
            tuple on a registry endpoint means "all repositories".

    Example:
        >>> acr = ResourceEndpoint(
        ...     kind=ResourceKind.REGISTRY,
        ...     subscription="0000",
        ...     name="myacr",
        ... )
        >>> acr.login_server
        'myacr.azurecr.io'
    """

    kind: ResourceKind
    subscription: str
    name: str
    resource_group: str | None = None
    username: str | None = None
    keyvault: str | None = None
    secret_name: str = DEFAULT_SECRET_NAME
    units: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate kind-specific locator fields."""
        if not self.subscription:
            raise ValueError("Endpoint subscription cannot be empty")
        if not self.name:
            raise ValueError("Endpoint name cannot be empty")
        if len(set(self.units)) != len(self.units):
            raise ValueError("Endpoint units must be unique")
        if self.kind is ResourceKind.POSTGRES:
            if not self.username or not self.keyvault:
                raise ValueError("PostgreSQL endpoints need username and keyvault")
            if not self.units:
                raise ValueError("PostgreSQL endpoints need at least one database")
        elif self.kind is ResourceKind.STORAGE:
            if not self.resource_group:
                raise ValueError("Storage endpoints need a resource_group")
            if not self.units:
                raise ValueError("Storage endpoints need at least one container")

    @property
    def account_url(self) -> str:
        """Blob service URL of a storage account."""
        return f"https://{self.name}.blob.core.windows.net"

    @property
    def login_server(self) -> str:
        """Login server of a container registry."""
        return f"{self.name}.azurecr.io"

    @property
    def credential_kind(self) -> CredentialKind:
        """The credential this endpoint needs before it can be enumerated."""
        return _REQUIRED_CREDENTIALS[self.kind]

    def describe(self) -> str:
        """Short human-readable label for logs and reports."""
        if self.kind is ResourceKind.REGISTRY:
            return self.login_server
        return self.name


@dataclass(frozen=True, slots=True)
class MigrationUnit:
    """The smallest transferable item: a database, a blob, or an image tag.

    Units compare and hash by ``key`` alone. The freshness markers are
    only consulted by the diff engine's comparators and window filter.

    Attributes:
        key: Identity key, unique within one enumeration pass.
        scope: Database, container or repository the unit belongs to.
        last_modified: Last modification time, if the backend reports one.
        size: Size in bytes, or row count for databases.
        digest: Content digest (blob MD5, image manifest digest).
    """

    key: str
    scope: str = field(default="", compare=False)
    last_modified: datetime | None = field(default=None, compare=False)
    size: int | None = field(default=None, compare=False)
    digest: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        """Validate the identity key."""
        if not self.key:
            raise ValueError("MigrationUnit key cannot be empty")

    @property
    def name(self) -> str:
        """Unit name relative to its scope."""
        prefix = f"{self.scope}/"
        if self.scope and self.key.startswith(prefix):
            return self.key[len(prefix) :]
        prefix = f"{self.scope}:"
        if self.scope and self.key.startswith(prefix):
            return self.key[len(prefix) :]
        return self.key


class SelectionReason(StrEnum):
    """Why the diff engine put a unit into a plan."""

    MISSING = "missing"
    STALE = "stale"
    FORCED = "forced"


@dataclass(frozen=True, slots=True)
class PlannedUnit:
    """A unit selected for transfer and the reason it was selected."""

    unit: MigrationUnit
    reason: SelectionReason


@dataclass(frozen=True, slots=True)
class TransferPlan:
    """Ordered, immutable set of units to transfer in one run.

    Attributes:
        units: Selected units in source enumeration order.
        considered: Number of source units inside the time window.
        window: Time window the plan was computed with, None if unrestricted.
    """

    units: tuple[PlannedUnit, ...] = ()
    considered: int = 0
    window: timedelta | None = None

    def __len__(self) -> int:
        return len(self.units)

    def __iter__(self) -> Iterator[PlannedUnit]:
        return iter(self.units)

    @property
    def is_empty(self) -> bool:
        """True when nothing needs to be transferred."""
        return not self.units

    def count(self, reason: SelectionReason) -> int:
        """Number of planned units selected for the given reason."""
        return sum(1 for planned in self.units if planned.reason is reason)


class TransferStatus(StrEnum):
    """Outcome of one unit's transfer."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True)
class TransferResult:
    """Outcome of attempting one unit's transfer.

    Attributes:
        unit: The unit that was transferred.
        status: Final status after all attempts.
        error: Error detail for failed or skipped units.
        duration: Wall-clock seconds spent on the unit, retries included.
        attempts: Number of attempts made.
    """

    unit: MigrationUnit
    status: TransferStatus
    error: str | None = None
    duration: float = 0.0
    attempts: int = 0


@dataclass(frozen=True, slots=True)
class VerificationResult:
    """Comparison of one unit's fingerprint on source and target.

    A non-matching result is a finding, not an error.
    """

    unit: MigrationUnit
    match: bool
    detail: str = ""
    source: Any = None
    target: Any = None


class WorkflowMode(StrEnum):
    """Named workflows the orchestrator can run."""

    FULL = "full"
    INCREMENTAL = "incremental"
    DIFF_ONLY = "diff-only"
    VERIFY_ONLY = "verify-only"


class WorkflowStage(StrEnum):
    """States of one workflow invocation, in order."""

    CONFIGURED = "configured"
    CREDENTIALS = "credentials"
    ENUMERATING = "enumerating"
    PLANNING = "planning"
    TRANSFERRING = "transferring"
    VERIFYING = "verifying"
    REPORTED = "reported"


@dataclass(frozen=True, slots=True)
class WorkflowFailure:
    """A fatal error that ended a workflow early.

    Attributes:
        error: Exception class name (e.g. "CredentialUnavailable").
        message: Human-readable error message.
        stage: Stage the workflow was in when it failed.
        hint: Recovery hint from the exception, if any.
    """

    error: str
    message: str
    stage: WorkflowStage
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class MigrationReport:
    """Terminal artifact of a migration run.

    Reports are built once per stage and never mutated; use the ``with_*``
    methods to derive an updated copy.
    """

    workflow: str = ""
    mode: WorkflowMode = WorkflowMode.FULL
    plan: TransferPlan | None = None
    results: tuple[TransferResult, ...] = ()
    verification: tuple[VerificationResult, ...] = ()
    cancelled: bool = False
    failure: WorkflowFailure | None = None
    stages: tuple[WorkflowStage, ...] = ()
    finished_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return self._count(TransferStatus.SUCCEEDED)

    @property
    def failed(self) -> int:
        return self._count(TransferStatus.FAILED)

    @property
    def skipped(self) -> int:
        return self._count(TransferStatus.SKIPPED)

    @property
    def mismatches(self) -> int:
        return sum(1 for v in self.verification if not v.match)

    def _count(self, status: TransferStatus) -> int:
        return sum(1 for r in self.results if r.status is status)

    @property
    def has_differences(self) -> bool:
        """True when a diff-only run found units to transfer."""
        return self.plan is not None and not self.plan.is_empty

    @property
    def ok(self) -> bool:
        """True when the run left no unresolved differences."""
        if self.failure is not None or self.cancelled:
            return False
        if self.failed or self.mismatches:
            return False
        return not (self.mode is WorkflowMode.DIFF_ONLY and self.has_differences)

    @property
    def exit_code(self) -> int:
        """Process exit status for scripting: 0 on full success, else 1."""
        return 0 if self.ok else 1

    def with_stage(self, stage: WorkflowStage) -> Self:
        """Return a copy with ``stage`` appended to the visited stages."""
        return replace(self, stages=(*self.stages, stage))

    def with_plan(self, plan: TransferPlan) -> Self:
        """Return a copy carrying the computed plan."""
        return replace(self, plan=plan)

    def with_results(
        self, results: tuple[TransferResult, ...], *, cancelled: bool = False
    ) -> Self:
        """Return a copy carrying transfer results."""
        return replace(self, results=results, cancelled=self.cancelled or cancelled)

    def with_verification(self, verification: tuple[VerificationResult, ...]) -> Self:
        """Return a copy carrying verification results."""
        return replace(self, verification=verification)

    def with_failure(self, failure: WorkflowFailure) -> Self:
        """Return a copy marked as failed."""
        return replace(self, failure=failure)

    def finalize(self) -> Self:
        """Return the reported copy, stamped with the finish time."""
        return replace(
            self,
            stages=(*self.stages, WorkflowStage.REPORTED),
            finished_at=datetime.now(UTC),
        )


@dataclass(frozen=True, slots=True)
class Credential:
    """A short-lived secret and its expiry.

    Owned by the credential provider's cache. The secret is excluded from
    ``repr`` so it cannot leak into logs or tracebacks.

    Attributes:
        secret: The secret value (password or account key).
        expires_at: Instant after which the secret must not be used.
        username: Login paired with the secret, when the backend returns one.
    """

    secret: str = field(repr=False)
    expires_at: datetime
    username: str | None = None

    def is_expired(
        self, now: datetime, margin: timedelta = timedelta(seconds=0)
    ) -> bool:
        """True when the credential expires within ``margin`` of ``now``."""
        return now + margin >= self.expires_at

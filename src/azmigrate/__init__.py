"""azmigrate - migrate Azure resources between subscriptions.

Copies PostgreSQL databases, Blob Storage containers and Container Registry
images from a source subscription to a target one. Each run enumerates both
sides, plans only the units that are missing or stale on the target,
transfers them with bounded concurrency, and verifies the result.

Example:
    >>> from azmigrate import (
    ...     AzureCli, CachingCredentialProvider, AzureSecretBackend,
    ...     MigrationOrchestrator, RegistryAdapter, RegistryImportTransfer,
    ...     WorkflowRequest, load_endpoint, ResourceKind,
    ... )
    >>> source = load_endpoint("source_acr.json", ResourceKind.REGISTRY)  # doctest: +SKIP
    >>> target = load_endpoint("target_acr.json", ResourceKind.REGISTRY)  # doctest: +SKIP
    >>> az = AzureCli()
    >>> credentials = CachingCredentialProvider(AzureSecretBackend(az))
    >>> orchestrator = MigrationOrchestrator(RegistryAdapter(az), credentials)
    >>> report = orchestrator.run(  # doctest: +SKIP
    ...     WorkflowRequest(source, target),
    ...     RegistryImportTransfer(credentials, source, target, az),
    ... )
"""

from azmigrate.adapters.azure import AzureCli
from azmigrate.adapters.credentials import (
    AzureSecretBackend,
    CachingCredentialProvider,
)
from azmigrate.adapters.executor import (
    SynchronousExecutor,
    ThreadPoolExecutorAdapter,
    thread_pool_factory,
)
from azmigrate.adapters.postgres import DumpRestoreTransfer, PostgresAdapter
from azmigrate.adapters.registry import RegistryAdapter, RegistryImportTransfer
from azmigrate.adapters.scratch import ScratchSpace
from azmigrate.adapters.storage import AzureBlobAdapter, BlobCopyTransfer
from azmigrate.config import load_endpoint
from azmigrate.core.cancellation import CancellationToken
from azmigrate.core.diff import (
    DiffPolicy,
    digest_changed,
    fewer_rows,
    newer_timestamp,
    plan,
)
from azmigrate.core.exceptions import (
    AzmigrateError,
    CommandError,
    ConfigurationError,
    CredentialUnavailable,
    EnumerationError,
    TransferError,
    UnitSkipped,
)
from azmigrate.core.models import (
    Credential,
    CredentialKind,
    MigrationReport,
    MigrationUnit,
    ResourceEndpoint,
    ResourceKind,
    TransferPlan,
    TransferResult,
    TransferStatus,
    VerificationResult,
    WorkflowMode,
)
from azmigrate.core.ports import (
    CredentialPort,
    NullProgressReporter,
    ProgressReporter,
    ResourceAdapter,
    SecretBackend,
    UnitFilter,
)
from azmigrate.core.scheduler import TransferScheduler
from azmigrate.core.services import MigrationOrchestrator, WorkflowRequest
from azmigrate.core.verifier import Verifier
from azmigrate.progress.rich_progress import RichProgressReporter


__version__ = "0.1.0"

__all__ = [
    "AzmigrateError",
    "AzureBlobAdapter",
    "AzureCli",
    "AzureSecretBackend",
    "BlobCopyTransfer",
    "CachingCredentialProvider",
    "CancellationToken",
    "CommandError",
    "ConfigurationError",
    "Credential",
    "CredentialKind",
    "CredentialPort",
    "CredentialUnavailable",
    "DiffPolicy",
    "DumpRestoreTransfer",
    "EnumerationError",
    "MigrationOrchestrator",
    "MigrationReport",
    "MigrationUnit",
    "NullProgressReporter",
    "PostgresAdapter",
    "ProgressReporter",
    "RegistryAdapter",
    "RegistryImportTransfer",
    "ResourceAdapter",
    "ResourceEndpoint",
    "ResourceKind",
    "RichProgressReporter",
    "ScratchSpace",
    "SecretBackend",
    "SynchronousExecutor",
    "ThreadPoolExecutorAdapter",
    "TransferError",
    "TransferPlan",
    "TransferResult",
    "TransferScheduler",
    "TransferStatus",
    "UnitFilter",
    "UnitSkipped",
    "Verifier",
    "VerificationResult",
    "WorkflowMode",
    "WorkflowRequest",
    "__version__",
    "digest_changed",
    "fewer_rows",
    "load_endpoint",
    "newer_timestamp",
    "plan",
    "thread_pool_factory",
]

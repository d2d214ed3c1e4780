"""Core domain module for azmigrate.

This module contains pure Python domain models, port definitions and the
diff, scheduling and verification logic. It has no I/O dependencies and
can be tested in isolation.
"""

from azmigrate.core.cancellation import CancellationToken
from azmigrate.core.diff import DiffPolicy, plan
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
    ExecutorPort,
    ProgressReporter,
    ResourceAdapter,
    SecretBackend,
    UnitFilter,
)


__all__ = [
    "CancellationToken",
    "Credential",
    "CredentialKind",
    "CredentialPort",
    "DiffPolicy",
    "ExecutorPort",
    "MigrationReport",
    "MigrationUnit",
    "ProgressReporter",
    "ResourceAdapter",
    "ResourceEndpoint",
    "ResourceKind",
    "SecretBackend",
    "TransferPlan",
    "TransferResult",
    "TransferStatus",
    "UnitFilter",
    "VerificationResult",
    "WorkflowMode",
    "plan",
]

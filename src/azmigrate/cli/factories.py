"""Builds the adapters each CLI command wires together.

Commands go through these functions rather than constructing adapters
directly, so tests can swap in fakes with ``monkeypatch``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from azmigrate.adapters.azure import AzureCli
from azmigrate.adapters.credentials import (
    AzureSecretBackend,
    CachingCredentialProvider,
)
from azmigrate.adapters.executor import thread_pool_factory
from azmigrate.adapters.postgres import DumpRestoreTransfer, PostgresAdapter
from azmigrate.adapters.registry import RegistryAdapter, RegistryImportTransfer
from azmigrate.adapters.storage import AzureBlobAdapter, BlobCopyTransfer
from azmigrate.core.scheduler import TransferScheduler


if TYPE_CHECKING:
    from pathlib import Path

    from azmigrate.core.models import ResourceEndpoint
    from azmigrate.core.ports import CredentialPort, ResourceAdapter, TransferFunction


def azure_cli() -> AzureCli:
    return AzureCli()


def credential_provider(az: AzureCli) -> CredentialPort:
    return CachingCredentialProvider(AzureSecretBackend(az))


def scheduler(retries: int) -> TransferScheduler:
    return TransferScheduler(thread_pool_factory, max_retries=retries)


def postgres_adapter(credentials: CredentialPort) -> ResourceAdapter:
    return PostgresAdapter(credentials)


def dump_restore_transfer(
    adapter: ResourceAdapter,
    credentials: CredentialPort,
    source: ResourceEndpoint,
    target: ResourceEndpoint,
    backup_dir: Path,
    skip_backup: bool,
) -> TransferFunction:
    assert isinstance(adapter, PostgresAdapter)
    return DumpRestoreTransfer(
        adapter, credentials, source, target, backup_dir, skip_backup=skip_backup
    )


def blob_adapter(credentials: CredentialPort) -> ResourceAdapter:
    return AzureBlobAdapter(credentials)


def blob_copy_transfer(
    adapter: ResourceAdapter,
    source: ResourceEndpoint,
    target: ResourceEndpoint,
    scratch_dir: Path,
    skip_download: bool,
) -> TransferFunction:
    assert isinstance(adapter, AzureBlobAdapter)
    return BlobCopyTransfer(
        adapter, source, target, scratch_dir, skip_download=skip_download
    )


def registry_adapter(az: AzureCli) -> ResourceAdapter:
    return RegistryAdapter(az)


def registry_import_transfer(
    credentials: CredentialPort,
    source: ResourceEndpoint,
    target: ResourceEndpoint,
    az: AzureCli,
) -> TransferFunction:
    return RegistryImportTransfer(credentials, source, target, az)

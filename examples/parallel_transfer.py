"""Parallel Blob Storage copy with progress and cancellation.

Transfers run on a thread pool of ``concurrency`` workers. Ctrl-C during
the run cancels units that have not started; in-flight copies finish.
"""

import signal
from pathlib import Path

from azmigrate import (
    AzureBlobAdapter,
    AzureSecretBackend,
    BlobCopyTransfer,
    CachingCredentialProvider,
    CancellationToken,
    MigrationOrchestrator,
    ResourceKind,
    RichProgressReporter,
    ScratchSpace,
    TransferScheduler,
    WorkflowRequest,
    load_endpoint,
    thread_pool_factory,
)


config = Path(__file__).parent / "config"
source = load_endpoint(config / "source_storage.json", ResourceKind.STORAGE)
target = load_endpoint(config / "target_storage.json", ResourceKind.STORAGE)

credentials = CachingCredentialProvider(AzureSecretBackend())
adapter = AzureBlobAdapter(credentials)
orchestrator = MigrationOrchestrator(
    adapter,
    credentials,
    scheduler=TransferScheduler(thread_pool_factory, max_retries=3),
)

token = CancellationToken()
signal.signal(signal.SIGINT, lambda signum, frame: token.cancel())

# The scratch directory is removed afterwards because we did not supply one
with ScratchSpace.create(None, "storage_migration") as scratch:
    copy = BlobCopyTransfer(adapter, source, target, scratch.path)
    with RichProgressReporter() as progress:
        report = orchestrator.run(
            WorkflowRequest(source, target, concurrency=8),
            copy,
            cancel=token,
            progress=progress,
        )

print(f"{report.succeeded}/{report.total} blob(s) copied, exit code {report.exit_code}")

"""Basic registry migration example.

This example shows the library pattern behind ``azmigrate acr``: load the
two endpoint files, wire the adapters, and run one workflow. Run it after
``az login`` with access to both subscriptions.
"""

from datetime import timedelta
from pathlib import Path

from azmigrate import (
    AzureCli,
    AzureSecretBackend,
    CachingCredentialProvider,
    DiffPolicy,
    MigrationOrchestrator,
    RegistryAdapter,
    RegistryImportTransfer,
    ResourceKind,
    WorkflowMode,
    WorkflowRequest,
    digest_changed,
    load_endpoint,
)


config = Path(__file__).parent / "config"
source = load_endpoint(config / "source_acr.json", ResourceKind.REGISTRY)
target = load_endpoint(config / "target_acr.json", ResourceKind.REGISTRY)

# One az wrapper and one credential cache are shared by every adapter
az = AzureCli()
credentials = CachingCredentialProvider(AzureSecretBackend(az))

orchestrator = MigrationOrchestrator(RegistryAdapter(az), credentials)
request = WorkflowRequest(
    source=source,
    target=target,
    mode=WorkflowMode.INCREMENTAL,
    policy=DiffPolicy(comparator=digest_changed, window=timedelta(days=7)),
)

report = orchestrator.run(
    request, RegistryImportTransfer(credentials, source, target, az)
)
print(f"Imported {report.succeeded} tag(s), {report.failed} failed")
print(f"Verified {len(report.verification) - report.mismatches} tag(s)")

# Re-running the same request imports nothing: the plan is empty

"""Error handling patterns with recovery hints.

Fatal errors (credentials, enumeration) end a workflow early and are
reported in ``report.failure``; configuration errors are raised before any
remote call. Every azmigrate exception carries a ``recovery_hint``.
"""

from pathlib import Path

from azmigrate import (
    AzmigrateError,
    AzureCli,
    AzureSecretBackend,
    CachingCredentialProvider,
    ConfigurationError,
    CredentialKind,
    CredentialUnavailable,
    MigrationOrchestrator,
    MigrationReport,
    RegistryAdapter,
    ResourceKind,
    WorkflowMode,
    WorkflowRequest,
    load_endpoint,
)


config = Path(__file__).parent / "config"


# Pattern 1: Validate configuration up front
def load_or_explain(path: Path) -> None:
    """Load an endpoint file, printing the hint on failure."""
    try:
        load_endpoint(path, ResourceKind.REGISTRY)
    except ConfigurationError as e:
        print(f"Bad config: {e}")
        print(f"Hint: {e.recovery_hint}")
        raise


# Pattern 2: Check credentials before a long run
def can_authenticate(path: Path) -> bool:
    """True if the registry admin password can be read."""
    endpoint = load_endpoint(path, ResourceKind.REGISTRY)
    provider = CachingCredentialProvider(AzureSecretBackend())
    try:
        provider.resolve(endpoint, CredentialKind.REGISTRY_PASSWORD)
    except CredentialUnavailable as e:
        print(f"No access to {e.endpoint.name}: {e}")
        print(f"Hint: {e.recovery_hint}")
        return False
    return True


# Pattern 3: Inspect the report instead of catching
def explain(report: MigrationReport) -> None:
    """Print why a workflow did not succeed."""
    if report.failure is not None:
        print(f"{report.failure.error} during {report.failure.stage}")
        print(f"Hint: {report.failure.hint}")
    for result in report.results:
        if result.error:
            print(f"{result.unit.key}: {result.status} ({result.error})")
    for verdict in report.verification:
        if not verdict.match:
            print(f"{verdict.unit.key}: {verdict.detail}")


# Pattern 4: Catch-all for any library error
def verify_safe() -> int:
    """Run a verify-only pass and return the process exit code."""
    try:
        source = load_endpoint(config / "source_acr.json", ResourceKind.REGISTRY)
        target = load_endpoint(config / "target_acr.json", ResourceKind.REGISTRY)
    except AzmigrateError as e:
        print(f"Error: {e}")
        if e.recovery_hint:
            print(f"Hint: {e.recovery_hint}")
        return 1

    az = AzureCli()
    orchestrator = MigrationOrchestrator(
        RegistryAdapter(az), CachingCredentialProvider(AzureSecretBackend(az))
    )
    report = orchestrator.run(
        WorkflowRequest(source, target, mode=WorkflowMode.VERIFY_ONLY)
    )
    explain(report)
    return report.exit_code

"""Pytest configuration and shared fixtures.

This module registers custom markers for CI job separation and provides
in-memory fakes for the core ports.
"""

from __future__ import annotations

import builtins
import json
import subprocess
import threading
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from azmigrate.core.exceptions import CredentialUnavailable, EnumerationError
from azmigrate.core.models import (
    Credential,
    CredentialKind,
    MigrationUnit,
    ResourceEndpoint,
    ResourceKind,
)
from azmigrate.core.ports import UnitFilter


NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "core: Core models, ports, diff, scheduler and services"
    )
    config.addinivalue_line(
        "markers", "adapters: Azure, PostgreSQL and registry adapters"
    )
    config.addinivalue_line("markers", "progress: Rich progress integration")
    config.addinivalue_line("markers", "cli: CLI tests")
    config.addinivalue_line(
        "markers", "tra: Test Responsibility Anchor (TRA) - namespace.Anchor format"
    )
    config.addinivalue_line(
        "markers",
        "tier: Test tier for CI job separation (0=instant, 1=fast, 2=standard, 3=slow, 4=manual)",
    )


def unit(
    key: str,
    *,
    age: timedelta | None = None,
    digest: str | None = None,
    size: int | None = None,
) -> MigrationUnit:
    """Build a unit whose scope is the part of ``key`` before ':'."""
    scope = key.split(":", 1)[0] if ":" in key else ""
    return MigrationUnit(
        key=key,
        scope=scope,
        last_modified=NOW - age if age is not None else None,
        digest=digest,
        size=size,
    )


class FakeAdapter:
    """In-memory ResourceAdapter keyed by endpoint name.

    Fingerprints are the unit digest (or "present"), None when absent.
    """

    def __init__(self) -> None:
        self.store: dict[str, dict[str, MigrationUnit]] = {}
        self.list_calls: builtins.list[tuple[str, UnitFilter]] = []
        self.unreachable: set[str] = set()
        self._lock = threading.Lock()

    def put(self, endpoint: ResourceEndpoint, *units: MigrationUnit) -> None:
        side = self.store.setdefault(endpoint.name, {})
        for item in units:
            side[item.key] = item

    def keys(self, endpoint: ResourceEndpoint) -> set[str]:
        return set(self.store.get(endpoint.name, {}))

    def list(self, endpoint: ResourceEndpoint, unit_filter: UnitFilter) -> Any:
        self.list_calls.append((endpoint.name, unit_filter))
        if endpoint.name in self.unreachable:
            raise EnumerationError(f"{endpoint.name} unreachable", endpoint)
        for item in list(self.store.get(endpoint.name, {}).values()):
            if unit_filter.scopes and item.scope not in unit_filter.scopes:
                continue
            yield item

    def verification_units(
        self, endpoint: ResourceEndpoint, unit_filter: UnitFilter
    ) -> builtins.list[MigrationUnit]:
        units = builtins.list(self.list(endpoint, UnitFilter(scopes=unit_filter.scopes)))
        cutoff = unit_filter.modified_since
        if cutoff is None:
            return units
        return [u for u in units if u.last_modified and u.last_modified >= cutoff]

    def fingerprint(self, endpoint: ResourceEndpoint, item: MigrationUnit) -> Any:
        if endpoint.name in self.unreachable:
            raise EnumerationError(f"{endpoint.name} unreachable", endpoint)
        found = self.store.get(endpoint.name, {}).get(item.key)
        if found is None:
            return None
        return found.digest or "present"

    def copier(self, source: ResourceEndpoint, target: ResourceEndpoint) -> Any:
        """Transfer function that copies units between the two endpoints."""

        def copy(item: MigrationUnit) -> None:
            with self._lock:
                self.put(target, self.store[source.name][item.key])

        return copy


class FakeCredentials:
    """CredentialPort that records calls and can deny chosen endpoints."""

    def __init__(self) -> None:
        self.calls: builtins.list[tuple[str, CredentialKind]] = []
        self.denied: set[str] = set()

    def resolve(self, endpoint: ResourceEndpoint, kind: CredentialKind) -> Credential:
        self.calls.append((endpoint.name, kind))
        if endpoint.name in self.denied:
            raise CredentialUnavailable("access denied", endpoint=endpoint, kind=kind)
        return Credential(
            secret="s3cret", expires_at=NOW + timedelta(hours=1), username="admin"
        )


class FakeRun:
    """Stand-in for ``subprocess.run`` with scripted replies.

    Replies are matched on the words after the executable; the most recently
    registered match wins. Unmatched commands succeed with no output.
    """

    def __init__(self) -> None:
        self.calls: builtins.list[tuple[builtins.list[str], dict[str, Any]]] = []
        self._replies: builtins.list[tuple[tuple[str, ...], Any]] = []

    def reply(
        self,
        *words: str,
        stdout: Any = "",
        returncode: int = 0,
        stderr: str = "",
        raises: BaseException | None = None,
    ) -> None:
        if not isinstance(stdout, str):
            stdout = json.dumps(stdout)
        self._replies.append((words, (stdout, returncode, stderr, raises)))

    def commands(self) -> builtins.list[builtins.list[str]]:
        return [command for command, _ in self.calls]

    def __call__(
        self, command: builtins.list[str], **kwargs: Any
    ) -> subprocess.CompletedProcess[str]:
        self.calls.append((command, kwargs))
        for words, (stdout, returncode, stderr, raises) in reversed(self._replies):
            if tuple(command[1 : 1 + len(words)]) == words:
                if raises is not None:
                    raise raises
                return subprocess.CompletedProcess(command, returncode, stdout, stderr)
        return subprocess.CompletedProcess(command, 0, "", "")


@pytest.fixture
def source_registry() -> ResourceEndpoint:
    return ResourceEndpoint(
        kind=ResourceKind.REGISTRY, subscription="sub-src", name="srcacr"
    )


@pytest.fixture
def target_registry() -> ResourceEndpoint:
    return ResourceEndpoint(
        kind=ResourceKind.REGISTRY, subscription="sub-tgt", name="tgtacr"
    )


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def fake_credentials() -> FakeCredentials:
    return FakeCredentials()


@pytest.fixture
def now() -> datetime:
    """Fixed reference time used by unit timestamps."""
    return NOW


@pytest.fixture
def make_unit() -> Any:
    """Factory for MigrationUnit values aged relative to ``now``."""
    return unit


@pytest.fixture
def fake_run() -> FakeRun:
    """Scripted ``subprocess.run`` replacement."""
    return FakeRun()


@pytest.fixture
def source_postgres() -> ResourceEndpoint:
    return ResourceEndpoint(
        kind=ResourceKind.POSTGRES,
        subscription="sub-src",
        name="src-pg.postgres.database.azure.com",
        username="pgadmin",
        keyvault="src-kv",
        units=("app", "auth"),
    )


@pytest.fixture
def target_postgres() -> ResourceEndpoint:
    return ResourceEndpoint(
        kind=ResourceKind.POSTGRES,
        subscription="sub-tgt",
        name="tgt-pg.postgres.database.azure.com",
        username="pgadmin",
        keyvault="tgt-kv",
        units=("app", "auth"),
    )


@pytest.fixture
def source_storage() -> ResourceEndpoint:
    return ResourceEndpoint(
        kind=ResourceKind.STORAGE,
        subscription="sub-src",
        name="srcstore",
        resource_group="rg-src",
        units=("images", "docs"),
    )


@pytest.fixture
def target_storage() -> ResourceEndpoint:
    return ResourceEndpoint(
        kind=ResourceKind.STORAGE,
        subscription="sub-tgt",
        name="tgtstore",
        resource_group="rg-tgt",
        units=("images", "docs"),
    )

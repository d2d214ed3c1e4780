"""Container Registry resource adapter driven through ``az acr``."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from azmigrate.adapters.azure import AzureCli
from azmigrate.core.exceptions import CommandError, EnumerationError
from azmigrate.core.models import MigrationUnit


if TYPE_CHECKING:
    import builtins
    from collections.abc import Iterator

    from azmigrate.core.models import ResourceEndpoint
    from azmigrate.core.ports import UnitFilter


logger = logging.getLogger(__name__)

PRESENT = "present"

_NOT_FOUND_MARKERS = (
    "not found",
    "name_unknown",
    "manifest_unknown",
    "resourcenotfound",
)


def is_not_found(error: CommandError) -> bool:
    """True when ``az`` failed because a repository or tag does not exist."""
    text = f"{error.stderr} {error}".lower()
    return any(marker in text for marker in _NOT_FOUND_MARKERS)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ACR ``lastUpdateTime`` (ISO 8601, ``Z`` suffix)."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        logger.debug("Unparseable timestamp %r", value)
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


class RegistryAdapter:
    """Enumerates and fingerprints image tags in a container registry.

    Units are ``(repository, tag)`` pairs keyed ``<repo>:<tag>``, carrying
    the tag's ``lastUpdateTime`` and manifest digest. Verification units are
    the same tags; a tag's fingerprint is its digest on the endpoint.
    """

    def __init__(self, az: AzureCli | None = None) -> None:
        self._az = az or AzureCli()

    def repositories(
        self, endpoint: ResourceEndpoint, scopes: tuple[str, ...] = ()
    ) -> builtins.list[str]:
        """Requested repositories, or every repository in the registry."""
        if scopes or endpoint.units:
            return list(scopes or endpoint.units)
        try:
            names = self._az.run(
                "acr",
                "repository",
                "list",
                "--name",
                endpoint.name,
                subscription=endpoint.subscription,
            )
        except CommandError as e:
            raise EnumerationError(
                f"Cannot list repositories of {endpoint.name}: {e}", endpoint, cause=e
            ) from e
        return [str(name) for name in names or []]

    def tags(
        self, endpoint: ResourceEndpoint, repository: str
    ) -> builtins.list[dict[str, Any]]:
        """Tag details of a repository, newest first. Empty if it does not exist."""
        try:
            details = self._az.run(
                "acr",
                "repository",
                "show-tags",
                "--detail",
                "--name",
                endpoint.name,
                "--repository",
                repository,
                "--orderby",
                "time_desc",
                subscription=endpoint.subscription,
            )
        except CommandError as e:
            if is_not_found(e):
                logger.debug("Repository %s not found on %s", repository, endpoint.name)
                return []
            raise EnumerationError(
                f"Cannot list tags of {repository} on {endpoint.name}: {e}",
                endpoint,
                cause=e,
            ) from e
        return [d for d in details or [] if isinstance(d, dict) and d.get("name")]

    def list(
        self, endpoint: ResourceEndpoint, unit_filter: UnitFilter
    ) -> Iterator[MigrationUnit]:
        """Yield one unit per tag, honoring ``unit_filter.modified_since``."""
        cutoff = unit_filter.modified_since
        for repository in self.repositories(endpoint, unit_filter.scopes):
            for detail in self.tags(endpoint, repository):
                last_modified = parse_timestamp(detail.get("lastUpdateTime"))
                if cutoff is not None and (
                    last_modified is None or last_modified < cutoff
                ):
                    continue
                yield MigrationUnit(
                    key=f"{repository}:{detail['name']}",
                    scope=repository,
                    last_modified=last_modified,
                    digest=detail.get("digest"),
                )

    def verification_units(
        self, endpoint: ResourceEndpoint, unit_filter: UnitFilter
    ) -> builtins.list[MigrationUnit]:
        return list(self.list(endpoint, unit_filter))

    def fingerprint(
        self, endpoint: ResourceEndpoint, unit: MigrationUnit
    ) -> str | None:
        """Manifest digest of a tag (``present`` without one), None if absent."""
        try:
            manifest = self._az.run(
                "acr",
                "repository",
                "show",
                "--name",
                endpoint.name,
                "--image",
                unit.key,
                subscription=endpoint.subscription,
            )
        except CommandError as e:
            if is_not_found(e):
                return None
            raise EnumerationError(
                f"Cannot read {unit.key} on {endpoint.name}: {e}", endpoint, cause=e
            ) from e
        if not manifest:
            return None
        return str(manifest.get("digest") or PRESENT)

"""Blob Storage resource adapter backed by azure-storage-blob."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient

from azmigrate.core.exceptions import EnumerationError
from azmigrate.core.models import CredentialKind, MigrationUnit


if TYPE_CHECKING:
    import builtins
    from collections.abc import Callable, Iterator

    from azmigrate.core.models import ResourceEndpoint
    from azmigrate.core.ports import CredentialPort, UnitFilter


logger = logging.getLogger(__name__)


def _default_client(account_url: str, credential: Any) -> BlobServiceClient:
    return BlobServiceClient(account_url=account_url, credential=credential)


def content_md5(blob: Any) -> str | None:
    """Hex MD5 from a blob's content settings, if the service stored one."""
    settings = getattr(blob, "content_settings", None)
    md5 = getattr(settings, "content_md5", None)
    return bytes(md5).hex() if md5 else None


class AzureBlobAdapter:
    """Enumerates blobs and fingerprints containers in a storage account.

    Migration units are blobs keyed ``<container>/<blob>``. Verification
    units are containers, fingerprinted as ``(blob count, total bytes)``.
    One BlobServiceClient is kept per endpoint and account key; the key is
    re-resolved through the credential provider before every use.
    """

    def __init__(
        self,
        credentials: CredentialPort,
        client_factory: Callable[[str, Any], BlobServiceClient] = _default_client,
    ) -> None:
        self._credentials = credentials
        self._client_factory = client_factory
        self._clients: dict[ResourceEndpoint, tuple[str, BlobServiceClient]] = {}
        self._lock = threading.Lock()

    def service(self, endpoint: ResourceEndpoint) -> BlobServiceClient:
        """BlobServiceClient for ``endpoint`` holding a current account key.

        The key is resolved on every call, so an expired key is refreshed by
        the provider. The client is rebuilt whenever the key changes.
        """
        key = self._credentials.resolve(endpoint, CredentialKind.STORAGE_ACCOUNT_KEY)
        with self._lock:
            cached = self._clients.get(endpoint)
            if cached is not None and cached[0] == key.secret:
                return cached[1]
            if cached is not None:
                logger.debug("Account key of %s changed; new client", endpoint.name)
            client = self._client_factory(
                endpoint.account_url,
                {"account_name": endpoint.name, "account_key": key.secret},
            )
            self._clients[endpoint] = (key.secret, client)
            return client

    def list(
        self, endpoint: ResourceEndpoint, unit_filter: UnitFilter
    ) -> Iterator[MigrationUnit]:
        """Yield every blob in the requested containers.

        A container that does not exist yields nothing.
        """
        service = self.service(endpoint)
        for container in unit_filter.scopes or endpoint.units:
            container_client = service.get_container_client(container)
            try:
                for blob in container_client.list_blobs():
                    yield MigrationUnit(
                        key=f"{container}/{blob.name}",
                        scope=container,
                        last_modified=blob.last_modified,
                        size=blob.size,
                        digest=content_md5(blob),
                    )
            except ResourceNotFoundError:
                logger.debug("Container %s not found on %s", container, endpoint.name)
            except AzureError as e:
                raise EnumerationError(
                    f"Cannot list {container} on {endpoint.name}: {e}",
                    endpoint,
                    cause=e,
                ) from e

    def verification_units(
        self, endpoint: ResourceEndpoint, unit_filter: UnitFilter
    ) -> builtins.list[MigrationUnit]:
        return [
            MigrationUnit(key=container, scope=container)
            for container in unit_filter.scopes or endpoint.units
        ]

    def fingerprint(
        self, endpoint: ResourceEndpoint, unit: MigrationUnit
    ) -> tuple[int, int] | None:
        """``(blob count, total bytes)`` of a container, None if it is absent."""
        container_client = self.service(endpoint).get_container_client(unit.key)
        count = total = 0
        try:
            for blob in container_client.list_blobs():
                count += 1
                total += blob.size or 0
        except ResourceNotFoundError:
            return None
        except AzureError as e:
            raise EnumerationError(
                f"Cannot count blobs in {unit.key} on {endpoint.name}: {e}",
                endpoint,
                cause=e,
            ) from e
        return count, total

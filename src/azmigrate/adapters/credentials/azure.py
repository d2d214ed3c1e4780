"""Secret backend that reads credentials through the ``az`` CLI."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from azmigrate.adapters.azure import AzureCli
from azmigrate.core.exceptions import CommandError, CredentialUnavailable
from azmigrate.core.models import Credential, CredentialKind, ResourceEndpoint


logger = logging.getLogger(__name__)


class AzureSecretBackend:
    """Fetches database passwords, storage keys and registry passwords.

    - Database password: ``az keyvault secret show`` on the endpoint's Key
      Vault. The secret's own expiry is honored when set.
    - Storage account key: first key of ``az storage account keys list``.
    - Registry password: ``az acr credential show`` (admin user).

    Secrets without an expiry are treated as valid for ``default_ttl``.
    """

    def __init__(
        self,
        az: AzureCli | None = None,
        default_ttl: timedelta = timedelta(hours=1),
    ) -> None:
        self._az = az or AzureCli()
        self._default_ttl = default_ttl

    def fetch(self, endpoint: ResourceEndpoint, kind: CredentialKind) -> Credential:
        """Fetch a fresh credential for ``endpoint``.

        Raises:
            CredentialUnavailable: If ``az`` fails or returns no secret.
        """
        try:
            if kind is CredentialKind.DATABASE_PASSWORD:
                return self._database_password(endpoint)
            if kind is CredentialKind.STORAGE_ACCOUNT_KEY:
                return self._storage_key(endpoint)
            if kind is CredentialKind.REGISTRY_PASSWORD:
                return self._registry_password(endpoint)
        except CommandError as e:
            raise CredentialUnavailable(
                f"Cannot read {kind} for {endpoint.describe()}: {e}",
                endpoint=endpoint,
                kind=kind,
                cause=e,
            ) from e
        raise CredentialUnavailable(
            f"Unsupported credential kind {kind}", endpoint=endpoint, kind=kind
        )

    def _expiry(self, value: str | None = None) -> datetime:
        if value:
            try:
                expires = datetime.fromisoformat(value)
            except ValueError:
                logger.debug("Ignoring unparseable expiry %r", value)
            else:
                return expires if expires.tzinfo else expires.replace(tzinfo=UTC)
        return datetime.now(UTC) + self._default_ttl

    def _database_password(self, endpoint: ResourceEndpoint) -> Credential:
        assert endpoint.keyvault is not None
        payload = self._az.run(
            "keyvault",
            "secret",
            "show",
            "--vault-name",
            endpoint.keyvault,
            "--name",
            endpoint.secret_name,
            subscription=endpoint.subscription,
        )
        secret = _get(payload, "value")
        if not secret:
            raise _empty(endpoint, CredentialKind.DATABASE_PASSWORD)
        attributes = payload.get("attributes") or {}
        return Credential(
            secret=secret,
            expires_at=self._expiry(attributes.get("expires")),
            username=endpoint.username,
        )

    def _storage_key(self, endpoint: ResourceEndpoint) -> Credential:
        assert endpoint.resource_group is not None
        payload = self._az.run(
            "storage",
            "account",
            "keys",
            "list",
            "--account-name",
            endpoint.name,
            "--resource-group",
            endpoint.resource_group,
            subscription=endpoint.subscription,
        )
        keys = payload if isinstance(payload, list) else []
        secret = _get(keys[0], "value") if keys else None
        if not secret:
            raise _empty(endpoint, CredentialKind.STORAGE_ACCOUNT_KEY)
        return Credential(secret=secret, expires_at=self._expiry())

    def _registry_password(self, endpoint: ResourceEndpoint) -> Credential:
        payload = self._az.run(
            "acr",
            "credential",
            "show",
            "--name",
            endpoint.name,
            subscription=endpoint.subscription,
        )
        passwords = []
        if isinstance(payload, dict):
            passwords = payload.get("passwords") or []
        secret = _get(passwords[0], "value") if passwords else None
        if not secret:
            raise _empty(endpoint, CredentialKind.REGISTRY_PASSWORD)
        return Credential(
            secret=secret,
            expires_at=self._expiry(),
            username=_get(payload, "username"),
        )


def _get(payload: Any, name: str) -> Any:
    return payload.get(name) if isinstance(payload, dict) else None


def _empty(endpoint: ResourceEndpoint, kind: CredentialKind) -> CredentialUnavailable:
    return CredentialUnavailable(
        f"No {kind} returned for {endpoint.describe()}", endpoint=endpoint, kind=kind
    )

"""Server-side image import between registries."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from azmigrate.adapters.azure import AzureCli
from azmigrate.core.exceptions import CommandError, TransferError
from azmigrate.core.models import CredentialKind


if TYPE_CHECKING:
    from azmigrate.core.models import MigrationUnit, ResourceEndpoint
    from azmigrate.core.ports import CredentialPort


logger = logging.getLogger(__name__)


class RegistryImportTransfer:
    """Imports one tag with ``az acr import``, authenticating to the source.

    The import always passes ``--force`` so that a stale tag on the target
    is overwritten.
    """

    def __init__(
        self,
        credentials: CredentialPort,
        source: ResourceEndpoint,
        target: ResourceEndpoint,
        az: AzureCli | None = None,
    ) -> None:
        self._credentials = credentials
        self._source = source
        self._target = target
        self._az = az or AzureCli()

    def __call__(self, unit: MigrationUnit) -> None:
        credential = self._credentials.resolve(
            self._source, CredentialKind.REGISTRY_PASSWORD
        )
        try:
            self._az.run(
                "acr",
                "import",
                "--name",
                self._target.name,
                "--source",
                f"{self._source.login_server}/{unit.key}",
                "--image",
                unit.key,
                "--username",
                credential.username or self._source.name,
                "--password",
                credential.secret,
                "--force",
                subscription=self._target.subscription,
            )
        except CommandError as e:
            raise TransferError(
                f"Import of {unit.key} failed: {e}", unit.key, cause=e
            ) from e
        logger.info("Imported %s into %s", unit.key, self._target.login_server)

"""Download-then-upload transfer of one blob."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any

from azure.core.exceptions import AzureError, ResourceExistsError

from azmigrate.core.exceptions import TransferError, UnitSkipped


if TYPE_CHECKING:
    from azmigrate.adapters.storage.adapter import AzureBlobAdapter
    from azmigrate.core.models import MigrationUnit, ResourceEndpoint


logger = logging.getLogger(__name__)


class BlobCopyTransfer:
    """Copies a blob through the local scratch directory.

    The blob is downloaded to ``scratch_dir/<container>/<blob>``, the target
    container is created if needed, and the file is uploaded with
    ``overwrite=True``, keeping the source content settings.

    With ``skip_download`` the download is skipped and an existing local
    copy is uploaded; a blob without a local copy is recorded as skipped.
    """

    def __init__(
        self,
        adapter: AzureBlobAdapter,
        source: ResourceEndpoint,
        target: ResourceEndpoint,
        scratch_dir: Path,
        skip_download: bool = False,
    ) -> None:
        self._adapter = adapter
        self._source = source
        self._target = target
        self._scratch_dir = Path(scratch_dir)
        self._skip_download = skip_download
        self._containers: set[str] = set()
        self._lock = threading.Lock()

    def local_path(self, unit: MigrationUnit) -> Path:
        """Scratch location of a blob, refusing names that escape the directory."""
        root = self._scratch_dir.resolve()
        path = (root / unit.scope / unit.name).resolve()
        if not path.is_relative_to(root):
            raise TransferError(
                f"Blob name escapes scratch directory: {unit.key}", unit.key
            )
        return path

    def __call__(self, unit: MigrationUnit) -> None:
        local = self.local_path(unit)
        settings: Any = None

        if self._skip_download:
            if not local.is_file():
                raise UnitSkipped(f"No local copy at {local}")
        else:
            settings = self._download(unit, local)

        self._ensure_container(unit.scope)
        self._upload(unit, local, settings)

    def _download(self, unit: MigrationUnit, local: Path) -> Any:
        local.parent.mkdir(parents=True, exist_ok=True)
        blob_client = self._adapter.service(self._source).get_blob_client(
            unit.scope, unit.name
        )
        try:
            downloader = blob_client.download_blob()
            with local.open("wb") as fh:
                downloader.readinto(fh)
        except AzureError as e:
            raise TransferError(
                f"Download of {unit.key} failed: {e}", unit.key, cause=e
            ) from e
        logger.debug("Downloaded %s to %s", unit.key, local)
        return downloader.properties.content_settings

    def _ensure_container(self, container: str) -> None:
        with self._lock:
            if container in self._containers:
                return
            client = self._adapter.service(self._target).get_container_client(
                container
            )
            try:
                client.create_container()
                logger.info("Created container %s on %s", container, self._target.name)
            except ResourceExistsError:
                pass
            except AzureError as e:
                raise TransferError(
                    f"Cannot create container {container}: {e}", container, cause=e
                ) from e
            self._containers.add(container)

    def _upload(self, unit: MigrationUnit, local: Path, settings: Any) -> None:
        blob_client = self._adapter.service(self._target).get_blob_client(
            unit.scope, unit.name
        )
        kwargs: dict[str, Any] = {"overwrite": True}
        if settings is not None:
            kwargs["content_settings"] = settings
        try:
            with local.open("rb") as data:
                blob_client.upload_blob(data, **kwargs)
        except AzureError as e:
            raise TransferError(
                f"Upload of {unit.key} failed: {e}", unit.key, cause=e
            ) from e
        logger.debug("Uploaded %s to %s", unit.key, self._target.name)

"""Azure Blob Storage adapters."""

from azmigrate.adapters.storage.adapter import AzureBlobAdapter
from azmigrate.adapters.storage.transfer import BlobCopyTransfer


__all__ = ["AzureBlobAdapter", "BlobCopyTransfer"]

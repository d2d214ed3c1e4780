"""Azure Container Registry adapters."""

from azmigrate.adapters.registry.adapter import RegistryAdapter
from azmigrate.adapters.registry.transfer import RegistryImportTransfer


__all__ = ["RegistryAdapter", "RegistryImportTransfer"]

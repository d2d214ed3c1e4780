"""Azure CLI integration."""

from azmigrate.adapters.azure.cli import AzureCli


__all__ = ["AzureCli"]

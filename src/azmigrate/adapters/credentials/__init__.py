"""Credential resolution adapters."""

from azmigrate.adapters.credentials.azure import AzureSecretBackend
from azmigrate.adapters.credentials.provider import CachingCredentialProvider


__all__ = ["AzureSecretBackend", "CachingCredentialProvider"]

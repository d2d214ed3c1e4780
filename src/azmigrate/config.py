"""Endpoint configuration files.

Each migration command takes a source and a target JSON file. This module
parses them once, before any remote call, into ResourceEndpoint values.

PostgreSQL::

    {"subscription": "...", "host": "srv.postgres.database.azure.com",
     "username": "psqladmin", "keyvault": "kv-prod", "databases": ["app"]}

Blob Storage::

    {"subscription": "...", "account_name": "stprod",
     "resource_group": "rg-prod", "containers": ["static", "backups"]}

Container Registry::

    {"subscription": "...", "registry_name": "acrprod",
     "repositories": ["api", "web"]}
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from azmigrate.core.exceptions import ConfigurationError
from azmigrate.core.models import DEFAULT_SECRET_NAME, ResourceEndpoint, ResourceKind


# (name field, units field, units required, other required fields)
_SCHEMAS: dict[ResourceKind, tuple[str, str, bool, tuple[str, ...]]] = {
    ResourceKind.POSTGRES: ("host", "databases", True, ("username", "keyvault")),
    ResourceKind.STORAGE: ("account_name", "containers", True, ("resource_group",)),
    ResourceKind.REGISTRY: ("registry_name", "repositories", False, ()),
}


def _require_str(data: dict[str, Any], name: str, path: Path) -> str:
    value = data.get(name)
    if value is None:
        raise ConfigurationError(f"Missing '{name}' in {path}", path=path, field=name)
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(
            f"'{name}' in {path} must be a non-empty string", path=path, field=name
        )
    return value.strip()


def _units(
    data: dict[str, Any], name: str, required: bool, path: Path
) -> tuple[str, ...]:
    value = data.get(name)
    if value is None:
        if required:
            raise ConfigurationError(
                f"Missing '{name}' in {path}", path=path, field=name
            )
        return ()
    if not isinstance(value, list) or not all(
        isinstance(item, str) and item for item in value
    ):
        raise ConfigurationError(
            f"'{name}' in {path} must be a list of names", path=path, field=name
        )
    if required and not value:
        raise ConfigurationError(
            f"'{name}' in {path} cannot be empty", path=path, field=name
        )
    units = tuple(dict.fromkeys(value))
    if len(units) != len(value):
        raise ConfigurationError(
            f"'{name}' in {path} lists a name more than once", path=path, field=name
        )
    return units


def read_config(path: Path) -> dict[str, Any]:
    """Read a JSON object from ``path``.

    Raises:
        ConfigurationError: If the file is missing, unreadable or not a
            JSON object.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Config file not found: {path}", path=path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Cannot read {path}: {e}", path=path) from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {path}: {e}", path=path) from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a JSON object", path=path)
    return data


def load_endpoint(path: Path, kind: ResourceKind) -> ResourceEndpoint:
    """Parse an endpoint configuration file.

    Args:
        path: JSON configuration file.
        kind: Resource type the file describes.

    Returns:
        The validated ResourceEndpoint.

    Raises:
        ConfigurationError: If the file is missing, malformed, or lacks a
            required field.

    Example:
        >>> from azmigrate.config import load_endpoint
        >>> src = load_endpoint(Path("source_acr.json"), ResourceKind.REGISTRY)  # doctest: +SKIP
    """
    path = Path(path)
    data = read_config(path)
    name_field, units_field, units_required, required = _SCHEMAS[kind]

    fields: dict[str, Any] = {
        "kind": kind,
        "subscription": _require_str(data, "subscription", path),
        "name": _require_str(data, name_field, path),
        "units": _units(data, units_field, units_required, path),
    }
    for name in required:
        fields[name] = _require_str(data, name, path)
    if kind is ResourceKind.POSTGRES:
        fields["secret_name"] = (
            _require_str(data, "secret_name", path)
            if "secret_name" in data
            else DEFAULT_SECRET_NAME
        )

    try:
        return ResourceEndpoint(**fields)
    except ValueError as e:
        raise ConfigurationError(f"Invalid endpoint in {path}: {e}", path=path) from e

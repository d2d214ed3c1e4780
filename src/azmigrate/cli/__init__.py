"""CLI for azmigrate."""

# Import commands to register them with the app
# These imports have side effects (registering commands with @app.command())
from azmigrate.cli.commands import acr as _acr_module  # noqa: F401
from azmigrate.cli.commands import postgres as _postgres_module  # noqa: F401
from azmigrate.cli.commands import storage as _storage_module  # noqa: F401
from azmigrate.cli.main import app, main


__all__ = ["app", "main"]

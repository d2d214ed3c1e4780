"""PostgreSQL adapters: enumeration, verification and dump/restore."""

from azmigrate.adapters.postgres.adapter import PostgresAdapter
from azmigrate.adapters.postgres.transfer import DumpRestoreTransfer


__all__ = ["DumpRestoreTransfer", "PostgresAdapter"]

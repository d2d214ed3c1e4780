"""Dump-and-restore transfer of one PostgreSQL database."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import psycopg
from psycopg import sql

from azmigrate.adapters.postgres.adapter import MAINTENANCE_DATABASE
from azmigrate.adapters.process import CommandRunner
from azmigrate.core.exceptions import CommandError, TransferError, UnitSkipped
from azmigrate.core.formatting import format_size
from azmigrate.core.models import CredentialKind


if TYPE_CHECKING:
    from azmigrate.adapters.postgres.adapter import PostgresAdapter
    from azmigrate.core.models import MigrationUnit, ResourceEndpoint
    from azmigrate.core.ports import CredentialPort


logger = logging.getLogger(__name__)


class DumpRestoreTransfer:
    """Copies a database with ``pg_dump -F c -b`` and ``pg_restore``.

    The target database is dropped and recreated before the restore, so a
    selected unit always ends up as an exact copy of the source. Dumps are
    written to ``backup_dir/<database>.dump`` and left there afterwards.

    With ``skip_backup`` the dump step is skipped and an existing dump is
    restored; a database without a dump is recorded as skipped.
    """

    def __init__(
        self,
        adapter: PostgresAdapter,
        credentials: CredentialPort,
        source: ResourceEndpoint,
        target: ResourceEndpoint,
        backup_dir: Path,
        skip_backup: bool = False,
        runner: CommandRunner | None = None,
    ) -> None:
        self._adapter = adapter
        self._credentials = credentials
        self._source = source
        self._target = target
        self._backup_dir = Path(backup_dir)
        self._skip_backup = skip_backup
        self._runner = runner or CommandRunner()

    def dump_path(self, database: str) -> Path:
        return self._backup_dir / f"{database}.dump"

    def __call__(self, unit: MigrationUnit) -> None:
        database = unit.key
        dump = self.dump_path(database)

        if self._skip_backup:
            if not dump.is_file():
                raise UnitSkipped(f"No dump found at {dump}")
            logger.info("Reusing existing dump %s", dump)
        else:
            self._dump(database, dump)

        self._recreate(database)
        self._restore(database, dump)
        logger.info("Restored %s on %s", database, self._target.name)

    def _env(self, endpoint: ResourceEndpoint) -> dict[str, str]:
        credential = self._credentials.resolve(
            endpoint, CredentialKind.DATABASE_PASSWORD
        )
        return {"PGPASSWORD": credential.secret}

    def _dump(self, database: str, dump: Path) -> None:
        dump.parent.mkdir(parents=True, exist_ok=True)
        command = [
            "pg_dump",
            "-h",
            self._source.name,
            "-U",
            str(self._source.username),
            "-d",
            database,
            "-F",
            "c",
            "-b",
            "-f",
            str(dump),
        ]
        try:
            self._runner.run(command, env=self._env(self._source))
        except CommandError as e:
            raise TransferError(
                f"pg_dump of {database} failed: {e}", key=database, cause=e
            ) from e
        size = dump.stat().st_size if dump.exists() else None
        logger.info("Backed up %s (%s)", database, format_size(size))

    def _recreate(self, database: str) -> None:
        name = sql.Identifier(database)
        try:
            with self._adapter.connect(
                self._target, MAINTENANCE_DATABASE, autocommit=True
            ) as conn:
                conn.execute(sql.SQL("DROP DATABASE IF EXISTS {}").format(name))
                conn.execute(sql.SQL("CREATE DATABASE {}").format(name))
        except psycopg.Error as e:
            raise TransferError(
                f"Cannot recreate {database} on {self._target.name}: {e}",
                key=database,
                cause=e,
            ) from e

    def _restore(self, database: str, dump: Path) -> None:
        command = [
            "pg_restore",
            "-h",
            self._target.name,
            "-U",
            str(self._target.username),
            "-d",
            database,
            str(dump),
        ]
        try:
            self._runner.run(command, env=self._env(self._target))
        except CommandError as e:
            raise TransferError(
                f"pg_restore of {database} failed: {e}", key=database, cause=e
            ) from e

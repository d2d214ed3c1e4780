"""PostgreSQL resource adapter backed by psycopg."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import psycopg
from psycopg import sql

from azmigrate.core.exceptions import EnumerationError
from azmigrate.core.models import CredentialKind, MigrationUnit


if TYPE_CHECKING:
    import builtins
    from collections.abc import Callable, Iterator

    from azmigrate.core.models import ResourceEndpoint
    from azmigrate.core.ports import CredentialPort, UnitFilter


logger = logging.getLogger(__name__)

MAINTENANCE_DATABASE = "postgres"

_EXISTING_DATABASES = sql.SQL(
    "SELECT datname FROM pg_database WHERE NOT datistemplate"
)
_LIVE_ROWS = sql.SQL(
    "SELECT COALESCE(SUM(n_live_tup), 0)::bigint FROM pg_stat_user_tables"
)
_BASE_TABLES = sql.SQL(
    """
    SELECT n.nspname, c.relname
    FROM pg_class c
    JOIN pg_namespace n ON n.oid = c.relnamespace
    WHERE c.relkind = 'r'
      AND n.nspname NOT IN ('pg_catalog', 'information_schema', 'pg_toast')
    ORDER BY n.nspname, c.relname
    """
)
_TABLE_EXISTS = sql.SQL(
    """
    SELECT EXISTS (
        SELECT 1
        FROM pg_class c
        JOIN pg_namespace n ON n.oid = c.relnamespace
        WHERE c.relkind = 'r' AND n.nspname = %s AND c.relname = %s
    )
    """
)


def split_table(qualified: str) -> tuple[str, str]:
    """Split ``schema.table`` into its parts (``public`` when unqualified)."""
    schema, sep, table = qualified.partition(".")
    if not sep:
        return "public", schema
    return schema, table


class PostgresAdapter:
    """Enumerates databases and fingerprints tables on a PostgreSQL server.

    Migration units are databases (key = database name, size = live row
    estimate). Verification units are base tables, keyed
    ``<database>/<schema>.<table>`` and fingerprinted by exact row count.

    Args:
        credentials: Resolves the administrator password for an endpoint.
        connect: psycopg-compatible connect function.
        port: Server port.
        sslmode: libpq sslmode passed on every connection.
        connect_timeout: Seconds to wait for a connection.
    """

    def __init__(
        self,
        credentials: CredentialPort,
        connect: Callable[..., Any] = psycopg.connect,
        port: int = 5432,
        sslmode: str = "require",
        connect_timeout: int = 30,
    ) -> None:
        self._credentials = credentials
        self._connect_fn = connect
        self._port = port
        self._sslmode = sslmode
        self._connect_timeout = connect_timeout

    def connect(
        self, endpoint: ResourceEndpoint, database: str, autocommit: bool = False
    ) -> Any:
        """Open a connection to ``database`` on the endpoint's server."""
        credential = self._credentials.resolve(
            endpoint, CredentialKind.DATABASE_PASSWORD
        )
        return self._connect_fn(
            host=endpoint.name,
            port=self._port,
            user=endpoint.username,
            password=credential.secret,
            dbname=database,
            sslmode=self._sslmode,
            connect_timeout=self._connect_timeout,
            autocommit=autocommit,
        )

    def databases(self, endpoint: ResourceEndpoint) -> set[str]:
        """Names of the non-template databases that exist on the server."""
        try:
            with self.connect(endpoint, MAINTENANCE_DATABASE) as conn:
                rows = conn.execute(_EXISTING_DATABASES).fetchall()
        except psycopg.Error as e:
            raise EnumerationError(
                f"Cannot list databases on {endpoint.name}: {e}", endpoint, cause=e
            ) from e
        return {row[0] for row in rows}

    def list(
        self, endpoint: ResourceEndpoint, unit_filter: UnitFilter
    ) -> Iterator[MigrationUnit]:
        """Yield one unit per requested database that exists on the server."""
        wanted = unit_filter.scopes or endpoint.units
        existing = self.databases(endpoint)
        for database in wanted:
            if database not in existing:
                logger.warning("Database %s not found on %s", database, endpoint.name)
                continue
            yield MigrationUnit(
                key=database,
                scope=database,
                size=self._live_rows(endpoint, database),
            )

    def _live_rows(self, endpoint: ResourceEndpoint, database: str) -> int:
        try:
            with self.connect(endpoint, database) as conn:
                row = conn.execute(_LIVE_ROWS).fetchone()
        except psycopg.Error as e:
            raise EnumerationError(
                f"Cannot read statistics of {database} on {endpoint.name}: {e}",
                endpoint,
                cause=e,
            ) from e
        return int(row[0]) if row else 0

    def list_tables(
        self, endpoint: ResourceEndpoint, database: str
    ) -> builtins.list[str]:
        """Base tables of ``database`` as ``schema.table``, ordered by schema."""
        try:
            with self.connect(endpoint, database) as conn:
                rows = conn.execute(_BASE_TABLES).fetchall()
        except psycopg.Error as e:
            raise EnumerationError(
                f"Cannot list tables of {database} on {endpoint.name}: {e}",
                endpoint,
                cause=e,
            ) from e
        return [f"{schema}.{table}" for schema, table in rows]

    def verification_units(
        self, endpoint: ResourceEndpoint, unit_filter: UnitFilter
    ) -> builtins.list[MigrationUnit]:
        """Every base table of the requested databases on ``endpoint``.

        Databases that do not exist on the endpoint contribute no units.
        """
        existing = self.databases(endpoint)
        units: builtins.list[MigrationUnit] = []
        for database in unit_filter.scopes or endpoint.units:
            if database not in existing:
                logger.warning(
                    "Database %s not found on %s; not verified", database, endpoint.name
                )
                continue
            for table in self.list_tables(endpoint, database):
                units.append(MigrationUnit(key=f"{database}/{table}", scope=database))
        return units

    def fingerprint(
        self, endpoint: ResourceEndpoint, unit: MigrationUnit
    ) -> int | None:
        """Exact row count of a table, None if its database or table is absent.

        The server's database list is only read when connecting fails, to
        tell an absent database from an unreachable server.
        """
        database = unit.scope
        schema, table = split_table(unit.name)
        try:
            conn = self.connect(endpoint, database)
        except psycopg.OperationalError as e:
            if database not in self.databases(endpoint):
                return None
            raise EnumerationError(
                f"Cannot connect to {database} on {endpoint.name}: {e}",
                endpoint,
                cause=e,
            ) from e
        try:
            with conn:
                exists = conn.execute(_TABLE_EXISTS, (schema, table)).fetchone()
                if not exists or not exists[0]:
                    return None
                query = sql.SQL("SELECT count(*) FROM {}").format(
                    sql.Identifier(schema, table)
                )
                row = conn.execute(query).fetchone()
        except psycopg.Error as e:
            raise EnumerationError(
                f"Cannot count rows of {unit.name} in {database}: {e}",
                endpoint,
                cause=e,
            ) from e
        return int(row[0]) if row else 0

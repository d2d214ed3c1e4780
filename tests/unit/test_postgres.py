"""Unit tests for the PostgreSQL adapter and dump/restore transfer."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import psycopg
import pytest

from azmigrate.adapters.postgres import DumpRestoreTransfer, PostgresAdapter
from azmigrate.adapters.postgres import adapter as pg
from azmigrate.adapters.postgres.adapter import split_table
from azmigrate.adapters.process import CommandRunner
from azmigrate.core.exceptions import EnumerationError, TransferError, UnitSkipped
from azmigrate.core.models import MigrationUnit, ResourceEndpoint, WorkflowMode
from azmigrate.core.ports import UnitFilter
from azmigrate.core.services import MigrationOrchestrator, WorkflowRequest


class FakeResult:
    def __init__(self, rows: list[tuple[Any, ...]]) -> None:
        self._rows = rows

    def fetchall(self) -> list[tuple[Any, ...]]:
        return self._rows

    def fetchone(self) -> tuple[Any, ...] | None:
        return self._rows[0] if self._rows else None


class FakeConnection:
    """Answers the adapter's catalog queries from a FakeServer."""

    def __init__(self, server: FakeServer, dbname: str) -> None:
        self._server = server
        self._tables = server.databases[dbname]
        self._checked: str | None = None

    def __enter__(self) -> FakeConnection:
        return self

    def __exit__(self, *exc: object) -> None:
        return None

    def execute(self, query: Any, params: tuple[Any, ...] | None = None) -> FakeResult:
        if query is pg._EXISTING_DATABASES:
            return FakeResult([(name,) for name in self._server.databases])
        if query is pg._LIVE_ROWS:
            return FakeResult([(sum(self._tables.values()),)])
        if query is pg._BASE_TABLES:
            return FakeResult([tuple(t.split(".", 1)) for t in sorted(self._tables)])
        if query is pg._TABLE_EXISTS:
            assert params is not None
            self._checked = ".".join(params)
            return FakeResult([(self._checked in self._tables,)])
        text = repr(query)
        if "count(*)" in text:
            assert self._checked is not None
            return FakeResult([(self._tables[self._checked],)])
        self._server.statements.append(text)
        return FakeResult([])


class FakeServer:
    """In-memory server: database -> {"schema.table": rows}."""

    def __init__(self, databases: dict[str, dict[str, int]]) -> None:
        self.databases = databases
        self.statements: list[str] = []
        self.connects: list[dict[str, Any]] = []
        self.down = False

    def connect(self, **kwargs: Any) -> FakeConnection:
        self.connects.append(kwargs)
        if self.down:
            raise psycopg.OperationalError("connection refused")
        if kwargs["dbname"] not in self.databases:
            raise psycopg.OperationalError(
                f'FATAL:  database "{kwargs["dbname"]}" does not exist'
            )
        return FakeConnection(self, kwargs["dbname"])


@pytest.fixture
def server() -> FakeServer:
    return FakeServer(
        {
            "postgres": {},
            "app": {"public.users": 10, "public.orders": 25, "audit.events": 5},
        }
    )


@pytest.fixture
def adapter(server: FakeServer, fake_credentials: Any) -> PostgresAdapter:
    return PostgresAdapter(fake_credentials, connect=server.connect)


@pytest.mark.adapters
@pytest.mark.tra("Adapter.Postgres.Enumerate")
@pytest.mark.tier(1)
class TestPostgresAdapter:
    """Tests for PostgresAdapter enumeration and fingerprints."""

    def test_list_yields_existing_databases(
        self, adapter: PostgresAdapter, source_postgres: ResourceEndpoint
    ) -> None:
        """Configured databases missing on the server are not listed."""
        units = list(adapter.list(source_postgres, UnitFilter()))

        assert [u.key for u in units] == ["app"]
        assert units[0].scope == "app"
        assert units[0].size == 40

    def test_list_honors_scopes(
        self, adapter: PostgresAdapter, source_postgres: ResourceEndpoint
    ) -> None:
        units = list(adapter.list(source_postgres, UnitFilter(scopes=("auth",))))
        assert units == []

    def test_connection_parameters(
        self,
        adapter: PostgresAdapter,
        server: FakeServer,
        source_postgres: ResourceEndpoint,
    ) -> None:
        adapter.databases(source_postgres)

        kwargs = server.connects[0]
        assert kwargs["host"] == source_postgres.name
        assert kwargs["user"] == "pgadmin"
        assert kwargs["password"] == "s3cret"
        assert kwargs["dbname"] == "postgres"
        assert kwargs["sslmode"] == "require"
        assert kwargs["autocommit"] is False

    def test_verification_units_are_tables(
        self, adapter: PostgresAdapter, source_postgres: ResourceEndpoint
    ) -> None:
        units = adapter.verification_units(source_postgres, UnitFilter(scopes=("app",)))

        assert [u.key for u in units] == [
            "app/audit.events",
            "app/public.orders",
            "app/public.users",
        ]
        assert units[0].name == "audit.events"

    def test_fingerprint_is_row_count(
        self, adapter: PostgresAdapter, source_postgres: ResourceEndpoint
    ) -> None:
        unit = MigrationUnit("app/public.orders", scope="app")
        assert adapter.fingerprint(source_postgres, unit) == 25

    def test_fingerprint_missing_table(
        self, adapter: PostgresAdapter, source_postgres: ResourceEndpoint
    ) -> None:
        unit = MigrationUnit("app/public.invoices", scope="app")
        assert adapter.fingerprint(source_postgres, unit) is None

    def test_fingerprint_missing_database(
        self, adapter: PostgresAdapter, source_postgres: ResourceEndpoint
    ) -> None:
        unit = MigrationUnit("auth/public.users", scope="auth")
        assert adapter.fingerprint(source_postgres, unit) is None

    def test_fingerprint_opens_one_connection(
        self,
        adapter: PostgresAdapter,
        server: FakeServer,
        source_postgres: ResourceEndpoint,
    ) -> None:
        unit = MigrationUnit("app/public.users", scope="app")
        adapter.fingerprint(source_postgres, unit)
        assert [c["dbname"] for c in server.connects] == ["app"]

    def test_fingerprint_quoted_table_name(
        self,
        adapter: PostgresAdapter,
        server: FakeServer,
        source_postgres: ResourceEndpoint,
    ) -> None:
        server.databases["app"]['public.we"ird'] = 7
        unit = MigrationUnit('app/public.we"ird', scope="app")
        assert adapter.fingerprint(source_postgres, unit) == 7

    def test_fingerprint_unreachable_server(
        self,
        adapter: PostgresAdapter,
        server: FakeServer,
        source_postgres: ResourceEndpoint,
    ) -> None:
        server.down = True
        with pytest.raises(EnumerationError, match="connection refused"):
            adapter.fingerprint(
                source_postgres, MigrationUnit("app/public.users", scope="app")
            )

    def test_list_tables_of_missing_database(
        self, adapter: PostgresAdapter, source_postgres: ResourceEndpoint
    ) -> None:
        with pytest.raises(EnumerationError, match='"auth" does not exist'):
            adapter.list_tables(source_postgres, "auth")

    def test_missing_database_is_logged_and_skipped(
        self,
        adapter: PostgresAdapter,
        source_postgres: ResourceEndpoint,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """A configured database absent from the server never aborts a pass."""
        with caplog.at_level(logging.WARNING, logger="azmigrate"):
            listed = list(adapter.list(source_postgres, UnitFilter()))
            tables = adapter.verification_units(source_postgres, UnitFilter())

        assert [u.key for u in listed] == ["app"]
        assert {u.scope for u in tables} == {"app"}
        assert len(tables) == 3
        missing = [r for r in caplog.records if "auth not found" in r.getMessage()]
        assert len(missing) == 2

    def test_verify_only_survives_missing_database(
        self,
        adapter: PostgresAdapter,
        fake_credentials: Any,
        source_postgres: ResourceEndpoint,
        target_postgres: ResourceEndpoint,
    ) -> None:
        """Tables of the databases that exist are still verified."""
        orchestrator = MigrationOrchestrator(adapter, fake_credentials)
        report = orchestrator.run(
            WorkflowRequest(
                source_postgres, target_postgres, mode=WorkflowMode.VERIFY_ONLY
            )
        )

        assert report.failure is None
        assert [v.unit.key for v in report.verification] == [
            "app/audit.events",
            "app/public.orders",
            "app/public.users",
        ]
        assert all(v.match for v in report.verification)

    def test_driver_error_is_enumeration_error(
        self,
        adapter: PostgresAdapter,
        server: FakeServer,
        source_postgres: ResourceEndpoint,
    ) -> None:
        server.down = True
        with pytest.raises(EnumerationError, match="connection refused") as exc_info:
            list(adapter.list(source_postgres, UnitFilter()))
        assert exc_info.value.endpoint is source_postgres

    @pytest.mark.parametrize(
        ("qualified", "expected"),
        [("public.users", ("public", "users")), ("users", ("public", "users"))],
    )
    def test_split_table(self, qualified: str, expected: tuple[str, str]) -> None:
        assert split_table(qualified) == expected


@pytest.fixture
def transfer(
    adapter: PostgresAdapter,
    fake_credentials: Any,
    fake_run: Any,
    source_postgres: ResourceEndpoint,
    target_postgres: ResourceEndpoint,
    tmp_path: Path,
) -> DumpRestoreTransfer:
    return DumpRestoreTransfer(
        adapter,
        fake_credentials,
        source_postgres,
        target_postgres,
        backup_dir=tmp_path / "backups",
        runner=CommandRunner(fake_run),
    )


@pytest.mark.adapters
@pytest.mark.tra("Adapter.Postgres.Transfer")
@pytest.mark.tier(1)
class TestDumpRestoreTransfer:
    """Tests for DumpRestoreTransfer."""

    def test_dump_recreate_restore(
        self,
        transfer: DumpRestoreTransfer,
        fake_run: Any,
        server: FakeServer,
        tmp_path: Path,
        target_postgres: ResourceEndpoint,
    ) -> None:
        transfer(MigrationUnit("app", scope="app"))

        dump_cmd, restore_cmd = fake_run.commands()
        dump = str(tmp_path / "backups" / "app.dump")
        assert dump_cmd[0] == "pg_dump"
        assert dump_cmd[dump_cmd.index("-F") + 1] == "c"
        assert "-b" in dump_cmd
        assert dump_cmd[-2:] == ["-f", dump]
        assert restore_cmd[0] == "pg_restore"
        assert restore_cmd[restore_cmd.index("-h") + 1] == target_postgres.name
        assert restore_cmd[-1] == dump

        assert "DROP DATABASE IF EXISTS" in server.statements[0]
        assert "CREATE DATABASE" in server.statements[1]
        assert "'app'" in server.statements[1]
        assert server.connects[-1]["autocommit"] is True

    def test_password_passed_in_env_only(
        self, transfer: DumpRestoreTransfer, fake_run: Any
    ) -> None:
        transfer(MigrationUnit("app", scope="app"))

        for command, kwargs in fake_run.calls:
            assert kwargs["env"]["PGPASSWORD"] == "s3cret"
            assert "s3cret" not in command

    def test_skip_backup_reuses_dump(
        self,
        adapter: PostgresAdapter,
        fake_credentials: Any,
        fake_run: Any,
        source_postgres: ResourceEndpoint,
        target_postgres: ResourceEndpoint,
        tmp_path: Path,
    ) -> None:
        (tmp_path / "app.dump").write_bytes(b"PGDMP")
        transfer = DumpRestoreTransfer(
            adapter,
            fake_credentials,
            source_postgres,
            target_postgres,
            backup_dir=tmp_path,
            skip_backup=True,
            runner=CommandRunner(fake_run),
        )

        transfer(MigrationUnit("app", scope="app"))

        assert [c[0] for c in fake_run.commands()] == ["pg_restore"]

    def test_skip_backup_without_dump_is_skipped(
        self,
        adapter: PostgresAdapter,
        fake_credentials: Any,
        fake_run: Any,
        source_postgres: ResourceEndpoint,
        target_postgres: ResourceEndpoint,
        tmp_path: Path,
    ) -> None:
        transfer = DumpRestoreTransfer(
            adapter,
            fake_credentials,
            source_postgres,
            target_postgres,
            backup_dir=tmp_path,
            skip_backup=True,
            runner=CommandRunner(fake_run),
        )

        with pytest.raises(UnitSkipped, match="No dump found"):
            transfer(MigrationUnit("auth", scope="auth"))
        assert fake_run.calls == []

    def test_dump_failure_is_transfer_error(
        self, transfer: DumpRestoreTransfer, fake_run: Any, server: FakeServer
    ) -> None:
        fake_run.reply(returncode=1, stderr="permission denied for database app")

        with pytest.raises(TransferError, match="pg_dump of app failed") as exc_info:
            transfer(MigrationUnit("app", scope="app"))

        assert exc_info.value.key == "app"
        assert server.statements == []

    def test_recreate_failure_is_transfer_error(
        self, transfer: DumpRestoreTransfer, server: FakeServer
    ) -> None:
        server.down = True
        with pytest.raises(TransferError, match="Cannot recreate app"):
            transfer(MigrationUnit("app", scope="app"))

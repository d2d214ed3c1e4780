"""Unit tests for the subprocess wrapper and argument redaction."""

from __future__ import annotations

import subprocess
from typing import Any

import pytest

from azmigrate.adapters.process import CommandRunner, redact
from azmigrate.core.exceptions import CommandError


@pytest.mark.adapters
@pytest.mark.tra("Adapter.Process.Redact")
@pytest.mark.tier(0)
class TestRedact:
    """Tests for redact()."""

    def test_masks_value_after_secret_flag(self) -> None:
        command = ["az", "acr", "import", "--password", "hunter2", "--force"]
        assert redact(command) == ["az", "acr", "import", "--password", "***", "--force"]

    def test_masks_equals_form(self) -> None:
        assert redact(["pg", "--account-key=abc"]) == ["pg", "--account-key=***"]

    def test_leaves_other_arguments(self) -> None:
        command = ["pg_dump", "-h", "host", "-U", "admin"]
        assert redact(command) == command

    def test_does_not_modify_input(self) -> None:
        command = ["x", "-p", "secret"]
        redact(command)
        assert command == ["x", "-p", "secret"]


@pytest.mark.adapters
@pytest.mark.tra("Adapter.Process.Run")
@pytest.mark.tier(1)
class TestCommandRunner:
    """Tests for CommandRunner.run()."""

    def test_returns_stdout(self, fake_run: Any) -> None:
        fake_run.reply("--version", stdout="2.60.0\n")
        assert CommandRunner(fake_run).run(["az", "--version"]) == "2.60.0\n"

    def test_captures_text_without_check(self, fake_run: Any) -> None:
        CommandRunner(fake_run).run(["az", "account", "show"])
        _, kwargs = fake_run.calls[0]
        assert kwargs["capture_output"] is True
        assert kwargs["text"] is True
        assert kwargs["check"] is False
        assert "env" not in kwargs

    def test_merges_env_over_parent(
        self, fake_run: Any, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("AZMIGRATE_PARENT", "1")
        CommandRunner(fake_run).run(["pg_dump"], env={"PGPASSWORD": "pw"})
        _, kwargs = fake_run.calls[0]
        assert kwargs["env"]["PGPASSWORD"] == "pw"
        assert kwargs["env"]["AZMIGRATE_PARENT"] == "1"

    def test_passes_timeout(self, fake_run: Any) -> None:
        CommandRunner(fake_run, timeout=30).run(["az"])
        assert fake_run.calls[0][1]["timeout"] == 30

    def test_nonzero_exit_raises(self, fake_run: Any) -> None:
        fake_run.reply("acr", returncode=3, stderr="ERROR: denied\n")

        with pytest.raises(CommandError) as exc_info:
            CommandRunner(fake_run).run(["az", "acr", "import"])

        error = exc_info.value
        assert error.returncode == 3
        assert error.stderr == "ERROR: denied"
        assert "exited with status 3" in str(error)
        assert error.recovery_hint is None

    def test_error_command_is_redacted(self, fake_run: Any) -> None:
        fake_run.reply("acr", returncode=1)

        with pytest.raises(CommandError) as exc_info:
            CommandRunner(fake_run).run(["az", "acr", "--password", "hunter2"])

        assert "hunter2" not in exc_info.value.command
        assert "hunter2" not in str(exc_info.value)

    def test_missing_tool(self, fake_run: Any) -> None:
        fake_run.reply(raises=FileNotFoundError("pg_restore"))

        with pytest.raises(CommandError, match="pg_restore not found") as exc_info:
            CommandRunner(fake_run).run(["pg_restore", "-d", "app"])

        assert exc_info.value.returncode is None
        assert "pg_restore" in (exc_info.value.recovery_hint or "")

    def test_timeout(self, fake_run: Any) -> None:
        fake_run.reply(raises=subprocess.TimeoutExpired(["az"], 5))

        with pytest.raises(CommandError, match="timed out after 5s"):
            CommandRunner(fake_run).run(["az", "acr"])

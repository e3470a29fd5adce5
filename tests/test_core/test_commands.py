"""Tests for the command execution boundary."""

from __future__ import annotations

import sys

from pcmedic.core.commands import CommandResult, ShellCommandRunner, wrap_powershell


class TestWrapPowershell:
    def test_cmdlets_are_wrapped(self):
        assert wrap_powershell("Get-Service") == 'powershell -Command "Get-Service"'

    def test_quotes_are_escaped(self):
        assert wrap_powershell('Get-Item "C:\\x"') == 'powershell -Command "Get-Item \\"C:\\x\\""'

    def test_native_commands_untouched(self):
        assert wrap_powershell("ipconfig /flushdns") == "ipconfig /flushdns"
        assert wrap_powershell("powershell -Command Get-Date") == "powershell -Command Get-Date"


class TestCommandResult:
    def test_failure_reason_uses_last_stderr_line(self):
        result = CommandResult(command="x", stderr="first\nAccess denied\n", exit_code=5)
        assert not result.ok
        assert result.failure_reason == "exit code 5: Access denied"

    def test_failure_reason_without_stderr(self):
        assert CommandResult(command="x", exit_code=1).failure_reason == "exit code 1"

    def test_timeout(self):
        result = CommandResult(command="x", exit_code=None, timed_out=True)
        assert not result.ok
        assert result.failure_reason == "timed out"

    def test_success(self):
        assert CommandResult(command="x").failure_reason == ""


class TestShellCommandRunner:
    def test_runs_command(self):
        runner = ShellCommandRunner(platform_name="linux")
        result = runner.run(f'"{sys.executable}" -c "print(42)"')
        assert result.ok
        assert result.stdout.strip() == "42"

    def test_nonzero_exit(self):
        runner = ShellCommandRunner(platform_name="linux")
        result = runner.run(f'"{sys.executable}" -c "import sys; sys.exit(3)"')
        assert result.exit_code == 3

    def test_timeout(self):
        runner = ShellCommandRunner(platform_name="linux", default_timeout=0.5)
        result = runner.run(f'"{sys.executable}" -c "import time; time.sleep(5)"')
        assert result.timed_out
        assert result.exit_code is None

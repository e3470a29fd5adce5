"""OS command execution boundary.

Probes and the safety guard never call :mod:`subprocess` directly. They
go through a :class:`CommandRunner`, which returns stdout, stderr and the
exit code of one opaque command string, bounded by a timeout.
"""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass

from pcmedic.core.platform import WINDOWS, current_platform

logger = logging.getLogger(__name__)

_POWERSHELL_VERBS = (
    "Get-", "Set-", "New-", "Remove-", "Invoke-", "Start-", "Stop-",
    "Test-", "Enable-", "Disable-", "Add-", "Clear-", "Update-",
    "Install-", "Uninstall-", "Export-", "Import-", "ConvertTo-",
    "ConvertFrom-", "Select-", "Where-", "ForEach-", "Measure-",
    "Compare-", "Sort-", "Group-", "Format-", "Out-", "Write-",
    "Read-", "Checkpoint-", "Restore-", "Repair-", "Reset-",
)


@dataclass(frozen=True)
class CommandResult:
    command: str
    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = 0
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return not self.timed_out and self.exit_code == 0

    @property
    def failure_reason(self) -> str:
        if self.timed_out:
            return "timed out"
        if self.exit_code != 0:
            detail = self.stderr.strip().splitlines()[-1] if self.stderr.strip() else ""
            reason = f"exit code {self.exit_code}"
            return f"{reason}: {detail}" if detail else reason
        return ""


class CommandRunner(ABC):
    """Runs one command string and reports its outcome."""

    @abstractmethod
    def run(self, command: str, timeout: float | None = None) -> CommandResult:
        ...


def wrap_powershell(command: str) -> str:
    """Wrap a bare PowerShell cmdlet invocation so ``cmd.exe`` can run it."""
    stripped = command.strip()
    if stripped.lower().startswith("powershell"):
        return command
    if any(stripped.startswith(verb) for verb in _POWERSHELL_VERBS):
        escaped = command.replace('"', '\\"')
        return f'powershell -Command "{escaped}"'
    return command


class ShellCommandRunner(CommandRunner):
    """Executes commands through the system shell with a timeout."""

    def __init__(self, platform_name: str | None = None, default_timeout: float = 30.0):
        self.platform_name = platform_name or current_platform()
        self.default_timeout = default_timeout

    def run(self, command: str, timeout: float | None = None) -> CommandResult:
        if self.platform_name == WINDOWS:
            command = wrap_powershell(command)
        limit = timeout if timeout is not None else self.default_timeout

        logger.debug("Running command (timeout %.0fs): %s", limit, command)
        try:
            completed = subprocess.run(
                command,
                shell=True,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=limit,
            )
        except subprocess.TimeoutExpired as e:
            logger.warning("Command timed out after %.0fs: %s", limit, command)
            return CommandResult(
                command=command,
                stdout=_as_text(e.stdout),
                stderr=_as_text(e.stderr),
                exit_code=None,
                timed_out=True,
            )
        except OSError as e:
            return CommandResult(command=command, stderr=str(e), exit_code=127)

        return CommandResult(
            command=command,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            exit_code=completed.returncode,
        )


def _as_text(value: bytes | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value

"""System restore points used as the rollback safety net for risky fixes.

Only Windows exposes a scriptable system checkpoint
(``Checkpoint-Computer``/``Restore-Computer``). On other platforms
:meth:`RestorePointManager.create` raises
:class:`~pcmedic.core.errors.RestorePointFailure`, which the guard treats
as non-fatal.

Every created point is also recorded in ``.pcmedic/restore_points.json`` so
``pcmedic restore-points`` can list what PCMedic created.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any

from pcmedic.core.commands import CommandResult, CommandRunner, ShellCommandRunner
from pcmedic.core.errors import RestorePointFailure
from pcmedic.core.models import RestorePoint
from pcmedic.core.platform import WINDOWS, current_platform, platform_label

logger = logging.getLogger(__name__)

_MANIFEST_FILENAME = "restore_points.json"
_DESCRIPTION_PREFIX = "PCMedic: "
_MAX_DESCRIPTION = 200


class RestorePointManager:
    """Creates, lists and applies system restore points."""

    def __init__(
        self,
        state_dir: Path,
        runner: CommandRunner | None = None,
        platform_name: str | None = None,
        timeout: float = 300.0,
    ):
        self.platform_name = platform_name or current_platform()
        self.runner = runner or ShellCommandRunner(self.platform_name, timeout)
        self.timeout = timeout
        self._manifest = state_dir / _MANIFEST_FILENAME

    @property
    def supported(self) -> bool:
        return self.platform_name == WINDOWS

    def create(self, description: str, fix_id: str = "") -> RestorePoint:
        """Create a checkpoint and return it.

        Raises:
            RestorePointFailure: Unsupported platform, command failure, or
                the new point's sequence number could not be read back.
        """
        if not self.supported:
            raise RestorePointFailure(
                f"System restore points are not available on {platform_label(self.platform_name)}"
            )

        text = _sanitise(_DESCRIPTION_PREFIX + description)
        result = self.runner.run(
            f"Checkpoint-Computer -Description '{text}' -RestorePointType 'MODIFY_SETTINGS'",
            timeout=self.timeout,
        )
        if not result.ok:
            raise RestorePointFailure(f"Checkpoint-Computer failed: {result.failure_reason}")

        lookup = self.runner.run(
            "(Get-ComputerRestorePoint | Sort-Object SequenceNumber | "
            "Select-Object -Last 1).SequenceNumber",
            timeout=self.timeout,
        )
        sequence = lookup.stdout.strip()
        if not lookup.ok or not sequence.isdigit():
            raise RestorePointFailure(
                "Restore point was requested but its sequence number could not be read"
            )

        point = RestorePoint(id=sequence, description=text)
        self._record(point, fix_id)
        logger.info("Created restore point %s for %s", point.id, fix_id or description)
        return point

    def rollback(self, restore_point_id: str) -> CommandResult:
        """Ask the OS to restore *restore_point_id*. The caller checks ``ok``."""
        if not restore_point_id.isdigit():
            return CommandResult(
                command="Restore-Computer",
                stderr=f"Invalid restore point id {restore_point_id!r}",
                exit_code=1,
            )
        logger.warning("Rolling back to restore point %s", restore_point_id)
        return self.runner.run(
            f"Restore-Computer -RestorePoint {restore_point_id} -Confirm:$false",
            timeout=self.timeout,
        )

    def list(self) -> list[RestorePoint]:
        """Restore points PCMedic created, newest first."""
        points = [
            RestorePoint(
                id=entry["id"],
                description=entry["description"],
                created_at=datetime.fromisoformat(entry["created_at"]),
            )
            for entry in self._read_manifest()
        ]
        points.sort(key=lambda p: p.created_at, reverse=True)
        return points

    def _read_manifest(self) -> list[dict[str, Any]]:
        if not self._manifest.exists():
            return []
        try:
            data = json.loads(self._manifest.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.warning("Ignoring unreadable %s: %s", self._manifest, e)
            return []
        return [entry for entry in data if isinstance(entry, dict)]

    def _record(self, point: RestorePoint, fix_id: str) -> None:
        manifest = self._read_manifest()
        manifest.append({**point.to_dict(), "fix_id": fix_id})
        self._manifest.write_text(json.dumps(manifest, indent=2), encoding="utf-8")


def _sanitise(text: str) -> str:
    """Make *text* safe inside a single-quoted PowerShell string."""
    text = re.sub(r"[\r\n]+", " ", text).replace("'", "")
    return text[:_MAX_DESCRIPTION]

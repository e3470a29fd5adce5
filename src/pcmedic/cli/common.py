"""Shared wiring for CLI commands: config, state dir, ledger, saved diagnosis."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pcmedic.analysis.schema import parse_fix_proposal, parse_issue
from pcmedic.audit.ledger import SqliteAuditLedger
from pcmedic.core.config import PCMedicConfig, get_pcmedic_dir
from pcmedic.core.errors import PCMedicError
from pcmedic.core.models import Diagnosis, FixProposal

LAST_DIAGNOSIS_FILENAME = "last_diagnosis.json"


def open_ledger(config: PCMedicConfig, project_path: Path | None = None) -> SqliteAuditLedger:
    ledger = SqliteAuditLedger(get_pcmedic_dir(project_path), encrypt=config.audit.encrypt)
    ledger.open()
    return ledger


def save_diagnosis(state_dir: Path, session_id: str, diagnosis: Diagnosis) -> Path:
    path = state_dir / LAST_DIAGNOSIS_FILENAME
    payload = {"session_id": session_id, **diagnosis.to_dict()}
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return path


def load_diagnosis(state_dir: Path) -> tuple[str | None, Diagnosis]:
    """Read back the diagnosis saved by ``pcmedic diagnose``.

    Fix proposals go through the same parser as a fresh analysis reply;
    the file is no more trusted than the reply it came from.
    """
    path = state_dir / LAST_DIAGNOSIS_FILENAME
    if not path.exists():
        raise PCMedicError("No saved diagnosis. Run `pcmedic diagnose <PROBLEM_TYPE>` first.")
    try:
        data: dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise PCMedicError(f"Saved diagnosis {path} is corrupt: {e}") from e

    if not isinstance(data, dict):
        raise PCMedicError(f"Saved diagnosis {path} is corrupt: expected a JSON object")
    fixes: list[FixProposal] = []
    for i, raw in enumerate(data.get("fixes") or []):
        if not isinstance(raw, dict):
            raise PCMedicError(f"Saved diagnosis {path} is corrupt: fix {i + 1} is not an object")
        fixes.append(parse_fix_proposal(raw, i))
    issues = [parse_issue(raw) for raw in data.get("issues") or [] if isinstance(raw, dict)]
    return data.get("session_id"), Diagnosis(
        summary=data.get("summary", ""), issues=issues, fixes=fixes
    )

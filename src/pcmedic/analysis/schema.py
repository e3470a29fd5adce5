"""Parse the analysis collaborator's untrusted reply into a Diagnosis.

The reply is expected to be a JSON object, but in practice arrives wrapped
in markdown fences, with leading prose, or with trailing commas. This
module extracts and repairs the JSON, coerces each field to its model type
and applies the confidence/priority post-filter.

Nothing here decides whether a fix is safe to run. Every FixProposal is
re-validated by the safety guard before execution.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pcmedic.core.errors import AnalysisError
from pcmedic.core.models import Diagnosis, FixProposal, Issue, Severity

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 0.7
DEFAULT_CONFIDENCE = 0.8

PRIORITY_ORDER = {"immediate": 1, "high": 2, "medium": 3, "low": 4}
_UNRANKED = 5

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_TRAILING_COMMA_RE = re.compile(r",(\s*[\]}])")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


# ---------------------------------------------------------------------------
# JSON extraction
# ---------------------------------------------------------------------------


def extract_json(text: str) -> dict[str, Any]:
    """Return the first JSON object embedded in *text*.

    Raises:
        AnalysisError: No object found, or it cannot be parsed even after
            repairing trailing commas and stray control characters.
    """
    cleaned = _FENCE_RE.sub("", text).strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end <= start:
        raise AnalysisError("Analysis reply contains no JSON object")
    candidate = cleaned[start : end + 1]

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as first:
        repaired = _CONTROL_CHARS_RE.sub("", _TRAILING_COMMA_RE.sub(r"\1", candidate))
        try:
            parsed = json.loads(repaired)
        except json.JSONDecodeError as e:
            raise AnalysisError(f"Analysis reply is not valid JSON: {e}") from first
        logger.info("Analysis reply parsed after repairing JSON")

    if not isinstance(parsed, dict):
        raise AnalysisError("Analysis reply JSON is not an object")
    return parsed


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------


def _first(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return default


def _confidence(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _str_list(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,) if value.strip() else ()
    if not isinstance(value, list):
        return ()
    return tuple(str(v) for v in value if isinstance(v, (str, int, float)) and str(v).strip())


def parse_issue(data: dict[str, Any]) -> Issue:
    try:
        severity = Severity(str(data.get("severity", "info")).lower())
    except ValueError:
        severity = Severity.INFO
    priority = data.get("priority")
    return Issue(
        severity=severity,
        title=str(data.get("title") or "Untitled issue"),
        description=str(data.get("description") or ""),
        priority=str(priority).lower() if priority else None,
        confidence=_confidence(data.get("confidence")),
    )


def parse_fix_proposal(data: dict[str, Any], index: int = 0) -> FixProposal:
    """Build a FixProposal from one ``fixes[]`` element.

    Accepts both the flat shape and the nested ``technicalDetails.commands``
    shape. Unknown risk levels are kept verbatim for the guard to reject.
    """
    technical = data.get("technicalDetails")
    commands = _str_list(data.get("commands"))
    if not commands and isinstance(technical, dict):
        commands = _str_list(technical.get("commands"))
    priority = data.get("priority")
    return FixProposal(
        id=str(data.get("id") or f"fix-{index + 1}"),
        title=str(data.get("title") or ""),
        risk_level=str(_first(data, "riskLevel", "risk_level", default="")).lower(),
        commands=commands,
        steps=_str_list(data.get("steps")),
        description=str(data.get("description") or ""),
        why=str(_first(data, "whyThis", "why", default="")),
        requires_restart=bool(_first(data, "needsRestart", "requiresRestart", default=False)),
        estimated_time=str(_first(data, "howLong", "estimatedTime", default="")),
        automatable=data.get("automatable") is True,
        priority=str(priority).lower() if priority else None,
        confidence=_confidence(data.get("confidence")),
    )


# ---------------------------------------------------------------------------
# Post-filter
# ---------------------------------------------------------------------------


def _rank(priority: str | None, confidence: float | None) -> tuple[int, float]:
    conf = DEFAULT_CONFIDENCE if confidence is None else confidence
    return PRIORITY_ORDER.get(priority or "", _UNRANKED), -conf


def _keep_issue(raw: dict[str, Any], issue: Issue, min_confidence: float) -> bool:
    conf = DEFAULT_CONFIDENCE if issue.confidence is None else issue.confidence
    if conf < min_confidence:
        logger.debug("Dropping low-confidence issue %r (%.2f)", issue.title, conf)
        return False
    actionable = raw.get("actionable", True) is not False
    if issue.severity is Severity.INFO and not actionable:
        logger.debug("Dropping non-actionable info issue %r", issue.title)
        return False
    return True


def parse_diagnosis(data: dict[str, Any], min_confidence: float = MIN_CONFIDENCE) -> Diagnosis:
    """Coerce and filter a decoded reply into a :class:`Diagnosis`."""
    raw_issues = [i for i in data.get("issues") or [] if isinstance(i, dict)]
    raw_fixes = [f for f in data.get("fixes") or [] if isinstance(f, dict)]

    issues = [
        issue
        for raw, issue in ((r, parse_issue(r)) for r in raw_issues)
        if _keep_issue(raw, issue, min_confidence)
    ]
    issues.sort(key=lambda i: _rank(i.priority, i.confidence))

    fixes = []
    for index, raw in enumerate(raw_fixes):
        fix = parse_fix_proposal(raw, index)
        conf = DEFAULT_CONFIDENCE if fix.confidence is None else fix.confidence
        if conf < min_confidence:
            logger.debug("Dropping low-confidence fix %s (%.2f)", fix.id, conf)
            continue
        fixes.append(fix)
    fixes.sort(key=lambda f: _rank(f.priority, f.confidence))

    return Diagnosis(
        summary=str(data.get("summary") or "No summary provided."),
        issues=issues,
        fixes=fixes,
    )


def parse_reply(text: str, min_confidence: float = MIN_CONFIDENCE) -> Diagnosis:
    return parse_diagnosis(extract_json(text), min_confidence)

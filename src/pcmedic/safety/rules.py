"""Static safety rules applied to every fix proposal before it may run.

:func:`check_proposal` is pure: it looks only at the proposal text and
raises the first :class:`~pcmedic.core.errors.SafetyRejection` that
applies. Matching is deliberately blunt (case-insensitive substrings), so
it can refuse harmless commands that happen to contain a forbidden word.
"""

from __future__ import annotations

import re
from typing import Iterable

from pcmedic.core.errors import (
    ForbiddenOperation,
    MalformedProposal,
    NoCommands,
    NonsensicalOperation,
    NotAutomatable,
)
from pcmedic.core.models import FixProposal

FORBIDDEN_OPERATIONS: tuple[str, ...] = (
    "format",
    "del /f /q c:\\*",
    "rm -rf /",
    "rmdir /s /q c:\\users",
    "disable-firewall-permanently",
    "bios",
    "fdisk",
)

NONSENSICAL_OPERATIONS: tuple[str, ...] = (
    "restart the internet",
    "reinstall internet connector",
    "reinstall internet",
    "update internet",
    "fix the cloud",
    "restart wifi signal",
    "reinstall network",
)

_DELETE_RE = re.compile(r"(?<![\w-])(del|erase|rd|rmdir|rm|remove-item|ri)(?![\w-])", re.IGNORECASE)

_USER_FOLDERS = r"(documents|pictures|desktop|downloads|music|videos)"
_USER_DATA_RES = (
    # C:\Users\<name>\Documents, /home/<name>/Pictures, /Users/<name>/Desktop
    re.compile(rf"[\\/](users|home)[\\/][^\\/\s\"']+[\\/]{_USER_FOLDERS}\b", re.IGNORECASE),
    # %USERPROFILE%\Documents, $HOME/Desktop, ~/Pictures
    re.compile(
        rf"(%userprofile%|\$env:userprofile|\$home|~)[\\/]{_USER_FOLDERS}\b", re.IGNORECASE
    ),
    # The profile root itself
    re.compile(
        r"(%userprofile%|\$env:userprofile|\$home|~)[\\/]?(\*|\s|[\"']|$)", re.IGNORECASE
    ),
)

VALID_RISK_LEVELS = ("low", "medium", "high")


def check_proposal(proposal: FixProposal, extra_forbidden: Iterable[str] = ()) -> None:
    """Raise a SafetyRejection if *proposal* must not run.

    Checks run in a fixed order and the first match wins:
    automatable, commands present, forbidden operations, user-data
    deletion, nonsensical operations, structure.
    """
    if not proposal.automatable:
        raise NotAutomatable(
            proposal.id, "fix requires manual steps and cannot be automated"
        )
    if not proposal.commands:
        raise NoCommands(proposal.id, "fix has no executable commands")

    forbidden = find_forbidden(proposal.commands, extra_forbidden)
    if forbidden is not None:
        command, match = forbidden
        raise ForbiddenOperation(
            proposal.id, f"command {command!r} contains forbidden operation {match!r}", match
        )

    user_data = find_user_data_deletion(proposal.commands)
    if user_data is not None:
        raise ForbiddenOperation(
            proposal.id, f"command {user_data!r} would delete user data", user_data
        )

    nonsense = find_nonsensical(proposal)
    if nonsense is not None:
        raise NonsensicalOperation(
            proposal.id, f"fix contains nonsensical operation {nonsense!r}", nonsense
        )

    if not proposal.title.strip():
        raise MalformedProposal(proposal.id, "fix has no title")
    for index, command in enumerate(proposal.commands, start=1):
        if not command.strip():
            raise MalformedProposal(proposal.id, f"command {index} is empty")
    if proposal.risk_level not in VALID_RISK_LEVELS:
        raise MalformedProposal(
            proposal.id,
            f"risk level {proposal.risk_level!r} is not one of {', '.join(VALID_RISK_LEVELS)}",
        )


def find_forbidden(
    commands: Iterable[str], extra_forbidden: Iterable[str] = ()
) -> tuple[str, str] | None:
    """First ``(command, forbidden substring)`` pair, or None."""
    needles = [*FORBIDDEN_OPERATIONS, *(s.lower() for s in extra_forbidden if s)]
    for command in commands:
        lowered = command.lower()
        for needle in needles:
            if needle in lowered:
                return command, needle
    return None


def find_user_data_deletion(commands: Iterable[str]) -> str | None:
    for command in commands:
        if not _DELETE_RE.search(command):
            continue
        if any(pattern.search(command) for pattern in _USER_DATA_RES):
            return command
    return None


def find_nonsensical(proposal: FixProposal) -> str | None:
    text = " ".join([proposal.title, *proposal.steps]).lower()
    for phrase in NONSENSICAL_OPERATIONS:
        if phrase in text:
            return phrase
    return None

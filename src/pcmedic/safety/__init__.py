"""Safety layer: proposal rules, restore points and guarded execution.

Usage::

    from pcmedic.safety import SafetyGuard

    guard = SafetyGuard(runner, recorder, restore_points=manager)
    result = guard.execute(proposal)
"""

from pcmedic.safety.progress import ProgressChannel
from pcmedic.safety.restore import RestorePointManager
from pcmedic.safety.rules import FORBIDDEN_OPERATIONS, NONSENSICAL_OPERATIONS, check_proposal
from pcmedic.safety.guard import ExecutionLock, SafetyGuard

__all__ = [
    "ExecutionLock",
    "FORBIDDEN_OPERATIONS",
    "NONSENSICAL_OPERATIONS",
    "ProgressChannel",
    "RestorePointManager",
    "SafetyGuard",
    "check_proposal",
]

"""
Repair Status Machine

Validates repair lifecycle transitions:

    Open -> InProgress -> Fixed | Rejected

Fixed and Rejected are terminal. A successful transition into a terminal
state stamps the closure time.
"""

from datetime import datetime
from typing import Dict, FrozenSet, Optional
from pydantic import BaseModel

from repair_ledger.models import RepairStatus


ALLOWED_TRANSITIONS: Dict[RepairStatus, FrozenSet[RepairStatus]] = {
    RepairStatus.OPEN: frozenset({RepairStatus.IN_PROGRESS}),
    RepairStatus.IN_PROGRESS: frozenset({RepairStatus.FIXED, RepairStatus.REJECTED}),
    RepairStatus.FIXED: frozenset(),
    RepairStatus.REJECTED: frozenset(),
}

TERMINAL_STATUSES = frozenset({RepairStatus.FIXED, RepairStatus.REJECTED})

ALREADY_IN_STATUS = "ALREADY_IN_STATUS"
REPAIR_CLOSED = "REPAIR_CLOSED"
INVALID_TRANSITION = "INVALID_TRANSITION"

MESSAGES = {
    ALREADY_IN_STATUS: "Repair is already in the requested status.",
    REPAIR_CLOSED: "Closed repairs cannot transition to a new status.",
    INVALID_TRANSITION: "Allowed transitions: Open -> InProgress -> Fixed|Rejected.",
}

INITIAL_STATUS_MESSAGE = "New repairs must start in the Open status."


class TransitionResult(BaseModel):
    """Outcome of a requested status change."""
    ok: bool
    status: RepairStatus
    closed_at: Optional[datetime] = None
    error_code: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def failure(cls, current: RepairStatus, error_code: str, closed_at: Optional[datetime] = None) -> "TransitionResult":
        return cls(
            ok=False,
            status=current,
            closed_at=closed_at,
            error_code=error_code,
            message=MESSAGES[error_code]
        )


def is_terminal(status: RepairStatus) -> bool:
    return RepairStatus(status) in TERMINAL_STATUSES


def allowed_transitions(status: RepairStatus) -> FrozenSet[RepairStatus]:
    return ALLOWED_TRANSITIONS[RepairStatus(status)]


def transition(
    current: RepairStatus,
    requested: RepairStatus,
    now: datetime,
    closed_at: Optional[datetime] = None
) -> TransitionResult:
    """
    Apply a requested status change.

    Args:
        current: The repair's status
        requested: The status asked for
        now: Timestamp recorded as closure time when the repair closes
        closed_at: The repair's existing closure time, echoed back on failure

    Returns:
        TransitionResult carrying the new status and closure time, or the
        error code and message explaining the rejection
    """
    current = RepairStatus(current)
    requested = RepairStatus(requested)

    if current == requested:
        return TransitionResult.failure(current, ALREADY_IN_STATUS, closed_at)

    if is_terminal(current):
        return TransitionResult.failure(current, REPAIR_CLOSED, closed_at)

    if requested not in ALLOWED_TRANSITIONS[current]:
        return TransitionResult.failure(current, INVALID_TRANSITION, closed_at)

    return TransitionResult(
        ok=True,
        status=requested,
        closed_at=now if is_terminal(requested) else None
    )


def validate_initial_status(status: Optional[RepairStatus]) -> Optional[str]:
    """Return an error message when a repair would be created in any state but Open."""
    if status is None or RepairStatus(status) == RepairStatus.OPEN:
        return None
    return INITIAL_STATUS_MESSAGE

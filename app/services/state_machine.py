"""Requirement lifecycle: states, allowed transitions and the approval fold."""

from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from app.core.errors import InvalidStateError
from app.models.enums import ApprovalStatus, RequirementStatus

DRAFT = RequirementStatus.DRAFT
PENDING_APPROVAL = RequirementStatus.PENDING_APPROVAL
APPROVED = RequirementStatus.APPROVED
REJECTED = RequirementStatus.REJECTED
COMPLETED = RequirementStatus.COMPLETED
CANCELLED = RequirementStatus.CANCELLED

EDITABLE_STATUSES: FrozenSet[RequirementStatus] = frozenset({DRAFT, REJECTED})
DELETABLE_STATUSES: FrozenSet[RequirementStatus] = frozenset({DRAFT})

# trigger -> (estados de origen permitidos, estado destino)
TRANSITIONS: Dict[str, Tuple[FrozenSet[RequirementStatus], RequirementStatus]] = {
    "submit": (EDITABLE_STATUSES, PENDING_APPROVAL),
    "approve": (frozenset({PENDING_APPROVAL}), APPROVED),
    "reject": (frozenset({PENDING_APPROVAL}), REJECTED),
    "complete": (frozenset({APPROVED}), COMPLETED),
    "cancel": (frozenset(RequirementStatus) - {COMPLETED}, CANCELLED),
}

# timestamp column stamped when a requirement enters the status
TIMESTAMP_FIELDS: Dict[RequirementStatus, str] = {
    PENDING_APPROVAL: "submitted_at",
    APPROVED: "approved_at",
    REJECTED: "rejected_at",
    COMPLETED: "completed_at",
    CANCELLED: "cancelled_at",
}

_GUARD_MESSAGES = {
    "submit": "Only draft or rejected requirements can be submitted for approval",
    "approve": "Only requirements pending approval can be approved or rejected",
    "reject": "Only requirements pending approval can be approved or rejected",
    "complete": "Only approved requirements can be marked as completed",
    "cancel": "Completed requirements cannot be cancelled",
}


def coerce_status(value) -> RequirementStatus:
    try:
        return RequirementStatus(value)
    except ValueError:
        raise InvalidStateError(f"Unknown requirement status '{value}'", current_status=value)


def next_status(current, trigger: str) -> RequirementStatus:
    """Return the status reached by firing ``trigger`` from ``current``.

    Raises InvalidStateError if the trigger is not allowed from ``current``.
    """
    if trigger not in TRANSITIONS:
        raise ValueError(f"Unknown trigger '{trigger}'")
    current = coerce_status(current)
    sources, target = TRANSITIONS[trigger]
    if current not in sources:
        raise InvalidStateError(_GUARD_MESSAGES[trigger], current_status=current.value)
    return target


def can_transition(current, trigger: str) -> bool:
    try:
        next_status(current, trigger)
    except InvalidStateError:
        return False
    return True


def ensure_editable(current, what: str = "updated") -> None:
    if coerce_status(current) not in EDITABLE_STATUSES:
        raise InvalidStateError(
            f"Only draft or rejected requirements can be {what}", current_status=current
        )


def ensure_deletable(current) -> None:
    if coerce_status(current) not in DELETABLE_STATUSES:
        raise InvalidStateError("Only draft requirements can be deleted", current_status=current)


def evaluate_approvals(decisions: Iterable[str]) -> Optional[RequirementStatus]:
    """Fold a set of approval decisions into the requirement's next status.

    Any rejection wins. Approval needs at least one decision and every decision
    approved. Returns None when the requirement should stay pending, which
    includes the empty set and sets still holding pending decisions.
    """
    decisions = [ApprovalStatus(d) for d in decisions]
    if not decisions:
        return None
    if any(d == ApprovalStatus.REJECTED for d in decisions):
        return REJECTED
    if all(d == ApprovalStatus.APPROVED for d in decisions):
        return APPROVED
    return None

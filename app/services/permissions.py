"""Capability checks for requirement actions.

Two kinds of rule exist. Ownership actions are allowed to the requirement's
creator and to administrators. Role actions are allowed to anyone holding one
of the listed roles, regardless of ownership.
"""

import logging
from enum import Enum
from typing import Dict, FrozenSet, Optional

from app.core.errors import AuthorizationError
from app.models.enums import UserRole
from app.models.requirement import Requirement
from app.models.user import User

logger = logging.getLogger(__name__)


class Action(str, Enum):
    UPDATE = "update"
    DELETE = "delete"
    MODIFY_ITEMS = "modify_items"
    SUBMIT = "submit"
    CANCEL = "cancel"
    COMPLETE = "complete"
    RECORD_APPROVAL = "record_approval"
    APPROVE = "approve"
    REJECT = "reject"


OWNER_ACTIONS: FrozenSet[Action] = frozenset({
    Action.UPDATE,
    Action.DELETE,
    Action.MODIFY_ITEMS,
    Action.SUBMIT,
    Action.CANCEL,
    Action.COMPLETE,
})

ROLE_ACTIONS: Dict[Action, FrozenSet[str]] = {
    Action.RECORD_APPROVAL: frozenset({UserRole.ADMINISTRATOR.value, UserRole.BUYER.value}),
    Action.APPROVE: frozenset({UserRole.ADMINISTRATOR.value}),
    Action.REJECT: frozenset({UserRole.ADMINISTRATOR.value}),
}

_DENIED_MESSAGES = {
    Action.UPDATE: "Not authorized to update this requirement",
    Action.DELETE: "Not authorized to delete this requirement",
    Action.MODIFY_ITEMS: "Not authorized to modify this requirement",
    Action.SUBMIT: "Not authorized to submit this requirement",
    Action.CANCEL: "Not authorized to cancel this requirement",
    Action.COMPLETE: "Not authorized to complete this requirement",
}


def is_allowed(actor: Optional[User], action: Action, requirement: Optional[Requirement] = None) -> bool:
    if actor is None or actor.id is None:
        return False
    if action in ROLE_ACTIONS:
        return any(actor.has_role(role) for role in ROLE_ACTIONS[action])
    if action in OWNER_ACTIONS:
        if actor.has_role(UserRole.ADMINISTRATOR.value):
            return True
        return requirement is not None and requirement.created_by == actor.id
    return False


def authorize(actor: Optional[User], action: Action, requirement: Optional[Requirement] = None) -> None:
    if is_allowed(actor, action, requirement):
        return
    logger.warning(
        "Denied %s on requirement %s for user %s",
        action.value,
        getattr(requirement, "id", None),
        getattr(actor, "id", None),
    )
    raise AuthorizationError(_DENIED_MESSAGES.get(action, "Insufficient permissions"))

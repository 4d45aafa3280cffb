import logging
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from app.core.config import Settings
from app.core.errors import ConflictError, InvalidStateError, ValidationError
from app.models.enums import ApprovalStatus, RequirementStatus
from app.models.requirement import Requirement
from app.models.requirement_approval import RequirementApproval
from app.models.requirement_item import RequirementItem
from app.models.user import User
from app.schemas.requirement import (
    RequirementCreate,
    RequirementItemCreate,
    RequirementItemUpdate,
    RequirementUpdate,
)
from app.services.events import ApprovalAdded, ItemsChanged
from app.services.locks import approval_locks
from app.services.permissions import Action, authorize
from app.services.pricing import ensure_single_currency
from app.services.requirement_repository import RequirementFilters, RequirementRepository
from app.services.state_machine import ensure_deletable, ensure_editable, evaluate_approvals, next_status

logger = logging.getLogger(__name__)
settings = Settings()

# columnas que nunca se ponen a NULL en una actualización parcial
NON_NULLABLE_FIELDS = {"title", "priority", "warranty", "attachments", "description"}
NON_NULLABLE_ITEM_FIELDS = {
    "name", "quantity", "unit_of_measure", "currency", "description", "specifications", "attachments",
}


def _plain(data: Dict) -> Dict:
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in data.items()}


def _display_name(user: User) -> str:
    return user.display_name or user.username or "Unknown User"


def _new_item(requirement_id: int, item_in: RequirementItemCreate) -> RequirementItem:
    data = _plain(item_in.model_dump())
    data["currency"] = data.get("currency") or settings.default_currency
    data["description"] = data.get("description") or ""
    return RequirementItem(requirement_id=requirement_id, **data)


# --- requirements ---

def create_requirement(repo: RequirementRepository, actor: User, requirement_in: RequirementCreate) -> Requirement:
    data = _plain(requirement_in.model_dump(exclude={"items"}))
    data["description"] = data.get("description") or ""
    items_in = requirement_in.items

    if settings.reject_mixed_currency:
        currencies = {i.currency or settings.default_currency for i in items_in}
        if len(currencies) > 1:
            raise ValidationError("All items of a requirement must share one currency")

    with repo.batch():
        requirement = Requirement(
            status=RequirementStatus.DRAFT.value,
            created_by=actor.id,
            created_by_name=_display_name(actor),
            currency=settings.default_currency,
            **data,
        )
        repo.add_requirement(requirement)
        for item_in in items_in:
            repo.add_item(_new_item(requirement.id, item_in))
        if items_in:
            repo.record(ItemsChanged(requirement.id, "created"))
    logger.info("Requirement %s created by user %s", requirement.id, actor.id)
    return repo.get_requirement(requirement.id, refresh=True)


def get_requirement_detail(
    repo: RequirementRepository, requirement_id: int
) -> Tuple[Requirement, List[RequirementItem], List[RequirementApproval]]:
    requirement = repo.get_requirement(requirement_id)
    return requirement, repo.list_items(requirement_id), repo.list_approvals(requirement_id)


def list_requirements(
    repo: RequirementRepository, filters: RequirementFilters, limit: int = 10, offset: int = 0
) -> Tuple[List[Requirement], int]:
    if limit < 1 or limit > 100:
        raise ValidationError("limit must be between 1 and 100")
    if offset < 0:
        raise ValidationError("offset must be zero or positive")
    return repo.list_requirements(filters, limit, offset)


def update_requirement(
    repo: RequirementRepository, actor: User, requirement_id: int, requirement_in: RequirementUpdate
) -> Requirement:
    with repo.batch():
        requirement = repo.get_requirement(requirement_id)
        authorize(actor, Action.UPDATE, requirement)
        ensure_editable(requirement.status, "updated")
        _claim(repo, requirement, ensure_editable, "updated")
        update_data = _plain(requirement_in.model_dump(exclude_unset=True))
        for key, value in update_data.items():
            if value is None and key in NON_NULLABLE_FIELDS:
                continue
            setattr(requirement, key, value)
        requirement.updated_at = datetime.utcnow()
        repo.save(requirement)
    return repo.get_requirement(requirement_id, refresh=True)


def delete_requirement(repo: RequirementRepository, actor: User, requirement_id: int) -> None:
    with repo.batch():
        requirement = repo.get_requirement(requirement_id)
        authorize(actor, Action.DELETE, requirement)
        ensure_deletable(requirement.status)
        _claim(repo, requirement, ensure_deletable)
        repo.delete_cascade(requirement)
    logger.info("Requirement %s deleted by user %s", requirement_id, actor.id)


# --- items ---

def list_items(repo: RequirementRepository, requirement_id: int) -> List[RequirementItem]:
    repo.get_requirement(requirement_id)
    return repo.list_items(requirement_id)


def _claim(repo: RequirementRepository, requirement: Requirement, guard, *args) -> None:
    """Pin the write to the version the guard was checked against.

    If another writer got in first the guard runs again on fresh state, so a
    requirement submitted meanwhile reports InvalidStateError.
    """
    if repo.claim(requirement, requirement.version):
        return
    current = repo.get_requirement(requirement.id, refresh=True)
    guard(current.status, *args)
    raise ConflictError("Requirement was modified concurrently, please retry")


def _editable_requirement(repo: RequirementRepository, actor: User, requirement_id: int) -> Requirement:
    requirement = repo.get_requirement(requirement_id)
    authorize(actor, Action.MODIFY_ITEMS, requirement)
    ensure_editable(requirement.status, "modified")
    _claim(repo, requirement, ensure_editable, "modified")
    return requirement


def add_item(
    repo: RequirementRepository, actor: User, requirement_id: int, item_in: RequirementItemCreate
) -> RequirementItem:
    with repo.batch():
        requirement = _editable_requirement(repo, actor, requirement_id)
        item = _new_item(requirement_id, item_in)
        if settings.reject_mixed_currency:
            ensure_single_currency(repo.list_items(requirement_id), item.currency)
        repo.add_item(item)
        requirement.updated_at = datetime.utcnow()
        repo.save(requirement)
        repo.record(ItemsChanged(requirement_id, "created"))
    return repo.get_item(requirement_id, item.id)


def update_item(
    repo: RequirementRepository,
    actor: User,
    requirement_id: int,
    item_id: int,
    item_in: RequirementItemUpdate,
) -> RequirementItem:
    with repo.batch():
        requirement = _editable_requirement(repo, actor, requirement_id)
        item = repo.get_item(requirement_id, item_id)
        for key, value in _plain(item_in.model_dump(exclude_unset=True)).items():
            if value is None and key in NON_NULLABLE_ITEM_FIELDS:
                continue
            setattr(item, key, value)
        if settings.reject_mixed_currency:
            ensure_single_currency(repo.list_items(requirement_id), item.currency, ignore_item_id=item.id)
        now = datetime.utcnow()
        item.updated_at = now
        requirement.updated_at = now
        repo.save(item)
        repo.save(requirement)
        repo.record(ItemsChanged(requirement_id, "updated"))
    return repo.get_item(requirement_id, item_id)


def delete_item(repo: RequirementRepository, actor: User, requirement_id: int, item_id: int) -> None:
    with repo.batch():
        requirement = _editable_requirement(repo, actor, requirement_id)
        item = repo.get_item(requirement_id, item_id)
        repo.delete_item(item)
        requirement.updated_at = datetime.utcnow()
        repo.save(requirement)
        repo.record(ItemsChanged(requirement_id, "deleted"))


# --- approvals ---

def list_approvals(repo: RequirementRepository, requirement_id: int) -> List[RequirementApproval]:
    repo.get_requirement(requirement_id)
    return repo.list_approvals(requirement_id)


def add_approval(
    repo: RequirementRepository,
    actor: User,
    requirement_id: int,
    status: ApprovalStatus,
    comments: Optional[str] = "",
    action: Action = Action.RECORD_APPROVAL,
) -> RequirementApproval:
    """Record an approver's decision and fold the round's approvals.

    Only approved/rejected decisions are accepted. The approval row and the
    resulting status write share one transaction under the requirement's
    approval lock: if the requirement keeps changing underneath and the
    retries run out, ConflictError is raised and nothing is stored.
    """
    status = ApprovalStatus(status)
    if status not in (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED):
        raise ValidationError("Valid status (approved or rejected) is required")
    authorize(actor, action)

    with approval_locks.hold(requirement_id):
        for attempt in range(settings.approval_cas_retries):
            try:
                with repo.batch():
                    approval = _record_decision(repo, actor, requirement_id, status, comments)
            except ConflictError:
                logger.warning(
                    "Concurrent write on requirement %s while recording approval, retry %d",
                    requirement_id,
                    attempt + 1,
                )
                continue
            logger.info(
                "User %s recorded %s on requirement %s", actor.id, status.value, requirement_id
            )
            return approval
    raise ConflictError("Requirement was modified concurrently, please retry")


def _record_decision(
    repo: RequirementRepository,
    actor: User,
    requirement_id: int,
    status: ApprovalStatus,
    comments: Optional[str],
) -> RequirementApproval:
    requirement = repo.get_requirement(requirement_id, refresh=True)
    if requirement.status != RequirementStatus.PENDING_APPROVAL.value:
        raise InvalidStateError(
            "Only requirements pending approval can be approved or rejected",
            current_status=requirement.status,
        )
    read_version = requirement.version
    approval = RequirementApproval(
        requirement_id=requirement_id,
        approver_id=actor.id,
        approver_name=_display_name(actor),
        status=status.value,
        comments=comments or "",
        round=requirement.submission_round,
    )
    repo.add_approval(approval)

    decisions = [a.status for a in repo.list_approvals(requirement_id, round=approval.round)]
    outcome = evaluate_approvals(decisions)
    if outcome is None:
        landed = repo.claim(requirement, read_version)
    else:
        landed = repo.transition(requirement, outcome, read_version)
    if not landed:
        raise ConflictError("Requirement was modified concurrently, please retry")

    repo.record(ApprovalAdded(requirement_id, approval.id, approval.round))
    return approval


# --- transitions ---

def _transition(
    repo: RequirementRepository, requirement: Requirement, trigger: str, **fields
) -> None:
    target = next_status(requirement.status, trigger)
    if not repo.transition(requirement, target, requirement.version, **fields):
        raise ConflictError("Requirement was modified concurrently, please retry")


def submit_requirement(repo: RequirementRepository, actor: User, requirement_id: int) -> Requirement:
    with repo.batch():
        requirement = repo.get_requirement(requirement_id, refresh=True)
        authorize(actor, Action.SUBMIT, requirement)
        next_status(requirement.status, "submit")
        if repo.count_items(requirement_id) == 0:
            raise InvalidStateError(
                "Requirement must have at least one item to be submitted for approval",
                current_status=requirement.status,
            )
        _transition(repo, requirement, "submit", submission_round=requirement.submission_round + 1)
    return repo.get_requirement(requirement_id, refresh=True)


def cancel_requirement(
    repo: RequirementRepository, actor: User, requirement_id: int, reason: Optional[str] = ""
) -> Requirement:
    with repo.batch():
        requirement = repo.get_requirement(requirement_id, refresh=True)
        authorize(actor, Action.CANCEL, requirement)
        _transition(repo, requirement, "cancel", cancellation_reason=reason or "")
    return repo.get_requirement(requirement_id, refresh=True)


def complete_requirement(repo: RequirementRepository, actor: User, requirement_id: int) -> Requirement:
    with repo.batch():
        requirement = repo.get_requirement(requirement_id, refresh=True)
        authorize(actor, Action.COMPLETE, requirement)
        _transition(repo, requirement, "complete")
    return repo.get_requirement(requirement_id, refresh=True)

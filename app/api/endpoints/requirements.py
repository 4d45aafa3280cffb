# api/endpoints/requirements.py

from fastapi import APIRouter, Depends, status
from sqlmodel import Session
from typing import List, Optional

from app.api.endpoints.auth import get_current_user
from app.database import get_session
from app.models.enums import ApprovalStatus, RequirementPriority, RequirementStatus
from app.models.user import User
from app.schemas.requirement import (
    Pagination,
    RequirementApprovalCreate,
    RequirementApprovalRead,
    RequirementCancel,
    RequirementCreate,
    RequirementDecision,
    RequirementDetail,
    RequirementItemCreate,
    RequirementItemRead,
    RequirementItemUpdate,
    RequirementPage,
    RequirementRead,
    RequirementUpdate,
)
from app.services import requirement_service as service
from app.services.handlers import build_event_bus
from app.services.permissions import Action
from app.services.requirement_repository import RequirementFilters, RequirementRepository

router = APIRouter()
event_bus = build_event_bus()


def get_repository(session: Session = Depends(get_session)) -> RequirementRepository:
    return RequirementRepository(session, event_bus)


def to_detail(requirement, items, approvals) -> RequirementDetail:
    detail = RequirementDetail.model_validate(requirement)
    detail.items = [RequirementItemRead.model_validate(i) for i in items]
    detail.approvals = [RequirementApprovalRead.model_validate(a) for a in approvals]
    return detail


@router.get("/", response_model=RequirementPage)
def list_requirements(
    status: Optional[RequirementStatus] = None,
    priority: Optional[RequirementPriority] = None,
    created_by: Optional[int] = None,
    company_id: Optional[str] = None,
    cost_center: Optional[str] = None,
    limit: int = 10,
    offset: int = 0,
    repo: RequirementRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    filters = RequirementFilters(
        status=status.value if status else None,
        priority=priority.value if priority else None,
        created_by=created_by,
        company_id=company_id,
        cost_center=cost_center,
    )
    rows, total = service.list_requirements(repo, filters, limit, offset)
    return RequirementPage(
        requirements=[RequirementRead.model_validate(r) for r in rows],
        pagination=Pagination(
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(rows) < total,
        ),
    )


@router.post("/", response_model=RequirementDetail, status_code=status.HTTP_201_CREATED)
def create_requirement(
    requirement_in: RequirementCreate,
    repo: RequirementRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    requirement = service.create_requirement(repo, current_user, requirement_in)
    return to_detail(requirement, repo.list_items(requirement.id), [])


@router.get("/{requirement_id}", response_model=RequirementDetail)
def get_requirement(
    requirement_id: int,
    repo: RequirementRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    return to_detail(*service.get_requirement_detail(repo, requirement_id))


@router.put("/{requirement_id}", response_model=RequirementRead)
def update_requirement(
    requirement_id: int,
    requirement_in: RequirementUpdate,
    repo: RequirementRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    return service.update_requirement(repo, current_user, requirement_id, requirement_in)


@router.delete("/{requirement_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_requirement(
    requirement_id: int,
    repo: RequirementRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    service.delete_requirement(repo, current_user, requirement_id)


# --- items ---

@router.get("/{requirement_id}/items", response_model=List[RequirementItemRead])
def list_items(
    requirement_id: int,
    repo: RequirementRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    return service.list_items(repo, requirement_id)


@router.post("/{requirement_id}/items", response_model=RequirementItemRead, status_code=status.HTTP_201_CREATED)
def add_item(
    requirement_id: int,
    item_in: RequirementItemCreate,
    repo: RequirementRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    return service.add_item(repo, current_user, requirement_id, item_in)


@router.put("/{requirement_id}/items/{item_id}", response_model=RequirementItemRead)
def update_item(
    requirement_id: int,
    item_id: int,
    item_in: RequirementItemUpdate,
    repo: RequirementRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    return service.update_item(repo, current_user, requirement_id, item_id, item_in)


@router.delete("/{requirement_id}/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_item(
    requirement_id: int,
    item_id: int,
    repo: RequirementRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    service.delete_item(repo, current_user, requirement_id, item_id)


# --- approvals ---

@router.get("/{requirement_id}/approvals", response_model=List[RequirementApprovalRead])
def list_approvals(
    requirement_id: int,
    repo: RequirementRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    return service.list_approvals(repo, requirement_id)


@router.post("/{requirement_id}/approvals", response_model=RequirementApprovalRead, status_code=status.HTTP_201_CREATED)
def add_approval(
    requirement_id: int,
    approval_in: RequirementApprovalCreate,
    repo: RequirementRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    return service.add_approval(
        repo, current_user, requirement_id, approval_in.status, approval_in.comments
    )


# --- transitions ---

@router.put("/{requirement_id}/submit", response_model=RequirementRead)
def submit_requirement(
    requirement_id: int,
    repo: RequirementRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    return service.submit_requirement(repo, current_user, requirement_id)


@router.put("/{requirement_id}/approve", response_model=RequirementRead)
def approve_requirement(
    requirement_id: int,
    decision: Optional[RequirementDecision] = None,
    repo: RequirementRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    comments = decision.comments if decision else ""
    service.add_approval(
        repo, current_user, requirement_id, ApprovalStatus.APPROVED, comments, action=Action.APPROVE
    )
    return repo.get_requirement(requirement_id, refresh=True)


@router.put("/{requirement_id}/reject", response_model=RequirementRead)
def reject_requirement(
    requirement_id: int,
    decision: Optional[RequirementDecision] = None,
    repo: RequirementRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    comments = decision.comments if decision else ""
    service.add_approval(
        repo, current_user, requirement_id, ApprovalStatus.REJECTED, comments, action=Action.REJECT
    )
    return repo.get_requirement(requirement_id, refresh=True)


@router.put("/{requirement_id}/cancel", response_model=RequirementRead)
def cancel_requirement(
    requirement_id: int,
    cancel_in: Optional[RequirementCancel] = None,
    repo: RequirementRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    reason = cancel_in.reason if cancel_in else ""
    return service.cancel_requirement(repo, current_user, requirement_id, reason)


@router.put("/{requirement_id}/complete", response_model=RequirementRead)
def complete_requirement(
    requirement_id: int,
    repo: RequirementRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    return service.complete_requirement(repo, current_user, requirement_id)

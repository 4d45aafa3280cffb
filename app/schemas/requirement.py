# schemas/requirement.py

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime

from app.models.enums import ApprovalStatus, PaymentMethod, RequirementPriority


class RequirementItemCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = ""
    quantity: float = Field(gt=0)
    unit_of_measure: str = Field(min_length=1)
    estimated_price: Optional[float] = Field(default=None, ge=0)
    currency: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    specifications: Dict[str, Any] = Field(default_factory=dict)
    attachments: List[str] = Field(default_factory=list)


class RequirementItemUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    quantity: Optional[float] = Field(default=None, gt=0)
    unit_of_measure: Optional[str] = Field(default=None, min_length=1)
    estimated_price: Optional[float] = Field(default=None, ge=0)
    currency: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    specifications: Optional[Dict[str, Any]] = None
    attachments: Optional[List[str]] = None


class RequirementItemRead(BaseModel):
    id: int
    requirement_id: int
    name: str
    description: str
    quantity: float
    unit_of_measure: str
    estimated_price: Optional[float]
    currency: str
    category: Optional[str]
    subcategory: Optional[str]
    specifications: Dict[str, Any]
    attachments: List[str]
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class RequirementCreate(BaseModel):
    title: str = Field(min_length=1)
    priority: RequirementPriority
    description: Optional[str] = ""
    company_id: Optional[str] = None
    cost_center: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    payment_term: Optional[str] = None
    warranty: bool = False
    warranty_duration: Optional[int] = Field(default=None, ge=0)
    additional_conditions: Optional[str] = None
    attachments: List[str] = Field(default_factory=list)
    items: List[RequirementItemCreate] = Field(default_factory=list)


class RequirementUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    priority: Optional[RequirementPriority] = None
    company_id: Optional[str] = None
    cost_center: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    payment_term: Optional[str] = None
    warranty: Optional[bool] = None
    warranty_duration: Optional[int] = Field(default=None, ge=0)
    additional_conditions: Optional[str] = None
    attachments: Optional[List[str]] = None


class RequirementApprovalCreate(BaseModel):
    status: ApprovalStatus
    comments: Optional[str] = ""


class RequirementDecision(BaseModel):
    comments: Optional[str] = ""


class RequirementCancel(BaseModel):
    reason: Optional[str] = ""


class RequirementApprovalRead(BaseModel):
    id: int
    requirement_id: int
    approver_id: int
    approver_name: str
    status: str
    comments: str
    round: int
    created_at: datetime

    class Config:
        from_attributes = True


class RequirementRead(BaseModel):
    id: int
    title: str
    description: str
    status: str
    priority: str
    created_by: int
    created_by_name: str
    company_id: Optional[str]
    cost_center: Optional[str]
    payment_method: Optional[str]
    payment_term: Optional[str]
    warranty: bool
    warranty_duration: Optional[int]
    additional_conditions: Optional[str]
    attachments: List[str]
    total_price: float
    currency: str
    cancellation_reason: Optional[str]
    submission_round: int
    created_at: datetime
    updated_at: Optional[datetime]
    submitted_at: Optional[datetime]
    approved_at: Optional[datetime]
    rejected_at: Optional[datetime]
    completed_at: Optional[datetime]
    cancelled_at: Optional[datetime]

    class Config:
        from_attributes = True


class RequirementDetail(RequirementRead):
    items: List[RequirementItemRead] = []
    approvals: List[RequirementApprovalRead] = []


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class RequirementPage(BaseModel):
    requirements: List[RequirementRead]
    pagination: Pagination

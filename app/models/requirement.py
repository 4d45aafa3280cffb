from typing import List, Optional
from sqlmodel import SQLModel, Field, Column
from sqlalchemy import JSON
from datetime import datetime


class Requirement(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: str = ""
    status: str = Field(default="draft", index=True)  # see RequirementStatus
    priority: str = Field(default="medium", index=True)  # 'low', 'medium', 'high', 'critical'
    created_by: int = Field(foreign_key="user.id", index=True)
    created_by_name: str
    company_id: Optional[str] = Field(default=None, index=True)
    cost_center: Optional[str] = Field(default=None, index=True)
    payment_method: Optional[str] = None
    payment_term: Optional[str] = None
    warranty: bool = False
    warranty_duration: Optional[int] = None   # meses
    additional_conditions: Optional[str] = None
    attachments: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    total_price: float = 0.0
    currency: str = "USD"
    cancellation_reason: Optional[str] = None
    version: int = 0            # se incrementa en cada cambio de estado o edición
    submission_round: int = 0   # número de envíos a aprobación
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime


class RequirementApproval(SQLModel, table=True):
    """Append-only decision of one approver on one submission round."""

    id: Optional[int] = Field(default=None, primary_key=True)
    requirement_id: int = Field(foreign_key="requirement.id", index=True)
    approver_id: int = Field(foreign_key="user.id")
    approver_name: str
    status: str  # "pending" | "approved" | "rejected"
    comments: str = ""
    round: int = Field(default=0, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

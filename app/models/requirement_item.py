from typing import Any, Dict, List, Optional
from sqlmodel import SQLModel, Field, Column
from sqlalchemy import JSON
from datetime import datetime


class RequirementItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    requirement_id: int = Field(foreign_key="requirement.id", index=True)
    name: str
    description: str = ""
    quantity: float
    unit_of_measure: str
    estimated_price: Optional[float] = None   # precio unitario
    currency: str = "USD"
    category: Optional[str] = None
    subcategory: Optional[str] = None
    specifications: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    attachments: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

from typing import List, Optional
from sqlmodel import SQLModel, Field
from datetime import datetime


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    email: str = Field(unique=True)
    display_name: str = ""
    password_hash: str
    roles: Optional[str] = "buyer"   # Coma separada, ej: "administrator,buyer"
    company_id: Optional[str] = None
    last_access_date: Optional[datetime] = None
    created_date: datetime = Field(default_factory=datetime.utcnow)
    updated_date: datetime = Field(default_factory=datetime.utcnow)
    active: bool = True

    def role_list(self) -> List[str]:
        return [r.strip() for r in (self.roles or "").split(",") if r.strip()]

    def has_role(self, role: str) -> bool:
        return role in self.role_list()

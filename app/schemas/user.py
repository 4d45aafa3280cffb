# schemas/user.py

from typing import List, Optional
from pydantic import BaseModel, Field
from datetime import datetime

from app.models.enums import UserRole


class UserCreate(BaseModel):
    username: str = Field(min_length=1)
    email: str = Field(min_length=3)
    password: str = Field(min_length=6)
    display_name: str = Field(min_length=1)
    role: UserRole = UserRole.BUYER
    company_id: Optional[str] = None


class UserRolesUpdate(BaseModel):
    roles: List[UserRole] = Field(min_length=1)


class UserRead(BaseModel):
    id: int
    username: str
    email: str
    display_name: str
    roles: List[str]
    company_id: Optional[str]
    last_access_date: Optional[datetime]
    created_date: datetime
    updated_date: datetime
    active: bool

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime
from enum import Enum


class UserRole(str, Enum):
    """User roles"""
    PATIENT = "patient"
    DOCTOR = "doctor"


class UserBase(SQLModel):
    name: str = Field(max_length=100)
    email: str = Field(unique=True, index=True, max_length=255)
    role: UserRole = Field(default=UserRole.PATIENT)


class User(UserBase, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    password_hash: Optional[str] = Field(default=None, max_length=255)
    email_verified: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = Field(default=None)
    last_login: Optional[datetime] = Field(default=None)

    @property
    def first_name(self) -> str:
        return self.name.split(" ", 1)[0] if self.name else ""

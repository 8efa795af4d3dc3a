"""
Base models and enums shared by the account-token tables
"""
from enum import Enum
from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime


class TokenPurpose(str, Enum):
    """Flow a token belongs to; each purpose has its own table"""
    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"
    DOCTOR_REGISTRATION = "doctor_registration"


class TokenBase(SQLModel):
    """Columns common to every one-time token table"""
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, max_length=255)
    token: str = Field(index=True, max_length=64)
    expires: datetime = Field(index=True)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires

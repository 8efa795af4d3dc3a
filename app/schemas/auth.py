"""
Pydantic request/response schemas for the account endpoints
"""
from pydantic import BaseModel, EmailStr, Field, model_validator
from typing import Optional

from app.models.user import UserRole


class Token(BaseModel):
    """Access token issued on login"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class ActionResponse(BaseModel):
    """`success` or `error`, never both"""
    success: Optional[str] = None
    error: Optional[str] = None


class EmailRequest(BaseModel):
    email: EmailStr


class TokenRequest(BaseModel):
    token: str = Field(min_length=1, max_length=64)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)


class _PasswordConfirmation(BaseModel):
    password: str = Field(min_length=8, max_length=72)
    confirm_password: str = Field(min_length=8, max_length=72)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class RegisterRequest(_PasswordConfirmation):
    name: str = Field(min_length=1, max_length=50)
    email: EmailStr
    role: UserRole = UserRole.PATIENT


class NewPasswordRequest(_PasswordConfirmation):
    token: str = Field(min_length=1, max_length=64)

# Schemas
from .auth import (
    Token,
    ActionResponse,
    EmailRequest,
    TokenRequest,
    LoginRequest,
    RegisterRequest,
    NewPasswordRequest
)

__all__ = [
    "Token",
    "ActionResponse",
    "EmailRequest",
    "TokenRequest",
    "LoginRequest",
    "RegisterRequest",
    "NewPasswordRequest"
]

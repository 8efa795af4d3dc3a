"""
SQLModel tables for the Psicoreinventar API
"""
from .base import TokenPurpose, TokenBase
from .user import UserRole, User
from .email_verification_token import EmailVerificationToken
from .password_reset_token import PasswordResetToken
from .doctor_register_token import DoctorRegisterToken

TOKEN_MODELS = {
    TokenPurpose.EMAIL_VERIFICATION: EmailVerificationToken,
    TokenPurpose.PASSWORD_RESET: PasswordResetToken,
    TokenPurpose.DOCTOR_REGISTRATION: DoctorRegisterToken,
}

__all__ = [
    "TokenPurpose",
    "TokenBase",
    "UserRole",
    "User",
    "EmailVerificationToken",
    "PasswordResetToken",
    "DoctorRegisterToken",
    "TOKEN_MODELS",
]

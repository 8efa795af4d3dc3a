from app.models.base import TokenBase


class PasswordResetToken(TokenBase, table=True):
    __tablename__ = "password_reset_tokens"

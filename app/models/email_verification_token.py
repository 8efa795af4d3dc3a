from app.models.base import TokenBase


class EmailVerificationToken(TokenBase, table=True):
    __tablename__ = "email_verification_tokens"

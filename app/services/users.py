"""
User lookups and mutations used by the account-token flows
"""
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from app.core.security import get_password_hash, verify_password
from app.models.user import User, UserRole
from app.services.token_store import StoreUnavailable


class EmailInUse(Exception):
    """Another account already owns this email"""


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    """Reads and updates `User` rows on a shared session"""

    def __init__(self, session: Session):
        self.session = session

    def get_user_by_email(self, email: str) -> Optional[User]:
        try:
            return self.session.exec(
                select(User).where(User.email == normalize_email(email))
            ).first()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(str(exc)) from exc

    def create_user(
        self,
        *,
        name: str,
        email: str,
        password: str,
        role: UserRole = UserRole.PATIENT,
    ) -> User:
        """
        Create an unverified user

        The password is stored as a bcrypt hash; `email_verified` stays empty
        until a verification token is confirmed.
        """
        user = User(
            name=name.strip(),
            email=normalize_email(email),
            password_hash=get_password_hash(password),
            role=role,
        )
        try:
            self.session.add(user)
            self.session.commit()
            self.session.refresh(user)
        except IntegrityError as exc:
            self.session.rollback()
            raise EmailInUse(normalize_email(email)) from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreUnavailable(str(exc)) from exc
        return user

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        user = self.get_user_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            return None
        return user

    def mark_email_verified(self, user: User, *, email: str, now: datetime) -> None:
        """Stage the verification; the caller's transaction commits it"""
        user.email_verified = now
        user.email = normalize_email(email)
        user.updated_at = now
        self.session.add(user)

    def set_password(self, user: User, *, password: str, now: datetime) -> None:
        user.password_hash = get_password_hash(password)
        user.updated_at = now
        self.session.add(user)

    def record_login(self, user: User, *, now: datetime) -> None:
        user.last_login = now
        try:
            self.session.add(user)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreUnavailable(str(exc)) from exc

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.models import TOKEN_MODELS, TokenBase, TokenPurpose

logger = logging.getLogger(__name__)


class StoreUnavailable(Exception):
    """The token store could not be read or written"""


class TokenStore(Protocol):
    def get_by_email(self, purpose: TokenPurpose, email: str) -> Optional[TokenBase]: ...

    def get_by_token(self, purpose: TokenPurpose, token: str) -> Optional[TokenBase]: ...

    def add(self, purpose: TokenPurpose, *, email: str, token: str, expires: datetime) -> TokenBase: ...

    def delete(self, record: TokenBase) -> None: ...

    def transaction(self) -> Iterator[None]: ...


class SQLTokenStore:
    """
    Token records persisted through SQLModel, one table per purpose.

    Writes are staged on the session; `transaction()` commits them together
    or rolls all of them back. Any SQLAlchemy failure is reported as
    `StoreUnavailable`.
    """

    def __init__(self, session: Session):
        self.session = session

    def get_by_email(self, purpose: TokenPurpose, email: str) -> Optional[TokenBase]:
        model = TOKEN_MODELS[purpose]
        try:
            return self.session.exec(select(model).where(model.email == email)).first()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(str(exc)) from exc

    def get_by_token(self, purpose: TokenPurpose, token: str) -> Optional[TokenBase]:
        model = TOKEN_MODELS[purpose]
        try:
            return self.session.exec(select(model).where(model.token == token)).first()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(str(exc)) from exc

    def add(self, purpose: TokenPurpose, *, email: str, token: str, expires: datetime) -> TokenBase:
        record = TOKEN_MODELS[purpose](email=email, token=token, expires=expires)
        try:
            self.session.add(record)
            self.session.flush()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(str(exc)) from exc
        return record

    def delete(self, record: TokenBase) -> None:
        try:
            self.session.delete(record)
            self.session.flush()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(str(exc)) from exc

    @contextmanager
    def transaction(self) -> Iterator[None]:
        try:
            yield
            self.session.commit()
        except (SQLAlchemyError, StoreUnavailable) as exc:
            self.session.rollback()
            logger.error("Token store transaction rolled back: %s", exc)
            if isinstance(exc, StoreUnavailable):
                raise
            raise StoreUnavailable(str(exc)) from exc

    def purge_expired(self, purpose: TokenPurpose, now: datetime) -> int:
        """Delete every record of `purpose` whose expiry is before `now`"""
        model = TOKEN_MODELS[purpose]
        with self.transaction():
            expired = self.session.exec(select(model).where(model.expires < now)).all()
            for record in expired:
                self.session.delete(record)
        return len(expired)

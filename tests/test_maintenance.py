from datetime import datetime, timedelta

from sqlmodel import Session, select

from app.models import EmailVerificationToken, PasswordResetToken, TokenPurpose
from app.services.token_store import SQLTokenStore
from scripts.purge_expired_tokens import purge

NOW = datetime(2026, 3, 1, 12, 0, 0)


def _add(session: Session, purpose: TokenPurpose, email: str, token: str, expires: datetime) -> None:
    store = SQLTokenStore(session)
    with store.transaction():
        store.add(purpose, email=email, token=token, expires=expires)


def test_purge_removes_only_expired_tokens(db_session: Session):
    _add(db_session, TokenPurpose.EMAIL_VERIFICATION, "old@x.com", "111111", NOW - timedelta(minutes=1))
    _add(db_session, TokenPurpose.EMAIL_VERIFICATION, "new@x.com", "222222", NOW + timedelta(minutes=29))
    _add(db_session, TokenPurpose.PASSWORD_RESET, "old@x.com", "333333", NOW - timedelta(hours=2))

    counts = purge(db_session, list(TokenPurpose), NOW)

    assert counts == {
        TokenPurpose.EMAIL_VERIFICATION: 1,
        TokenPurpose.PASSWORD_RESET: 1,
        TokenPurpose.DOCTOR_REGISTRATION: 0,
    }
    remaining = db_session.exec(select(EmailVerificationToken)).all()
    assert [t.token for t in remaining] == ["222222"]
    assert db_session.exec(select(PasswordResetToken)).all() == []


def test_purge_can_target_one_purpose(db_session: Session):
    _add(db_session, TokenPurpose.EMAIL_VERIFICATION, "old@x.com", "111111", NOW - timedelta(minutes=1))
    _add(db_session, TokenPurpose.PASSWORD_RESET, "old@x.com", "333333", NOW - timedelta(minutes=1))

    counts = purge(db_session, [TokenPurpose.PASSWORD_RESET], NOW)

    assert counts == {TokenPurpose.PASSWORD_RESET: 1}
    assert len(db_session.exec(select(EmailVerificationToken)).all()) == 1

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("SQL_ECHO", "false")
os.environ.setdefault("AUTO_CREATE_DB", "false")
os.environ.setdefault("EMAIL_BACKEND", "console")
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")

import itertools
import sys
from dataclasses import dataclass, field
from pathlib import Path

project_root = Path(__file__).resolve().parents[1]
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import app.models  # noqa: F401
from app.core.rate_limit import build_flow_limiters, limiter
from app.core.result import Err, ErrorKind, Ok

import pytest
from fastapi.testclient import TestClient
from limits.storage import MemoryStorage
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

limiter.enabled = False


@dataclass
class SentEmail:
    kind: object
    email: str
    token: str
    context: dict = field(default_factory=dict)


class RecordingNotifier:
    """Notifier double that keeps every message instead of mailing it"""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, kind, email, token, context=None):
        if self.fail:
            return Err(ErrorKind.DEPENDENCY, "SMTP unavailable")
        self.sent.append(SentEmail(kind, email, token, dict(context or {})))
        return Ok(None)

    def last_token(self, kind=None) -> str:
        matching = [m for m in self.sent if kind is None or m.kind == kind]
        assert matching, "no email was sent"
        return matching[-1].token


@pytest.fixture()
def engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture()
def db_session(engine):
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def flow_limiters():
    return build_flow_limiters(MemoryStorage())


@pytest.fixture()
def sequential_codes():
    counter = itertools.count(100000)
    return lambda: str(next(counter))


@pytest.fixture()
def flows(db_session, notifier, flow_limiters, sequential_codes):
    from app.services.account_flows import AccountFlows
    from app.services.token_store import SQLTokenStore
    from app.services.tokens import TokenIssuer
    from app.services.users import UserService
    from app.services.verification import TokenVerifier

    store = SQLTokenStore(db_session)
    users = UserService(db_session)
    return AccountFlows(
        users=users,
        issuer=TokenIssuer(store, generate=sequential_codes),
        verifier=TokenVerifier(store, users),
        notifier=notifier,
        limiters=flow_limiters,
    )


@pytest.fixture()
def client(engine, db_session, notifier, flow_limiters):
    from app.main import app
    from app.core.database import get_session
    from app.routers.auth import get_flow_limiters, get_notifier

    def get_session_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_flow_limiters] = lambda: flow_limiters
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()

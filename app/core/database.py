from sqlmodel import SQLModel, create_engine, Session
from app.core.config import settings

engine = create_engine(
    settings.database_url,
    echo=settings.sql_echo,
    pool_pre_ping=True,
)


def create_db_and_tables():
    """Create every SQLModel table"""
    import app.models  # noqa: F401  registers the tables on the metadata

    SQLModel.metadata.create_all(engine)


def get_session():
    """Request-scoped database session"""
    with Session(engine) as session:
        yield session

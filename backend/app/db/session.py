"""
SQLAlchemy engine + session factory.
Rating routes reach the DB through get_db → SqlRatingStore.
"""
from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    pool_size=5,
    max_overflow=10,
    # SQL echo only when explicitly debugging
    echo=settings.is_dev and settings.LOG_LEVEL.upper() == "DEBUG",
)

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,  # rows read before a per-item commit stay usable
)


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding one DB session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

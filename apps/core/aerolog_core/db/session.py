"""Database session management."""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from aerolog_core.settings import get_settings

settings = get_settings()


def create_db_engine(pool_size: int, max_overflow: int):
    """Engine for the configured database; pool sizes depend on the process."""
    return create_engine(
        settings.database_url_computed,
        pool_pre_ping=True,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_recycle=settings.db_pool_recycle_seconds,
    )


# The CLI runs one command at a time
engine = create_db_engine(pool_size=1, max_overflow=1)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

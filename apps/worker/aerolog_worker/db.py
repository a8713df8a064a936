"""Database session for worker processes."""

from sqlalchemy.orm import sessionmaker

from aerolog_core.db.session import create_db_engine
from aerolog_core.settings import get_settings

settings = get_settings()

# Each prefork child holds its own pool and runs one task at a time
engine = create_db_engine(
    pool_size=settings.worker_db_pool_size,
    max_overflow=settings.worker_db_max_overflow,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

"""Database session management with connection pooling"""

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from chama_pay.config import settings
from chama_pay.domain.exceptions import StorageError

# Connection pool: max 20 connections, recycle after 1 hour to avoid stale connections
engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,  # Verify connections before using
    pool_size=10,
    max_overflow=10,
    pool_recycle=3600,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Session:
    """Dependency injection for database sessions"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def commit(db: Session, message: str = "Failed to persist changes") -> None:
    """Commit the unit of work, translating driver errors into StorageError"""
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError(message) from e

"""Database session management with connection pooling"""

from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from infinity_bank.config import settings

# SQLite (local runs, tests) shares one connection across the handler threadpool
connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}

# Every posting holds row locks until commit, so the pool bounds concurrent postings
engine = create_engine(
    settings.database_url,
    connect_args=connect_args,
    pool_pre_ping=True,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_recycle=settings.db_pool_recycle_seconds,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """One session per request; routers commit, the session is closed here"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

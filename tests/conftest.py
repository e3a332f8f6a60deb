"""Pytest fixtures for testing"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from decimal import Decimal
from typing import Callable, Dict, Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from infinity_bank.api.main import create_app
from infinity_bank.infrastructure.database.models import Base, User
from infinity_bank.infrastructure.database.repositories import UserRepository
from infinity_bank.infrastructure.database.session import get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    """Factory for account holders with a starting balance"""
    counter = {"n": 0}

    def _make_user(username: str | None = None, balance: str = "0") -> User:
        counter["n"] += 1
        user = UserRepository(db).create_user(
            username=username or f"user_{counter['n']}",
            mobile=f"98765{counter['n']:05d}",
        )
        user.account_balance = Decimal(balance)
        db.commit()
        return user

    return _make_user


@pytest.fixture
def auth() -> Callable[[User], Dict[str, str]]:
    """Identity header forwarded by the gateway"""

    def _auth(user: User) -> Dict[str, str]:
        return {"X-User-ID": str(user.id)}

    return _auth

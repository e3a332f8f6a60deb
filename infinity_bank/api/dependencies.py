"""Dependency injection for FastAPI endpoints"""

import uuid
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Query, Request
from sqlalchemy.orm import Session

from infinity_bank.config import settings
from infinity_bank.infrastructure.database.models import User
from infinity_bank.infrastructure.database.repositories import UserRepository
from infinity_bank.infrastructure.database.session import get_db


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_current_user(
    x_user_id: str | None = Header(None, description="Authenticated account holder"),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the acting account holder.

    Token verification happens in front of this service; it forwards the
    verified user id in X-User-ID.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Access token required")
    try:
        user_id = uuid.UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid or inactive user")

    user = UserRepository(db).get_by_id(user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Invalid or inactive user")
    return user


@dataclass
class Pagination:
    page: int
    limit: int


def get_pagination(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
) -> Pagination:
    return Pagination(page=page, limit=limit)

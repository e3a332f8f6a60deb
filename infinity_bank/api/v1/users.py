"""/v1/users - account opening, profile, balance and UPI links"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from infinity_bank.api.dependencies import get_current_user, get_request_id
from infinity_bank.api.v1.schemas import (
    AccountSummaryResponse,
    BalanceResponse,
    DeactivateRequest,
    DeactivateResponse,
    MessageResponse,
    OpenAccountRequest,
    ProfileResponse,
    UpdateProfileRequest,
    UpiAccountsResponse,
    UpiLinkRequest,
    UpiLinkResponse,
    UpiToggleRequest,
    UserStatsResponse,
)
from infinity_bank.config import settings
from infinity_bank.domain.exceptions import ReferenceCollision
from infinity_bank.domain.projections import public_profile, public_upi_link
from infinity_bank.infrastructure.database.models import User
from infinity_bank.infrastructure.database.repositories import UserRepository
from infinity_bank.infrastructure.database.session import get_db

router = APIRouter()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive timestamps
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


@router.post("/users", response_model=ProfileResponse, status_code=201)
def open_account(body: OpenAccountRequest, request: Request, db: Session = Depends(get_db)):
    """Open a new account with a zero balance."""
    request_id = get_request_id(request)
    users = UserRepository(db)

    if users.get_by_username(body.username):
        raise HTTPException(status_code=400, detail="Username already exists")
    if users.get_by_mobile(body.mobile):
        raise HTTPException(status_code=400, detail="Mobile number already exists")

    try:
        user = users.create_user(username=body.username, mobile=body.mobile)
        db.commit()
    except ReferenceCollision as e:
        db.rollback()
        logging.error(f"Account number generation failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Please retry the request")
    except IntegrityError as e:
        # a concurrent request took the username or mobile after the checks above
        db.rollback()
        logging.warning(f"Account opening conflict: {e.orig}", extra={"request_id": request_id})
        raise HTTPException(status_code=400, detail="Username or mobile number already exists")

    logging.info("Account opened", extra={"request_id": request_id, "user_id": str(user.id)})
    return public_profile(user)


@router.get("/users/me/profile", response_model=ProfileResponse)
def get_profile(user: User = Depends(get_current_user)):
    return public_profile(user)


@router.patch("/users/me/profile", response_model=ProfileResponse)
def update_profile(
    body: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if body.mobile and body.mobile != user.mobile:
        if UserRepository(db).get_by_mobile(body.mobile):
            raise HTTPException(status_code=400, detail="Mobile number already exists")
        user.mobile = body.mobile
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise HTTPException(status_code=400, detail="Mobile number already exists")
    return public_profile(user)


@router.get("/users/me/balance", response_model=BalanceResponse)
def get_balance(user: User = Depends(get_current_user)):
    return BalanceResponse(
        account_balance=float(user.account_balance),
        account_number=user.account_number,
        currency=settings.currency,
    )


@router.get("/users/me/summary", response_model=AccountSummaryResponse)
def get_account_summary(user: User = Depends(get_current_user)):
    return AccountSummaryResponse(
        account_number=user.account_number,
        account_balance=float(user.account_balance),
        username=user.username,
        mobile=user.mobile,
        account_status="Active" if user.is_active else "Inactive",
        member_since=user.created_at,
        last_login=user.last_login,
        currency=settings.currency,
    )


@router.get("/users/me/stats", response_model=UserStatsResponse)
def get_user_stats(user: User = Depends(get_current_user)):
    age = datetime.now(timezone.utc) - _as_utc(user.created_at)
    return UserStatsResponse(
        account_age_days=max(age.days, 0),
        account_status="Active" if user.is_active else "Inactive",
        linked_upi_accounts=len(user.upi_links),
        active_upi_accounts=sum(1 for link in user.upi_links if link.is_active),
    )


@router.post("/users/me/upi", response_model=UpiLinkResponse, status_code=201)
def link_upi(
    body: UpiLinkRequest,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Link an external bank account by UPI id. Only the last 4 account digits are returned."""
    users = UserRepository(db)
    existing = users.find_upi_link(body.upi_id)
    if existing is not None:
        if existing.user_id != user.id:
            raise HTTPException(status_code=400, detail="UPI ID is already linked to another account")
        raise HTTPException(status_code=400, detail="UPI ID is already linked to your account")

    link = users.add_upi_link(
        user,
        upi_id=body.upi_id,
        bank_name=body.bank_name,
        account_number=body.account_number,
        ifsc_code=body.ifsc_code,
    )
    db.commit()

    logging.info(
        "UPI account linked",
        extra={"request_id": get_request_id(request), "user_id": str(user.id), "upi_id": body.upi_id},
    )
    return public_upi_link(link)


@router.get("/users/me/upi", response_model=UpiAccountsResponse)
def list_upi_accounts(user: User = Depends(get_current_user)):
    return UpiAccountsResponse(upi_accounts=[public_upi_link(link) for link in user.upi_links])


def _owned_upi_link(user: User, upi_id: str):
    for link in user.upi_links:
        if link.upi_id == upi_id:
            return link
    raise HTTPException(status_code=404, detail="UPI account not found")


@router.delete("/users/me/upi/{upi_id}", response_model=MessageResponse)
def unlink_upi(upi_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    link = _owned_upi_link(user, upi_id)
    UserRepository(db).remove_upi_link(link)
    db.commit()
    return MessageResponse(message="UPI account unlinked successfully")


@router.patch("/users/me/upi/{upi_id}", response_model=UpiLinkResponse)
def toggle_upi(
    upi_id: str,
    body: UpiToggleRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    link = _owned_upi_link(user, upi_id)
    link.is_active = body.is_active
    db.commit()
    return public_upi_link(link)


@router.patch("/users/me/deactivate", response_model=DeactivateResponse)
def deactivate_account(
    body: DeactivateRequest,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Deactivate the account. The balance and history are kept."""
    deactivated_at = datetime.now(timezone.utc)
    user.is_active = False
    user.deactivated_at = deactivated_at
    user.deactivation_reason = body.reason
    db.commit()

    logging.info("Account deactivated", extra={"request_id": get_request_id(request), "user_id": str(user.id)})
    return DeactivateResponse(message="Account deactivated successfully", deactivated_at=deactivated_at)

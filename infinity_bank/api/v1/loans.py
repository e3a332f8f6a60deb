"""/v1/loans - loan applications and the repayment calculator"""

import uuid
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from infinity_bank.api.dependencies import Pagination, get_current_user, get_pagination, get_request_id
from infinity_bank.api.v1.schemas import (
    LoanApplicationRequest,
    LoanCalculation,
    LoanCalculatorRequest,
    LoanCalculatorResponse,
    LoanListResponse,
    LoanResponse,
    LoanScheduleResponse,
    LoanStatsResponse,
    LoanStatus,
    LoanSummary,
    LoanUpdateRequest,
    Pagination as PaginationSchema,
    ScheduleRowSchema,
)
from infinity_bank.domain.access import ensure_owner
from infinity_bank.domain.amortization import (
    amortization_schedule,
    amortize,
    ensure_loan_pending,
    open_loan_application,
)
from infinity_bank.domain.exceptions import (
    AccessDenied,
    DuplicateActiveLoan,
    InvalidStatusTransition,
    ValidationFailed,
)
from infinity_bank.infrastructure.database.models import Loan, User
from infinity_bank.infrastructure.database.repositories import LoanRepository
from infinity_bank.infrastructure.database.session import get_db
from infinity_bank.infrastructure.observability.logging import log_loan_application
from infinity_bank.infrastructure.observability.metrics import loan_application_counter

router = APIRouter()


def to_response(loan: Loan) -> LoanResponse:
    return LoanResponse(
        id=str(loan.id),
        loan_type=loan.loan_type,
        amount=float(loan.amount),
        interest_rate=loan.interest_rate,
        term=loan.term,
        monthly_payment=loan.monthly_payment,
        total_amount=loan.total_amount,
        remaining_balance=loan.remaining_balance,
        status=loan.status,
        purpose=loan.purpose,
        documents=loan.documents or [],
        created_at=loan.created_at,
        updated_at=loan.updated_at,
    )


@router.post("/loans/calculator", response_model=LoanCalculatorResponse)
def calculate_loan(body: LoanCalculatorRequest):
    """Monthly payment, total payable and total interest, rounded to 2 places."""
    figures = amortize(body.amount, body.interest_rate, body.term)
    return LoanCalculatorResponse(
        calculation=LoanCalculation(
            loan_amount=body.amount,
            term=body.term,
            interest_rate=body.interest_rate,
            monthly_payment=round(figures.monthly_payment, 2),
            total_amount=round(figures.total_amount, 2),
            total_interest=round(figures.total_interest, 2),
        )
    )


@router.post("/loans", response_model=LoanResponse, status_code=201)
def apply_for_loan(
    body: LoanApplicationRequest,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Submit a loan application.

    The interest rate is derived from loan type and amount. A user may hold
    only one pending, approved or active loan at a time.
    """
    request_id = get_request_id(request)
    loans = LoanRepository(db)

    try:
        terms = open_loan_application(
            loan_type=body.loan_type,
            amount=body.amount,
            term=body.term,
            purpose=body.purpose,
            existing_open_loan=loans.find_open_loan(user.id),
        )
        db_loan = loans.create_loan(user.id, terms)
        db.commit()

    except (DuplicateActiveLoan, ValidationFailed) as e:
        db.rollback()
        logging.warning(f"Loan application rejected: {e}", extra={"request_id": request_id, "user_id": str(user.id)})
        raise HTTPException(status_code=400, detail=str(e))

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error while submitting loan application")

    loan_application_counter.labels(loan_type=db_loan.loan_type).inc()
    log_loan_application(request_id, str(user.id), str(db_loan.id), db_loan.loan_type, db_loan.interest_rate)
    return to_response(db_loan)


@router.get("/loans", response_model=LoanListResponse)
def get_my_loans(
    status: Optional[LoanStatus] = Query(None),
    paging: Pagination = Depends(get_pagination),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items, total = LoanRepository(db).list_for_user(user.id, paging.page, paging.limit, status=status)
    return LoanListResponse(
        loans=[to_response(loan) for loan in items],
        pagination=PaginationSchema.build(paging.page, paging.limit, total),
    )


@router.get("/loans/stats/summary", response_model=LoanStatsResponse)
def get_loan_stats(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    stats = LoanRepository(db).summary(user.id)
    return LoanStatsResponse(
        summary=LoanSummary(
            total_loans=stats["total_loans"],
            total_loan_amount=float(stats["total_loan_amount"]),
        ),
        by_status=stats["by_status"],
        by_type=stats["by_type"],
    )


def _owned_loan(loan_id: str, user: User, db: Session) -> Loan:
    try:
        loan_uuid = uuid.UUID(loan_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid loan ID format")

    loan = LoanRepository(db).get_by_id(loan_uuid)
    if not loan:
        raise HTTPException(status_code=404, detail="Loan not found")
    try:
        ensure_owner(loan.user_id, user.id, "loan")
    except AccessDenied as e:
        raise HTTPException(status_code=403, detail=str(e))
    return loan


@router.get("/loans/{loan_id}", response_model=LoanResponse)
def get_loan(loan_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return to_response(_owned_loan(loan_id, user, db))


@router.get("/loans/{loan_id}/schedule", response_model=LoanScheduleResponse)
def get_loan_schedule(loan_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Month-by-month interest/principal split, rounded to 2 places."""
    loan = _owned_loan(loan_id, user, db)
    rows = amortization_schedule(float(loan.amount), loan.interest_rate, loan.term)
    return LoanScheduleResponse(
        loan_id=str(loan.id),
        monthly_payment=round(loan.monthly_payment, 2),
        schedule=[
            ScheduleRowSchema(
                month=row.month,
                payment=round(row.payment, 2),
                interest=round(row.interest, 2),
                principal=round(row.principal, 2),
                remaining_balance=round(row.remaining_balance, 2),
            )
            for row in rows
        ],
    )


@router.patch("/loans/{loan_id}", response_model=LoanResponse)
def update_loan(
    loan_id: str,
    body: LoanUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update purpose or supporting documents of a pending application."""
    loan = _owned_loan(loan_id, user, db)
    try:
        ensure_loan_pending(loan.status, "updated")
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=400, detail=str(e))

    if body.purpose is not None:
        # an empty string clears the purpose
        loan.purpose = body.purpose or None
    if body.documents is not None:
        uploaded_at = datetime.now(timezone.utc)
        loan.documents = [
            {**doc.model_dump(mode="json"), "uploaded_at": (doc.uploaded_at or uploaded_at).isoformat()}
            for doc in body.documents
        ]
    db.commit()
    return to_response(loan)


@router.patch("/loans/{loan_id}/cancel", response_model=LoanResponse)
def cancel_loan(loan_id: str, request: Request, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    loan = _owned_loan(loan_id, user, db)
    try:
        ensure_loan_pending(loan.status, "cancelled")
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=400, detail=str(e))

    loan.status = "cancelled"
    db.commit()
    logging.info(
        "Loan application cancelled",
        extra={"request_id": get_request_id(request), "user_id": str(user.id), "loan_id": str(loan.id)},
    )
    return to_response(loan)

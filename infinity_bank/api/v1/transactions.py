"""/v1/transactions - post money movements and read the ledger"""

import time
import uuid
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from infinity_bank.api.dependencies import Pagination, get_current_user, get_pagination, get_request_id
from infinity_bank.api.v1.schemas import (
    Pagination as PaginationSchema,
    TransactionListResponse,
    TransactionRequest,
    TransactionResponse,
    TransactionStatsResponse,
    TransactionStatus,
    TransactionSummary,
    TransactionType,
)
from infinity_bank.domain.access import ensure_participant, ensure_sender
from infinity_bank.domain.exceptions import (
    AccessDenied,
    InsufficientBalance,
    InvalidStatusTransition,
    NotFound,
    ReferenceCollision,
    ValidationFailed,
)
from infinity_bank.domain.ledger import TWO_PARTY_TYPES, apply_transaction, cancel_transaction
from infinity_bank.domain.models import AccountState, TransactionRecord
from infinity_bank.infrastructure.database.models import LedgerTransaction, User
from infinity_bank.infrastructure.database.repositories import TransactionRepository, UserRepository
from infinity_bank.infrastructure.database.session import get_db
from infinity_bank.infrastructure.observability.logging import log_transaction
from infinity_bank.infrastructure.observability.metrics import insufficient_balance_counter, record_transaction

router = APIRouter()


def to_response(txn: LedgerTransaction) -> TransactionResponse:
    return TransactionResponse(
        id=str(txn.id),
        reference=txn.reference,
        sender_id=str(txn.sender_id),
        receiver_id=str(txn.receiver_id),
        amount=float(txn.amount),
        type=txn.type,
        status=txn.status,
        description=txn.description,
        fees=float(txn.fees),
        currency=txn.currency,
        created_at=txn.created_at,
        completed_at=txn.completed_at,
    )


def to_record(txn: LedgerTransaction) -> TransactionRecord:
    return TransactionRecord(
        reference=txn.reference,
        sender_id=str(txn.sender_id),
        receiver_id=str(txn.receiver_id),
        amount=txn.amount,
        type=txn.type,
        status=txn.status,
        description=txn.description,
        created_at=txn.created_at,
        completed_at=txn.completed_at,
    )


@router.post("/transactions", response_model=TransactionResponse, status_code=201)
def create_transaction(
    body: TransactionRequest,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Post a transfer, deposit, withdrawal or payment.

    Flow:
    1. Resolve the receiver for transfers and payments
    2. Lock the accounts involved
    3. Apply the posting to the locked balances
    4. Write balances and the transaction row, commit once
    5. Record metrics and logs
    """
    start_time = time.time()
    request_id = get_request_id(request)
    users = UserRepository(db)
    transactions = TransactionRepository(db)

    try:
        account_ids = [user.id]
        if body.type in TWO_PARTY_TYPES and body.receiver_id is not None:
            receiver = users.get_by_id(body.receiver_id)
            if not receiver or not receiver.is_active:
                raise NotFound("Receiver not found")
            account_ids.append(receiver.id)

        accounts = users.lock_accounts(account_ids)
        sender_state = AccountState(str(user.id), accounts[str(user.id)].account_balance)
        receiver_state = None
        if len(account_ids) > 1:
            receiver_key = str(account_ids[1])
            receiver_state = AccountState(receiver_key, accounts[receiver_key].account_balance)

        posting = apply_transaction(
            transaction_type=body.type,
            sender=sender_state,
            receiver=receiver_state,
            amount=body.amount,
            reference=transactions.new_reference(),
            description=body.description,
        )
        db_txn = transactions.record_posting(posting, accounts)
        db.commit()

    except InsufficientBalance as e:
        db.rollback()
        insufficient_balance_counter.labels(type=body.type).inc()
        logging.warning(f"Insufficient balance: {e}", extra={"request_id": request_id, "user_id": str(user.id)})
        raise HTTPException(status_code=400, detail="Insufficient balance")

    except ValidationFailed as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))

    except NotFound as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))

    except ReferenceCollision as e:
        db.rollback()
        logging.error(f"Reference generation failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Please retry the transaction")

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error while creating transaction")

    duration_ms = (time.time() - start_time) * 1000
    record_transaction(db_txn.type, db_txn.status, float(db_txn.amount))
    log_transaction(
        request_id,
        str(user.id),
        db_txn.reference,
        db_txn.type,
        float(db_txn.amount),
        db_txn.status,
        duration_ms,
    )
    return to_response(db_txn)


@router.get("/transactions", response_model=TransactionListResponse)
def get_transaction_history(
    type: Optional[TransactionType] = Query(None),
    status: Optional[TransactionStatus] = Query(None),
    paging: Pagination = Depends(get_pagination),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Transactions the user sent or received, newest first."""
    items, total = TransactionRepository(db).list_for_user(
        user.id, paging.page, paging.limit, type=type, status=status
    )
    return TransactionListResponse(
        transactions=[to_response(t) for t in items],
        pagination=PaginationSchema.build(paging.page, paging.limit, total),
    )


@router.get("/transactions/stats/summary", response_model=TransactionStatsResponse)
def get_transaction_stats(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    stats = TransactionRepository(db).summary(user.id)
    return TransactionStatsResponse(
        summary=TransactionSummary(
            total_transactions=stats["total_transactions"],
            total_sent=float(stats["total_sent"]),
            total_received=float(stats["total_received"]),
            current_balance=float(user.account_balance),
        ),
        by_type=stats["by_type"],
        by_status=stats["by_status"],
    )


def _load_transaction(transaction_id: str, db: Session) -> LedgerTransaction:
    try:
        txn_uuid = uuid.UUID(transaction_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid transaction ID format")

    txn = TransactionRepository(db).get_by_id(txn_uuid)
    if not txn:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return txn


@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
def get_transaction(transaction_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    txn = _load_transaction(transaction_id, db)
    try:
        ensure_participant(txn.sender_id, txn.receiver_id, user.id)
    except AccessDenied as e:
        raise HTTPException(status_code=403, detail=str(e))
    return to_response(txn)


@router.patch("/transactions/{transaction_id}/cancel", response_model=TransactionResponse)
def cancel_pending_transaction(
    transaction_id: str,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Cancel a pending transaction. Only the sender may cancel."""
    txn = _load_transaction(transaction_id, db)
    try:
        ensure_sender(txn.sender_id, user.id)
        cancelled = cancel_transaction(to_record(txn))
    except AccessDenied as e:
        raise HTTPException(status_code=403, detail=str(e))
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=400, detail=str(e))

    txn.status = cancelled.status
    db.commit()
    logging.info(
        "Transaction cancelled",
        extra={"request_id": get_request_id(request), "user_id": str(user.id), "reference": txn.reference},
    )
    return to_response(txn)

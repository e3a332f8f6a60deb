"""Ledger posting - applies money movements to account balances"""

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from infinity_bank.domain.exceptions import (
    InsufficientBalance,
    InvalidStatusTransition,
    ValidationFailed,
)
from infinity_bank.domain.models import (
    AccountState,
    LedgerPosting,
    MAX_MONEY,
    TRANSACTION_TYPES,
    TransactionRecord,
)

# payment is recorded as a distinct tag but moves money exactly like a transfer
TWO_PARTY_TYPES = ("transfer", "payment")
DEBIT_TYPES = ("transfer", "payment", "withdrawal")


def apply_transaction(
    transaction_type: str,
    sender: AccountState,
    receiver: Optional[AccountState],
    amount: Decimal,
    reference: str,
    description: Optional[str] = None,
    now: datetime | None = None,
) -> LedgerPosting:
    """
    Apply a transfer, deposit, withdrawal or payment.

    Rules:
    - amount must be positive
    - transfer/payment need a receiver other than the sender
    - transfer/payment/withdrawal need sender.balance >= amount
    - deposit/withdrawal only touch the sender's own account
    - no resulting balance may exceed MAX_MONEY

    The inputs are never mutated. On success the returned posting holds a
    completed TransactionRecord and the new balance of every account touched.

    Raises:
        ValidationFailed: unknown type, non-positive amount or bad receiver
        InsufficientBalance: sender cannot cover the debit
    """
    if transaction_type not in TRANSACTION_TYPES:
        raise ValidationFailed(f"Invalid transaction type: {transaction_type}")
    if amount <= 0:
        raise ValidationFailed("Amount must be greater than 0")

    if transaction_type in TWO_PARTY_TYPES:
        if receiver is None:
            raise ValidationFailed(f"A receiver is required for a {transaction_type}")
        if receiver.account_id == sender.account_id:
            raise ValidationFailed("Cannot transfer to the same account")

    if transaction_type in DEBIT_TYPES and sender.balance < amount:
        raise InsufficientBalance(
            f"Insufficient balance: available {sender.balance}, requested {amount}"
        )

    now = now or datetime.now(timezone.utc)

    if transaction_type in TWO_PARTY_TYPES:
        balances = {
            sender.account_id: sender.balance - amount,
            receiver.account_id: receiver.balance + amount,
        }
        receiver_id = receiver.account_id
    elif transaction_type == "deposit":
        balances = {sender.account_id: sender.balance + amount}
        receiver_id = sender.account_id
    else:
        balances = {sender.account_id: sender.balance - amount}
        receiver_id = sender.account_id

    if any(balance > MAX_MONEY for balance in balances.values()):
        raise ValidationFailed("Account balance limit exceeded")

    record = TransactionRecord(
        reference=reference,
        sender_id=sender.account_id,
        receiver_id=receiver_id,
        amount=amount,
        type=transaction_type,
        status="completed",
        description=description,
        created_at=now,
        completed_at=now,
    )
    return LedgerPosting(transaction=record, balances=balances)


def cancel_transaction(record: TransactionRecord) -> TransactionRecord:
    """Move a pending transaction to cancelled; every other status is final."""
    if record.status != "pending":
        raise InvalidStatusTransition("Only pending transactions can be cancelled")
    return replace(record, status="cancelled")

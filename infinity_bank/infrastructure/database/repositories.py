"""Data access layer for users, ledger transactions, loans and cards"""

import uuid
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Query, Session

from infinity_bank.config import settings
from infinity_bank.domain.cards import generate_card_number
from infinity_bank.domain.exceptions import ReferenceCollision
from infinity_bank.domain.models import (
    CardTerms,
    LedgerPosting,
    LoanTerms,
    OPEN_CARD_STATUSES,
    OPEN_LOAN_STATUSES,
)
from infinity_bank.infrastructure.database.models import Card, LedgerTransaction, Loan, UpiLink, User
from infinity_bank.utils.identifiers import generate_account_number, generate_reference


def paginate(query: Query, page: int, limit: int) -> Tuple[list, int]:
    """Return one page of results plus the total row count"""
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, total


def _grouped_counts(query: Query) -> Dict[str, int]:
    return {key: count for key, count in query.all()}


def _unique_value(generate, exists, what: str) -> str:
    """Draw identifiers until one is unused, giving up after the configured attempts"""
    for _ in range(settings.identifier_max_attempts):
        candidate = generate()
        if not exists(candidate):
            return candidate
    raise ReferenceCollision(f"Could not generate a unique {what}")


class UserRepository:
    """Repository for account holders and their UPI links"""

    def __init__(self, db: Session):
        self.db = db

    def create_user(self, username: str, mobile: str) -> User:
        """Open an account with a zero balance and a fresh account number"""
        account_number = _unique_value(
            generate_account_number,
            lambda value: self.db.query(User.id).filter(User.account_number == value).first() is not None,
            "account number",
        )
        db_user = User(
            username=username,
            mobile=mobile,
            account_number=account_number,
            account_balance=Decimal("0"),
        )
        self.db.add(db_user)
        self.db.flush()
        return db_user

    def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()

    def get_by_mobile(self, mobile: str) -> Optional[User]:
        return self.db.query(User).filter(User.mobile == mobile).first()

    def lock_accounts(self, user_ids: Iterable[uuid.UUID]) -> Dict[str, User]:
        """
        Load accounts with row locks held until commit.

        Rows are locked in id order so two opposite transfers cannot deadlock,
        and balances are re-read so the check runs against the locked values.
        Databases without SELECT ... FOR UPDATE (SQLite) ignore the lock.
        """
        users = (
            self.db.query(User)
            .filter(User.id.in_(set(user_ids)))
            .order_by(User.id)
            .with_for_update()
            .populate_existing()
            .all()
        )
        return {str(user.id): user for user in users}

    def find_upi_link(self, upi_id: str) -> Optional[UpiLink]:
        return self.db.query(UpiLink).filter(UpiLink.upi_id == upi_id).first()

    def add_upi_link(
        self,
        user: User,
        upi_id: str,
        bank_name: str,
        account_number: str,
        ifsc_code: str,
    ) -> UpiLink:
        db_link = UpiLink(
            user_id=user.id,
            upi_id=upi_id,
            bank_name=bank_name,
            account_number=account_number,
            ifsc_code=ifsc_code,
            is_active=True,
        )
        self.db.add(db_link)
        self.db.flush()
        return db_link

    def remove_upi_link(self, link: UpiLink) -> None:
        self.db.delete(link)
        self.db.flush()


class TransactionRepository:
    """Repository for ledger transactions"""

    def __init__(self, db: Session):
        self.db = db

    def new_reference(self) -> str:
        return _unique_value(
            generate_reference,
            lambda value: self.db.query(LedgerTransaction.id)
            .filter(LedgerTransaction.reference == value)
            .first()
            is not None,
            "transaction reference",
        )

    def record_posting(self, posting: LedgerPosting, accounts: Dict[str, User]) -> LedgerTransaction:
        """
        Write new balances and the transaction row in the caller's unit of work.

        Nothing is committed here; the caller commits once so the debit, the
        credit and the transaction row land together or not at all.
        """
        for account_id, balance in posting.balances.items():
            accounts[account_id].account_balance = balance

        record = posting.transaction
        db_txn = LedgerTransaction(
            reference=record.reference,
            sender_id=uuid.UUID(record.sender_id),
            receiver_id=uuid.UUID(record.receiver_id),
            amount=record.amount,
            type=record.type,
            status=record.status,
            description=record.description,
            currency=settings.currency,
            created_at=record.created_at,
            completed_at=record.completed_at,
        )
        self.db.add(db_txn)
        self.db.flush()
        return db_txn

    def get_by_id(self, transaction_id: uuid.UUID) -> Optional[LedgerTransaction]:
        return self.db.query(LedgerTransaction).filter(LedgerTransaction.id == transaction_id).first()

    def _involving(self, user_id: uuid.UUID) -> Query:
        return self.db.query(LedgerTransaction).filter(
            or_(LedgerTransaction.sender_id == user_id, LedgerTransaction.receiver_id == user_id)
        )

    def list_for_user(
        self,
        user_id: uuid.UUID,
        page: int,
        limit: int,
        type: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Tuple[List[LedgerTransaction], int]:
        """Newest first, optionally filtered by type and status"""
        query = self._involving(user_id)
        if type:
            query = query.filter(LedgerTransaction.type == type)
        if status:
            query = query.filter(LedgerTransaction.status == status)
        query = query.order_by(LedgerTransaction.created_at.desc(), LedgerTransaction.reference.desc())
        return paginate(query, page, limit)

    def _completed_total(self, *criteria) -> Decimal:
        total = (
            self.db.query(func.sum(LedgerTransaction.amount))
            .filter(*criteria, LedgerTransaction.status == "completed")
            .scalar()
        )
        return Decimal(str(total)) if total is not None else Decimal("0")

    def summary(self, user_id: uuid.UUID) -> dict:
        """Counts and completed totals for every transaction the user took part in"""
        involving = or_(LedgerTransaction.sender_id == user_id, LedgerTransaction.receiver_id == user_id)
        by_type = _grouped_counts(
            self.db.query(LedgerTransaction.type, func.count(LedgerTransaction.id))
            .filter(involving)
            .group_by(LedgerTransaction.type)
        )
        by_status = _grouped_counts(
            self.db.query(LedgerTransaction.status, func.count(LedgerTransaction.id))
            .filter(involving)
            .group_by(LedgerTransaction.status)
        )
        return {
            "total_transactions": self._involving(user_id).count(),
            # deposits and withdrawals name the user on both sides; count each one way only
            "total_sent": self._completed_total(
                LedgerTransaction.sender_id == user_id, LedgerTransaction.type != "deposit"
            ),
            "total_received": self._completed_total(
                LedgerTransaction.receiver_id == user_id, LedgerTransaction.type != "withdrawal"
            ),
            "by_type": by_type,
            "by_status": by_status,
        }


class LoanRepository:
    """Repository for loan applications"""

    def __init__(self, db: Session):
        self.db = db

    def find_open_loan(self, user_id: uuid.UUID) -> Optional[Loan]:
        return (
            self.db.query(Loan)
            .filter(Loan.user_id == user_id, Loan.status.in_(OPEN_LOAN_STATUSES))
            .first()
        )

    def create_loan(self, user_id: uuid.UUID, terms: LoanTerms) -> Loan:
        """Persist a pending loan; payment figures are filled in on flush"""
        db_loan = Loan(
            user_id=user_id,
            loan_type=terms.loan_type,
            amount=terms.amount,
            interest_rate=terms.interest_rate,
            term=terms.term,
            purpose=terms.purpose,
            documents=[],
            status="pending",
        )
        self.db.add(db_loan)
        self.db.flush()
        return db_loan

    def get_by_id(self, loan_id: uuid.UUID) -> Optional[Loan]:
        return self.db.query(Loan).filter(Loan.id == loan_id).first()

    def list_for_user(
        self,
        user_id: uuid.UUID,
        page: int,
        limit: int,
        status: Optional[str] = None,
    ) -> Tuple[List[Loan], int]:
        query = self.db.query(Loan).filter(Loan.user_id == user_id)
        if status:
            query = query.filter(Loan.status == status)
        query = query.order_by(Loan.created_at.desc())
        return paginate(query, page, limit)

    def summary(self, user_id: uuid.UUID) -> dict:
        total_amount = (
            self.db.query(func.sum(Loan.amount))
            .filter(Loan.user_id == user_id, Loan.status.in_(("approved", "active")))
            .scalar()
        )
        return {
            "total_loans": self.db.query(Loan).filter(Loan.user_id == user_id).count(),
            "total_loan_amount": Decimal(str(total_amount)) if total_amount is not None else Decimal("0"),
            "by_status": _grouped_counts(
                self.db.query(Loan.status, func.count(Loan.id))
                .filter(Loan.user_id == user_id)
                .group_by(Loan.status)
            ),
            "by_type": _grouped_counts(
                self.db.query(Loan.loan_type, func.count(Loan.id))
                .filter(Loan.user_id == user_id)
                .group_by(Loan.loan_type)
            ),
        }


class CardRepository:
    """Repository for card applications"""

    def __init__(self, db: Session):
        self.db = db

    def find_open_card(self, user_id: uuid.UUID, card_type: str) -> Optional[Card]:
        return (
            self.db.query(Card)
            .filter(
                Card.user_id == user_id,
                Card.card_type == card_type,
                Card.status.in_(OPEN_CARD_STATUSES),
            )
            .first()
        )

    def new_card_number(self, network: str) -> str:
        return _unique_value(
            lambda: generate_card_number(network),
            lambda value: self.db.query(Card.id).filter(Card.card_number == value).first() is not None,
            "card number",
        )

    def create_card(self, user_id: uuid.UUID, terms: CardTerms, card_number: str) -> Card:
        db_card = Card(
            user_id=user_id,
            card_type=terms.card_type,
            card_number=card_number,
            card_holder=terms.card_holder,
            expiry_date=terms.expiry_date,
            cvv=terms.cvv,
            pin=terms.pin,
            card_network=terms.card_network,
            card_category=terms.card_category,
            credit_limit=terms.credit_limit,
            available_credit=terms.available_credit,
            annual_fee=terms.annual_fee,
            rewards_program=terms.rewards_program,
            is_contactless=terms.is_contactless,
            is_international=terms.is_international,
            status="pending",
        )
        self.db.add(db_card)
        self.db.flush()
        return db_card

    def get_by_id(self, card_id: uuid.UUID) -> Optional[Card]:
        return self.db.query(Card).filter(Card.id == card_id).first()

    def list_for_user(
        self,
        user_id: uuid.UUID,
        page: int,
        limit: int,
        card_type: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Tuple[List[Card], int]:
        query = self.db.query(Card).filter(Card.user_id == user_id)
        if card_type:
            query = query.filter(Card.card_type == card_type)
        if status:
            query = query.filter(Card.status == status)
        query = query.order_by(Card.created_at.desc())
        return paginate(query, page, limit)

    def summary(self, user_id: uuid.UUID) -> dict:
        def grouped(column):
            return _grouped_counts(
                self.db.query(column, func.count(Card.id))
                .filter(Card.user_id == user_id)
                .group_by(column)
            )

        total_limit = (
            self.db.query(func.sum(Card.credit_limit))
            .filter(Card.user_id == user_id, Card.card_type == "credit", Card.status == "active")
            .scalar()
        )
        return {
            "total_cards": self.db.query(Card).filter(Card.user_id == user_id).count(),
            "total_credit_limit": Decimal(str(total_limit)) if total_limit is not None else Decimal("0"),
            "by_type": grouped(Card.card_type),
            "by_status": grouped(Card.status),
            "by_network": grouped(Card.card_network),
        }

"""SQLAlchemy ORM models for users, ledger transactions, loans and cards"""

import uuid
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    event,
    inspect,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from infinity_bank.domain.amortization import amortize

Base = declarative_base()

Money = Numeric(14, 2)


class User(Base):
    """Account holder with a single embedded bank account"""

    __tablename__ = "bank_user"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(String(30), nullable=False, unique=True, index=True)
    mobile = Column(String(10), nullable=False, unique=True)
    account_number = Column(String(32), nullable=False, unique=True, index=True)
    account_balance = Column(Money, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    deactivation_reason = Column(String(200), nullable=True)
    deactivated_at = Column(DateTime(timezone=True), nullable=True)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    upi_links = relationship("UpiLink", back_populates="user", cascade="all, delete-orphan")
    loans = relationship("Loan", back_populates="user")
    cards = relationship("Card", back_populates="user")


class UpiLink(Base):
    """External bank account linked through a UPI id"""

    __tablename__ = "upi_link"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("bank_user.id", ondelete="CASCADE"), nullable=False)
    upi_id = Column(String(100), nullable=False, unique=True)
    bank_name = Column(Text, nullable=False)
    account_number = Column(String(18), nullable=False)
    ifsc_code = Column(String(11), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    linked_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    user = relationship("User", back_populates="upi_links")


class LedgerTransaction(Base):
    """Posted money movement between two accounts"""

    __tablename__ = "ledger_transaction"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    reference = Column(String(40), nullable=False, unique=True)
    sender_id = Column(UUID(as_uuid=True), ForeignKey("bank_user.id"), nullable=False, index=True)
    receiver_id = Column(UUID(as_uuid=True), ForeignKey("bank_user.id"), nullable=False, index=True)
    amount = Column(Money, nullable=False)
    type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    description = Column(String(200), nullable=True)
    fees = Column(Money, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="INR")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    sender = relationship("User", foreign_keys=[sender_id])
    receiver = relationship("User", foreign_keys=[receiver_id])


class Loan(Base):
    """Loan application and its repayment figures"""

    __tablename__ = "loan"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("bank_user.id"), nullable=False, index=True)
    loan_type = Column(String(20), nullable=False)
    amount = Column(Money, nullable=False)
    interest_rate = Column(Float, nullable=False)
    term = Column(Integer, nullable=False)
    monthly_payment = Column(Float, nullable=False, default=0)
    total_amount = Column(Float, nullable=False, default=0)
    remaining_balance = Column(Float, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="pending", index=True)
    purpose = Column(String(200), nullable=True)
    documents = Column(JSON, nullable=False, default=list)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    disbursed_at = Column(DateTime(timezone=True), nullable=True)
    next_payment_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="loans")


class Card(Base):
    """Debit or credit card issued to a user"""

    __tablename__ = "card"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("bank_user.id"), nullable=False, index=True)
    card_type = Column(String(10), nullable=False)
    card_number = Column(String(16), nullable=False, unique=True)
    card_holder = Column(Text, nullable=False)
    expiry_date = Column(String(5), nullable=False)
    cvv = Column(String(4), nullable=False)
    pin = Column(String(4), nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    credit_limit = Column(Money, nullable=False, default=0)
    available_credit = Column(Money, nullable=False, default=0)
    current_balance = Column(Money, nullable=False, default=0)
    minimum_payment = Column(Money, nullable=False, default=0)
    due_date = Column(DateTime(timezone=True), nullable=True)
    card_network = Column(String(20), nullable=False)
    card_category = Column(String(20), nullable=False, default="classic")
    annual_fee = Column(Integer, nullable=False, default=0)
    rewards_program = Column(String(10), nullable=False, default="none")
    is_contactless = Column(Boolean, nullable=False, default=True)
    is_international = Column(Boolean, nullable=False, default=False)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    issued_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="cards")


@event.listens_for(Loan, "before_insert")
@event.listens_for(Loan, "before_update")
def recompute_loan_figures(mapper, connection, target: Loan) -> None:
    """Keep monthly_payment/total_amount consistent with amount, rate and term."""
    state = inspect(target)
    if not any(state.attrs[name].history.has_changes() for name in ("amount", "interest_rate", "term")):
        return

    figures = amortize(float(target.amount), target.interest_rate, target.term)
    target.monthly_payment = figures.monthly_payment
    target.total_amount = figures.total_amount
    target.remaining_balance = float(target.amount)

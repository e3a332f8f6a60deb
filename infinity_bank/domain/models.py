"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional

TRANSACTION_TYPES = ("transfer", "deposit", "withdrawal", "payment")
TRANSACTION_STATUSES = ("pending", "completed", "failed", "cancelled")

LOAN_TYPES = ("personal", "home", "business", "education", "vehicle")
LOAN_STATUSES = ("pending", "approved", "rejected", "active", "closed", "cancelled")
OPEN_LOAN_STATUSES = ("pending", "approved", "active")

CARD_TYPES = ("credit", "debit")
CARD_NETWORKS = ("Visa", "Mastercard", "RuPay", "American Express")
CARD_CATEGORIES = ("classic", "gold", "platinum", "signature", "infinite")
CARD_STATUSES = ("pending", "approved", "active", "blocked", "expired", "cancelled")
OPEN_CARD_STATUSES = ("pending", "approved", "active")
REWARDS_PROGRAMS = ("cashback", "points", "miles", "none")

# Largest value a Numeric(14, 2) money column holds
MAX_MONEY = Decimal("999999999999.99")


@dataclass(frozen=True)
class AccountState:
    """Balance snapshot of a single account"""

    account_id: str
    balance: Decimal


@dataclass
class TransactionRecord:
    """Money movement between one or two accounts"""

    reference: str
    sender_id: str
    receiver_id: str
    amount: Decimal
    type: str  # transfer | deposit | withdrawal | payment
    status: str = "pending"
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass
class LedgerPosting:
    """Result of applying a transaction: the record plus new balances keyed by account id"""

    transaction: TransactionRecord
    balances: Dict[str, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class Amortization:
    """Fixed-payment loan figures at full precision"""

    monthly_payment: float
    total_amount: float
    total_interest: float


@dataclass(frozen=True)
class ScheduleRow:
    """Single month of an amortization schedule"""

    month: int
    payment: float
    interest: float
    principal: float
    remaining_balance: float


@dataclass
class LoanTerms:
    """Validated loan application ready to be persisted"""

    loan_type: str
    amount: Decimal
    interest_rate: float
    term: int
    monthly_payment: float
    total_amount: float
    purpose: Optional[str] = None


@dataclass
class CardTerms:
    """Validated card application ready to be persisted"""

    card_type: str
    card_network: str
    card_category: str
    card_holder: str
    expiry_date: str  # MM/YY
    cvv: str
    pin: str
    credit_limit: Decimal
    available_credit: Decimal
    annual_fee: int
    rewards_program: str
    is_contactless: bool = True
    is_international: bool = False

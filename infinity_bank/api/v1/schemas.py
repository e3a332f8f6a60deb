"""Pydantic schemas for API request/response validation"""

import math
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, UUID4

from infinity_bank.domain.models import MAX_MONEY

TransactionType = Literal["transfer", "deposit", "withdrawal", "payment"]
TransactionStatus = Literal["pending", "completed", "failed", "cancelled"]
LoanType = Literal["personal", "home", "business", "education", "vehicle"]
LoanStatus = Literal["pending", "approved", "rejected", "active", "closed", "cancelled"]
CardType = Literal["credit", "debit"]
CardNetwork = Literal["Visa", "Mastercard", "RuPay", "American Express"]
CardCategory = Literal["classic", "gold", "platinum", "signature", "infinite"]
CardStatus = Literal["pending", "approved", "active", "blocked", "expired", "cancelled"]


class Pagination(BaseModel):
    """Paging metadata for list endpoints"""

    current_page: int
    total_pages: int
    total: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(
            current_page=page,
            total_pages=math.ceil(total / limit),
            total=total,
            has_next_page=page * limit < total,
            has_prev_page=page > 1,
        )


class MessageResponse(BaseModel):
    message: str


# --- Users -------------------------------------------------------------------


class OpenAccountRequest(BaseModel):
    """Request body for POST /v1/users"""

    username: str = Field(..., min_length=3, max_length=30, pattern=r"^[a-zA-Z0-9_]+$")
    mobile: str = Field(..., pattern=r"^[0-9]{10}$", description="10 digit mobile number")


class UpdateProfileRequest(BaseModel):
    mobile: Optional[str] = Field(None, pattern=r"^[0-9]{10}$")


class UpiLinkRequest(BaseModel):
    upi_id: str = Field(..., pattern=r"^[a-zA-Z0-9._-]+@[a-zA-Z]{3,}$", description="username@bankname")
    bank_name: str = Field(..., min_length=1)
    account_number: str = Field(..., pattern=r"^[0-9]{9,18}$")
    ifsc_code: str = Field(..., pattern=r"^[A-Z]{4}0[A-Z0-9]{6}$")


class UpiToggleRequest(BaseModel):
    is_active: bool


class DeactivateRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=200)


class UpiLinkResponse(BaseModel):
    id: str
    upi_id: str
    bank_name: str
    account_number: str  # last 4 digits only
    ifsc_code: str
    is_active: bool
    linked_at: Optional[datetime] = None


class ProfileResponse(BaseModel):
    id: str
    username: str
    mobile: str
    account_number: str
    account_balance: float
    is_active: bool
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None
    upi_details: List[UpiLinkResponse]


class BalanceResponse(BaseModel):
    account_balance: float
    account_number: str
    currency: str


class AccountSummaryResponse(BaseModel):
    account_number: str
    account_balance: float
    username: str
    mobile: str
    account_status: str
    member_since: Optional[datetime] = None
    last_login: Optional[datetime] = None
    currency: str


class UserStatsResponse(BaseModel):
    account_age_days: int
    account_status: str
    linked_upi_accounts: int
    active_upi_accounts: int


class UpiAccountsResponse(BaseModel):
    upi_accounts: List[UpiLinkResponse]


class DeactivateResponse(BaseModel):
    message: str
    deactivated_at: datetime


# --- Transactions ------------------------------------------------------------


class TransactionRequest(BaseModel):
    """Request body for POST /v1/transactions"""

    type: TransactionType
    amount: Decimal = Field(..., ge=Decimal("0.01"), le=MAX_MONEY, decimal_places=2, description="Amount in INR")
    receiver_id: Optional[UUID4] = Field(None, description="Required for transfer and payment")
    description: Optional[str] = Field(None, max_length=200)


class TransactionResponse(BaseModel):
    id: str
    reference: str
    sender_id: str
    receiver_id: str
    amount: float
    type: str
    status: str
    description: Optional[str] = None
    fees: float
    currency: str
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class TransactionListResponse(BaseModel):
    transactions: List[TransactionResponse]
    pagination: Pagination


class TransactionSummary(BaseModel):
    total_transactions: int
    total_sent: float
    total_received: float
    current_balance: float


class TransactionStatsResponse(BaseModel):
    summary: TransactionSummary
    by_type: Dict[str, int]
    by_status: Dict[str, int]


# --- Loans -------------------------------------------------------------------


class LoanDocument(BaseModel):
    name: str
    url: str
    uploaded_at: Optional[datetime] = None


class LoanApplicationRequest(BaseModel):
    """Request body for POST /v1/loans"""

    loan_type: LoanType
    amount: Decimal = Field(..., ge=1000, le=MAX_MONEY, decimal_places=2, description="Principal in INR")
    term: int = Field(..., ge=1, le=360, description="Term in months")
    purpose: Optional[str] = Field(None, max_length=200)


class LoanUpdateRequest(BaseModel):
    purpose: Optional[str] = Field(None, max_length=200)
    documents: Optional[List[LoanDocument]] = None


class LoanCalculatorRequest(BaseModel):
    amount: float = Field(..., ge=1000)
    term: int = Field(..., ge=1, le=360)
    interest_rate: float = Field(..., ge=0.1, le=25)


class LoanCalculation(BaseModel):
    loan_amount: float
    term: int
    interest_rate: float
    monthly_payment: float
    total_amount: float
    total_interest: float


class LoanCalculatorResponse(BaseModel):
    calculation: LoanCalculation


class LoanResponse(BaseModel):
    id: str
    loan_type: str
    amount: float
    interest_rate: float
    term: int
    monthly_payment: float
    total_amount: float
    remaining_balance: float
    status: str
    purpose: Optional[str] = None
    documents: List[LoanDocument] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LoanListResponse(BaseModel):
    loans: List[LoanResponse]
    pagination: Pagination


class ScheduleRowSchema(BaseModel):
    month: int
    payment: float
    interest: float
    principal: float
    remaining_balance: float


class LoanScheduleResponse(BaseModel):
    loan_id: str
    monthly_payment: float
    schedule: List[ScheduleRowSchema]


class LoanSummary(BaseModel):
    total_loans: int
    total_loan_amount: float


class LoanStatsResponse(BaseModel):
    summary: LoanSummary
    by_status: Dict[str, int]
    by_type: Dict[str, int]


# --- Cards -------------------------------------------------------------------


class CardApplicationRequest(BaseModel):
    """Request body for POST /v1/cards"""

    card_type: CardType
    card_network: CardNetwork
    card_category: CardCategory = "classic"
    credit_limit: Optional[Decimal] = Field(None, ge=10000, le=1000000, description="Credit cards only")
    pin: str = Field(..., pattern=r"^[0-9]{4}$")
    is_contactless: bool = True
    is_international: bool = False


class CardUpdateRequest(BaseModel):
    is_contactless: Optional[bool] = None
    is_international: Optional[bool] = None


class CardToggleRequest(BaseModel):
    action: Literal["block", "unblock"]


class CardResponse(BaseModel):
    id: str
    user_id: str
    card_type: str
    card_number: str
    card_holder: str
    expiry_date: str
    status: str
    card_network: str
    card_category: str
    credit_limit: float
    available_credit: float
    current_balance: float
    annual_fee: int
    rewards_program: str
    is_contactless: bool
    is_international: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CardListResponse(BaseModel):
    cards: List[CardResponse]
    pagination: Pagination


class CardSummary(BaseModel):
    total_cards: int
    total_credit_limit: float


class CardStatsResponse(BaseModel):
    summary: CardSummary
    by_type: Dict[str, int]
    by_status: Dict[str, int]
    by_network: Dict[str, int]

"""Loan pricing and amortization - interest tiers and fixed monthly payments"""

from decimal import Decimal
from typing import List, Optional

from infinity_bank.domain.exceptions import (
    DuplicateActiveLoan,
    InvalidStatusTransition,
    ValidationFailed,
)
from infinity_bank.domain.models import Amortization, LOAN_TYPES, LoanTerms, ScheduleRow

# loan_type -> (amount threshold, rate at or above threshold, rate below threshold)
INTEREST_TIERS = {
    "personal": (50_000, 10.5, 12.5),
    "home": (1_000_000, 8.5, 9.5),
    "business": (200_000, 11.5, 13.5),
    "education": (0, 9.5, 9.5),
    "vehicle": (500_000, 9.0, 10.5),
}


def interest_rate_for(loan_type: str, amount: Decimal | float) -> float:
    """
    Annual interest rate (percent) for a loan type and principal.

    Tiers:
    - personal:  >= 50,000 -> 10.5, else 12.5
    - home:      >= 1,000,000 -> 8.5, else 9.5
    - business:  >= 200,000 -> 11.5, else 13.5
    - education: 9.5 flat
    - vehicle:   >= 500,000 -> 9.0, else 10.5
    """
    try:
        threshold, high_tier_rate, low_tier_rate = INTEREST_TIERS[loan_type]
    except KeyError:
        raise ValidationFailed(f"Invalid loan type: {loan_type}") from None
    return high_tier_rate if amount >= threshold else low_tier_rate


def amortize(principal: float, annual_rate_percent: float, term_months: int) -> Amortization:
    """
    Fixed monthly payment using the standard annuity formula.

        r = annual_rate / 100 / 12
        payment = P * r * (1 + r)^n / ((1 + r)^n - 1)

    A zero rate degenerates to P / n. Results are not rounded.
    """
    if term_months <= 0:
        raise ValidationFailed("Loan term must be at least 1 month")

    principal = float(principal)
    monthly_rate = float(annual_rate_percent) / 100 / 12

    if monthly_rate > 0:
        growth = (1 + monthly_rate) ** term_months
        monthly_payment = principal * monthly_rate * growth / (growth - 1)
    else:
        monthly_payment = principal / term_months

    total_amount = monthly_payment * term_months
    return Amortization(
        monthly_payment=monthly_payment,
        total_amount=total_amount,
        total_interest=total_amount - principal,
    )


def amortization_schedule(
    principal: float, annual_rate_percent: float, term_months: int
) -> List[ScheduleRow]:
    """
    Month-by-month split of each payment into interest and principal.

    The last row absorbs floating point drift so remaining_balance ends at 0.
    """
    monthly_payment = amortize(principal, annual_rate_percent, term_months).monthly_payment
    monthly_rate = float(annual_rate_percent) / 100 / 12
    remaining = float(principal)

    rows = []
    for month in range(1, term_months + 1):
        interest = remaining * monthly_rate
        if month == term_months:
            principal_part = remaining
            payment = principal_part + interest
        else:
            principal_part = monthly_payment - interest
            payment = monthly_payment
        remaining -= principal_part

        rows.append(
            ScheduleRow(
                month=month,
                payment=payment,
                interest=interest,
                principal=principal_part,
                remaining_balance=max(remaining, 0.0),
            )
        )

    return rows


def open_loan_application(
    loan_type: str,
    amount: Decimal,
    term: int,
    purpose: Optional[str] = None,
    existing_open_loan: object | None = None,
) -> LoanTerms:
    """
    Price a new loan application.

    Raises:
        DuplicateActiveLoan: the user already has a pending, approved or active loan
        ValidationFailed: unknown loan type
    """
    if existing_open_loan is not None:
        raise DuplicateActiveLoan("You already have an active loan application or loan")
    if loan_type not in LOAN_TYPES:
        raise ValidationFailed(f"Invalid loan type: {loan_type}")

    rate = interest_rate_for(loan_type, amount)
    figures = amortize(float(amount), rate, term)

    return LoanTerms(
        loan_type=loan_type,
        amount=amount,
        interest_rate=rate,
        term=term,
        monthly_payment=figures.monthly_payment,
        total_amount=figures.total_amount,
        purpose=purpose,
    )


def ensure_loan_pending(status: str, action: str) -> None:
    """Updates and cancellation are only allowed on pending applications."""
    if status != "pending":
        raise InvalidStatusTransition(f"Only pending loans can be {action}")

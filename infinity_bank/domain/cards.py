"""Card issuance - fee schedule, card number generation and card lifecycle"""

import secrets
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Tuple

from infinity_bank.domain.exceptions import (
    DuplicateActiveCard,
    InvalidStatusTransition,
    ValidationFailed,
)
from infinity_bank.domain.models import CARD_CATEGORIES, CARD_TYPES, CardTerms

# category -> (credit annual fee, debit annual fee, credit rewards program)
FEE_SCHEDULE = {
    "classic": (500, 0, "none"),
    "gold": (1000, 250, "cashback"),
    "platinum": (2500, 500, "points"),
    "signature": (5000, 1000, "miles"),
    "infinite": (10000, 2000, "miles"),
}

NETWORK_PREFIXES = {
    "Visa": "4",
    "Mastercard": "5",
    "RuPay": "6",
    "American Express": "3",
}

CARD_NUMBER_LENGTH = 16
MIN_CREDIT_LIMIT = Decimal("10000")
MAX_CREDIT_LIMIT = Decimal("1000000")


def fee_schedule(card_type: str, card_category: str) -> Tuple[int, str]:
    """Return (annual_fee, rewards_program). Debit cards never earn rewards."""
    if card_type not in CARD_TYPES:
        raise ValidationFailed(f"Invalid card type: {card_type}")
    try:
        credit_fee, debit_fee, credit_rewards = FEE_SCHEDULE[card_category]
    except KeyError:
        raise ValidationFailed(f"Invalid card category: {card_category}") from None

    if card_type == "credit":
        return credit_fee, credit_rewards
    return debit_fee, "none"


def luhn_check_digit(payload: str) -> int:
    """Check digit that makes payload + digit pass the Luhn test."""
    total = 0
    # rightmost payload digit sits second from the right once the check digit is appended
    for position, char in enumerate(reversed(payload)):
        digit = int(char)
        if position % 2 == 0:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return (10 - total % 10) % 10


def is_luhn_valid(number: str) -> bool:
    if not number.isdigit():
        return False
    return luhn_check_digit(number[:-1]) == int(number[-1])


def generate_card_number(network: str) -> str:
    """
    16-digit card number: network digit, 14 random digits, Luhn check digit.

    Network digits: Visa 4, Mastercard 5, RuPay 6, American Express 3.
    """
    try:
        prefix = NETWORK_PREFIXES[network]
    except KeyError:
        raise ValidationFailed(f"Invalid card network: {network}") from None

    body = "".join(str(secrets.randbelow(10)) for _ in range(CARD_NUMBER_LENGTH - 2))
    payload = prefix + body
    return payload + str(luhn_check_digit(payload))


def generate_cvv(network: str) -> str:
    length = 4 if network == "American Express" else 3
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


def expiry_date(issued_at: datetime, validity_years: int) -> str:
    """MM/YY, validity_years after issue"""
    return f"{issued_at.month:02d}/{(issued_at.year + validity_years) % 100:02d}"


def open_card_application(
    card_type: str,
    card_network: str,
    card_category: str,
    card_holder: str,
    pin: str,
    credit_limit: Optional[Decimal] = None,
    is_contactless: bool = True,
    is_international: bool = False,
    existing_open_card: object | None = None,
    validity_years: int = 5,
    now: datetime | None = None,
) -> CardTerms:
    """
    Build the terms of a new card application.

    Credit cards require a credit limit between 10,000 and 1,000,000 which
    also becomes the available credit. Debit cards carry no limit.

    Raises:
        DuplicateActiveCard: a pending, approved or active card of this type exists
        ValidationFailed: bad type, network, category or credit limit
    """
    if existing_open_card is not None:
        raise DuplicateActiveCard(
            f"You already have a {card_type} card application or active card"
        )
    if card_category not in CARD_CATEGORIES:
        raise ValidationFailed(f"Invalid card category: {card_category}")
    if card_network not in NETWORK_PREFIXES:
        raise ValidationFailed(f"Invalid card network: {card_network}")

    if card_type == "credit":
        if credit_limit is None or not MIN_CREDIT_LIMIT <= credit_limit <= MAX_CREDIT_LIMIT:
            raise ValidationFailed("Credit limit must be between 10,000 and 10,00,000")
        limit = credit_limit
    else:
        limit = Decimal("0")

    annual_fee, rewards_program = fee_schedule(card_type, card_category)
    now = now or datetime.now(timezone.utc)

    return CardTerms(
        card_type=card_type,
        card_network=card_network,
        card_category=card_category,
        card_holder=card_holder,
        expiry_date=expiry_date(now, validity_years),
        cvv=generate_cvv(card_network),
        pin=pin,
        credit_limit=limit,
        available_credit=limit,
        annual_fee=annual_fee,
        rewards_program=rewards_program,
        is_contactless=is_contactless,
        is_international=is_international,
    )


def ensure_card_pending(status: str, action: str) -> None:
    if status != "pending":
        raise InvalidStatusTransition(f"Only pending cards can be {action}")


def toggle_card_status(status: str, action: str, existing_open_card: object | None = None) -> str:
    """
    block: active -> blocked
    unblock: blocked -> active, unless a replacement card of the same type is open
    """
    if action == "block":
        if status != "active":
            raise InvalidStatusTransition("Only active cards can be blocked")
        return "blocked"
    if action == "unblock":
        if status != "blocked":
            raise InvalidStatusTransition("Only blocked cards can be unblocked")
        if existing_open_card is not None:
            raise DuplicateActiveCard("Another card of this type is already open")
        return "active"
    raise ValidationFailed("Action must be either block or unblock")

"""Sanitized views of stored records - sensitive fields never leave the service"""

from typing import Any, Dict

CARD_SECRET_FIELDS = ("cvv", "pin")


def mask_account_number(account_number: str) -> str:
    """Keep only the last 4 digits"""
    return account_number[-4:]


def public_upi_link(link: Any) -> Dict[str, Any]:
    return {
        "id": str(link.id),
        "upi_id": link.upi_id,
        "bank_name": link.bank_name,
        "account_number": mask_account_number(link.account_number),
        "ifsc_code": link.ifsc_code,
        "is_active": link.is_active,
        "linked_at": link.linked_at,
    }


def public_profile(user: Any) -> Dict[str, Any]:
    """Profile of an account holder with linked accounts masked"""
    return {
        "id": str(user.id),
        "username": user.username,
        "mobile": user.mobile,
        "account_number": user.account_number,
        "account_balance": float(user.account_balance),
        "is_active": user.is_active,
        "created_at": user.created_at,
        "last_login": user.last_login,
        "upi_details": [public_upi_link(link) for link in user.upi_links],
    }


def public_card(card: Any) -> Dict[str, Any]:
    """Every stored card column except the CVV and PIN"""
    view = {
        column.name: getattr(card, column.name)
        for column in card.__table__.columns
        if column.name not in CARD_SECRET_FIELDS
    }
    view["id"] = str(card.id)
    view["user_id"] = str(card.user_id)
    for money_field in ("credit_limit", "available_credit", "current_balance", "minimum_payment"):
        view[money_field] = float(view[money_field])
    return view

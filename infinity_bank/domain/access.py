"""Ownership rules for loans, cards and ledger transactions"""

import uuid

from infinity_bank.domain.exceptions import AccessDenied


def ensure_owner(owner_id: uuid.UUID, user_id: uuid.UUID, resource: str) -> None:
    if owner_id != user_id:
        raise AccessDenied(f"Access denied to this {resource}")


def ensure_participant(sender_id: uuid.UUID, receiver_id: uuid.UUID, user_id: uuid.UUID) -> None:
    """Sender and receiver may both read a transaction"""
    if user_id not in (sender_id, receiver_id):
        raise AccessDenied("Access denied to this transaction")


def ensure_sender(sender_id: uuid.UUID, user_id: uuid.UUID) -> None:
    if sender_id != user_id:
        raise AccessDenied("Only sender can cancel transaction")

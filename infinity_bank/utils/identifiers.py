"""Human-readable identifier generation for accounts and transactions"""

import secrets
import string
import time

_SUFFIX_ALPHABET = string.digits + string.ascii_uppercase


def _timestamped(prefix: str, suffix_length: int = 5) -> str:
    millis = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(suffix_length))
    return f"{prefix}{millis}{suffix}"


def generate_reference() -> str:
    """Transaction reference, e.g. TXN1718000000000K3Z9Q"""
    return _timestamped("TXN")


def generate_account_number() -> str:
    """Account number, e.g. IB1718000000000A7B2C"""
    return _timestamped("IB")

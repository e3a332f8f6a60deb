"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from infinity_bank.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.utcnow().isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_transaction(
    request_id: str,
    user_id: str,
    reference: str,
    transaction_type: str,
    amount: float,
    status: str,
    duration_ms: float,
) -> None:
    """Log structured posting outcome for reconciliation"""
    logging.info(
        "Transaction posted",
        extra={
            "request_id": request_id,
            "user_id": user_id,
            "step": "transaction_posted",
            "reference": reference,
            "transaction_type": transaction_type,
            "amount": amount,
            "status": status,
            "duration_ms": duration_ms,
        },
    )


def log_loan_application(request_id: str, user_id: str, loan_id: str, loan_type: str, interest_rate: float) -> None:
    logging.info(
        "Loan application submitted",
        extra={
            "request_id": request_id,
            "user_id": user_id,
            "step": "loan_applied",
            "loan_id": loan_id,
            "loan_type": loan_type,
            "interest_rate": interest_rate,
        },
    )


def log_card_application(request_id: str, user_id: str, card_id: str, card_type: str, card_network: str) -> None:
    logging.info(
        "Card application submitted",
        extra={
            "request_id": request_id,
            "user_id": user_id,
            "step": "card_applied",
            "card_id": card_id,
            "card_type": card_type,
            "card_network": card_network,
        },
    )

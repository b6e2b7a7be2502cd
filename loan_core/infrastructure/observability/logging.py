"""Structured JSON logging for ledger operations"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger
from loan_core.config import settings

logger = logging.getLogger("loan_core.ledger")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging on the root logger"""
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))
    root.addHandler(handler)


def log_ledger_write(
    request_id: str,
    client_id: str,
    transaction_type: str,
    amount: int,
    balance_after: int,
    bank_account_id: Optional[str] = None,
) -> None:
    """Log a committed ledger entry"""
    logger.info(
        "Ledger write committed",
        extra={
            "request_id": request_id,
            "client_id": client_id,
            "step": "ledger_write",
            "transaction_type": transaction_type,
            "amount": amount,
            "balance_after": balance_after,
            "bank_account_id": bank_account_id,
        },
    )


def log_rejection(request_id: str, operation: str, error: Exception) -> None:
    """Log a validation failure that blocked a write"""
    logger.warning(
        f"{operation} rejected: {error}",
        extra={
            "request_id": request_id,
            "step": "rejected",
            "operation": operation,
            "error_type": type(error).__name__,
        },
    )

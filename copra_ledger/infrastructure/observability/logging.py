"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from copra_ledger.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
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


def log_ledger_operation(
    operation: str,
    outcome: str,
    supplier_id: Optional[str] = None,
    transaction_id: Optional[str] = None,
    loan_id: Optional[str] = None,
    amount: Optional[str] = None,
    duration_ms: Optional[float] = None,
    request_id: Optional[str] = None,
    reason: Optional[str] = None,
) -> None:
    """Log structured ledger outcome for analysis"""
    logging.getLogger("copra_ledger.ledger").info(
        "Ledger operation completed",
        extra={
            "request_id": request_id,
            "operation": operation,
            "outcome": outcome,
            "supplier_id": supplier_id,
            "transaction_id": transaction_id,
            "loan_id": loan_id,
            "amount": amount,
            "reason": reason,
            "duration_ms": duration_ms,
        },
    )

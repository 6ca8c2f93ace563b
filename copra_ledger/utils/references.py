"""Human-readable identifiers for transactions and loan payments"""

import secrets
import uuid
from datetime import datetime, timezone
from typing import Optional


def generate_transaction_number(now: Optional[datetime] = None) -> str:
    """TRX-YYYYMMDD-XXXXXXXX, random suffix keeps numbers unique within a day"""
    now = now or datetime.now(timezone.utc)
    return f"TRX-{now:%Y%m%d}-{secrets.token_hex(4).upper()}"


def auto_debit_reference(transaction_id: uuid.UUID, loan_id: uuid.UUID) -> str:
    """One auto-debit per (transaction, loan), so the pair is a unique key"""
    return f"TXN-{transaction_id.hex}-{loan_id.hex[:12].upper()}"


def manual_payment_reference(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"PAY-{int(now.timestamp() * 1000)}-{secrets.token_hex(3).upper()}"

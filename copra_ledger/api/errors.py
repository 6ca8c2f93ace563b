"""Translate domain failures into HTTP responses"""

from typing import Optional

from fastapi import HTTPException

from copra_ledger.domain.exceptions import DomainException

STATUS_BY_CODE = {
    "validation_error": 422,
    "not_found": 404,
    "invalid_state_transition": 409,
    "not_eligible": 400,
    "concurrency_conflict": 409,
    "orphaned_payment_reference": 500,
}


def http_error(code: str, reason: Optional[str]) -> HTTPException:
    return HTTPException(
        status_code=STATUS_BY_CODE.get(code, 400),
        detail={"error": code, "reason": reason},
    )


def from_domain(exc: DomainException) -> HTTPException:
    return http_error(exc.code, str(exc))

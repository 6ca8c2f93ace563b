"""Dependency injection for FastAPI endpoints"""

from typing import Optional

from fastapi import Header, HTTPException, Request

from copra_ledger.config import settings
from copra_ledger.infrastructure.clients.reconciliation import ReconciliationClient


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_reconciliation_client() -> ReconciliationClient:
    """Provide reconciliation webhook client instance"""
    return ReconciliationClient()


def get_actor(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    """Acting user for audit columns"""
    return x_user_id


def require_role(x_user_role: Optional[str] = Header(None)) -> str:
    """Gate mutating endpoints on the caller's role"""
    if not x_user_role or x_user_role not in settings.allowed_roles_list:
        raise HTTPException(
            status_code=403,
            detail={"error": "forbidden", "reason": "Role is not allowed to modify the ledger"},
        )
    return x_user_role

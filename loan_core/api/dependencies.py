"""Dependency injection for FastAPI endpoints"""

from datetime import date
from fastapi import Request
from loan_core.infrastructure.clients.audit import AuditClient
from loan_core.utils.date_utils import today_local


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_audit_client() -> AuditClient:
    """Provide audit webhook client instance"""
    return AuditClient()


def get_today() -> date:
    """Business calendar day used for defaults and redirection status"""
    return today_local()

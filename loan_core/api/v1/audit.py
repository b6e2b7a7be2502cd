"""GET /v1/audit-log - recent audit trail"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from loan_core.api.v1.schemas import AuditEntry, AuditLogResponse
from loan_core.infrastructure.database.repositories import AuditLogRepository
from loan_core.infrastructure.database.session import get_db

router = APIRouter()


@router.get("/audit-log", response_model=AuditLogResponse)
def get_audit_log(
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """Most recent audit entries first"""
    entries = [
        AuditEntry(
            id=e.id,
            level=e.level,
            action=e.action,
            entity=e.entity,
            message=e.message,
            details=e.details,
            actor=e.actor,
            created_at=e.created_at.isoformat(),
        )
        for e in AuditLogRepository(db).recent(limit)
    ]
    return AuditLogResponse(entries=entries)

# dinecircle/domains/admin/routes.py
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from supabase import AsyncClient

from dinecircle.core.database import get_db
from dinecircle.core.settings import settings
from dinecircle.shared.audit import (
    AuditAction,
    AuditLogFilters,
    AuditLogResponse,
    AuditService,
    AuditStats,
    AuditStatsRequest,
    AuditTargetType,
)
from dinecircle.shared.permissions import Capability, require_capability

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get(
    "/audit-log",
    response_model=AuditLogResponse,
    operation_id="getAuditLog",
)
async def get_audit_log(
    action: Optional[AuditAction] = Query(None, description="Filter by action"),
    actor_id: Optional[str] = Query(None, description="Filter by acting user"),
    group_id: Optional[str] = Query(None, description="Filter by group"),
    target_type: Optional[AuditTargetType] = Query(
        None, description="Filter by target type"
    ),
    from_date: Optional[datetime] = Query(
        None, description="Only entries created at or after this time"
    ),
    to_date: Optional[datetime] = Query(
        None, description="Only entries created at or before this time"
    ),
    limit: int = Query(
        settings.AUDIT_LOG_DEFAULT_LIMIT,
        ge=1,
        le=settings.AUDIT_LOG_MAX_LIMIT,
        description="Entries per page",
    ),
    offset: int = Query(0, ge=0, description="Entries to skip"),
    user_id: str = Depends(require_capability(Capability.VIEW_AUDIT_LOG)),
    db: AsyncClient = Depends(get_db),
) -> AuditLogResponse:
    """
    Retrieve audit log entries, newest first.

    Requires the view_audit_log capability (global administrators).
    """
    filters = AuditLogFilters(
        action=action,
        actor_id=actor_id,
        group_id=group_id,
        target_type=target_type,
        from_date=from_date,
        to_date=to_date,
        limit=limit,
        offset=offset,
    )
    service = AuditService(db)
    return await service.get_audit_log(filters)


@router.post(
    "/audit-log/stats",
    response_model=AuditStats,
    operation_id="getAuditStats",
)
async def get_audit_stats(
    params: AuditStatsRequest,
    user_id: str = Depends(require_capability(Capability.VIEW_AUDIT_LOG)),
    db: AsyncClient = Depends(get_db),
) -> AuditStats:
    """Audit statistics for the admin dashboard."""
    service = AuditService(db)
    return await service.get_audit_stats(params)

"""
Append-only audit trail for sensitive operations.

Routes follow check -> mutate -> log: the audit write is issued only after
the primary write succeeded, and its failure never fails the request.
"""

from .models import (
    AuditAction,
    AuditLogEntry,
    AuditLogFilters,
    AuditLogResponse,
    AuditStats,
    AuditStatsRequest,
    AuditTargetType,
)
from .services import AuditContext, AuditService, create_audit_context

__all__ = [
    "AuditAction",
    "AuditContext",
    "AuditLogEntry",
    "AuditLogFilters",
    "AuditLogResponse",
    "AuditService",
    "AuditStats",
    "AuditStatsRequest",
    "AuditTargetType",
    "create_audit_context",
]

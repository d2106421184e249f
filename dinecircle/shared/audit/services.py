"""
Audit logging service.

Every sensitive state change is recorded as an append-only entry in the
``audit_log`` table through the ``log_audit_event`` database function.
Audit logging is best-effort: no method here raises, so a failing audit
store never fails the operation being documented.
"""

import asyncio
import logging
from typing import Any, Optional

from fastapi import Request
from supabase import AsyncClient

from dinecircle.core.database import execute
from dinecircle.shared.permissions.dependencies import get_request_info

from .models import (
    AuditAction,
    AuditLogEntry,
    AuditLogFilters,
    AuditLogResponse,
    AuditStats,
    AuditStatsRequest,
    AuditTargetType,
    AuditUserInfo,
)

logger = logging.getLogger(__name__)

AUDIT_LOG_TABLE = "audit_log"

AUDIT_LOG_COLUMNS = (
    "id, actor_id, action, target_type, target_id, group_id, metadata, reason, "
    "ip_address, user_agent, created_at, "
    "actor:users!actor_id(id, name, full_name, email), "
    "group:groups!group_id(id, name)"
)

RECENT_ACTIVITY_LIMIT = 10


class AuditContext:
    """Request-level details included in every entry an actor writes."""

    def __init__(
        self,
        actor_id: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        self.actor_id = actor_id
        self.ip_address = ip_address
        self.user_agent = user_agent


def create_audit_context(request: Request, actor_id: str) -> AuditContext:
    """Build an audit context from the incoming request headers."""
    info = get_request_info(request)
    return AuditContext(
        actor_id=actor_id,
        ip_address=info["ip"],
        user_agent=info["user_agent"],
    )


class AuditService:
    """Service for writing and reading the audit trail."""

    def __init__(self, db: AsyncClient):
        self.db = db

    async def log_event(
        self,
        actor_id: str,
        action: AuditAction,
        target_type: AuditTargetType,
        target_id: str,
        group_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
        reason: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[str]:
        """
        Record one audit entry.

        Args:
            actor_id: User who performed the action
            action: What happened
            target_type: Kind of object acted upon
            target_id: ID of the object acted upon
            group_id: Group the action happened in, if any
            metadata: Action-specific details
            reason: Free-text justification supplied by the actor
            ip_address: Client IP address
            user_agent: Client user agent

        Returns:
            The new entry's id, or None if the write failed
        """
        try:
            response = await execute(
                self.db.rpc(
                    "log_audit_event",
                    {
                        "actor_id_param": actor_id,
                        "action_param": AuditAction(action).value,
                        "target_type_param": AuditTargetType(target_type).value,
                        "target_id_param": target_id,
                        "group_id_param": group_id,
                        "metadata_param": metadata or {},
                        "reason_param": reason,
                        "ip_address_param": ip_address,
                        "user_agent_param": user_agent,
                    },
                )
            )
        except Exception:
            logger.error(
                f"Audit logging failed for {action} on {target_type} {target_id}",
                exc_info=True,
            )
            return None

        audit_id = str(response.data) if response.data else None
        logger.info(
            f"Audit event {action} by {actor_id} on {target_type} {target_id} "
            f"recorded as {audit_id}"
        )
        return audit_id

    async def log_group_created(
        self,
        context: AuditContext,
        group_id: str,
        group_name: str,
        group_description: Optional[str] = None,
    ) -> Optional[str]:
        return await self.log_event(
            actor_id=context.actor_id,
            action=AuditAction.GROUP_CREATED,
            target_type=AuditTargetType.GROUP,
            target_id=group_id,
            group_id=group_id,
            metadata={
                "group_name": group_name,
                "group_description": group_description,
            },
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )

    async def log_group_updated(
        self,
        context: AuditContext,
        group_id: str,
        changes: dict[str, Any],
    ) -> Optional[str]:
        """``changes`` maps each field to ``{"from": old, "to": new}``."""
        return await self.log_event(
            actor_id=context.actor_id,
            action=AuditAction.GROUP_UPDATED,
            target_type=AuditTargetType.GROUP,
            target_id=group_id,
            group_id=group_id,
            metadata={"changes": changes},
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )

    async def log_role_changed(
        self,
        context: AuditContext,
        target_user_id: str,
        group_id: str,
        old_role: str,
        new_role: str,
        reason: Optional[str] = None,
    ) -> Optional[str]:
        return await self.log_event(
            actor_id=context.actor_id,
            action=AuditAction.ROLE_CHANGED,
            target_type=AuditTargetType.USER,
            target_id=target_user_id,
            group_id=group_id,
            metadata={"old_role": old_role, "new_role": new_role},
            reason=reason,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )

    async def log_member_removed(
        self,
        context: AuditContext,
        target_user_id: str,
        group_id: str,
        removed_role: str,
        reason: Optional[str] = None,
    ) -> Optional[str]:
        return await self.log_event(
            actor_id=context.actor_id,
            action=AuditAction.MEMBER_REMOVED,
            target_type=AuditTargetType.USER,
            target_id=target_user_id,
            group_id=group_id,
            metadata={"removed_role": removed_role},
            reason=reason,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )

    async def log_invite_code_generated(
        self,
        context: AuditContext,
        invite_code_id: str,
        code: str,
        group_id: Optional[str] = None,
    ) -> Optional[str]:
        return await self.log_event(
            actor_id=context.actor_id,
            action=AuditAction.INVITE_CODE_GENERATED,
            target_type=AuditTargetType.INVITE_CODE,
            target_id=invite_code_id,
            group_id=group_id,
            metadata={"code": code},
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )

    async def log_ownership_transferred(
        self,
        context: AuditContext,
        new_owner_id: str,
        group_id: str,
        reason: Optional[str] = None,
    ) -> Optional[str]:
        return await self.log_event(
            actor_id=context.actor_id,
            action=AuditAction.OWNERSHIP_TRANSFERRED,
            target_type=AuditTargetType.USER,
            target_id=new_owner_id,
            group_id=group_id,
            metadata={
                "previous_owner": context.actor_id,
                "new_owner": new_owner_id,
            },
            reason=reason,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )

    async def get_audit_log(
        self, filters: Optional[AuditLogFilters] = None
    ) -> AuditLogResponse:
        """
        Get audit entries, newest first, with filtering and pagination.

        The total count comes from a separate exact-count query over the
        same filters, so it does not depend on the page window.
        """
        filters = filters or AuditLogFilters()
        try:
            total = await self._count(filters)
            return await self._page(filters, total)
        except Exception:
            logger.error("Error fetching audit log", exc_info=True)
            return AuditLogResponse()

    async def get_audit_stats(
        self, params: Optional[AuditStatsRequest] = None
    ) -> AuditStats:
        """
        Aggregate statistics for the admin dashboard.

        ``events_by_action`` comes from one exact-count query per action, so
        the tally covers the whole window regardless of the store's row cap.
        Actions with no entries are left out.
        """
        params = params or AuditStatsRequest()
        filters = AuditLogFilters(
            group_id=params.group_id,
            from_date=params.from_date,
            to_date=params.to_date,
            limit=RECENT_ACTIVITY_LIMIT,
            offset=0,
        )
        try:
            total = await self._count(filters)
            action_counts = await asyncio.gather(
                *[
                    self._count(filters.model_copy(update={"action": action}))
                    for action in AuditAction
                ]
            )
            recent = await self._page(filters, total)
        except Exception:
            logger.error("Error getting audit stats", exc_info=True)
            return AuditStats()

        return AuditStats(
            total_events=total,
            events_by_action={
                action.value: count
                for action, count in zip(AuditAction, action_counts)
                if count
            },
            recent_activity=recent.entries,
        )

    async def _count(self, filters: AuditLogFilters) -> int:
        response = await execute(
            self._apply_filters(
                self.db.table(AUDIT_LOG_TABLE).select("id", count="exact", head=True),
                filters,
            )
        )
        return response.count or 0

    async def _page(self, filters: AuditLogFilters, total: int) -> AuditLogResponse:
        page_query = (
            self._apply_filters(
                self.db.table(AUDIT_LOG_TABLE).select(AUDIT_LOG_COLUMNS), filters
            )
            .order("created_at", desc=True)
            .range(filters.offset, filters.offset + filters.limit - 1)
        )
        page_response = await execute(page_query)
        entries = [self._to_entry(row) for row in page_response.data or []]

        return AuditLogResponse(
            entries=await self._enhance_entries(entries),
            count=total,
            has_more=(filters.offset + filters.limit) < total,
        )

    def _apply_filters(self, query: Any, filters: AuditLogFilters) -> Any:
        if filters.action:
            query = query.eq("action", AuditAction(filters.action).value)
        if filters.actor_id:
            query = query.eq("actor_id", filters.actor_id)
        if filters.group_id:
            query = query.eq("group_id", filters.group_id)
        if filters.target_type:
            query = query.eq("target_type", AuditTargetType(filters.target_type).value)
        if filters.from_date:
            query = query.gte("created_at", filters.from_date.isoformat())
        if filters.to_date:
            query = query.lte("created_at", filters.to_date.isoformat())
        return query

    def _to_entry(self, row: dict[str, Any]) -> AuditLogEntry:
        return AuditLogEntry.model_validate({**row, "metadata": row.get("metadata") or {}})

    async def _enhance_entries(
        self, entries: list[AuditLogEntry]
    ) -> list[AuditLogEntry]:
        """
        Attach target user display info with one batched lookup.

        Entries stay unenhanced if the lookup fails.
        """
        target_ids = list(
            dict.fromkeys(
                entry.target_id
                for entry in entries
                if entry.target_type == AuditTargetType.USER.value
            )
        )
        if not target_ids:
            return entries

        try:
            response = await execute(
                self.db.table("users")
                .select("id, name, full_name, email")
                .in_("id", target_ids)
            )
        except Exception:
            logger.warning("Could not load audit target users", exc_info=True)
            return entries

        users = {
            row["id"]: AuditUserInfo.model_validate(row) for row in response.data or []
        }
        return [
            (
                entry.model_copy(update={"target_user": users.get(entry.target_id)})
                if entry.target_type == AuditTargetType.USER.value
                else entry
            )
            for entry in entries
        ]

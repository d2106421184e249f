"""
Tests for AuditService: best-effort writes, named helpers and the
paginated, enhanced read side.
"""

import asyncio
from datetime import datetime, timezone

import pytest
from starlette.requests import Request

from dinecircle.shared.audit.models import (
    AuditAction,
    AuditLogFilters,
    AuditStatsRequest,
    AuditTargetType,
)
from dinecircle.shared.audit.services import (
    AUDIT_LOG_COLUMNS,
    AuditContext,
    AuditService,
    create_audit_context,
)
from tests.fixtures.audit_fixtures import make_audit_row
from tests.helpers.supabase_testing import FakeQuery, FakeSupabase


def queue_log(fake_db: FakeSupabase, audit_id="audit-1", error=None) -> None:
    fake_db.queue_rpc("log_audit_event", FakeQuery(data=audit_id, error=error))


class TestLogEvent:
    """Test the single write path."""

    @pytest.mark.asyncio
    async def test_records_entry_and_returns_id(self, fake_db: FakeSupabase):
        queue_log(fake_db, "audit-42")
        service = AuditService(fake_db)

        audit_id = await service.log_event(
            actor_id="admin-1",
            action=AuditAction.MEMBER_REMOVED,
            target_type=AuditTargetType.USER,
            target_id="user-2",
            group_id="group-1",
            reason="spam",
            ip_address="10.0.0.1",
            user_agent="pytest",
        )

        assert audit_id == "audit-42"
        name, params = fake_db.rpc_calls[0]
        assert name == "log_audit_event"
        assert params == {
            "actor_id_param": "admin-1",
            "action_param": "member_removed",
            "target_type_param": "user",
            "target_id_param": "user-2",
            "group_id_param": "group-1",
            "metadata_param": {},
            "reason_param": "spam",
            "ip_address_param": "10.0.0.1",
            "user_agent_param": "pytest",
        }

    @pytest.mark.asyncio
    async def test_store_failure_returns_none(self, fake_db: FakeSupabase):
        """Test that a failing audit store never fails the caller."""
        queue_log(fake_db, error=RuntimeError("insert failed"))
        service = AuditService(fake_db)
        after_audit = []

        audit_id = await service.log_event(
            actor_id="admin-1",
            action=AuditAction.GROUP_UPDATED,
            target_type=AuditTargetType.GROUP,
            target_id="group-1",
        )
        after_audit.append("continued")

        assert audit_id is None
        assert after_audit == ["continued"]

    @pytest.mark.asyncio
    async def test_timeout_returns_none(self, fake_db: FakeSupabase):
        queue_log(fake_db, error=asyncio.TimeoutError())
        service = AuditService(fake_db)

        audit_id = await service.log_event(
            actor_id="admin-1",
            action=AuditAction.GROUP_CREATED,
            target_type=AuditTargetType.GROUP,
            target_id="group-1",
        )

        assert audit_id is None

    @pytest.mark.asyncio
    async def test_unknown_action_returns_none(self, fake_db: FakeSupabase):
        service = AuditService(fake_db)

        audit_id = await service.log_event(
            actor_id="admin-1",
            action="group_exploded",
            target_type=AuditTargetType.GROUP,
            target_id="group-1",
        )

        assert audit_id is None
        assert fake_db.rpc_calls == []


class TestNamedHelpers:
    """Each helper fixes action, target type and metadata shape."""

    @pytest.mark.asyncio
    async def test_log_group_created(
        self, fake_db: FakeSupabase, audit_context: AuditContext
    ):
        queue_log(fake_db)
        service = AuditService(fake_db)

        await service.log_group_created(
            audit_context, "group-1", "Supper Club", "Monthly dinners"
        )

        params = fake_db.rpc_calls[0][1]
        assert params["action_param"] == "group_created"
        assert params["target_type_param"] == "group"
        assert params["target_id_param"] == "group-1"
        assert params["group_id_param"] == "group-1"
        assert params["metadata_param"] == {
            "group_name": "Supper Club",
            "group_description": "Monthly dinners",
        }
        assert params["actor_id_param"] == audit_context.actor_id
        assert params["ip_address_param"] == "203.0.113.7"

    @pytest.mark.asyncio
    async def test_log_group_updated(
        self, fake_db: FakeSupabase, audit_context: AuditContext
    ):
        queue_log(fake_db)
        service = AuditService(fake_db)
        changes = {"name": {"from": "Old", "to": "New"}}

        await service.log_group_updated(audit_context, "group-1", changes)

        params = fake_db.rpc_calls[0][1]
        assert params["action_param"] == "group_updated"
        assert params["metadata_param"] == {"changes": changes}

    @pytest.mark.asyncio
    async def test_log_role_changed(
        self, fake_db: FakeSupabase, audit_context: AuditContext
    ):
        queue_log(fake_db)
        service = AuditService(fake_db)

        await service.log_role_changed(
            audit_context, "user-2", "group-1", "member", "admin", reason="helpful"
        )

        params = fake_db.rpc_calls[0][1]
        assert params["action_param"] == "role_changed"
        assert params["target_type_param"] == "user"
        assert params["target_id_param"] == "user-2"
        assert params["metadata_param"] == {"old_role": "member", "new_role": "admin"}
        assert params["reason_param"] == "helpful"

    @pytest.mark.asyncio
    async def test_log_member_removed(
        self, fake_db: FakeSupabase, audit_context: AuditContext
    ):
        queue_log(fake_db)
        service = AuditService(fake_db)

        await service.log_member_removed(audit_context, "user-2", "group-1", "admin")

        params = fake_db.rpc_calls[0][1]
        assert params["action_param"] == "member_removed"
        assert params["metadata_param"] == {"removed_role": "admin"}

    @pytest.mark.asyncio
    async def test_log_invite_code_generated(
        self, fake_db: FakeSupabase, audit_context: AuditContext
    ):
        queue_log(fake_db)
        service = AuditService(fake_db)

        await service.log_invite_code_generated(
            audit_context, "invite-1", "123456", "group-1"
        )

        params = fake_db.rpc_calls[0][1]
        assert params["action_param"] == "invite_code_generated"
        assert params["target_type_param"] == "invite_code"
        assert params["target_id_param"] == "invite-1"
        assert params["metadata_param"] == {"code": "123456"}

    @pytest.mark.asyncio
    async def test_log_ownership_transferred(
        self, fake_db: FakeSupabase, audit_context: AuditContext
    ):
        queue_log(fake_db)
        service = AuditService(fake_db)

        await service.log_ownership_transferred(audit_context, "user-2", "group-1")

        params = fake_db.rpc_calls[0][1]
        assert params["action_param"] == "ownership_transferred"
        assert params["target_id_param"] == "user-2"
        assert params["metadata_param"] == {
            "previous_owner": audit_context.actor_id,
            "new_owner": "user-2",
        }


class TestGetAuditLog:
    """Test reading the audit trail."""

    @pytest.mark.asyncio
    async def test_filtered_page_reports_total_count(self, fake_db: FakeSupabase):
        """Test a two-entry page out of five matching role changes."""
        count_query = FakeQuery(count=5)
        page_query = FakeQuery(
            data=[
                make_audit_row("e5", target_id="user-a"),
                make_audit_row("e4", target_id="user-b"),
            ]
        )
        fake_db.queue_table("audit_log", count_query, page_query)
        fake_db.queue_table("users", FakeQuery(data=[]))
        service = AuditService(fake_db)

        result = await service.get_audit_log(
            AuditLogFilters(
                action=AuditAction.ROLE_CHANGED, group_id="G", limit=2, offset=0
            )
        )

        assert len(result.entries) == 2
        assert result.count == 5
        assert result.has_more is True
        for query in (count_query, page_query):
            assert (("action", "role_changed"), {}) in query.called("eq")
            assert (("group_id", "G"), {}) in query.called("eq")
        assert count_query.called("select") == [
            (("id",), {"count": "exact", "head": True})
        ]
        assert page_query.called("select") == [((AUDIT_LOG_COLUMNS,), {})]
        assert page_query.called("order") == [(("created_at",), {"desc": True})]
        assert page_query.called("range") == [((0, 1), {})]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "limit,offset,expected_has_more",
        [(2, 0, True), (2, 3, False), (5, 0, False), (1, 4, False), (3, 1, True)],
    )
    async def test_has_more_and_count_follow_window(
        self, fake_db: FakeSupabase, limit, offset, expected_has_more
    ):
        """Test that the page window never changes the reported count."""
        fake_db.queue_table("audit_log", FakeQuery(count=5), FakeQuery(data=[]))
        service = AuditService(fake_db)

        result = await service.get_audit_log(
            AuditLogFilters(limit=limit, offset=offset)
        )

        assert result.count == 5
        assert result.has_more is expected_has_more
        assert result.has_more == ((offset + limit) < result.count)

    @pytest.mark.asyncio
    async def test_date_range_filters(self, fake_db: FakeSupabase):
        count_query = FakeQuery(count=0)
        page_query = FakeQuery(data=[])
        fake_db.queue_table("audit_log", count_query, page_query)
        service = AuditService(fake_db)
        start = datetime(2026, 1, 1, tzinfo=timezone.utc)
        end = datetime(2026, 2, 1, tzinfo=timezone.utc)

        await service.get_audit_log(AuditLogFilters(from_date=start, to_date=end))

        assert page_query.called("gte") == [(("created_at", start.isoformat()), {})]
        assert page_query.called("lte") == [(("created_at", end.isoformat()), {})]

    @pytest.mark.asyncio
    async def test_target_users_loaded_in_one_query(
        self, fake_db: FakeSupabase, audit_rows: list
    ):
        """Test the batched target lookup for user-targeted entries."""
        users_query = FakeQuery(
            data=[
                {
                    "id": "target-user-1",
                    "name": "Tess",
                    "full_name": "Tess Target",
                    "email": "tess@example.com",
                }
            ]
        )
        fake_db.queue_table(
            "audit_log", FakeQuery(count=3), FakeQuery(data=audit_rows)
        )
        fake_db.queue_table("users", users_query)
        service = AuditService(fake_db)

        result = await service.get_audit_log()

        assert fake_db.table_calls.count("users") == 1
        assert users_query.called("in_") == [(("id", ["target-user-1"]), {})]
        by_id = {entry.id: entry for entry in result.entries}
        assert by_id["entry-3"].target_user.full_name == "Tess Target"
        assert by_id["entry-1"].target_user.full_name == "Tess Target"
        assert by_id["entry-2"].target_user is None
        assert by_id["entry-2"].metadata == {"code": "123456"}
        assert by_id["entry-3"].metadata == {}
        assert by_id["entry-3"].actor.name == "Admin"
        assert by_id["entry-3"].group.name == "Supper Club"

    @pytest.mark.asyncio
    async def test_enhancement_failure_keeps_entries(
        self, fake_db: FakeSupabase, audit_rows: list
    ):
        fake_db.queue_table(
            "audit_log", FakeQuery(count=3), FakeQuery(data=audit_rows)
        )
        fake_db.queue_table("users", FakeQuery(error=RuntimeError("users down")))
        service = AuditService(fake_db)

        result = await service.get_audit_log()

        assert [entry.id for entry in result.entries] == [
            "entry-3",
            "entry-2",
            "entry-1",
        ]
        assert all(entry.target_user is None for entry in result.entries)

    @pytest.mark.asyncio
    async def test_store_failure_returns_empty_response(self, fake_db: FakeSupabase):
        fake_db.queue_table("audit_log", FakeQuery(error=RuntimeError("down")))
        service = AuditService(fake_db)

        result = await service.get_audit_log()

        assert result.entries == []
        assert result.count == 0
        assert result.has_more is False


class TestGetAuditStats:
    @staticmethod
    def queue_stats(fake_db, total, per_action, recent_page):
        """Queue the window count, one count per action, then the recent page."""
        action_queries = {
            action: FakeQuery(count=per_action.get(action.value, 0))
            for action in AuditAction
        }
        fake_db.queue_table(
            "audit_log",
            FakeQuery(count=total),
            *action_queries.values(),
            recent_page,
        )
        return action_queries

    @pytest.mark.asyncio
    async def test_tallies_actions_over_window(self, fake_db: FakeSupabase):
        recent_page = FakeQuery(
            data=[make_audit_row("e1", target_type="group", target_id="group-1")]
        )
        action_queries = self.queue_stats(
            fake_db, 3, {"role_changed": 2, "group_created": 1}, recent_page
        )
        service = AuditService(fake_db)

        stats = await service.get_audit_stats(AuditStatsRequest(group_id="group-1"))

        assert stats.total_events == 3
        assert stats.events_by_action == {"role_changed": 2, "group_created": 1}
        assert [entry.id for entry in stats.recent_activity] == ["e1"]
        role_query = action_queries[AuditAction.ROLE_CHANGED]
        assert (("group_id", "group-1"), {}) in role_query.called("eq")
        assert (("action", "role_changed"), {}) in role_query.called("eq")
        assert recent_page.called("range") == [((0, 9), {})]

    @pytest.mark.asyncio
    async def test_tally_is_not_limited_by_row_cap(self, fake_db: FakeSupabase):
        recent_page = FakeQuery(data=[])
        action_queries = self.queue_stats(
            fake_db, 1500, {"role_changed": 1200, "member_removed": 300}, recent_page
        )
        service = AuditService(fake_db)

        stats = await service.get_audit_stats()

        assert stats.total_events == 1500
        assert stats.events_by_action == {"role_changed": 1200, "member_removed": 300}
        assert sum(stats.events_by_action.values()) == stats.total_events
        for query in action_queries.values():
            assert query.called("select") == [(("id",), {"count": "exact", "head": True})]

    @pytest.mark.asyncio
    async def test_window_is_counted_once(self, fake_db: FakeSupabase):
        self.queue_stats(fake_db, 2, {"group_updated": 2}, FakeQuery(data=[]))
        service = AuditService(fake_db)

        await service.get_audit_stats()

        assert fake_db.table_calls == ["audit_log"] * (len(AuditAction) + 2)

    @pytest.mark.asyncio
    async def test_store_failure_returns_empty_stats(self, fake_db: FakeSupabase):
        fake_db.queue_table("audit_log", FakeQuery(error=RuntimeError("down")))
        service = AuditService(fake_db)

        stats = await service.get_audit_stats()

        assert stats.total_events == 0
        assert stats.events_by_action == {}
        assert stats.recent_activity == []


class TestCreateAuditContext:
    def test_reads_client_headers(self):
        request = Request(
            {
                "type": "http",
                "headers": [
                    (b"x-real-ip", b"192.0.2.1"),
                    (b"user-agent", b"DineCircle/1.0"),
                ],
            }
        )

        context = create_audit_context(request, "user-1")

        assert context.actor_id == "user-1"
        assert context.ip_address == "192.0.2.1"
        assert context.user_agent == "DineCircle/1.0"

    def test_shares_fallbacks_with_request_info(self):
        request = Request({"type": "http", "headers": []})

        context = create_audit_context(request, "user-1")

        assert context.ip_address == "unknown"
        assert context.user_agent == "unknown"

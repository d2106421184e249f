"""
Global pytest configuration and fixtures for the DineCircle API test suite.
"""

import os

# Set test environment variables before settings are loaded
os.environ["JWT_SECRET"] = "test-secret-key-for-testing-only-32-chars"

from typing import Any, Dict  # noqa: E402
from unittest.mock import AsyncMock, Mock  # noqa: E402

import jwt  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from dinecircle.main import app  # noqa: E402
from dinecircle.shared.audit import AuditContext, AuditService  # noqa: E402
from dinecircle.shared.permissions import PermissionService  # noqa: E402
from tests.helpers.supabase_testing import FakeSupabase  # noqa: E402

# Import fixtures from fixture modules
from tests.fixtures.audit_fixtures import *  # noqa: F403, F401, E402
from tests.fixtures.review_fixtures import *  # noqa: F403, F401, E402


@pytest.fixture
def fake_db() -> FakeSupabase:
    """Supabase client double with per-table and per-RPC queued answers."""
    return FakeSupabase()


@pytest.fixture
def test_jwt_secret() -> str:
    """JWT secret for generating test tokens."""
    return "test-secret-key-for-testing-only-32-chars"


@pytest.fixture
def valid_jwt_payload() -> Dict[str, Any]:
    """Valid JWT payload for testing."""
    return {
        "sub": "test-user-id-123",
        "email": "test@example.com",
        "aud": "authenticated",
        "iss": "supabase",
        "role": "authenticated",
    }


@pytest.fixture
def valid_jwt_token(test_jwt_secret: str, valid_jwt_payload: Dict[str, Any]) -> str:
    """Generate a valid JWT token for testing."""
    return jwt.encode(valid_jwt_payload, test_jwt_secret, algorithm="HS256")


@pytest.fixture
def auth_headers(valid_jwt_token: str) -> Dict[str, str]:
    """Generate authentication headers with valid JWT token."""
    return {"Authorization": f"Bearer {valid_jwt_token}"}


@pytest.fixture
def client():
    """
    FastAPI test client.

    The lifespan is not entered, so no Supabase connection is attempted;
    tests override ``get_db`` and friends as needed.
    """
    yield TestClient(app)
    app.dependency_overrides.clear()


# Test data fixtures for consistent test scenarios
@pytest.fixture
def test_user_id() -> str:
    """Standard test user ID (matches the JWT subject)."""
    return "test-user-id-123"


@pytest.fixture
def test_group_id() -> str:
    """Standard test group ID."""
    return "42f929b1-8fdb-45b1-a7cf-34fae2314561"


@pytest.fixture
def other_user_id() -> str:
    return "other-user-id-456"


@pytest.fixture
def audit_context(test_user_id: str) -> AuditContext:
    return AuditContext(
        actor_id=test_user_id, ip_address="203.0.113.7", user_agent="pytest"
    )


@pytest.fixture
def mock_permission_service() -> Mock:
    """PermissionService double that allows everything unless told otherwise."""
    service = Mock(spec=PermissionService)
    service.can = AsyncMock(return_value=True)
    service.ensure_can = AsyncMock(return_value=None)
    service.get_user_permissions = AsyncMock()
    service.check_permission = AsyncMock()
    service.check_capabilities = AsyncMock()
    return service


@pytest.fixture
def mock_audit_service() -> Mock:
    """AuditService double whose helpers answer with a fixed audit id."""
    service = Mock(spec=AuditService)
    for name in (
        "log_event",
        "log_group_created",
        "log_group_updated",
        "log_role_changed",
        "log_member_removed",
        "log_invite_code_generated",
        "log_ownership_transferred",
    ):
        setattr(service, name, AsyncMock(return_value="audit-id-1"))
    service.get_audit_log = AsyncMock()
    service.get_audit_stats = AsyncMock()
    return service

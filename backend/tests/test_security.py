"""Authentication tests: tokens, login, and credential failures."""
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import AsyncClient, ASGITransport
from jose import jwt

from expenseflow.core.config import settings
from expenseflow.core.security import create_access_token, decode_token, hash_password
from expenseflow.db.session import get_session
from expenseflow.main import app


# ─── Fixtures ─────────────────────────────────────────────────────────────────

class FakeUser:
    """Minimal user stub returned by the mocked session."""

    def __init__(self, role: str = "STAFF", password: str | None = None, is_active: bool = True):
        self.id = uuid.UUID("f96955d0-752f-4e0c-b1dc-d26d8dd1460e")
        self.email = "staff@example.com"
        self.name = "Staff User"
        self.role = role
        self.phone = None
        self.bank_name = None
        self.bank_account_no = None
        self.bank_account_name = None
        self.is_active = is_active
        self.deleted_at = None
        self.password_hash = hash_password(password) if password else ""


def make_mock_session(user=None):
    mock_result = MagicMock()
    mock_result.scalar_one_or_none.return_value = user

    mock_session = AsyncMock()
    mock_session.add = MagicMock()
    mock_session.execute = AsyncMock(return_value=mock_result)
    return mock_session


def make_session_override(mock_session):
    async def _override():
        yield mock_session
    return _override


async def _get(path: str, session, token: str | None):
    app.dependency_overrides[get_session] = make_session_override(session)
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            return await client.get(path, headers=headers)
    finally:
        app.dependency_overrides.clear()


# ─── Token helpers ────────────────────────────────────────────────────────────

def test_access_token_round_trip():
    token = create_access_token(subject="abc", role="FINANCE")
    payload = decode_token(token)
    assert payload["sub"] == "abc"
    assert payload["role"] == "FINANCE"
    assert payload["type"] == "access"


# ─── /me ──────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_me_returns_camel_case_profile_without_password():
    user = FakeUser(role="STAFF")
    token = create_access_token(subject=str(user.id), role=user.role)

    response = await _get("/api/auth/me", make_mock_session(user), token)

    assert response.status_code == 200
    body = response.json()
    assert body["role"] == "STAFF"
    assert "bankAccountNo" in body
    assert "password_hash" not in body
    assert "passwordHash" not in body


@pytest.mark.asyncio
async def test_missing_token_is_401_with_error_body():
    response = await _get("/api/auth/me", make_mock_session(), None)
    assert response.status_code == 401
    assert "error" in response.json()


@pytest.mark.asyncio
async def test_expired_token_is_rejected():
    expired = jwt.encode(
        {
            "sub": str(uuid.uuid4()),
            "role": "ADMIN",
            "type": "access",
            "exp": datetime.now(timezone.utc) - timedelta(minutes=1),
        },
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    response = await _get("/api/auth/me", make_mock_session(FakeUser()), expired)
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_token_with_non_uuid_subject_is_rejected():
    token = create_access_token(subject="not-a-uuid", role="ADMIN")
    response = await _get("/api/auth/me", make_mock_session(FakeUser()), token)
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_deactivated_user_is_rejected():
    user = FakeUser(is_active=False)
    token = create_access_token(subject=str(user.id), role=user.role)
    response = await _get("/api/auth/me", make_mock_session(user), token)
    assert response.status_code == 401


# ─── Login ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_login_issues_bearer_token():
    user = FakeUser(role="FINANCE", password="changeme123")
    session = make_mock_session(user)
    app.dependency_overrides[get_session] = make_session_override(session)
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.post(
                "/api/auth/login",
                data={"username": user.email, "password": "changeme123"},
            )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert decode_token(body["access_token"])["role"] == "FINANCE"
    session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_login_with_wrong_password_is_401():
    user = FakeUser(password="changeme123")
    app.dependency_overrides[get_session] = make_session_override(make_mock_session(user))
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.post(
                "/api/auth/login",
                data={"username": user.email, "password": "wrong-password"},
            )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid credentials"}

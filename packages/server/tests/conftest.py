"""
Shared fixtures: an in-memory SQLite database per test and an HTTP client
wired to it through the ``get_session`` dependency override.
"""

from __future__ import annotations

import os

os.environ.setdefault("TF_APP_ENV", "test")
os.environ.setdefault("TF_DATABASE_URL", "sqlite+aiosqlite://")

import uuid
from dataclasses import dataclass

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models  # noqa: F401  registers every table
from app.core.database import get_session
from app.main import app as fastapi_app


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    """A bare session for service-level tests."""
    async with session_factory() as s:
        yield s


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

@pytest.fixture
async def client(session_factory):
    async def _override_session():
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    fastapi_app.dependency_overrides[get_session] = _override_session
    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as ac:
        yield ac
    fastapi_app.dependency_overrides.clear()


@dataclass
class Account:
    id: uuid.UUID
    email: str
    name: str
    token: str
    refresh_token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture
def register(client):
    """Register a user through the API and return its Account.

    Cookies set by the auth endpoints are dropped so every request
    authenticates through its Bearer header only.
    """

    async def _register(name: str, email: str, password: str = "secret123") -> Account:
        resp = await client.post(
            "/auth/register",
            json={"name": name, "email": email, "password": password},
        )
        assert resp.status_code == 201, resp.text
        client.cookies.clear()
        data = resp.json()["data"]
        return Account(
            id=uuid.UUID(data["user"]["id"]),
            email=data["user"]["email"],
            name=data["user"]["name"],
            token=data["token"],
            refresh_token=data["refresh_token"],
        )

    return _register


@pytest.fixture
async def alice(register):
    return await register("Alice", "alice@example.com")


@pytest.fixture
async def bob(register):
    return await register("Bob", "bob@example.com")


@pytest.fixture
def create_workspace(client):
    async def _create(owner: Account, name: str = "Engineering", **extra) -> dict:
        resp = await client.post(
            "/api/v1/workspaces", json={"name": name, **extra}, headers=owner.headers
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _create


@pytest.fixture
async def workspace(alice, create_workspace):
    """A workspace owned by Alice."""
    return await create_workspace(alice)


@pytest.fixture
def add_member(client):
    async def _add(admin: Account, workspace_id: str, member: Account, role: str = "member"):
        resp = await client.post(
            f"/api/v1/workspaces/{workspace_id}/members",
            json={"email": member.email, "role": role},
            headers=admin.headers,
        )
        assert resp.status_code == 200, resp.text
        return resp.json()["data"]

    return _add


@pytest.fixture
def create_task(client):
    async def _create(account: Account, workspace_id: str, title: str, **extra) -> dict:
        resp = await client.post(
            f"/api/v1/workspaces/{workspace_id}/tasks",
            json={"title": title, **extra},
            headers=account.headers,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _create

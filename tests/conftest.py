"""
Shared fixtures for the workflow services test suite.
"""

import os

# Set test environment BEFORE any imports
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-testing-only-0123456789"
os.environ["REDIS_ENABLED"] = "false"
os.environ["WORKER_ENABLED"] = "false"
os.environ["LOG_FORMAT"] = "console"
os.environ["LOG_LEVEL"] = "WARNING"

from typing import Any, List, Optional

import pytest
from dependency_injector import providers
from httpx import AsyncClient, ASGITransport

from core.config import Settings
from core.container import container
from main import app


class FakeAIService:
    """Stands in for the OpenAI-backed service; records every prompt."""

    def __init__(self, reply: Optional[str] = "fake reply"):
        self.reply = reply
        self.error: Optional[Exception] = None
        self.prompts: List[str] = []
        self.models: List[Any] = []

    async def complete(self, prompt: str, model: Optional[str] = None) -> Optional[str]:
        self.prompts.append(prompt)
        self.models.append(model)
        if self.error:
            raise self.error
        return self.reply


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        redis_enabled=False,
        worker_enabled=False,
        retry_attempts=3,
        retry_backoff_delay=1.0,
    )


@pytest.fixture
def fake_ai() -> FakeAIService:
    return FakeAIService()


@pytest.fixture
async def services(settings, fake_ai):
    """Fresh container singletons backed by a temporary database and memory queue."""
    container.reset_singletons()
    container.settings.override(providers.Object(settings))
    container.ai_service.override(providers.Object(fake_ai))

    database = container.database()
    await database.startup()
    await container.broker().startup()
    await container.job_queue().startup()

    yield container

    await database.shutdown()
    container.ai_service.reset_override()
    container.settings.reset_override()
    container.reset_singletons()


@pytest.fixture
async def client(services):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def register(client: AsyncClient, email: str, password: str = "password123",
                   name: Optional[str] = None) -> dict:
    response = await client.post(
        "/api/auth/register",
        json={"email": email, "password": password, "name": name},
    )
    assert response.status_code == 200, response.text
    return response.json()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def admin(client) -> dict:
    """First registered account, which is always an admin."""
    data = await register(client, "admin@example.com", name="Admin")
    return {"user": data["user"], "headers": bearer(data["access_token"])}


@pytest.fixture
async def member(client, admin) -> dict:
    data = await register(client, "member@example.com", name="Member")
    return {"user": data["user"], "headers": bearer(data["access_token"])}

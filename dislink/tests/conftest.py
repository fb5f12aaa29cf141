"""
Pytest configuration and fixtures for Dislink tests.

Every test runs against a fresh in-memory store; no database is needed.
"""

from __future__ import annotations

import os

# Set test environment variables before importing config
os.environ["TESTING"] = "true"
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-testing-only")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("RESEND_API_KEY", "test-resend-key")
os.environ.setdefault("IDENTITY_PROVIDER_URL", "http://identity.test")

from datetime import UTC, datetime  # noqa: E402
from unittest.mock import AsyncMock, patch  # noqa: E402
from uuid import uuid4  # noqa: E402

import httpx  # noqa: E402
import pytest_asyncio  # noqa: E402

from dislink.main import app  # noqa: E402
from dislink.middleware.rate_limit import rate_limiter  # noqa: E402
from dislink.services.linking import linking_service  # noqa: E402
from dislink.services.scan_recorder import scan_recorder  # noqa: E402
from dislink.store import PROFILES, MemoryStore, set_store  # noqa: E402


@pytest_asyncio.fixture(loop_scope="session", autouse=True)
async def store():
    """Fresh in-memory store and rate limiter for every test."""
    memory = MemoryStore()
    set_store(memory)
    rate_limiter.reset()
    yield memory
    await scan_recorder.drain()
    set_store(None)


@pytest_asyncio.fixture(loop_scope="session", autouse=True)
async def notifier():
    """Stand-in for the email sender so no test talks to Resend."""
    mock = AsyncMock()
    with patch.object(linking_service, "_notify", mock):
        yield mock


async def make_profile(store: MemoryStore, name: str):
    """Insert a profile row and return its id."""
    user_id = uuid4()
    await store.put(
        PROFILES,
        {
            "id": user_id,
            "name": name,
            "job_title": "Engineer",
            "company": "Acme",
            "profile_image": None,
            "created_at": datetime.now(UTC),
        },
    )
    return user_id


@pytest_asyncio.fixture(loop_scope="session")
async def owner_id(store):
    """Profile owner who issues codes and posts needs."""
    return await make_profile(store, "Olivia Owner")


@pytest_asyncio.fixture(loop_scope="session")
async def scanner_id(store):
    """Someone who scans the owner's code or replies to needs."""
    return await make_profile(store, "Sam Scanner")


@pytest_asyncio.fixture(loop_scope="session")
async def third_user_id(store):
    """A bystander for visibility checks."""
    return await make_profile(store, "Tara Third")


@pytest_asyncio.fixture(loop_scope="session")
async def async_client():
    """Async HTTP client against the ASGI app."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

"""
Shared pytest configuration for the ainotes test suite.

This file centralizes reusable testing utilities so that:
    • every storage contract test runs against both backends
    • the remote backend is exercised against an in-memory Supabase double
    • no test reads the developer's real config file or .env values

All helpers here are deterministic so tests behave the same everywhere.
"""

import pytest
import pytest_asyncio
from typer.testing import CliRunner

from ainotes.ai_client import DeterministicAIClient
from ainotes.storage.local import LocalBackend
from ainotes.storage.remote import RemoteBackend
from tests.fixtures.fake_supabase import FakeSupabase

ENV_VARS = (
    "AINOTES_BACKEND",
    "AINOTES_DB_PATH",
    "AINOTES_TABLE",
    "AINOTES_AI_PROVIDER",
    "AINOTES_EMBEDDING_DIMENSIONS",
    "SUPABASE_URL",
    "SUPABASE_KEY",
)

SUPABASE_URL = "https://example.supabase.co"


# ============================================================================
# ENVIRONMENT ISOLATION
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point the config file into tmp_path and clear ainotes env vars."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("AINOTES_CONFIG_PATH", str(tmp_path / "config.json"))
    return tmp_path


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provides a fresh Typer CliRunner instance for CLI tests."""
    return CliRunner()


# ============================================================================
# BACKENDS
# ============================================================================


@pytest.fixture
def fake_supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest_asyncio.fixture
async def local_backend(tmp_path):
    backend = LocalBackend(tmp_path / "local" / "notes.db")
    await backend.initialize()
    yield backend
    await backend.close()


@pytest_asyncio.fixture
async def remote_backend(fake_supabase):
    backend = RemoteBackend(SUPABASE_URL, "test-key", client=fake_supabase)
    await backend.initialize()
    yield backend
    await backend.close()


@pytest_asyncio.fixture(params=["local", "remote"])
async def backend(request, tmp_path, fake_supabase):
    """Each contract test runs once per backend kind."""
    if request.param == "local":
        instance = LocalBackend(tmp_path / "contract" / "notes.db")
    else:
        instance = RemoteBackend(SUPABASE_URL, "test-key", client=fake_supabase)

    await instance.initialize()
    yield instance
    await instance.close()


@pytest.fixture
def ai_client() -> DeterministicAIClient:
    return DeterministicAIClient()

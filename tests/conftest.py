"""Shared test fixtures for Legacy API tests"""

import os
import tempfile
import uuid
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from tinydb.storages import MemoryStorage

# Set test environment before importing app
os.environ["ENVIRONMENT"] = "development"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["DATABASE_PATH"] = os.path.join(tempfile.mkdtemp(prefix="legacy-tests-"), "legacy.json")
os.environ["REALTIME_HISTORY_SIZE"] = "20"

from legacy.services.account_service import AccountService  # noqa: E402
from legacy.services.database import Database  # noqa: E402
from legacy.services.memory_service import MemoryService  # noqa: E402
from legacy.services.rbac_service import RBACService  # noqa: E402
from legacy.services.vault_service import VaultService  # noqa: E402

from tests import factories  # noqa: E402


# =============================================================================
# Service fixtures (in-memory TinyDB)
# =============================================================================

@pytest.fixture
def database():
    """Fresh in-memory database for service-level tests"""
    database = Database(storage=MemoryStorage)
    database.open()
    yield database
    database.close()


@pytest.fixture
def rbac(database) -> RBACService:
    return RBACService(database)


@pytest.fixture
def vaults(database) -> VaultService:
    return VaultService(database)


@pytest.fixture
def memories(database, vaults) -> MemoryService:
    return MemoryService(database, vaults)


@pytest.fixture
def accounts(database, rbac, vaults) -> AccountService:
    return AccountService(database, rbac, vaults)


@pytest.fixture
def owner(accounts):
    """Registered user who owns the test vault"""
    return accounts.signup("Vault Owner", "owner@example.com", "secret")


@pytest.fixture
def member(accounts):
    """Registered user without any vault"""
    return accounts.signup("Family Member", "member@example.com", "secret")


@pytest.fixture
def outsider(accounts):
    return accounts.signup("Outsider", "outsider@example.com", "secret")


@pytest.fixture
def vault(vaults, owner, member):
    """Vault owned by ``owner`` with ``member`` as a regular member"""
    vault = vaults.create_vault(owner, factories.vault_create(name="Family"))
    vaults.add_member(vault.id, owner, factories.member_add(user_id=member.id))
    return vaults.get_vault(vault.id)


@pytest.fixture
def moderated_vault(vaults, owner, member):
    """Vault requiring approval, with ``member`` as a regular member"""
    vault = vaults.create_vault(owner, factories.vault_create(name="Moderated", require_approval=True))
    vaults.add_member(vault.id, owner, factories.member_add(user_id=member.id))
    return vaults.get_vault(vault.id)


# =============================================================================
# API fixtures (ASGI mode)
# =============================================================================

@pytest.fixture
def app():
    """FastAPI application backed by an emptied database"""
    from legacy.main import app
    from legacy.services.database import db

    db.reset()
    yield app
    db.reset()


@pytest_asyncio.fixture
async def test_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client talking to the app in-process"""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def make_user(test_client):
    """Sign up a user through the API; returns ``(user, headers)``"""
    async def _make(name: str = "Test User", email: str = None):
        email = email or f"user-{uuid.uuid4().hex[:8]}@example.com"
        response = await test_client.post(
            "/auth/signup",
            json={"name": name, "email": email, "password": "secret"}
        )
        assert response.status_code == 200, response.text
        data = response.json()
        return data["user"], {"Authorization": f"Bearer {data['access_token']}"}
    return _make


@pytest.fixture
def grant_role():
    """Assign a global role directly through the RBAC service"""
    from legacy.services.rbac_service import rbac_service

    def _grant(user_id: str, role_id: str):
        rbac_service.assign_role_to_user(user_id, role_id)
    return _grant


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest markers"""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")

"""Shared fixtures for the token service, auth helpers and routes."""

from datetime import datetime, timedelta, timezone

import pytest
from config.config import TokenConfig
from core import auth_helper
from core.auth_helper import get_password_hash
from core.token_service import TokenService
from models.auth import AdminUser as AdminUserModel
from models.auth import Client as ClientModel
from schemas.auth import AdminPrincipal, ClientPrincipal

TEST_SECRET = "test-secret-for-travel-buddy-tokens-0123456789abcdefghijklmnopqrstuvwxyz"
OTHER_SECRET = "another-secret-for-travel-buddy-tokens-9876543210zyxwvutsrqponmlkjihgfedcba"
PASSWORD = "SecurePass123!"


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeSession:
    """Stands in for AsyncSession where only ``commit`` is awaited."""

    def __init__(self):
        self.commits = 0

    async def commit(self):
        self.commits += 1


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def token_config():
    return TokenConfig(secret=TEST_SECRET)


@pytest.fixture
def token_service(token_config, clock):
    return TokenService(token_config, clock=clock)


@pytest.fixture
def client():
    return ClientPrincipal(
        id=42,
        username="jdoe",
        email="jdoe@example.com",
        full_name="John Doe",
    )


@pytest.fixture
def admin():
    return AdminPrincipal(id=7, username="root_admin")


@pytest.fixture(scope="session")
def password_hash():
    return get_password_hash(PASSWORD)


@pytest.fixture
def client_account(password_hash):
    return ClientModel(
        id=42,
        username="jdoe",
        email="jdoe@example.com",
        password=password_hash,
        first_name="John",
        last_name="Doe",
        phone="+44 20 7946 0000",
        enabled=True,
        account_locked=False,
    )


@pytest.fixture
def admin_account(password_hash):
    return AdminUserModel(
        id=7,
        admin_username="root_admin",
        admin_password=password_hash,
        enabled=True,
        account_locked=False,
    )


@pytest.fixture
def accounts(monkeypatch, client_account, admin_account):
    """Replace the database lookups in ``core.auth_helper`` with in-memory ones."""

    async def get_client_by_login(db, username_or_email):
        if username_or_email in (client_account.username, client_account.email):
            return client_account
        return None

    async def get_client_by_id(db, client_id):
        return client_account if client_id == client_account.id else None

    async def get_admin_by_username(db, admin_username):
        return admin_account if admin_username == admin_account.admin_username else None

    async def get_admin_by_id(db, admin_id):
        return admin_account if admin_id == admin_account.id else None

    monkeypatch.setattr(auth_helper, "get_client_by_login", get_client_by_login)
    monkeypatch.setattr(auth_helper, "get_client_by_id", get_client_by_id)
    monkeypatch.setattr(auth_helper, "get_admin_by_username", get_admin_by_username)
    monkeypatch.setattr(auth_helper, "get_admin_by_id", get_admin_by_id)
    return client_account, admin_account

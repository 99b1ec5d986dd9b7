"""HTTP-level tests for the login, profile and token-info routes.

The database is never touched: ``get_db`` yields a fake session and the
account lookups in ``core.auth_helper`` are replaced with in-memory ones.
"""

import pytest
from config.config import TokenConfig
from core.auth_helper import INVALID_TOKEN_DETAIL, get_token_service
from core.exceptions import ExpiredTokenError
from core.token_service import TokenService
from db.session import get_db
from fastapi.testclient import TestClient
from main import app

from conftest import PASSWORD, TEST_SECRET, FakeSession, FrozenClock


class TickingClock(FrozenClock):
    """Clock that moves one second forward every time it is read."""

    def __call__(self):
        now = self.now
        self.advance(seconds=1)
        return now


@pytest.fixture
def api(accounts, token_service):
    """TestClient wired to in-memory accounts and the test token service."""

    async def override_get_db():
        yield FakeSession()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_token_service] = lambda: token_service

    # Not entered as a context manager: the lifespan would connect to the DB.
    yield TestClient(app)

    app.dependency_overrides.clear()


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def login_client(api, login="jdoe", password=PASSWORD):
    return api.post(
        "/clients/login", json={"usernameOrEmail": login, "password": password}
    )


def login_admin(api, username="root_admin", password=PASSWORD):
    return api.post(
        "/admin/login", json={"adminUsername": username, "password": password}
    )


class TestClientLogin:
    def test_success(self, api, token_service):
        response = login_client(api)

        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["expires_in_ms"] == 172_800_000
        assert body["principal"] == {
            "id": 42,
            "principal_type": "CLIENT",
            "username": "jdoe",
        }
        assert token_service.verify(body["access_token"]).id == 42

    def test_login_with_email(self, api):
        assert login_client(api, login="jdoe@example.com").status_code == 200

    @pytest.mark.parametrize(
        "login, password", [("jdoe", "wrong"), ("nobody", PASSWORD)]
    )
    def test_invalid_credentials(self, api, login, password):
        response = login_client(api, login=login, password=password)

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    def test_locked_account(self, api, client_account):
        client_account.account_locked = True

        response = login_client(api)

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    def test_missing_fields(self, api):
        assert api.post("/clients/login", json={"password": PASSWORD}).status_code == 422


class TestClientProfile:
    def test_profile(self, api):
        token = login_client(api).json()["access_token"]

        response = api.get("/clients/profile", headers=bearer(token))

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == 42
        assert body["username"] == "jdoe"
        assert body["full_name"] == "John Doe"
        assert body["phone"] == "+44 20 7946 0000"
        assert "password" not in body

    @pytest.mark.parametrize(
        "headers",
        [
            {},
            {"Authorization": "Bearer"},
            {"Authorization": "Basic amRvZTpwYXNz"},
            {"Authorization": "Bearer not.a.token"},
        ],
    )
    def test_rejected_without_valid_bearer(self, api, headers):
        response = api.get("/clients/profile", headers=headers)

        assert response.status_code == 401
        assert response.json()["detail"] == INVALID_TOKEN_DETAIL
        assert response.headers["www-authenticate"] == "Bearer"

    def test_tampered_token(self, api):
        token = login_client(api).json()["access_token"]
        header, payload, signature = token.split(".")
        tampered = f"{header}.{payload[:-1]}{'A' if payload[-1] != 'A' else 'B'}.{signature}"

        response = api.get("/clients/profile", headers=bearer(tampered))

        assert response.status_code == 401
        assert response.json()["detail"] == INVALID_TOKEN_DETAIL

    def test_expired_token(self, api, clock):
        token = login_client(api).json()["access_token"]
        clock.advance(hours=48)

        response = api.get("/clients/profile", headers=bearer(token))

        assert response.status_code == 401
        assert response.json()["detail"] == INVALID_TOKEN_DETAIL

    def test_account_disabled_after_login(self, api, client_account):
        token = login_client(api).json()["access_token"]
        client_account.enabled = False

        response = api.get("/clients/profile", headers=bearer(token))

        assert response.status_code == 401

    def test_admin_token_is_forbidden(self, api):
        token = login_admin(api).json()["access_token"]

        assert api.get("/clients/profile", headers=bearer(token)).status_code == 403


class TestAdmin:
    def test_login_and_me(self, api):
        login = login_admin(api)
        assert login.status_code == 200
        assert login.json()["principal"]["principal_type"] == "ADMIN"

        response = api.get("/admin/me", headers=bearer(login.json()["access_token"]))

        assert response.status_code == 200
        assert response.json()["admin_username"] == "root_admin"
        assert "admin_password" not in response.json()

    def test_invalid_credentials(self, api):
        response = login_admin(api, password="wrong")

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    def test_client_token_is_forbidden(self, api):
        token = login_client(api).json()["access_token"]

        assert api.get("/admin/me", headers=bearer(token)).status_code == 403


class TestTokenInfo:
    def test_client_token(self, api, token_service):
        token = login_client(api).json()["access_token"]

        response = api.get("/auth/token-info", headers=bearer(token))

        assert response.status_code == 200
        body = response.json()
        assert body["principal"]["principal_type"] == "CLIENT"
        assert body["token_id"] == token_service.token_id_of(token)
        assert body["email"] == "jdoe@example.com"
        assert body["remaining_ms"] == 172_800_000

    def test_admin_token(self, api):
        token = login_admin(api).json()["access_token"]

        response = api.get("/auth/token-info", headers=bearer(token))

        assert response.status_code == 200
        assert response.json()["principal"]["principal_type"] == "ADMIN"
        assert response.json()["email"] is None

    def test_requires_token(self, api):
        response = api.get("/auth/token-info")

        assert response.status_code == 401
        assert response.json()["detail"] == INVALID_TOKEN_DETAIL


def test_root(api):
    assert api.get("/").json() == {"message": "Travel Buddy Backend"}


class TestShortLivedLogin:
    """Login responses do not depend on the fresh token verifying."""

    @pytest.fixture
    def short_lived(self, api, clock):
        tokens = TokenService(
            TokenConfig(secret=TEST_SECRET, lifetime_ms=500), clock=TickingClock(clock())
        )
        app.dependency_overrides[get_token_service] = lambda: tokens
        return tokens

    def test_client_login(self, api, short_lived):
        response = login_client(api)

        assert response.status_code == 200
        assert response.json()["expires_in_ms"] == 500
        assert response.json()["principal"] == {
            "id": 42,
            "principal_type": "CLIENT",
            "username": "jdoe",
        }
        with pytest.raises(ExpiredTokenError):
            short_lived.verify(response.json()["access_token"])

    def test_admin_login(self, api, short_lived):
        response = login_admin(api)

        assert response.status_code == 200
        assert response.json()["principal"] == {
            "id": 7,
            "principal_type": "ADMIN",
            "username": "root_admin",
        }

from __future__ import annotations

import itertools
import os
from dataclasses import dataclass

import pytest

# Must be set before `models` is imported: the storage singleton binds its engine at import
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["APP_ENV"] = "testing"

from api import create_app  # noqa: E402
from models import storage  # noqa: E402
from models.user import User  # noqa: E402

PASSWORD = "Str0ng!Pass"


@dataclass
class ApiUser:
    id: str
    username: str
    email: str
    password: str
    access_token: str
    refresh_token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}


@pytest.fixture
def app():
    storage.drop_all()
    storage.reload()
    app = create_app("testing")
    yield app
    storage.close()


@pytest.fixture
def client(app):
    return app.test_client()


def login(client, email: str, password: str = PASSWORD) -> dict:
    r = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.get_json()
    return r.get_json()


@pytest.fixture
def make_user(client):
    """Register (and optionally promote) a user through the API, then log in."""
    counter = itertools.count(1)

    def _make(username: str | None = None, roles: list[str] | None = None, password: str = PASSWORD) -> ApiUser:
        username = username or f"user{next(counter)}"
        email = f"{username}@example.com"
        r = client.post(
            "/api/v1/auth/register",
            json={"username": username, "email": email, "password": password},
        )
        assert r.status_code == 201, r.get_json()
        user_id = r.get_json()["data"]["user_id"]

        if roles:
            user = storage.get(User, user_id)
            user.roles = list(roles)
            storage.save()
            storage.close()

        tokens = login(client, email, password)
        return ApiUser(
            id=user_id,
            username=username,
            email=email,
            password=password,
            access_token=tokens["access_token"],
            refresh_token=tokens["refresh_token"],
        )

    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin", roles=["admin", "user"])


@pytest.fixture
def category(client, admin):
    r = client.post("/api/v1/categories", json={"name": "General"}, headers=admin.headers)
    assert r.status_code == 201, r.get_json()
    return r.get_json()["data"]

import pytest
from fastapi.testclient import TestClient

from miniwiki.main import create_app
from miniwiki.settings.config import Settings

SECRET = "test-secret-with-enough-bytes-for-hs256-0123456789"
COOKIE = "auth_token"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        JWT_SECRET=SECRET,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'wiki.db'}",
        RUN_DB_CREATE_ALL=True,
        BCRYPT_ROUNDS=4,
        COOKIE_SECURE=True,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    # https so the client's cookie jar hands back the Secure cookie
    with TestClient(app, base_url="https://testserver", follow_redirects=False) as c:
        yield c


def register(client, username, password="s3cret"):
    """Register a user and return headers carrying their session cookie.

    The client's own cookie jar is emptied so that several users can be
    driven from one client by passing the returned headers explicitly.
    """
    resp = client.post("/register", data={"username": username, "password": password})
    assert resp.status_code == 302, resp.text
    token = resp.cookies[COOKIE]
    client.cookies.clear()
    return {"Cookie": f"{COOKIE}={token}"}


@pytest.fixture
def alice(client):
    return register(client, "alice")


@pytest.fixture
def bob(client):
    return register(client, "bob")

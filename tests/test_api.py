"""
Tests for the HTTP surface.
"""

import logging
import time

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from conftest import sign_widget
from tgauth.config import ArtifactConfig, AuthMethodsConfig
from tgauth.modules.api import create_auth_router
from tgauth.modules.auth import TelegramAuthFactory

ALICE = {"id": 42, "first_name": "Alice", "username": "alice"}
SECRET = "s3cret"
BOT_HEADERS = {"X-Telegram-Bot-Api-Secret-Token": SECRET}


def make_app(auth=None, webhook_secret=SECRET) -> FastAPI:
    app = FastAPI()
    app.state.auth = auth
    app.state.webhook_secret = webhook_secret
    app.include_router(create_auth_router())
    return app


@pytest.fixture
def auth():
    return TelegramAuthFactory.build_for_testing()


@pytest.fixture
def client(auth):
    with TestClient(make_app(auth), headers=BOT_HEADERS) as client:
        yield client


def login_with_code(client) -> dict:
    code = client.get("/auth/code").json()["code"]
    response = client.post(
        "/auth/redeem", json={"method": "code", "value": code, "identity": ALICE}
    )
    assert response.status_code == 200
    return response.json()


def test_issue_deeplink(client):
    response = client.get("/auth/deeplink")

    assert response.status_code == 200
    data = response.json()
    assert data["url"] == f"https://t.me/test_bot?start={data['token']}"


def test_redeem_code_opens_session(client):
    """Test a code redeemed by the bot yields a session the browser can read."""
    login = login_with_code(client)

    assert login["method"] == "code"
    assert login["identity"]["username"] == "alice"

    response = client.get(f"/sessions/{login['session_id']}")
    assert response.status_code == 200
    session = response.json()
    assert session["identity"]["id"] == 42
    assert session["metadata"] == {"method": "code"}


def test_redeem_twice_rejected(client):
    token = client.get("/auth/deeplink").json()["token"]
    body = {"method": "deeplink", "value": token, "identity": ALICE}

    assert client.post("/auth/redeem", json=body).status_code == 200
    response = client.post("/auth/redeem", json=body)

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid or already used"


def test_redeem_validates_body(client):
    response = client.post("/auth/redeem", json={"method": "password", "value": "x", "identity": ALICE})
    assert response.status_code == 422


def test_logout(client):
    """Test deleting a session ends it."""
    session_id = login_with_code(client)["session_id"]

    assert client.delete(f"/sessions/{session_id}").status_code == 204
    assert client.get(f"/sessions/{session_id}").status_code == 404
    assert client.delete(f"/sessions/{session_id}").status_code == 404


def test_widget_login(client):
    payload = sign_widget({**ALICE, "auth_date": int(time.time())})

    response = client.post("/auth/widget", json=payload)
    assert response.status_code == 200
    assert response.json()["identity"]["auth_date"] == payload["auth_date"]

    payload["username"] = "mallory"
    assert client.post("/auth/widget", json=payload).status_code == 401


def test_two_factor_flow(client):
    """Test the bot starts a challenge and the browser verifies it."""
    start = client.post("/auth/2fa/start", json={"subject_id": 42, "identity": ALICE})
    assert start.status_code == 200
    challenge = start.json()
    assert challenge["message"] == f"Your login code: {challenge['code']}"

    wrong = client.post("/auth/2fa/verify", json={"subject_id": 42, "code": "not-it"})
    assert wrong.status_code == 401

    response = client.post("/auth/2fa/verify", json={"subject_id": 42, "code": challenge["code"]})
    assert response.status_code == 200
    assert response.json()["method"] == "2fa"
    assert response.json()["identity"]["first_name"] == "Alice"


def test_disabled_method_is_not_found():
    auth = TelegramAuthFactory.build_for_testing(methods=AuthMethodsConfig(deeplink=False))
    with TestClient(make_app(auth), headers=BOT_HEADERS) as client:
        assert client.get("/auth/deeplink").status_code == 404
        response = client.post(
            "/auth/redeem", json={"method": "deeplink", "value": "abc", "identity": ALICE}
        )
        assert response.status_code == 404


def test_not_initialized():
    with TestClient(make_app()) as client:
        assert client.get("/auth/code").status_code == 503


def test_bot_endpoints_require_secret(auth):
    """Test bot-facing endpoints check the secret token header."""
    with TestClient(make_app(auth)) as client:
        code = client.get("/auth/code").json()["code"]
        body = {"method": "code", "value": code, "identity": ALICE}

        assert client.post("/auth/redeem", json=body).status_code == 403
        wrong = {"X-Telegram-Bot-Api-Secret-Token": "guess"}
        assert client.post("/auth/redeem", json=body, headers=wrong).status_code == 403
        assert client.post("/auth/2fa/start", json={"subject_id": 1}).status_code == 403

        assert client.post("/auth/redeem", json=body, headers=BOT_HEADERS).status_code == 200


def test_bot_endpoints_closed_without_secret(auth):
    """Without a configured secret nobody can redeem on behalf of a user."""
    with TestClient(make_app(auth, webhook_secret=None)) as client:
        code = client.get("/auth/code").json()["code"]
        body = {"method": "code", "value": code, "identity": {"id": 777, "first_name": "Victim"}}

        assert client.post("/auth/redeem", json=body).status_code == 403
        assert client.post("/auth/redeem", json=body, headers=BOT_HEADERS).status_code == 403
        assert client.post("/auth/2fa/start", json={"subject_id": 777}).status_code == 403

    assert len(auth.sessions) == 0


def test_code_space_exhausted():
    """Test issuing codes reports 503 once every value has been handed out."""
    auth = TelegramAuthFactory.build_for_testing(artifacts=ArtifactConfig(code_length=1))
    with TestClient(make_app(auth)) as client:
        codes = {client.get("/auth/code").json()["code"] for _ in range(9)}
        assert len(codes) == 9

        response = client.get("/auth/code")
        assert response.status_code == 503


@pytest.fixture
def main_app(monkeypatch):
    """The service app configured from a minimal environment."""
    for name in ("REDIS_URL", "AUTH_METHODS", "DELIVERY_CHANNELS", "LOGIN_CODE_LENGTH"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123456:TEST-TOKEN")
    monkeypatch.setenv("TELEGRAM_WEBHOOK_SECRET", SECRET)

    from tgauth import main

    yield main.app
    # main configures logging on import; keep records reaching pytest's capture
    logging.getLogger("tgauth").propagate = True


def test_main_health(main_app):
    """Test the service reports healthy once the lifespan has run."""
    with TestClient(main_app, headers=BOT_HEADERS) as client:
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["redis"] == "not configured"
        assert data["methods"] == ["deeplink", "code", "widget", "two_fa"]

        login_with_code(client)
        assert client.get("/health").json()["sessions"] == 1

    assert main_app.state.auth is None

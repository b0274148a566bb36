"""
tests/test_http_routes.py -- Integration tests for the JSON HTTP transport.

These tests exercise the full stack: FastAPI routing -> token extraction ->
KeeperService -> stores -> response model serialization -> exception handler
status mapping.

Coverage:
  - Register: 201 + cookie, 409 duplicate, 400 bad payload
  - Login: 202 + cookie, 401 wrong password == 401 unknown user, 400 bad payload
  - Credentials: 401 no token, 405 bad token, 422 bad payload, 201/200 happy path
  - Check order: missing token wins over bad payload
  - Ownership: editing another user's credential is 403
  - Bearer header accepted as an alternative token carrier
  - /register and /login answer 429 once the per-IP limit is spent

Fixtures used (from conftest.py):
  - client: TestClient with a fresh in-memory DB per test
  - registered: (client, user_id, token) after POST /register alice/secret123
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter


class TestRegister:
    def test_register_returns_201_and_sets_cookie(self, client: TestClient) -> None:
        resp = client.post("/register", json={"username": "alice", "password": "secret123"})
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["username"] == "alice"
        assert data["id"] and data["token"]
        assert client.cookies.get("token") == data["token"]
        assert resp.headers["Cache-Control"] == "no-store"

    def test_register_duplicate_is_409(self, registered) -> None:
        client, _uid, _token = registered
        resp = client.post("/register", json={"username": "alice", "password": "another"})
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "already_exists"

    def test_register_bad_json_is_400(self, client: TestClient) -> None:
        resp = client.post("/register", content=b"{not json", headers={"Content-Type": "application/json"})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_register_missing_field_is_400(self, client: TestClient) -> None:
        resp = client.post("/register", json={"username": "alice"})
        assert resp.status_code == 400

    def test_register_overlong_password_is_400(self, client: TestClient) -> None:
        resp = client.post("/register", json={"username": "alice", "password": "é" * 40})
        assert resp.status_code == 400


class TestLogin:
    def test_login_returns_202_and_sets_cookie(self, registered) -> None:
        client, _uid, _token = registered
        client.cookies.clear()
        resp = client.post("/login", json={"username": "alice", "password": "secret123"})
        assert resp.status_code == 202, resp.text
        data = resp.json()
        assert data["token"]
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == 60 * 3600
        assert client.cookies.get("token") == data["token"]

    def test_wrong_password_and_unknown_user_look_identical(self, registered) -> None:
        client, _uid, _token = registered
        wrong = client.post("/login", json={"username": "alice", "password": "nope"})
        unknown = client.post("/login", json={"username": "mallory", "password": "secret123"})
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()
        assert wrong.json()["error"]["code"] == "bad_credentials"

    def test_login_bad_payload_is_400(self, client: TestClient) -> None:
        resp = client.post("/login", json={"user": "alice"})
        assert resp.status_code == 400


class TestCredentials:
    def test_scenario_add_then_list(self, registered) -> None:
        """register alice -> add data1/meta1 -> list returns exactly that record."""
        client, uid, _token = registered
        add = client.post("/credentials", json={"data": "data1", "meta": "meta1"})
        assert add.status_code == 201, add.text
        c1 = add.json()["id"]

        resp = client.get("/credentials")
        assert resp.status_code == 200
        assert resp.json() == {"credentials": [{"id": c1, "owner_id": uid, "data": "data1", "meta": "meta1"}]}

    def test_list_empty(self, registered) -> None:
        client, _uid, _token = registered
        resp = client.get("/credentials")
        assert resp.status_code == 200
        assert resp.json() == {"credentials": []}

    def test_edit_own_credential(self, registered) -> None:
        client, _uid, _token = registered
        cred_id = client.post("/credentials", json={"data": "old", "meta": "m"}).json()["id"]

        resp = client.post("/edit-credentials", json={"id": cred_id, "data": "new", "meta": "m2"})
        assert resp.status_code == 200, resp.text

        [cred] = client.get("/credentials").json()["credentials"]
        assert (cred["data"], cred["meta"]) == ("new", "m2")

    def test_no_token_is_401(self, client: TestClient) -> None:
        assert client.post("/credentials", json={"data": "d", "meta": "m"}).status_code == 401
        assert client.get("/credentials").status_code == 401
        assert client.post("/edit-credentials", json={"id": "x", "data": "d"}).status_code == 401

    def test_missing_token_checked_before_payload(self, client: TestClient) -> None:
        resp = client.post("/credentials", content=b"garbage", headers={"Content-Type": "application/json"})
        assert resp.status_code == 401

    def test_bad_token_is_405(self, client: TestClient) -> None:
        client.cookies.set("token", "forged.token.value")
        assert client.post("/credentials", json={"data": "d", "meta": "m"}).status_code == 405
        assert client.get("/credentials").status_code == 405
        resp = client.post("/edit-credentials", json={"id": "x", "data": "d"})
        assert resp.status_code == 405
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_bad_payload_is_422(self, registered) -> None:
        client, _uid, _token = registered
        assert client.post("/credentials", json={"meta": "no data"}).status_code == 422
        resp = client.post("/edit-credentials", json={"data": "no id"})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"
        assert resp.json()["error"]["message"] == "Failed to parse payload data."

    def test_bearer_header_is_accepted(self, registered) -> None:
        client, uid, token = registered
        client.cookies.clear()
        resp = client.post(
            "/credentials",
            json={"data": "d", "meta": "m"},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 201
        listing = client.get("/credentials", headers={"Authorization": f"Bearer {token}"})
        assert listing.json()["credentials"][0]["owner_id"] == uid

    def test_users_are_isolated_and_cannot_edit_each_other(self, registered) -> None:
        client, _alice_id, alice_token = registered
        alice_cred = client.post("/credentials", json={"data": "alice-secret", "meta": ""}).json()["id"]

        bob = client.post("/register", json={"username": "bob", "password": "hunter22"})
        assert bob.status_code == 201
        # The jar now holds bob's cookie.
        assert client.get("/credentials").json() == {"credentials": []}

        resp = client.post("/edit-credentials", json={"id": alice_cred, "data": "stolen", "meta": ""})
        assert resp.status_code == 403

        client.cookies.clear()
        [cred] = client.get("/credentials", headers={"Authorization": f"Bearer {alice_token}"}).json()["credentials"]
        assert cred["data"] == "alice-secret"


def test_logout_clears_cookie(registered) -> None:
    client, _uid, _token = registered
    resp = client.post("/logout")
    assert resp.status_code == 200
    assert client.get("/credentials").status_code == 401


class TestRateLimit:
    """/register and /login share LOGIN_RATE_LIMIT (10/minute) per client IP."""

    @pytest.fixture
    def limited_client(self, client: TestClient, monkeypatch):
        monkeypatch.setattr(limiter, "enabled", True)
        limiter.reset()
        yield client
        limiter.reset()

    def test_login_is_rate_limited(self, limited_client: TestClient) -> None:
        statuses = [
            limited_client.post("/login", json={"username": "mallory", "password": "guess"}).status_code
            for _ in range(12)
        ]
        assert statuses[0] == 401
        assert statuses[-1] == 429

    def test_register_is_rate_limited(self, limited_client: TestClient) -> None:
        statuses = [
            limited_client.post("/register", json={"username": f"user{i}", "password": "secret123"}).status_code
            for i in range(12)
        ]
        assert statuses[0] == 201
        assert statuses[-1] == 429

    def test_rate_limited_response_uses_error_envelope(self, limited_client: TestClient) -> None:
        for _ in range(11):
            resp = limited_client.post("/login", json={"username": "mallory", "password": "guess"})
        assert resp.status_code == 429
        assert resp.json()["error"]["code"] == "rate_limited"
        assert "Retry-After" in resp.headers

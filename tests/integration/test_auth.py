from __future__ import annotations

from fastapi.testclient import TestClient

from tests.conftest import ADMIN_EMAIL, PASSWORD


def test_login_refresh_and_me(client: TestClient, db_session) -> None:
    login = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": PASSWORD})
    assert login.status_code == 200
    tokens = login.json()
    assert tokens["token_type"] == "bearer"
    assert tokens["expires_in"] == 15 * 60

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert me.status_code == 200
    assert me.json()["email"] == ADMIN_EMAIL
    assert me.json()["role"] == "superadmin"

    rotated = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert rotated.status_code == 200

    replay = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert replay.status_code == 401


def test_login_rejects_bad_credentials(client: TestClient, db_session) -> None:
    wrong_password = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "nope"})
    unknown_user = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})
    malformed = client.post("/api/auth/login", json={"email": "not-an-email", "password": PASSWORD})

    assert wrong_password.status_code == 401
    assert unknown_user.status_code == 401
    assert malformed.status_code == 422


def test_access_token_cannot_refresh(client: TestClient, db_session) -> None:
    tokens = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": PASSWORD}).json()

    response = client.post("/api/auth/refresh", json={"refresh_token": tokens["access_token"]})

    assert response.status_code == 400


def test_requests_without_token_are_rejected(client: TestClient, issuer) -> None:
    response = client.get(f"/api/issuers/{issuer.id}/shareholders/")

    assert response.status_code in {401, 403}


def test_login_role_follows_assignments(client: TestClient, create_user, login, issuer) -> None:
    create_user("team@example.com", role_name="transfer_team", issuer_id=issuer.id)
    headers = login("team@example.com")

    me = client.get("/api/auth/me", headers=headers)

    assert me.json()["role"] == "transfer_team"

from __future__ import annotations

from fastapi.testclient import TestClient


def test_superadmin_creates_accounts(client: TestClient, auth_headers, login) -> None:
    payload = {"email": "New.User@Example.com", "name": "New User", "password": "s3cret-pass"}

    created = client.post("/api/users", json=payload, headers=auth_headers)
    assert created.status_code == 201
    assert created.json()["email"] == "new.user@example.com"
    assert client.post("/api/users", json=payload, headers=auth_headers).status_code == 409

    headers = login("new.user@example.com", "s3cret-pass")
    assert client.post("/api/users", json={**payload, "email": "x@example.com"}, headers=headers).status_code == 403


def test_roles_are_listed(client: TestClient, auth_headers) -> None:
    roles = client.get("/api/roles", headers=auth_headers).json()

    assert {role["role_name"] for role in roles} == {
        "superadmin",
        "admin",
        "transfer_team",
        "broker",
        "shareholder",
        "read_only",
    }


def test_issuer_membership_and_invitations(client: TestClient, auth_headers, create_user, login, issuer) -> None:
    base = f"/api/issuers/{issuer.id}/users"
    member = create_user("member@example.com")

    granted = client.post(f"{base}/", json={"email": "Member@example.com", "role_name": "transfer_team"}, headers=auth_headers)
    assert granted.status_code == 201
    assert granted.json()["invited"] is False
    again = client.post(f"{base}/", json={"email": "member@example.com", "role_name": "transfer_team"}, headers=auth_headers)
    assert again.status_code == 409

    invited = client.post(f"{base}/", json={"email": "later@example.com", "role_name": "read_only"}, headers=auth_headers)
    assert invited.status_code == 201
    assert invited.json() == {
        "user_id": None,
        "email": "later@example.com",
        "name": None,
        "role_name": "read_only",
        "invited": True,
    }

    assert client.post(f"{base}/", json={"email": "member@example.com", "role_name": "superadmin"}, headers=auth_headers).status_code == 400
    assert client.post(f"{base}/", json={"email": "member@example.com", "role_name": "owner"}, headers=auth_headers).status_code == 400

    listing = client.get(f"{base}/", headers=auth_headers).json()
    assert [(row["email"], row["invited"]) for row in listing] == [
        ("member@example.com", False),
        ("later@example.com", True),
    ]

    member_headers = login("member@example.com")
    assert client.get(f"/api/issuers/{issuer.id}/shareholders/", headers=member_headers).status_code == 200
    assert client.get(f"{base}/", headers=member_headers).status_code == 403

    assert client.delete(f"{base}/invitations/LATER@example.com", headers=auth_headers).status_code == 204
    assert client.delete(f"{base}/invitations/later@example.com", headers=auth_headers).status_code == 404
    assert client.delete(f"{base}/{member.id}", headers=auth_headers).status_code == 204
    assert client.delete(f"{base}/{member.id}", headers=auth_headers).status_code == 404
    assert client.get(f"/api/issuers/{issuer.id}/shareholders/", headers=member_headers).status_code == 403

from __future__ import annotations

from fastapi.testclient import TestClient


def test_issuer_lifecycle(client: TestClient, auth_headers) -> None:
    created = client.post(
        "/api/issuers/",
        json={"issuer_name": "globex", "display_name": "Globex Inc", "ticker_symbol": "GLBX"},
        headers=auth_headers,
    )
    assert created.status_code == 201
    issuer = created.json()
    assert issuer["status"] == "PENDING"

    duplicate = client.post("/api/issuers/", json={"issuer_name": "globex"}, headers=auth_headers)
    assert duplicate.status_code == 409

    updated = client.patch(
        f"/api/issuers/{issuer['id']}", json={"status": "ACTIVE", "description": "Widgets"}, headers=auth_headers
    )
    assert updated.status_code == 200
    assert updated.json()["status"] == "ACTIVE"
    assert updated.json()["display_name"] == "Globex Inc"

    mismatch = client.request(
        "DELETE", f"/api/issuers/{issuer['id']}", json={"confirmation": "Globex Inc"}, headers=auth_headers
    )
    assert mismatch.status_code == 400

    deleted = client.request(
        "DELETE", f"/api/issuers/{issuer['id']}", json={"confirmation": "globex"}, headers=auth_headers
    )
    assert deleted.status_code == 204
    assert client.get(f"/api/issuers/{issuer['id']}", headers=auth_headers).status_code == 404


def test_issuer_listing_is_scoped_to_assignments(client: TestClient, auth_headers, create_user, login, issuer) -> None:
    client.post("/api/issuers/", json={"issuer_name": "initech"}, headers=auth_headers)
    create_user("viewer@example.com", role_name="read_only", issuer_id=issuer.id)
    viewer = login("viewer@example.com")

    admin_view = client.get("/api/issuers/", headers=auth_headers).json()
    viewer_view = client.get("/api/issuers/", headers=viewer).json()

    assert {item["issuer_name"] for item in admin_view} == {"acme-corp", "initech"}
    assert [item["issuer_name"] for item in viewer_view] == ["acme-corp"]


def test_issuer_writes_require_roles(client: TestClient, create_user, login, issuer) -> None:
    create_user("viewer@example.com", role_name="read_only", issuer_id=issuer.id)
    viewer = login("viewer@example.com")

    assert client.get(f"/api/issuers/{issuer.id}", headers=viewer).status_code == 200
    assert client.patch(f"/api/issuers/{issuer.id}", json={"description": "x"}, headers=viewer).status_code == 403
    assert client.post("/api/issuers/", json={"issuer_name": "rogue"}, headers=viewer).status_code == 403


def test_unassigned_users_cannot_see_an_issuer(client: TestClient, create_user, login, issuer) -> None:
    create_user("stranger@example.com")
    stranger = login("stranger@example.com")

    assert client.get(f"/api/issuers/{issuer.id}", headers=stranger).status_code == 403
    assert client.get("/api/issuers/does-not-exist", headers=stranger).status_code == 404


def test_split_security_type_is_validated(client: TestClient, auth_headers, issuer) -> None:
    url = f"/api/issuers/{issuer.id}"

    updated = client.patch(url, json={"split_security_type": "Right"}, headers=auth_headers)
    invalid = client.patch(url, json={"split_security_type": "Unit"}, headers=auth_headers)

    assert updated.status_code == 200
    assert updated.json()["split_security_type"] == "Right"
    assert invalid.status_code == 422

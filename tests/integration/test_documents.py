from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from transfer_agent.api.routes.documents import get_document_storage
from transfer_agent.core.config import get_settings
from transfer_agent.main import app
from transfer_agent.services.storage import DocumentStorage
from tests.conftest import InMemoryS3Client


@pytest.fixture()
def object_store(client: TestClient):
    store = InMemoryS3Client()
    app.dependency_overrides[get_document_storage] = lambda: DocumentStorage(
        get_settings(), s3_client_factory=lambda: store
    )
    yield store
    app.dependency_overrides.pop(get_document_storage, None)


def _upload(client: TestClient, issuer_id: str, headers: dict[str, str], **extra: str):
    return client.post(
        f"/api/issuers/{issuer_id}/documents/",
        content=b"%PDF-1.7 annual report",
        headers={
            **headers,
            "Content-Type": "application/pdf",
            "X-Upload-Filename": "Annual Report.pdf",
            "X-Document-Title": "Annual Report",
            **extra,
        },
    )


def test_document_upload_list_and_delete(client: TestClient, auth_headers, issuer, object_store) -> None:
    settings = get_settings()
    response = _upload(client, issuer.id, auth_headers)

    assert response.status_code == 201, response.text
    document = response.json()
    assert document["title"] == "Annual Report"
    assert document["restricted"] is False
    assert document["file_url"].startswith(f"{settings.storage_public_url.rstrip('/')}/{settings.documents_bucket}/")
    (stored,) = object_store.buckets[settings.documents_bucket].values()
    assert stored == b"%PDF-1.7 annual report"

    listing = client.get(f"/api/issuers/{issuer.id}/documents/", headers=auth_headers).json()
    assert [item["id"] for item in listing] == [document["id"]]

    deleted = client.delete(f"/api/issuers/{issuer.id}/documents/{document['id']}", headers=auth_headers)
    assert deleted.status_code == 204
    assert object_store.buckets[settings.documents_bucket] == {}
    assert client.get(f"/api/issuers/{issuer.id}/documents/", headers=auth_headers).json() == []


def test_restricted_documents_are_hidden_from_viewers(
    client: TestClient, auth_headers, issuer, object_store, create_user, login
) -> None:
    settings = get_settings()
    _upload(client, issuer.id, auth_headers)
    restricted = _upload(client, issuer.id, auth_headers, **{"X-Document-Restricted": "true"}).json()
    create_user("viewer@example.com", role_name="read_only", issuer_id=issuer.id)
    viewer = login("viewer@example.com")

    assert settings.restricted_documents_bucket in object_store.buckets
    admin_view = client.get(f"/api/issuers/{issuer.id}/documents/", headers=auth_headers).json()
    viewer_view = client.get(f"/api/issuers/{issuer.id}/documents/", headers=viewer).json()

    assert len(admin_view) == 2
    assert restricted["id"] not in {item["id"] for item in viewer_view}
    assert len(viewer_view) == 1
    assert _upload(client, issuer.id, viewer).status_code == 403


def test_empty_upload_is_rejected(client: TestClient, auth_headers, issuer, object_store) -> None:
    response = client.post(
        f"/api/issuers/{issuer.id}/documents/",
        content=b"",
        headers={**auth_headers, "Content-Type": "application/pdf"},
    )

    assert response.status_code == 400

from __future__ import annotations

from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.orm import Session

from transfer_agent.models import Notification, User
from tests.conftest import ADMIN_EMAIL


def _seed(db_session: Session, count: int) -> list[str]:
    admin = db_session.scalar(select(User).where(User.email == ADMIN_EMAIL))
    rows = [Notification(user_id=admin.id, type="info", title=f"note {n}", message="hello") for n in range(count)]
    db_session.add_all(rows)
    db_session.commit()
    return [row.id for row in rows]


def test_inbox_read_flow(client: TestClient, auth_headers, db_session: Session) -> None:
    ids = _seed(db_session, 3)

    assert client.get("/api/notifications/unread-count", headers=auth_headers).json() == {"unread": 3}

    read = client.post(f"/api/notifications/{ids[0]}/read", headers=auth_headers)
    assert read.status_code == 200
    assert read.json()["is_read"] is True
    assert len(client.get("/api/notifications/?unread_only=true", headers=auth_headers).json()) == 2

    assert client.post("/api/notifications/read-all", headers=auth_headers).json() == {"unread": 0}


def test_cannot_read_someone_elses_notification(
    client: TestClient, auth_headers, db_session: Session, create_user, login
) -> None:
    (note_id,) = _seed(db_session, 1)
    create_user("someone@example.com")
    other = login("someone@example.com")

    assert client.post(f"/api/notifications/{note_id}/read", headers=other).status_code == 404
    assert client.get("/api/notifications/", headers=other).json() == []
    assert client.get("/api/notifications/unread-count", headers=auth_headers).json() == {"unread": 1}

from __future__ import annotations

import os
import sys
from collections.abc import Callable, Iterator
from io import BytesIO
from pathlib import Path
from types import SimpleNamespace

import bcrypt
import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

DATABASE_URL = "sqlite+pysqlite:///./test_suite.db"

os.environ.setdefault("DATABASE_URL", DATABASE_URL)
os.environ.setdefault("ENABLE_TRACING", "false")

from transfer_agent.api.deps import get_db_session
from transfer_agent.api.routes.auth import refresh_token_store
from transfer_agent.api.routes.transfer_requests import get_notifier
from transfer_agent.main import app
from transfer_agent.main import app as fastapi_app
from transfer_agent.models import Base, Issuer, IssuerStatus, IssuerUser, Role, Security, User
from transfer_agent.obs import AuditMiddleware
from transfer_agent.services.email import EmailDeliveryError, EmailMessage
from transfer_agent.services.notifications import BrokerRequestNotifier
from transfer_agent.services.roles import ROLE_HIERARCHY

ADMIN_EMAIL = "admin@example.com"
PASSWORD = "changeme"
ISSUER_NAME = "acme-corp"
CUSIP = "123456AB7"

# Low bcrypt cost keeps fixture setup fast.
PASSWORD_HASH = bcrypt.hashpw(PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")


class InMemoryS3Client:
    """Simple in-memory S3 stub used by the audit middleware and document storage."""

    exceptions = SimpleNamespace(NoSuchKey=type("NoSuchKey", (Exception,), {}))

    def __init__(self) -> None:
        self._buckets: dict[str, dict[str, bytes]] = {}

    def head_bucket(self, *, Bucket: str) -> None:
        if Bucket not in self._buckets:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadBucket")

    def create_bucket(self, *, Bucket: str, **_: object) -> None:
        self._buckets.setdefault(Bucket, {})

    def get_object(self, *, Bucket: str, Key: str) -> dict[str, BytesIO]:
        if Bucket not in self._buckets:
            raise ClientError({"Error": {"Code": "NoSuchBucket"}}, "GetObject")
        bucket = self._buckets[Bucket]
        if Key not in bucket:
            raise self.exceptions.NoSuchKey()
        return {"Body": BytesIO(bucket[Key])}

    def put_object(
        self,
        *,
        Bucket: str,
        Key: str,
        Body: bytes,
        ContentType: str | None = None,
        **_: object,
    ) -> dict[str, str]:
        bucket = self._buckets.setdefault(Bucket, {})
        if isinstance(Body, str):
            data = Body.encode("utf-8")
        else:
            data = Body
        bucket[Key] = data
        return {"ETag": "in-memory"}

    def delete_object(self, *, Bucket: str, Key: str, **_: object) -> dict[str, object]:
        self._buckets.get(Bucket, {}).pop(Key, None)
        return {}

    @property
    def buckets(self) -> dict[str, dict[str, bytes]]:
        return self._buckets


class RecordingEmailSender:
    """Email sender that records messages and rejects configured recipients."""

    def __init__(self) -> None:
        self.messages: list[EmailMessage] = []
        self.reject: set[str] = set()

    def send(self, message: EmailMessage) -> str | None:
        if self.reject.intersection(message.to):
            raise EmailDeliveryError(f"rejected {', '.join(message.to)}")
        self.messages.append(message)
        return f"msg-{len(self.messages)}"


engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture(autouse=True)
def audit_s3_client(monkeypatch: pytest.MonkeyPatch) -> Iterator[InMemoryS3Client]:
    client = InMemoryS3Client()

    def _client_factory(*args: object, **kwargs: object) -> InMemoryS3Client:
        return client

    monkeypatch.setattr("transfer_agent.obs.audit.boto3.client", _client_factory)
    stack = getattr(fastapi_app, "middleware_stack", None)
    middleware = getattr(stack, "app", None)
    while middleware is not None and hasattr(middleware, "app"):
        if isinstance(middleware, AuditMiddleware):
            middleware._s3_client = None
            middleware._bucket_ready = False
        middleware = getattr(middleware, "app", None)
    yield client


@pytest.fixture(autouse=True)
def reset_refresh_store() -> Iterator[None]:
    refresh_token_store.reset()
    yield
    refresh_token_store.reset()


@pytest.fixture()
def db_session() -> Iterator[Session]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    session.add_all(Role(role_name=name, display_name=name.replace("_", " ").title()) for name in ROLE_HIERARCHY)
    session.add(
        User(email=ADMIN_EMAIL, name="Registry Admin", hashed_password=PASSWORD_HASH, is_super_admin=True)
    )
    issuer = Issuer(issuer_name=ISSUER_NAME, display_name="Acme Corp", status=IssuerStatus.ACTIVE)
    session.add(issuer)
    session.flush()
    session.add(Security(issuer_id=issuer.id, cusip=CUSIP, issue_name="Common Stock", class_name="Class A"))
    session.commit()

    yield session
    session.close()


@pytest.fixture()
def issuer(db_session: Session) -> Issuer:
    return db_session.scalar(select(Issuer).where(Issuer.issuer_name == ISSUER_NAME))


@pytest.fixture()
def create_user(db_session: Session) -> Callable[..., User]:
    """Create an active user, optionally holding a role (scoped to an issuer or global)."""

    def _create(email: str, *, role_name: str | None = None, issuer_id: str | None = None) -> User:
        user = User(email=email, name=email.split("@")[0].title(), hashed_password=PASSWORD_HASH)
        db_session.add(user)
        db_session.flush()
        if role_name is not None:
            role = db_session.scalar(select(Role).where(Role.role_name == role_name))
            db_session.add(IssuerUser(user_id=user.id, issuer_id=issuer_id, role_id=role.id))
        db_session.commit()
        return user

    return _create


@pytest.fixture()
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture()
def client(
    db_session: Session,
    audit_s3_client: InMemoryS3Client,
    email_sender: RecordingEmailSender,
) -> Iterator[TestClient]:
    def override_get_db() -> Iterator[Session]:
        try:
            yield db_session
        finally:
            db_session.rollback()

    def override_get_notifier() -> BrokerRequestNotifier:
        return BrokerRequestNotifier(db_session, sender=email_sender, sleep=lambda _: None)

    app.dependency_overrides[get_db_session] = override_get_db
    app.dependency_overrides[get_notifier] = override_get_notifier

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.pop(get_db_session, None)
    app.dependency_overrides.pop(get_notifier, None)


@pytest.fixture()
def login(client: TestClient) -> Callable[[str], dict[str, str]]:
    def _login(email: str, password: str = PASSWORD) -> dict[str, str]:
        response = client.post("/api/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _login


@pytest.fixture()
def auth_headers(login: Callable[[str], dict[str, str]]) -> dict[str, str]:
    return login(ADMIN_EMAIL)

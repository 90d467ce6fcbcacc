"""Issuer document upload and management endpoints."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from transfer_agent.api.access import IssuerAccess, require_issuer_role
from transfer_agent.api.deps import get_db_session
from transfer_agent.models import Document
from transfer_agent.schemas.document import DocumentRead
from transfer_agent.services.roles import ADMIN, READ_ONLY, TRANSFER_TEAM, has_permission
from transfer_agent.services.storage import DocumentStorage, StorageError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents")

_TRUTHY = {"1", "true", "yes", "on"}


def get_document_storage() -> DocumentStorage:
    return DocumentStorage()


@router.post("/", response_model=DocumentRead, status_code=status.HTTP_201_CREATED)
async def upload_document(
    request: Request,
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(TRANSFER_TEAM)),
    storage: DocumentStorage = Depends(get_document_storage),
) -> DocumentRead:
    body = await request.body()
    if not body:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")

    content_type = request.headers.get("content-type", "application/octet-stream").split(";")[0]
    filename = request.headers.get("x-upload-filename")
    title = request.headers.get("x-document-title") or filename or "Untitled document"
    restricted = request.headers.get("x-document-restricted", "").lower() in _TRUTHY

    bucket = storage.bucket_for("restricted" if restricted else "documents")
    key = storage.build_key(access.issuer.id, filename)
    try:
        file_url = storage.upload(bucket, key, body, content_type)
    except StorageError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    document = Document(
        issuer_id=access.issuer.id,
        title=title,
        file_url=file_url,
        content_type=content_type,
        restricted=restricted,
        uploaded_by=access.user.user_id,
    )
    session.add(document)
    session.commit()
    session.refresh(document)
    return DocumentRead.model_validate(document)


@router.get("/", response_model=list[DocumentRead])
def list_documents(
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(READ_ONLY)),
) -> list[DocumentRead]:
    statement = select(Document).where(Document.issuer_id == access.issuer.id)
    if not has_permission(access.role, TRANSFER_TEAM):
        statement = statement.where(Document.restricted.is_(False))
    statement = statement.order_by(Document.created_at.desc())
    return [DocumentRead.model_validate(item) for item in session.scalars(statement).all()]


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(
    document_id: str,
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(ADMIN)),
    storage: DocumentStorage = Depends(get_document_storage),
) -> None:
    document = session.get(Document, document_id)
    if document is None or document.issuer_id != access.issuer.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")

    location = storage.parse_url(document.file_url)
    if location is None:
        logger.warning(
            "document url not recognised; removing record only",
            extra={"document_id": document.id, "file_url": document.file_url},
        )
    else:
        try:
            storage.delete(location.bucket, location.key)
        except StorageError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    session.delete(document)
    session.commit()


__all__ = ["delete_document", "get_document_storage", "list_documents", "router", "upload_document"]

"""Schemas for issuer documents."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class DocumentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    issuer_id: str
    title: str
    file_url: str
    content_type: str | None
    restricted: bool
    uploaded_by: str | None
    created_at: datetime


__all__ = ["DocumentRead"]

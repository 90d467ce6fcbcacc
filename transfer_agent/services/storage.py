"""Object storage for issuer and broker documents."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Literal
from urllib.parse import quote, unquote
from uuid import uuid4

import boto3
from botocore.exceptions import BotoCoreError, ClientError  # type: ignore[import-untyped]

from transfer_agent.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

BucketPurpose = Literal["documents", "restricted"]

_PATH_STYLE_URL = re.compile(r"^https?://s3[.-][^/]+/(?P<bucket>[^/]+)/(?P<key>.+)$")
_S3_URI = re.compile(r"^s3://(?P<bucket>[^/]+)/(?P<key>.+)$")
_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class StorageError(RuntimeError):
    """Raised when the object store rejects an operation."""


@dataclass(slots=True, frozen=True)
class StorageLocation:
    bucket: str
    key: str


class DocumentStorage:
    """Thin wrapper over an S3-compatible client with path-style public URLs."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        s3_client_factory: Callable[[], Any] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._s3_client_factory = s3_client_factory or self._default_s3_client
        self._s3_client: Any | None = None

    def _default_s3_client(self) -> Any:
        return boto3.client(
            "s3",
            region_name=self._settings.aws_region,
            endpoint_url=self._settings.s3_endpoint_url,
        )

    def _get_s3_client(self) -> Any:
        if self._s3_client is None:
            self._s3_client = self._s3_client_factory()
        return self._s3_client

    def bucket_for(self, purpose: BucketPurpose) -> str:
        if purpose == "restricted":
            return self._settings.restricted_documents_bucket
        return self._settings.documents_bucket

    def build_key(self, issuer_id: str, filename: str | None) -> str:
        safe_name = _UNSAFE_KEY_CHARS.sub("_", filename or "document").strip("_") or "document"
        return f"{issuer_id}/{datetime.now(timezone.utc):%Y/%m/%d}/{uuid4().hex}-{safe_name}"

    def public_url(self, bucket: str, key: str) -> str:
        base = self._settings.storage_public_url.rstrip("/")
        return f"{base}/{bucket}/{quote(key)}"

    def upload(self, bucket: str, key: str, body: bytes, content_type: str | None = None) -> str:
        """Store ``body`` and return the public URL of the object."""

        try:
            self._get_s3_client().put_object(
                Bucket=bucket,
                Key=key,
                Body=body,
                ContentType=content_type or "application/octet-stream",
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("document upload failed", extra={"bucket": bucket, "key": key, "error": str(exc)})
            raise StorageError(f"Unable to upload '{key}'") from exc
        logger.info("document uploaded", extra={"bucket": bucket, "key": key})
        return self.public_url(bucket, key)

    def delete(self, bucket: str, key: str) -> None:
        try:
            self._get_s3_client().delete_object(Bucket=bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            logger.error("document delete failed", extra={"bucket": bucket, "key": key, "error": str(exc)})
            raise StorageError(f"Unable to delete '{key}'") from exc

    def parse_url(self, url: str) -> StorageLocation | None:
        """Recover the bucket and key from a URL produced by :meth:`upload`.

        Path-style S3 URLs and ``s3://`` URIs are recognised as well; anything
        else yields ``None``.
        """

        base = self._settings.storage_public_url.rstrip("/") + "/"
        if url.startswith(base):
            bucket, _, key = url[len(base):].partition("/")
            if bucket and key:
                return StorageLocation(bucket=bucket, key=unquote(key))
            return None
        match = _PATH_STYLE_URL.match(url) or _S3_URI.match(url)
        if match is None:
            return None
        return StorageLocation(bucket=match.group("bucket"), key=unquote(match.group("key")))


__all__ = ["BucketPurpose", "DocumentStorage", "StorageError", "StorageLocation"]

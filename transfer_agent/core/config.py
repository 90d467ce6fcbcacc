"""Configuration management for the transfer agent registry."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_default_private_key() -> str:
    default_path = Path(__file__).resolve().parent / "../.." / "configs" / "dev-jwt.pem"
    if default_path.exists():
        return default_path.read_text(encoding="utf-8")
    raise FileNotFoundError("Default JWT private key not found. Provide JWT_PRIVATE_KEY environment variable.")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    app_name: str = Field(default="Transfer Agent Registry")
    version: str = Field(default="0.1.0")
    docs_url: str | None = Field(default="/docs")
    redoc_url: str | None = Field(default="/redoc")
    openapi_url: str = Field(default="/openapi.json")
    app_base_url: str = Field(default="http://localhost:3000")

    database_url: str = Field(default="postgresql+psycopg://registry:registry@db:5432/registry")

    aws_region: str = Field(default="us-east-1")
    s3_endpoint_url: str | None = Field(default=None)
    storage_public_url: str = Field(default="https://s3.us-east-1.wasabisys.com")
    documents_bucket: str = Field(default="issuer-documents")
    restricted_documents_bucket: str = Field(default="broker-documents")
    audit_log_bucket: str = Field(default="registry-audit-logs")
    audit_log_prefix: str = Field(default="audit/records")
    audit_log_sample_rate: float = Field(default=1.0)

    enable_metrics: bool = Field(default=True)
    enable_tracing: bool = Field(default=True)
    otel_exporter_endpoint: str | None = Field(default=None)

    resend_api_key: str | None = Field(default=None)
    resend_api_url: str = Field(default="https://api.resend.com/emails")
    email_from: str = Field(default="Transfer Agent <notifications@example.com>")
    reply_to_email: str | None = Field(default=None)
    email_timeout_seconds: float = Field(default=10.0)
    max_notification_emails: int = Field(default=2, ge=0)
    notification_email_delay_seconds: float = Field(default=0.6, ge=0)

    strict_transaction_types: bool = Field(default=False)

    jwt_algorithm: str = Field(default="RS256")
    jwt_private_key: str = Field(default_factory=_load_default_private_key)
    access_token_expire_minutes: int = Field(default=15)
    refresh_token_expire_days: int = Field(default=7)


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings"]

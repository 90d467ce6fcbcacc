"""Outbound email through the Resend HTTP API."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from transfer_agent.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
    keep_trailing_newline=True,
)


class EmailDeliveryError(RuntimeError):
    """Raised when an email could not be handed to the provider."""


@dataclass(slots=True, frozen=True)
class EmailMessage:
    to: tuple[str, ...]
    subject: str
    html: str
    text: str | None = None
    reply_to: str | None = None


class EmailSender(Protocol):
    def send(self, message: EmailMessage) -> str | None:
        """Deliver ``message`` and return the provider's message id."""


def render_email(template_name: str, **context: Any) -> tuple[str, str]:
    """Render the HTML and plain-text variants of ``email/<template_name>``."""
    html = templates.get_template(f"email/{template_name}.html").render(**context)
    text = templates.get_template(f"email/{template_name}.txt").render(**context)
    return html, text


class ResendEmailSender:
    """Synchronous client for the Resend ``/emails`` endpoint."""

    def __init__(self, settings: Settings | None = None, *, client: httpx.Client | None = None) -> None:
        self._settings = settings or get_settings()
        self._client = client or httpx.Client(timeout=self._settings.email_timeout_seconds)
        self._owns_client = client is None

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def send(self, message: EmailMessage) -> str | None:
        api_key = self._settings.resend_api_key
        if not api_key:
            raise EmailDeliveryError("Email provider API key is not configured")

        payload: dict[str, Any] = {
            "from": self._settings.email_from,
            "to": list(message.to),
            "subject": message.subject,
            "html": message.html,
        }
        if message.text:
            payload["text"] = message.text
        reply_to = message.reply_to or self._settings.reply_to_email
        if reply_to:
            payload["reply_to"] = reply_to

        try:
            response = self._client.post(
                self._settings.resend_api_url,
                json=payload,
                headers={"Authorization": f"Bearer {api_key}"},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise EmailDeliveryError(f"Email delivery failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            logger.warning("provider reply was not JSON", extra={"status_code": response.status_code})
            body = None
        message_id = body.get("id") if isinstance(body, dict) else None
        logger.info("email accepted by provider", extra={"message_id": message_id, "recipients": len(message.to)})
        return message_id


__all__ = [
    "EmailDeliveryError",
    "EmailMessage",
    "EmailSender",
    "ResendEmailSender",
    "render_email",
    "templates",
]

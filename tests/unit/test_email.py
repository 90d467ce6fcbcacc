from __future__ import annotations

import json
from types import SimpleNamespace

import httpx
import pytest

from transfer_agent.core.config import get_settings
from transfer_agent.services.email import EmailDeliveryError, EmailMessage, ResendEmailSender, render_email


def _settings(**overrides: object):
    values = {"resend_api_key": "re_test", "resend_api_url": "https://mail.test/emails"}
    values.update(overrides)
    return get_settings().model_copy(update=values)


def test_send_posts_to_resend() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={"id": "email-123"})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    sender = ResendEmailSender(_settings(reply_to_email="ops@example.com"), client=client)

    message_id = sender.send(EmailMessage(to=("a@example.com",), subject="Hello", html="<p>Hi</p>", text="Hi"))

    assert message_id == "email-123"
    (request,) = captured
    assert request.headers["Authorization"] == "Bearer re_test"
    body = json.loads(request.content)
    assert body["to"] == ["a@example.com"]
    assert body["subject"] == "Hello"
    assert body["text"] == "Hi"
    assert body["reply_to"] == "ops@example.com"


def test_send_wraps_http_errors() -> None:
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(422, json={})))
    sender = ResendEmailSender(_settings(), client=client)

    with pytest.raises(EmailDeliveryError):
        sender.send(EmailMessage(to=("a@example.com",), subject="Hello", html="<p>Hi</p>"))


def test_send_requires_api_key() -> None:
    sender = ResendEmailSender(_settings(resend_api_key=None), client=httpx.Client())

    with pytest.raises(EmailDeliveryError):
        sender.send(EmailMessage(to=("a@example.com",), subject="Hello", html="<p>Hi</p>"))


def test_request_submitted_template_renders_both_parts() -> None:
    request = SimpleNamespace(
        request_number=7,
        request_type="DWAC Deposit",
        shareholder_name="Jane <Holder>",
        quantity=12500,
        cusip="123456AB7",
        priority="high",
        account_number="ACC-1",
        security_type="Common",
        request_purpose=None,
        special_instructions=None,
    )

    html, text = render_email(
        "request_submitted",
        request=request,
        broker_name="Broker Bob",
        issuer_name="Acme Corp",
        action_url="https://app.example.com/r/7",
    )

    assert "Jane &lt;Holder&gt;" in html
    assert "https://app.example.com/r/7" in html
    assert "Jane <Holder>" in text
    assert "Broker Bob" in text


@pytest.mark.parametrize(
    "response",
    [httpx.Response(200, text="OK"), httpx.Response(202, json=["queued"]), httpx.Response(204)],
)
def test_accepted_reply_without_an_id_returns_none(response: httpx.Response) -> None:
    client = httpx.Client(transport=httpx.MockTransport(lambda request: response))
    sender = ResendEmailSender(_settings(), client=client)

    assert sender.send(EmailMessage(to=("a@example.com",), subject="Hello", html="<p>Hi</p>")) is None


def test_split_request_template_uses_the_warrants_label() -> None:
    request = SimpleNamespace(
        request_number=3,
        dtc_participant_number="0123",
        dwac_submitted=True,
        units_quantity=1000,
        class_a_quantity=1000,
        warrants_quantity=500,
        units_cusip="UNIT00001",
        class_a_cusip="CLSA00001",
        warrants_cusip="RGHT00001",
        special_instructions="Rush <please>",
    )

    html, text = render_email(
        "split_request_submitted",
        request=request,
        broker_name="Broker Bob",
        broker_email="bob@example.com",
        issuer_name="Acme Corp",
        action_url="https://app.example.com/r/3",
        warrants_label="Rights",
    )

    assert "Rights: 500 (RGHT00001)" in text
    assert "DWAC submitted: Yes" in text
    assert "Units: 1,000 (UNIT00001)" in text
    assert "Rush &lt;please&gt;" in html

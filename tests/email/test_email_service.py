"""Tests for email service and templates."""

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from pdportal.email.service import (
    _TEMPLATE_REGISTRY,
    BaseEmailProvider,
    EmailService,
    OutgoingEmail,
    ResendProvider,
    SMTPProvider,
    render_template,
    send_template_email,
    set_email_service,
)
from pdportal.email.templates import registration_cancelled, registration_confirmation

CANCELLED_CONTEXT = {
    "first_name": "A",
    "session_title": "T",
    "session_date": "2024-06-10",
    "browse_url": "https://x",
}


def _message(**overrides) -> OutgoingEmail:
    fields = {
        "to": "a@school.example",
        "subject": "Subject",
        "html_body": "<p>hi</p>",
        "text_body": "hi",
        "template": "registration_cancelled",
    }
    fields.update(overrides)
    return OutgoingEmail(**fields)


def _provider(delivered: bool = True) -> AsyncMock:
    provider = AsyncMock(spec=BaseEmailProvider)
    provider.name = "mock"
    provider.deliver.return_value = delivered
    return provider


class TestEmailTemplates:
    def test_registration_confirmation(self):
        subject, html, text = registration_confirmation(
            "Jordan", "Formative Assessment", "2024-06-10", "15:30", "Library", "https://pd.example/me"
        )
        assert subject == "You're registered: Formative Assessment"
        assert "Jordan" in html
        assert "Library" in html
        assert "https://pd.example/me" in text
        assert "15:30" in text

    def test_confirmation_without_location(self):
        _, html, text = registration_confirmation(None, "Title", "2024-06-10", "15:30", None, "https://x")
        assert "Location" not in html
        assert "Location" not in text
        assert text.startswith("Hi there,")

    def test_registration_cancelled(self):
        subject, html, text = registration_cancelled("Jordan", "Formative Assessment", "2024-06-10", "https://pd.example")
        assert subject == "Registration cancelled: Formative Assessment"
        assert "2024-06-10" in html
        assert "Browse other sessions: https://pd.example" in text

    def test_html_is_escaped(self):
        _, html, _ = registration_confirmation(
            "<b>Eve</b>", "Math & <Science>", "2024-06-10", "15:30", "Room <1>", "https://x"
        )
        assert "<b>Eve</b>" not in html
        assert "&lt;b&gt;Eve&lt;/b&gt;" in html
        assert "Math &amp; &lt;Science&gt;" in html
        assert "Room &lt;1&gt;" in html


class TestRenderTemplate:
    def test_registry(self):
        assert set(_TEMPLATE_REGISTRY) == {"registration_confirmation", "registration_cancelled"}

    def test_render(self):
        message = render_template("a@school.example", "registration_cancelled", CANCELLED_CONTEXT)
        assert message.to == "a@school.example"
        assert message.subject == "Registration cancelled: T"
        assert message.template == "registration_cancelled"

    def test_unknown_template(self):
        with pytest.raises(ValueError, match="Unknown template"):
            render_template("a@school.example", "welcome", {})


class TestEmailService:
    @pytest.mark.asyncio
    async def test_send_template(self):
        provider = _provider()
        service = EmailService(provider=provider, redis=None)

        assert await service.send_template("a@school.example", "registration_cancelled", CANCELLED_CONTEXT) is True
        provider.deliver.assert_awaited_once()
        message = provider.deliver.await_args.args[0]
        assert message.subject == "Registration cancelled: T"

    @pytest.mark.asyncio
    async def test_provider_failure_reported(self):
        service = EmailService(provider=_provider(delivered=False), redis=None)
        assert await service.send(_message()) is False

    @pytest.mark.asyncio
    async def test_throttled_per_recipient(self):
        provider = _provider()
        redis = AsyncMock()
        redis.incr.side_effect = [1, 2, 3]
        service = EmailService(provider=provider, redis=redis, max_per_hour=2)

        results = [await service.send(_message()) for _ in range(3)]
        assert results == [True, True, False]
        assert provider.deliver.await_count == 2
        redis.expire.assert_awaited_once()
        key = redis.incr.await_args.args[0]
        assert key.startswith("email_rate:")
        assert "school.example" not in key

    def test_throttle_key_ignores_case(self):
        assert EmailService._throttle_key("A@School.example ") == EmailService._throttle_key("a@school.example")

    @pytest.mark.asyncio
    async def test_background_send_swallows_failure(self):
        provider = _provider(delivered=False)
        set_email_service(EmailService(provider=provider, redis=None))

        await send_template_email("a@school.example", "registration_cancelled", CANCELLED_CONTEXT)
        provider.deliver.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_background_send_swallows_unknown_template(self):
        provider = _provider()
        set_email_service(EmailService(provider=provider, redis=None))

        await send_template_email("a@school.example", "welcome", {})
        provider.deliver.assert_not_awaited()


class TestProviders:
    def test_smtp_mime(self):
        provider = SMTPProvider("smtp.example", 587, "", "", "PD Portal <noreply@pd.example>")
        mime = provider.build_mime(_message())
        assert mime["From"] == "PD Portal <noreply@pd.example>"
        assert mime["To"] == "a@school.example"
        assert mime["X-PD-Template"] == "registration_cancelled"
        assert mime.get_content_type() == "multipart/alternative"
        assert [part.get_content_type() for part in mime.iter_parts()] == ["text/plain", "text/html"]

    @pytest.mark.asyncio
    async def test_resend_payload(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "email_1"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            provider = ResendProvider("re_test", "PD Portal <noreply@pd.example>", client=client)
            assert await provider.deliver(_message()) is True

        assert seen[0].headers["authorization"] == "Bearer re_test"
        body = json.loads(seen[0].content)
        assert body["to"] == ["a@school.example"]
        assert body["tags"] == [{"name": "template", "value": "registration_cancelled"}]

    @pytest.mark.asyncio
    async def test_resend_error_status(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        async with httpx.AsyncClient(transport=transport) as client:
            provider = ResendProvider("re_test", "PD Portal <noreply@pd.example>", client=client)
            assert await provider.deliver(_message()) is False

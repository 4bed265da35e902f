"""
Registration notification email.

Messages are rendered from the template registry into an ``OutgoingEmail`` and
handed to the configured provider (SMTP or Resend). Sends are throttled per
recipient in Redis when it is available.
"""

from __future__ import annotations

import hashlib
import ssl
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from email.message import EmailMessage
from typing import TYPE_CHECKING, Any

import aiosmtplib
import httpx
import structlog

from pdportal.config import get_settings
from pdportal.email.templates import registration_cancelled, registration_confirmation
from pdportal.redis_client import get_redis_or_none

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = structlog.get_logger()

_TEMPLATE_REGISTRY: dict[str, Callable[..., tuple[str, str, str]]] = {
    "registration_confirmation": registration_confirmation,
    "registration_cancelled": registration_cancelled,
}


@dataclass(frozen=True)
class OutgoingEmail:
    to: str
    subject: str
    html_body: str
    text_body: str
    template: str | None = None


class BaseEmailProvider(ABC):
    """Delivers one rendered message. Returns False instead of raising on transport errors."""

    name = "base"

    @abstractmethod
    async def deliver(self, message: OutgoingEmail) -> bool: ...


class SMTPProvider(BaseEmailProvider):
    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        sender: str,
        use_tls: bool = True,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username or None
        self.password = password or None
        self.sender = sender
        self.use_tls = use_tls

    def build_mime(self, message: OutgoingEmail) -> EmailMessage:
        mime = EmailMessage()
        mime["From"] = self.sender
        mime["To"] = message.to
        mime["Subject"] = message.subject
        if message.template:
            mime["X-PD-Template"] = message.template
        mime.set_content(message.text_body)
        mime.add_alternative(message.html_body, subtype="html")
        return mime

    async def deliver(self, message: OutgoingEmail) -> bool:
        try:
            await aiosmtplib.send(
                self.build_mime(message),
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                start_tls=self.use_tls,
                tls_context=ssl.create_default_context() if self.use_tls else None,
            )
        except (aiosmtplib.SMTPException, OSError):
            logger.exception("email_send_failed", to=message.to, provider=self.name)
            return False
        return True


class ResendProvider(BaseEmailProvider):
    """Resend HTTP API. A shared ``httpx.AsyncClient`` may be injected."""

    name = "resend"
    API_URL = "https://api.resend.com/emails"

    def __init__(self, api_key: str, sender: str, client: httpx.AsyncClient | None = None) -> None:
        self.api_key = api_key
        self.sender = sender
        self._client = client

    def payload(self, message: OutgoingEmail) -> dict[str, Any]:
        body: dict[str, Any] = {
            "from": self.sender,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html_body,
            "text": message.text_body,
        }
        if message.template:
            body["tags"] = [{"name": "template", "value": message.template}]
        return body

    async def _post(self, client: httpx.AsyncClient, message: OutgoingEmail) -> None:
        response = await client.post(
            self.API_URL,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json=self.payload(message),
            timeout=10.0,
        )
        response.raise_for_status()

    async def deliver(self, message: OutgoingEmail) -> bool:
        try:
            if self._client is not None:
                await self._post(self._client, message)
            else:
                async with httpx.AsyncClient() as client:
                    await self._post(client, message)
        except httpx.HTTPError:
            logger.exception("email_send_failed", to=message.to, provider=self.name)
            return False
        return True


def _create_provider() -> BaseEmailProvider:
    settings = get_settings()
    sender = f"{settings.email_from_name} <{settings.email_from_address}>"
    provider_name = settings.email_provider.lower()

    if provider_name == "smtp":
        return SMTPProvider(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            sender=sender,
            use_tls=settings.smtp_use_tls,
        )
    if provider_name == "resend":
        return ResendProvider(api_key=settings.resend_api_key, sender=sender)
    msg = f"Unsupported email provider: {provider_name}"
    raise ValueError(msg)


def render_template(to: str, template_name: str, context: dict[str, Any]) -> OutgoingEmail:
    """Render a registered template for one recipient.

    Raises:
        ValueError: If the template name is unknown.
    """
    template_func = _TEMPLATE_REGISTRY.get(template_name)
    if template_func is None:
        msg = f"Unknown template: {template_name}"
        raise ValueError(msg)
    subject, html_body, text_body = template_func(**context)
    return OutgoingEmail(to=to, subject=subject, html_body=html_body, text_body=text_body, template=template_name)


class EmailService:
    """Throttled delivery on top of a provider."""

    THROTTLE_WINDOW_SECONDS = 3600

    def __init__(
        self,
        provider: BaseEmailProvider | None = None,
        redis: Redis | None = None,
        max_per_hour: int | None = None,
    ) -> None:
        self.provider = provider or _create_provider()
        self._redis = redis
        self.max_per_hour = max_per_hour or get_settings().email_rate_limit_per_hour

    @staticmethod
    def _throttle_key(address: str) -> str:
        # Addresses are hashed so Redis never holds them in clear text.
        return f"email_rate:{hashlib.sha256(address.strip().lower().encode()).hexdigest()}"

    async def _within_quota(self, address: str) -> bool:
        if self._redis is None:
            return True
        key = self._throttle_key(address)
        count = await self._redis.incr(key)
        if count == 1:
            await self._redis.expire(key, self.THROTTLE_WINDOW_SECONDS)
        return count <= self.max_per_hour

    async def send(self, message: OutgoingEmail) -> bool:
        """Deliver unless the recipient is over quota. Returns True when the provider accepted it."""
        if not await self._within_quota(message.to):
            logger.warning("email_rate_limited", to=message.to, template=message.template)
            return False
        delivered = await self.provider.deliver(message)
        if delivered:
            logger.info("email_sent", to=message.to, template=message.template, provider=self.provider.name)
        return delivered

    async def send_template(self, to: str, template_name: str, context: dict[str, Any]) -> bool:
        return await self.send(render_template(to, template_name, context))


_email_service: EmailService | None = None


def get_email_service() -> EmailService:
    """Process-wide service, created on first use with the configured provider."""
    global _email_service  # noqa: PLW0603
    if _email_service is None:
        _email_service = EmailService(redis=get_redis_or_none())
    return _email_service


def set_email_service(service: EmailService | None) -> None:
    global _email_service  # noqa: PLW0603
    _email_service = service


async def send_template_email(to: str, template_name: str, context: dict[str, Any]) -> None:
    """Background task entry point. Delivery failures are logged, never raised."""
    try:
        sent = await get_email_service().send_template(to, template_name, context)
    except Exception:
        logger.exception("notification_email_failed", to=to, template=template_name)
        return
    if not sent:
        logger.warning("notification_not_delivered", to=to, template=template_name)

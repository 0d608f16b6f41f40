"""Notification transports.

A transport hands a NotificationEvent to an external delivery channel. The
engine only guarantees events are produced; transports decide how (and
whether) they reach a person.
"""

import logging
from pathlib import Path
from typing import Protocol

import httpx
import resend
from jinja2 import Environment, FileSystemLoader, select_autoescape

from civicflow.config import settings
from civicflow.models import Actor, NotificationEvent

logger = logging.getLogger(__name__)

# Setup Jinja2 environment
templates_dir = Path(__file__).parent.parent / "templates"
jinja_env = Environment(
    loader=FileSystemLoader(str(templates_dir)),
    autoescape=select_autoescape(enabled_extensions=("html",)),
)


class NotificationTransport(Protocol):
    """Delivery channel for notification events."""

    name: str

    async def deliver(self, event: NotificationEvent, recipient: Actor) -> str | None:
        """
        Deliver one event.

        Returns:
            Channel-specific delivery ID, if the channel provides one

        Raises:
            Exception: Any failure; the caller records it on the event
        """
        ...


class LogTransport:
    """Writes events to the application log. Default for development."""

    name = "log"

    async def deliver(self, event: NotificationEvent, recipient: Actor) -> str | None:
        logger.info(
            f"Notification {event.id} [{event.kind.value}] to actor {recipient.id}: {event.title}"
        )
        return None


class WebhookTransport:
    """POSTs events as JSON to a configured endpoint."""

    name = "webhook"

    def __init__(self, url: str, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout

    async def deliver(self, event: NotificationEvent, recipient: Actor) -> str | None:
        if not self.url:
            raise RuntimeError("Notification webhook URL not configured")

        payload = {
            "id": event.id,
            "kind": event.kind.value,
            "recipient_id": recipient.id,
            "recipient_email": recipient.email,
            "title": event.title,
            "message": event.message,
            "related_id": event.related_id,
            "related_type": event.related_type,
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                self.url,
                json=payload,
                headers={"Idempotency-Key": f"notification-{event.id}"},
            )
            response.raise_for_status()

        return response.headers.get("X-Delivery-Id")


class EmailTransport:
    """Sends events by email via Resend."""

    name = "email"

    def __init__(self, api_key: str, from_email: str, base_url: str):
        self.from_email = from_email
        self.base_url = base_url
        resend.api_key = api_key

    async def deliver(self, event: NotificationEvent, recipient: Actor) -> str | None:
        template = jinja_env.get_template("emails/notification.html")
        html_content = template.render(
            title=event.title,
            message=event.message,
            recipient_name=recipient.full_name,
            related_id=event.related_id,
            related_type=event.related_type,
            base_url=self.base_url,
        )

        response = resend.Emails.send(
            {
                "from": self.from_email,
                "to": [recipient.email],
                "subject": event.title,
                "html": html_content,
            }
        )

        email_id = response.get("id")
        logger.info(f"Notification email sent to {recipient.email}: {email_id}")
        return email_id


def get_transport(name: str | None = None) -> NotificationTransport:
    """Build the transport selected by name, or by settings."""
    name = name or settings.notification_transport
    if name == "webhook":
        return WebhookTransport(settings.notification_webhook_url)
    if name == "email":
        return EmailTransport(
            api_key=settings.resend_api_key,
            from_email=settings.email_from,
            base_url=settings.app_base_url,
        )
    return LogTransport()

"""Delivery channels.

A stored ``push_channels`` row is resolved once into an ``EmailChannel`` or a
``WebhookChannel``; callers only use ``deliver(digest)``.
"""

import json
import logging
import smtplib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

import requests

from config import WEBHOOK_TIMEOUT
from db.models import PushChannel

logger = logging.getLogger(__name__)


class ChannelConfigError(ValueError):
    """Channel row has an unknown type or unusable config JSON."""


@dataclass(frozen=True)
class Digest:
    """Rendered content for one dispatch."""

    subject: str
    html: str
    markdown: str
    count: int


@dataclass(frozen=True)
class DeliveryResult:
    ok: bool
    error: str | None = None


class Channel(ABC):
    id: str
    name: str

    @abstractmethod
    def deliver(self, digest: Digest) -> DeliveryResult:
        """Send the whole digest; the batch either goes out or it doesn't."""
        ...


@dataclass(frozen=True)
class EmailChannel(Channel):
    id: str
    name: str
    smtp_host: str
    smtp_port: int
    username: str
    password: str
    from_address: str
    from_name: str = ""
    to_addresses: list[str] = field(default_factory=list)

    def _message(self, subject: str, html_body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr((self.from_name, self.from_address))
        msg["To"] = ", ".join(self.to_addresses)
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        return msg

    def send(self, subject: str, html_body: str) -> None:
        """Send via SMTP; port 465 uses implicit TLS, anything else STARTTLS when offered."""
        if not self.smtp_host or not self.to_addresses:
            raise ChannelConfigError(f"email channel {self.name!r} has no SMTP host or recipients")
        msg = self._message(subject, html_body)
        if self.smtp_port == 465:
            server: smtplib.SMTP = smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, timeout=30)
        else:
            server = smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30)
        with server:
            if self.smtp_port != 465:
                server.ehlo()
                if server.has_extn("starttls"):
                    server.starttls()
                    server.ehlo()
            if self.username:
                server.login(self.username, self.password)
            server.send_message(msg)

    def deliver(self, digest: Digest) -> DeliveryResult:
        try:
            self.send(digest.subject, digest.html)
        except (smtplib.SMTPException, OSError, ChannelConfigError) as e:
            logger.error("Email delivery via %s failed: %s", self.name, e)
            return DeliveryResult(ok=False, error=str(e))
        logger.info("Email sent via %s to %d recipients: %s", self.name, len(self.to_addresses), digest.subject)
        return DeliveryResult(ok=True)


@dataclass(frozen=True)
class WebhookChannel(Channel):
    """ntfy-style topic webhook: ``POST {server_url}/{topic}`` with a Markdown body."""

    id: str
    name: str
    server_url: str
    topic: str
    token: str = ""

    @property
    def endpoint(self) -> str:
        return f"{self.server_url.rstrip('/')}/{self.topic}"

    def send(self, title: str, message: str, markdown: bool = True) -> None:
        headers = {"Title": title, "Priority": "default"}
        if markdown:
            headers["Markdown"] = "yes"
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        resp = requests.post(
            self.endpoint,
            data=message.encode("utf-8"),
            headers=headers,
            timeout=WEBHOOK_TIMEOUT,
        )
        resp.raise_for_status()

    def deliver(self, digest: Digest) -> DeliveryResult:
        title = f"News digest - {digest.count} items"
        try:
            self.send(title, digest.markdown)
        except requests.RequestException as e:
            logger.error("Webhook delivery via %s failed: %s", self.name, e)
            return DeliveryResult(ok=False, error=str(e))
        logger.info("Webhook notification sent via %s (%d items)", self.name, digest.count)
        return DeliveryResult(ok=True)


def _load_config(row: PushChannel) -> dict:
    try:
        config = json.loads(row.config or "{}")
    except json.JSONDecodeError as e:
        raise ChannelConfigError(f"channel {row.name!r} has invalid config JSON: {e}") from e
    if not isinstance(config, dict):
        raise ChannelConfigError(f"channel {row.name!r} config must be a JSON object")
    return config


def resolve_channel(row: PushChannel) -> Channel:
    """Build the channel variant for a stored row."""
    config = _load_config(row)
    if row.type == "email":
        try:
            port = int(config.get("smtp_port") or 587)
        except (TypeError, ValueError) as e:
            raise ChannelConfigError(f"channel {row.name!r} has invalid smtp_port") from e
        recipients = [a.strip() for a in str(config.get("to_addresses") or "").split(",") if a.strip()]
        return EmailChannel(
            id=row.id,
            name=row.name,
            smtp_host=config.get("smtp_host") or "",
            smtp_port=port,
            username=config.get("username") or "",
            password=config.get("password") or "",
            from_address=config.get("from_address") or config.get("username") or "",
            from_name=config.get("from_name") or "",
            to_addresses=recipients,
        )
    if row.type in ("webhook", "ntfy"):
        if not config.get("server_url") or not config.get("topic"):
            raise ChannelConfigError(f"channel {row.name!r} needs server_url and topic")
        return WebhookChannel(
            id=row.id,
            name=row.name,
            server_url=config["server_url"],
            topic=config["topic"],
            token=config.get("token") or "",
        )
    raise ChannelConfigError(f"unsupported channel type {row.type!r}")

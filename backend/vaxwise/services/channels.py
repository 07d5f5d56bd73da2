"""
Channel senders.

One sender per delivery channel. A sender either returns normally (delivered) or raises
ChannelDeliveryError carrying the provider's message verbatim.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from vaxwise.core.config import Settings
from vaxwise.core.errors import ChannelDeliveryError
from vaxwise.db.models.notification import Channel, Notification
from vaxwise.db.models.user import User

logger = logging.getLogger(__name__)


class ChannelSender(Protocol):
    channel: Channel

    async def send(self, user: User, notification: Notification) -> None:
        ...


def recipient_address(channel: Channel, user: User) -> str:
    """Contact address for a channel; a missing address is a failed delivery."""
    if channel == Channel.EMAIL:
        address = user.email
    elif channel == Channel.SMS:
        address = user.phone
    else:
        address = user.push_token

    address = (address or "").strip()
    if not address:
        raise ChannelDeliveryError(channel.value, f"Recipient has no {channel.value} address")
    return address


class LoggingChannelSender:
    """Used when no messaging provider is configured: logs the message and reports success."""

    def __init__(self, channel: Channel):
        self.channel = channel

    async def send(self, user: User, notification: Notification) -> None:
        address = recipient_address(self.channel, user)
        logger.info(
            f"[{self.channel.value}] to {address}: {notification.title} - {notification.message}"
        )


class HttpChannelSender:
    """Posts a notification to the messaging provider's ``/<channel>/send`` endpoint."""

    def __init__(
        self,
        channel: Channel,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.channel = channel
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _payload(self, address: str, notification: Notification) -> dict:
        return {
            "to": address,
            "title": notification.title,
            "message": notification.message,
            "priority": notification.priority,
            "notification_id": str(notification.notification_id),
        }

    async def send(self, user: User, notification: Notification) -> None:
        address = recipient_address(self.channel, user)
        url = f"{self.base_url}/{self.channel.value}/send"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.post(url, json=self._payload(address, notification))
                r.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ChannelDeliveryError(self.channel.value, _provider_error(exc.response)) from exc
        except httpx.HTTPError as exc:
            raise ChannelDeliveryError(self.channel.value, str(exc) or exc.__class__.__name__) from exc


def _provider_error(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for key in ("error", "detail", "message"):
            if body.get(key):
                return str(body[key])
    return response.text


def build_channel_senders(settings: Settings) -> dict[Channel, ChannelSender]:
    if not settings.messaging_base_url:
        return {channel: LoggingChannelSender(channel) for channel in Channel}
    return {
        channel: HttpChannelSender(
            channel,
            settings.messaging_base_url,
            timeout=settings.channel_timeout_seconds,
        )
        for channel in Channel
    }

"""Discord channel delivery via the REST API."""

import logging
from typing import Any

import httpx

from config import settings
from tracker.notifications import RenderedMessage

logger = logging.getLogger(__name__)

EMBED_COLOR = 0x5865F2


class DiscordNotifier:
    """Notifier that posts messages to Discord channels with a bot token."""

    def __init__(
        self,
        token: str | None = None,
        api_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.token = token if token is not None else settings.discord.token
        self.api_url = (api_url or settings.discord.api_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.discord.timeout
        self._transport = transport

    def deliver(self, destination_key: str, message: RenderedMessage) -> bool:
        """Post a message to a channel.

        Args:
            destination_key: Discord channel id
            message: Rendered message to send

        Returns:
            True if Discord accepted the message, False otherwise
        """
        if not self.token:
            logger.error("Discord token is not configured; cannot deliver message")
            return False
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(
                    f"{self.api_url}/channels/{destination_key}/messages",
                    headers={"Authorization": f"Bot {self.token}"},
                    json=build_payload(message),
                )
                response.raise_for_status()

            logger.info(f"Sent message to channel {destination_key}")
            return True

        except httpx.HTTPStatusError as e:
            logger.error(f"Discord API error: {e}")
            return False
        except httpx.RequestError as e:
            logger.error(f"Discord connection error: {e}")
            return False


def build_payload(message: RenderedMessage) -> dict[str, Any]:
    """Convert a rendered message into a Discord create-message payload."""
    payload: dict[str, Any] = {
        "content": message.content,
        "allowed_mentions": {"parse": ["users", "everyone"]},
    }
    if message.title or message.description or message.fields:
        embed: dict[str, Any] = {"color": EMBED_COLOR}
        if message.title:
            embed["title"] = message.title
        if message.description:
            embed["description"] = message.description
        if message.fields:
            embed["fields"] = [
                {"name": name, "value": value, "inline": True} for name, value in message.fields
            ]
        payload["embeds"] = [embed]
    return payload

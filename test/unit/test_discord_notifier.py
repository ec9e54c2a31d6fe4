"""Unit tests for the Discord REST notifier."""

from __future__ import annotations

import json

import httpx

from services.discord import DiscordNotifier, build_payload
from tracker.notifications import RenderedMessage

MESSAGE = RenderedMessage(
    content="<@dev-1> Milestone due in 1 day(s): Beta",
    title="D-1 | Beta",
    description="Project: Website",
    fields=(("Target date", "2024-01-12"),),
)


def _notifier(handler, token: str | None = "bot-token") -> DiscordNotifier:
    """Build a notifier backed by a mock transport."""
    return DiscordNotifier(
        token=token,
        api_url="https://discord.test/api/v10/",
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


def test_deliver_posts_to_channel_with_bot_auth() -> None:
    """Messages are posted to the channel endpoint with the bot token."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "1"})

    assert _notifier(handler).deliver("chan-1", MESSAGE) is True

    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "https://discord.test/api/v10/channels/chan-1/messages"
    assert request.headers["Authorization"] == "Bot bot-token"
    body = json.loads(request.content)
    assert body["content"] == MESSAGE.content
    assert body["embeds"][0]["title"] == "D-1 | Beta"


def test_deliver_returns_false_on_http_error() -> None:
    """Non-2xx responses are reported as failed deliveries."""
    notifier = _notifier(lambda request: httpx.Response(403, json={"message": "Missing Access"}))

    assert notifier.deliver("chan-1", MESSAGE) is False


def test_deliver_returns_false_on_connection_error() -> None:
    """Transport errors are reported as failed deliveries."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    assert _notifier(handler).deliver("chan-1", MESSAGE) is False


def test_deliver_without_token_does_not_call_api() -> None:
    """A missing token fails fast without a request."""
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200)

    assert _notifier(handler, token="").deliver("chan-1", MESSAGE) is False
    assert calls == []


def test_build_payload_plain_message_has_no_embed() -> None:
    """Messages without embed parts send content only."""
    payload = build_payload(RenderedMessage(content="hello"))

    assert payload == {
        "content": "hello",
        "allowed_mentions": {"parse": ["users", "everyone"]},
    }


def test_build_payload_renders_fields_inline() -> None:
    """Fields become inline embed fields."""
    payload = build_payload(MESSAGE)

    assert payload["embeds"][0]["fields"] == [
        {"name": "Target date", "value": "2024-01-12", "inline": True}
    ]

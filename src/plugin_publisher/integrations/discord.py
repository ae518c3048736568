"""Discord integration for publish review messages.

This module provides:
- A REST client to create, edit and read messages in the publishing channel
- Ed25519 verification of inbound interaction requests
- Builders for interaction responses (pong, ephemeral notice, message update)
"""

import logging
from enum import IntEnum
from typing import Any

import httpx
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

logger = logging.getLogger(__name__)

EPHEMERAL_FLAG = 1 << 6


class ButtonStyle(IntEnum):
    """Discord button styles."""

    SECONDARY = 2
    SUCCESS = 3
    DANGER = 4


class ComponentType(IntEnum):
    ACTION_ROW = 1
    BUTTON = 2


class InteractionType(IntEnum):
    PING = 1
    MESSAGE_COMPONENT = 3


class InteractionResponseType(IntEnum):
    PONG = 1
    CHANNEL_MESSAGE_WITH_SOURCE = 4
    UPDATE_MESSAGE = 7


def button(style: ButtonStyle, label: str, custom_id: str) -> dict[str, Any]:
    return {
        "type": ComponentType.BUTTON.value,
        "style": style.value,
        "label": label,
        "custom_id": custom_id,
    }


def action_row(*buttons: dict[str, Any]) -> dict[str, Any]:
    return {"type": ComponentType.ACTION_ROW.value, "components": list(buttons)}


def pong_response() -> dict[str, Any]:
    return {"type": InteractionResponseType.PONG.value}


def ephemeral_response(message: str) -> dict[str, Any]:
    """Reply visible only to the user who pressed the button."""
    return {
        "type": InteractionResponseType.CHANNEL_MESSAGE_WITH_SOURCE.value,
        "data": {"content": message, "flags": EPHEMERAL_FLAG},
    }


def update_message_response(content: str, components: list[dict[str, Any]]) -> dict[str, Any]:
    """Edit the message the pressed button belongs to."""
    return {
        "type": InteractionResponseType.UPDATE_MESSAGE.value,
        "data": {"content": content, "components": components},
    }


class InteractionVerifier:
    """Verify Discord's Ed25519 signature on interaction requests."""

    def __init__(self, public_key: str) -> None:
        """Initialize the verifier.

        Args:
            public_key: Application public key, hex encoded
        """
        self._key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key))

    def verify(self, body: bytes, signature: str | None, timestamp: str | None) -> bool:
        """Check ``X-Signature-Ed25519`` over ``timestamp + body``.

        Returns:
            True if the request was signed by Discord
        """
        if not signature or not timestamp:
            logger.warning("Interaction request missing signature headers")
            return False

        try:
            self._key.verify(bytes.fromhex(signature), timestamp.encode() + body)
        except (InvalidSignature, ValueError):
            logger.warning("Interaction signature mismatch")
            return False
        return True


class DiscordClient:
    """HTTP client for the publishing channel."""

    def __init__(
        self,
        token: str,
        channel_id: str,
        *,
        base_url: str = "https://discord.com/api/v10",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the Discord client.

        Args:
            token: Bot token
            channel_id: Channel publish requests are posted to
            base_url: Discord API base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.channel_id = channel_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self.headers = {
            "Authorization": f"Bot {token}",
            "Content-Type": "application/json",
        }

    def _messages_url(self, message_id: str | None = None) -> str:
        url = f"{self.base_url}/channels/{self.channel_id}/messages"
        return f"{url}/{message_id}" if message_id else url

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            return await client.request(method, url, headers=self.headers, **kwargs)

    async def create_message(
        self,
        content: str,
        embeds: list[dict[str, Any]] | None = None,
        components: list[dict[str, Any]] | None = None,
    ) -> str:
        """Post a message to the publishing channel.

        Returns:
            The new message id

        Raises:
            httpx.HTTPError: On API errors
        """
        response = await self._request(
            "POST",
            self._messages_url(),
            json={
                "content": content,
                "embeds": embeds or [],
                "components": components or [],
            },
        )
        response.raise_for_status()
        message_id = response.json()["id"]
        logger.info(f"Posted publish request message {message_id}")
        return message_id

    async def edit_message(
        self,
        message_id: str,
        *,
        content: str | None = None,
        embeds: list[dict[str, Any]] | None = None,
        components: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        """Edit a message; fields left as None are not changed.

        Raises:
            httpx.HTTPError: On API errors
        """
        payload: dict[str, Any] = {}
        if content is not None:
            payload["content"] = content
        if embeds is not None:
            payload["embeds"] = embeds
        if components is not None:
            payload["components"] = components

        response = await self._request("PATCH", self._messages_url(message_id), json=payload)
        response.raise_for_status()
        logger.info(f"Edited publish request message {message_id}")
        return response.json()

    async def get_message(self, message_id: str) -> dict[str, Any] | None:
        """Fetch a message.

        Returns:
            The message, or None if it no longer exists

        Raises:
            httpx.HTTPError: On errors other than 404
        """
        response = await self._request("GET", self._messages_url(message_id))
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

"""Telegram Bot API adapter.

Handles webhook verification against the configured secret token, update
extraction, and outbound calls (sendMessage, setWebhook, getWebhookInfo).
Outbound calls are single attempts; failures are reported, never retried.
"""

from __future__ import annotations

import hmac
import logging
from typing import Any

import httpx

from src.errors import DeliveryError

logger = logging.getLogger(__name__)

SECRET_HEADER = "x-telegram-bot-api-secret-token"
_TIMEOUT_SECONDS = 10.0


class TelegramAPIError(Exception):
    """A Bot API call failed at the transport level or returned ok=false."""


class TelegramBot:
    """Handles Telegram Bot API webhook updates and outbound calls."""

    def __init__(
        self,
        bot_token: str,
        webhook_secret: str,
        api_base: str = "https://api.telegram.org",
    ) -> None:
        self._bot_token = bot_token
        self._webhook_secret = webhook_secret
        self._api_base = api_base.rstrip("/")

    def verify_webhook(self, headers: dict[str, str]) -> bool:
        """Verify the secret token header Telegram echoes on every update.

        Constant-time comparison via hmac.compare_digest.
        """
        secret = headers.get(SECRET_HEADER, "")
        if not secret:
            return False
        return hmac.compare_digest(secret.encode(), self._webhook_secret.encode())

    def extract_message(self, update: dict[str, Any]) -> tuple[int, str, int]:
        """Extract update_id, message text, and chat_id from a Telegram update.

        Returns (update_id, text, chat_id). Handles both message and edited_message.
        """
        update_id: int = update.get("update_id", 0)
        message = update.get("message") or update.get("edited_message") or {}
        text: str = message.get("text", "")
        chat: dict[str, Any] = message.get("chat", {})
        chat_id: int = chat.get("id", 0)
        return update_id, text, chat_id

    async def send_message(
        self, chat_id: int, text: str, parse_mode: str | None = "Markdown",
    ) -> None:
        """Send ``text`` to ``chat_id``; raises DeliveryError on any failure."""
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        try:
            await self._call("sendMessage", payload)
        except TelegramAPIError as exc:
            raise DeliveryError(f"sendMessage to chat {chat_id} failed: {exc}") from exc

    async def set_webhook(self, url: str) -> bool:
        """Point Telegram at ``url``, signing updates with the webhook secret."""
        result = await self._call(
            "setWebhook", {"url": url, "secret_token": self._webhook_secret},
        )
        return result is True

    async def get_webhook_info(self) -> dict[str, Any]:
        result = await self._call("getWebhookInfo", {})
        return result if isinstance(result, dict) else {}

    async def _call(self, method: str, payload: dict[str, Any]) -> Any:
        """POST a Bot API method and return its ``result`` field.

        TLS certificate verification enabled.
        """
        url = f"{self._api_base}/bot{self._bot_token}/{method}"
        try:
            async with httpx.AsyncClient(verify=True) as client:
                resp = await client.post(url, json=payload, timeout=_TIMEOUT_SECONDS)
        except httpx.HTTPError as exc:
            raise TelegramAPIError(f"{method}: {type(exc).__name__}") from exc

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if resp.status_code >= 400 or not body.get("ok", False):
            description = body.get("description") or f"HTTP {resp.status_code}"
            raise TelegramAPIError(f"{method}: {description}")
        return body.get("result")

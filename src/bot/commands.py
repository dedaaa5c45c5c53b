"""Bot command handlers: greeting/help and the hook issuer (/gethook)."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from src.errors import DeliveryError, StorageError

if TYPE_CHECKING:
    from src.bot.telegram import TelegramBot
    from src.store.bindings import BindingStore

logger = logging.getLogger(__name__)

GREETING = (
    "Hi! I relay ddns-go webhook notifications to this chat.\n"
    "Send /gethook to get your personal webhook settings."
)
STORAGE_FAILURE_REPLY = "❌ Sorry, the webhook could not be created. Please try again later."
APOLOGY = "❌ Sorry, something went wrong while answering your command."

REQUEST_BODY_TEMPLATE = """{
    "ipv4": {
        "result": "#{ipv4Result}",
        "addr": "#{ipv4Addr}",
        "domains": "#{ipv4Domains}"
    },
    "ipv6": {
        "result": "#{ipv6Result}",
        "addr": "#{ipv6Addr}",
        "domains": "#{ipv6Domains}"
    }
}"""


def parse_command(text: str) -> str | None:
    """Command name of a message like ``/gethook@MyBot arg``, lowercased."""
    if not text.startswith("/"):
        return None
    token = text.split(maxsplit=1)[0][1:]
    name = token.split("@", 1)[0].lower()
    return name or None


def render_hook_instructions(hook_url: str) -> str:
    """Setup instructions for ddns-go; depends only on ``hook_url``."""
    return (
        "✅ Your ddns-go webhook settings:\n\n"
        f"🌐 *Webhook URL:*\n`{hook_url}`\n\n"
        f"📝 *RequestBody (POST method):*\n```json\n{REQUEST_BODY_TEMPLATE}\n```\n\n"
        "Paste the URL and RequestBody into the ddns-go Webhook settings.\n"
        "_Note: remove the ipv4 or ipv6 object if that family is disabled._\n\n"
        "I will post a message here whenever ddns-go reports an update."
    )


class CommandHandler:
    """Dispatches bot commands from Telegram updates."""

    def __init__(
        self,
        bot: TelegramBot,
        bindings: BindingStore,
        hook_url: Callable[[str], str],
    ) -> None:
        self._bot = bot
        self._bindings = bindings
        self._hook_url = hook_url
        self._commands: dict[str, Callable[[int], Any]] = {
            "start": self.greet,
            "help": self.greet,
            "gethook": self.issue_hook,
        }

    async def handle_update(self, update: dict[str, Any]) -> None:
        """Run the command carried by ``update``, if any.

        Updates without a chat, non-command messages and unknown commands are
        ignored.
        """
        update_id, text, chat_id = self._bot.extract_message(update)
        if not chat_id:
            return
        command = parse_command(text)
        handler = self._commands.get(command) if command else None
        if handler is None:
            logger.debug("Ignoring update %s from chat %s", update_id, chat_id)
            return
        logger.info("Command /%s from chat %s", command, chat_id)
        await handler(chat_id)

    async def greet(self, chat_id: int) -> None:
        await self._reply(chat_id, GREETING, parse_mode=None)

    async def issue_hook(self, chat_id: int) -> None:
        try:
            hook_id = self._bindings.create_or_get_binding(chat_id)
        except StorageError as exc:
            logger.error("Storage failure creating hook for chat %s: %s", chat_id, exc)
            await self._reply(chat_id, STORAGE_FAILURE_REPLY, parse_mode=None)
            return
        await self._reply(chat_id, render_hook_instructions(self._hook_url(hook_id)))

    async def _reply(
        self, chat_id: int, text: str, parse_mode: str | None = "Markdown",
    ) -> None:
        try:
            await self._bot.send_message(chat_id, text, parse_mode=parse_mode)
        except DeliveryError as exc:
            logger.error("Reply to chat %s failed: %s", chat_id, exc)
            try:
                await self._bot.send_message(chat_id, APOLOGY, parse_mode=None)
            except DeliveryError as apology_exc:
                logger.error("Apology to chat %s failed: %s", chat_id, apology_exc)

"""Click CLI: run the relay server and manage the Telegram webhook."""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click
import uvicorn

from src.bot.telegram import TelegramAPIError, TelegramBot
from src.config import Settings
from src.errors import ConfigError, StorageError
from src.server.app import create_app_from_settings
from src.store.bindings import BindingStore
from src.store.kv import KeyValueStore

logger = logging.getLogger(__name__)


def _load_settings() -> Settings:
    try:
        return Settings.from_env()
    except ConfigError as exc:
        for problem in exc.problems:
            click.echo(f"Configuration error: {problem}", err=True)
        sys.exit(1)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        level=getattr(logging, level, logging.INFO),
    )


def _bot(settings: Settings) -> TelegramBot:
    return TelegramBot(
        settings.bot_token, settings.webhook_secret, api_base=settings.telegram_api_base,
    )


async def _register_webhook(bot: TelegramBot, url: str) -> bool:
    ok = await bot.set_webhook(url)
    if not ok:
        info = await bot.get_webhook_info()
        logger.error("setWebhook returned false; webhook info: %s", info)
    return ok


@click.group()
def cli() -> None:
    """ddns-go to Telegram notification relay."""


@cli.command()
@click.option("--host", default=None, help="Listen address (default: HOST or 0.0.0.0).")
@click.option("--port", type=int, default=None, help="Listen port (default: PORT or 8000).")
@click.option("--skip-set-webhook", is_flag=True, help="Do not call setWebhook on startup.")
def serve(host: str | None, port: int | None, skip_set_webhook: bool) -> None:
    """Register the Telegram webhook and serve HTTP."""
    settings = _load_settings()
    _configure_logging(settings.log_level)

    if not skip_set_webhook:
        url = settings.telegram_webhook_url
        logger.info("Setting Telegram webhook to %s", url)
        try:
            if asyncio.run(_register_webhook(_bot(settings), url)):
                logger.info("Telegram webhook set")
        except TelegramAPIError as exc:
            click.echo(f"Failed to set Telegram webhook: {exc}", err=True)
            click.echo("Check BASE_URL and connectivity to the Telegram API.", err=True)
            sys.exit(1)

    try:
        app = create_app_from_settings(settings)
    except StorageError as exc:
        click.echo(f"Cannot open binding store: {exc}", err=True)
        sys.exit(1)
    uvicorn.run(app, host=host or settings.host, port=port or settings.port)


@cli.command("set-webhook")
def set_webhook() -> None:
    """Point Telegram at this relay's update path."""
    settings = _load_settings()
    _configure_logging(settings.log_level)
    try:
        ok = asyncio.run(_register_webhook(_bot(settings), settings.telegram_webhook_url))
    except TelegramAPIError as exc:
        click.echo(f"Failed to set Telegram webhook: {exc}", err=True)
        sys.exit(1)
    if not ok:
        sys.exit(1)
    click.echo(f"Webhook set: {settings.telegram_webhook_url}")


@cli.command("webhook-info")
def webhook_info() -> None:
    """Print Telegram's getWebhookInfo result."""
    settings = _load_settings()
    try:
        info = asyncio.run(_bot(settings).get_webhook_info())
    except TelegramAPIError as exc:
        click.echo(f"getWebhookInfo failed: {exc}", err=True)
        sys.exit(1)
    click.echo(json.dumps(info, indent=2))


@cli.command()
@click.argument("hook_id")
@click.option(
    "--db", envvar="BINDINGS_DB_PATH", default="data/bindings.db",
    help="Binding database path.",
)
def lookup(hook_id: str, db: str) -> None:
    """Print the chat id bound to HOOK_ID."""
    try:
        chat_id = BindingStore(KeyValueStore(db)).resolve_chat(hook_id)
    except StorageError as exc:
        click.echo(f"Store error: {exc}", err=True)
        sys.exit(1)
    if chat_id is None:
        click.echo(f"Unknown hook id: {hook_id}", err=True)
        sys.exit(1)
    click.echo(str(chat_id))


if __name__ == "__main__":
    cli()

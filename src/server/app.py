"""FastAPI application routing Telegram updates and ddns-go callbacks."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable

import pydantic
from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse

from src.audit.logger import AuditLogger
from src.bot.commands import CommandHandler
from src.bot.telegram import TelegramBot
from src.config import Settings
from src.errors import DeliveryError, StorageError, ValidationError
from src.models import AuditEvent, AuditEventType, IPUpdateReport, RiskLevel
from src.notify.formatter import format_report
from src.store.bindings import HOOK_ID_FACTORIES, BindingStore
from src.store.kv import KeyValueStore

logger = logging.getLogger(__name__)

_ALL_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH"]


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    return create_app_from_settings(Settings.from_env())


def create_app_from_settings(settings: Settings) -> FastAPI:
    """Wire the store, bot client and audit logger described by ``settings``."""
    audit_logger = AuditLogger.from_settings(settings)
    bindings = BindingStore(
        KeyValueStore(settings.db_path),
        hook_id_factory=HOOK_ID_FACTORIES[settings.hook_id_style],
        audit_logger=audit_logger,
    )
    bot = TelegramBot(
        settings.bot_token, settings.webhook_secret, api_base=settings.telegram_api_base,
    )
    return create_app(settings, bindings, bot, audit_logger)


def create_app(
    settings: Settings,
    bindings: BindingStore,
    bot: TelegramBot,
    audit_logger: AuditLogger | None = None,
) -> FastAPI:
    """Create the relay app with its collaborators injected."""
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)
    commands = CommandHandler(bot, bindings, settings.hook_url)

    def audit(event: AuditEvent) -> None:
        if not audit_logger:
            return
        try:
            audit_logger.log(event)
        except OSError:
            logger.exception("Audit write failed for %s", event.event_type.value)

    @app.middleware("http")
    async def log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        response = await call_next(request)
        logger.info(
            "%s %s -> %d", request.method, request.url.path, response.status_code,
        )
        return response

    @app.post(settings.telegram_webhook_path)
    async def telegram_webhook(request: Request) -> Response:
        if not bot.verify_webhook(dict(request.headers)):
            audit(AuditEvent(
                event_type=AuditEventType.BOT_UPDATE_REJECTED,
                source_ip=request.client.host if request.client else None,
                action="telegram_update",
                result="rejected",
                risk_level=RiskLevel.MEDIUM,
                details={"reason": "invalid_secret_token"},
            ))
            return PlainTextResponse("Unauthorized", status_code=401)

        try:
            update = json.loads(await request.body())
            await commands.handle_update(update)
        except Exception:
            logger.exception("Error while handling Telegram update")
            return PlainTextResponse("Internal Server Error", status_code=500)
        return PlainTextResponse("OK")

    @app.api_route(f"/{settings.ddns_prefix}/{{hook_id}}", methods=_ALL_METHODS)
    async def ddns_webhook(request: Request, hook_id: str) -> Response:
        try:
            chat_id, report = await _accept_report(
                request, hook_id, bindings, settings.strict_content_type,
            )
        except ValidationError as exc:
            logger.warning("Rejected ddns callback for %s: %s", hook_id, exc.message)
            audit(AuditEvent(
                event_type=AuditEventType.DDNS_REJECTED,
                source_ip=request.client.host if request.client else None,
                action="ddns_callback",
                result="rejected",
                risk_level=RiskLevel.LOW,
                details={"status": exc.status_code, "reason": exc.message},
            ))
            return PlainTextResponse(exc.message, status_code=exc.status_code)
        except StorageError as exc:
            logger.error("Storage failure resolving hook %s: %s", hook_id, exc)
            return PlainTextResponse("Internal Server Error", status_code=500)

        # Delivery failures never change the response to the updater
        try:
            await bot.send_message(chat_id, format_report(report))
        except DeliveryError as exc:
            logger.error("Notification to chat %s failed: %s", chat_id, exc)
            audit(AuditEvent(
                event_type=AuditEventType.NOTIFICATION_FAILED,
                chat_id=chat_id,
                action="ddns_notify",
                result="failure",
                risk_level=RiskLevel.MEDIUM,
                details={"error": str(exc)},
            ))
        else:
            logger.info("Notified chat %s", chat_id)
            audit(AuditEvent(
                event_type=AuditEventType.NOTIFICATION_SENT,
                chat_id=chat_id,
                action="ddns_notify",
                result="success",
                risk_level=RiskLevel.INFO,
            ))
        return PlainTextResponse("OK")

    @app.api_route("/{path:path}", methods=_ALL_METHODS)
    async def not_found(path: str) -> Response:
        return PlainTextResponse("Not Found", status_code=404)

    return app


async def _accept_report(
    request: Request,
    hook_id: str,
    bindings: BindingStore,
    strict_content_type: bool,
) -> tuple[int, IPUpdateReport]:
    """Validate a ddns-go callback and return the target chat and report.

    Checks run in order: method, hook id, content type, JSON, report shape.
    """
    if request.method != "POST":
        raise ValidationError("Method Not Allowed", 405)

    chat_id = bindings.resolve_chat(hook_id)
    if chat_id is None:
        raise ValidationError("Not Found (Invalid webhook path)", 404)

    if strict_content_type and not _is_json_content_type(
        request.headers.get("content-type", ""),
    ):
        raise ValidationError("Unsupported Media Type", 415)

    try:
        data = json.loads(await request.body())
    except (json.JSONDecodeError, UnicodeDecodeError, RecursionError):
        raise ValidationError("Bad Request (Invalid JSON)", 400) from None

    try:
        report = IPUpdateReport.model_validate(data)
    except pydantic.ValidationError:
        raise ValidationError("Bad Request (Invalid report)", 400) from None

    return chat_id, report


def _is_json_content_type(value: str) -> bool:
    media_type = value.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")

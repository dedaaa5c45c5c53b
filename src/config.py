"""Environment-sourced settings, validated once at startup."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from src.errors import ConfigError

_REQUIRED = ("BOT_TOKEN", "BASE_URL", "WEBHOOK_SECRET")
_HOOK_ID_STYLES = ("full", "short")
_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off")


@dataclass(frozen=True)
class Settings:
    bot_token: str
    base_url: str
    webhook_secret: str
    host: str = "0.0.0.0"
    port: int = 8000
    db_path: str = "data/bindings.db"
    telegram_webhook_path: str = "/telegram-webhook"
    ddns_prefix: str = "ddns-webhook"
    strict_content_type: bool = True
    hook_id_style: str = "full"
    telegram_api_base: str = "https://api.telegram.org"
    audit_log_path: str | None = None
    audit_max_bytes: int = 10_485_760
    audit_backup_count: int = 3
    log_level: str = "INFO"

    @property
    def telegram_webhook_url(self) -> str:
        return f"{self.base_url}{self.telegram_webhook_path}"

    def hook_url(self, hook_id: str) -> str:
        """Public URL a DDNS updater should POST to for ``hook_id``."""
        return f"{self.base_url}/{self.ddns_prefix}/{hook_id}"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from environment variables.

        Collects every problem before raising so the operator sees them all
        at once.
        """
        env = os.environ if environ is None else environ
        problems = [
            f"environment variable {name} is not set"
            for name in _REQUIRED
            if not env.get(name, "").strip()
        ]

        port = _int_setting(env, "PORT", 8000, problems)
        audit_max_bytes = _int_setting(env, "AUDIT_LOG_MAX_BYTES", 10_485_760, problems)
        audit_backup_count = _int_setting(env, "AUDIT_LOG_BACKUP_COUNT", 3, problems)
        if audit_max_bytes <= 0:
            problems.append("AUDIT_LOG_MAX_BYTES must be positive")
        if audit_backup_count < 0:
            problems.append("AUDIT_LOG_BACKUP_COUNT must not be negative")

        ddns_prefix = env.get("DDNS_WEBHOOK_PREFIX", "ddns-webhook").strip().strip("/")
        if not ddns_prefix:
            problems.append("DDNS_WEBHOOK_PREFIX must not be empty")

        hook_id_style = env.get("HOOK_ID_STYLE", "full").strip().lower()
        if hook_id_style not in _HOOK_ID_STYLES:
            problems.append(
                f"HOOK_ID_STYLE must be one of {', '.join(_HOOK_ID_STYLES)}, "
                f"got {hook_id_style!r}"
            )

        strict = True
        raw_strict = env.get("DDNS_STRICT_CONTENT_TYPE", "").strip().lower()
        if raw_strict in _FALSY:
            strict = False
        elif raw_strict and raw_strict not in _TRUTHY:
            problems.append(
                f"DDNS_STRICT_CONTENT_TYPE must be a boolean, got {raw_strict!r}"
            )

        if problems:
            raise ConfigError(problems)

        webhook_path = env.get("TELEGRAM_WEBHOOK_PATH", "/telegram-webhook").strip()
        if not webhook_path.startswith("/"):
            webhook_path = f"/{webhook_path}"

        return cls(
            bot_token=env["BOT_TOKEN"].strip(),
            base_url=env["BASE_URL"].strip().rstrip("/"),
            webhook_secret=env["WEBHOOK_SECRET"].strip(),
            host=env.get("HOST", "0.0.0.0").strip(),
            port=port,
            db_path=env.get("BINDINGS_DB_PATH", "data/bindings.db").strip(),
            telegram_webhook_path=webhook_path,
            ddns_prefix=ddns_prefix,
            strict_content_type=strict,
            hook_id_style=hook_id_style,
            telegram_api_base=env.get(
                "TELEGRAM_API_BASE", "https://api.telegram.org",
            ).strip().rstrip("/"),
            audit_log_path=env.get("AUDIT_LOG_PATH") or None,
            audit_max_bytes=audit_max_bytes,
            audit_backup_count=audit_backup_count,
            log_level=env.get("LOG_LEVEL", "INFO").strip().upper(),
        )


def _int_setting(
    env: Mapping[str, str], name: str, default: int, problems: list[str],
) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        problems.append(f"{name} must be an integer, got {raw!r}")
        return default

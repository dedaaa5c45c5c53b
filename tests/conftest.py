"""Shared test fixtures for ddns-relay."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from src.audit.logger import AuditLogger
from src.config import Settings
from src.store.bindings import BindingStore
from src.store.kv import KeyValueStore

BOT_TOKEN = "123:ABC"
WEBHOOK_SECRET = "s3cret-token"
BASE_URL = "https://relay.example.com"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        bot_token=BOT_TOKEN,
        base_url=BASE_URL,
        webhook_secret=WEBHOOK_SECRET,
        db_path=str(tmp_path / "bindings.db"),
    )


@pytest.fixture
def kv_store(tmp_path: Path):
    store = KeyValueStore(str(tmp_path / "kv.db"))
    yield store
    store.close()


@pytest.fixture
def binding_store(kv_store: KeyValueStore) -> BindingStore:
    return BindingStore(kv_store)


@pytest.fixture
def mock_audit_logger() -> MagicMock:
    return MagicMock(spec=AuditLogger)


# --- Factory functions for test data ---


def make_family(
    result: str = "OK", addr: str = "1.2.3.4", domains: str = "a.com",
) -> dict[str, str]:
    return {"result": result, "addr": addr, "domains": domains}


def make_report_payload(**families: dict[str, str] | None) -> dict[str, Any]:
    """Factory for a ddns-go webhook body; defaults to a single IPv4 OK."""
    if not families:
        families = {"ipv4": make_family()}
    return {k: v for k, v in families.items() if v is not None}


def make_telegram_update(
    text: str = "/gethook",
    chat_id: int = 42,
    update_id: int = 1,
) -> dict[str, Any]:
    return {
        "update_id": update_id,
        "message": {
            "message_id": 1,
            "chat": {"id": chat_id, "type": "private"},
            "text": text,
        },
    }

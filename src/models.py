"""Shared Pydantic data models for ddns-relay."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

# --- Enums ---


class UpdateResult(str, Enum):
    OK = "OK"
    FAIL = "FAIL"
    NO_CHANGE = "NO_CHANGE"


class AuditEventType(str, Enum):
    BINDING_CREATED = "binding_created"
    NOTIFICATION_SENT = "notification_sent"
    NOTIFICATION_FAILED = "notification_failed"
    DDNS_REJECTED = "ddns_rejected"
    BOT_UPDATE_REJECTED = "bot_update_rejected"


class RiskLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


# --- DDNS Report Models ---


class AddressReport(BaseModel):
    """One address family section of a ddns-go webhook body."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    result: UpdateResult
    addr: str = ""
    domains: str = ""


class IPUpdateReport(BaseModel):
    """Webhook body sent by ddns-go after an update attempt."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    ipv4: AddressReport | None = None
    ipv6: AddressReport | None = None

    @model_validator(mode="after")
    def _require_family(self) -> IPUpdateReport:
        if self.ipv4 is None and self.ipv6 is None:
            raise ValueError("at least one of ipv4/ipv6 is required")
        return self

    def families(self) -> list[tuple[str, AddressReport]]:
        """Present address families in display order."""
        present: list[tuple[str, AddressReport]] = []
        if self.ipv4 is not None:
            present.append(("IPv4", self.ipv4))
        if self.ipv6 is not None:
            present.append(("IPv6", self.ipv6))
        return present


# --- Audit Models ---


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class AuditEvent(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    event_type: AuditEventType
    source_ip: str | None = None
    chat_id: int | None = None
    action: str
    result: str  # "success" | "failure" | "rejected"
    risk_level: RiskLevel
    details: dict[str, object] | None = None

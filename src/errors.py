"""Error taxonomy for ddns-relay."""

from __future__ import annotations


class ConfigError(Exception):
    """Required configuration is missing or invalid. Fatal at startup."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = problems
        super().__init__("; ".join(problems))


class StorageError(Exception):
    """The durable binding store failed to read or write."""


class ValidationError(Exception):
    """An inbound request was rejected before any side effect."""

    def __init__(self, message: str, status_code: int) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class DeliveryError(Exception):
    """An outbound Telegram message could not be delivered."""

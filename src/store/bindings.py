"""Bidirectional chat <-> hook id bindings on top of the key-value store."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable

from src.audit.logger import AuditLogger
from src.errors import StorageError
from src.models import AuditEvent, AuditEventType, RiskLevel
from src.store.kv import Check, KeyValueStore, Write

logger = logging.getLogger(__name__)

CHAT_INDEX = "chat"
HOOK_INDEX = "hook"

_MAX_ATTEMPTS = 5


def full_hook_id() -> str:
    return uuid.uuid4().hex


def short_hook_id() -> str:
    """First segment of a random UUID (8 hex chars)."""
    return str(uuid.uuid4()).split("-")[0]


HOOK_ID_FACTORIES: dict[str, Callable[[], str]] = {
    "full": full_hook_id,
    "short": short_hook_id,
}


class BindingStore:
    """Persists chat -> hook and hook -> chat as two index entries.

    Both entries are written in one transaction that also checks neither
    exists yet, so a chat never ends up with two different hook ids.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        hook_id_factory: Callable[[], str] = full_hook_id,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._kv = kv
        self._new_hook_id = hook_id_factory
        self.audit_logger = audit_logger

    def create_or_get_binding(self, chat_id: int) -> str:
        """Return the hook id bound to ``chat_id``, creating one if needed.

        Raises StorageError if the store fails or no free hook id could be
        found within a few attempts.
        """
        chat_key = (CHAT_INDEX, str(chat_id))
        for _ in range(_MAX_ATTEMPTS):
            existing = self._kv.get(chat_key)
            if existing is not None:
                return existing

            hook_id = self._new_hook_id()
            hook_key = (HOOK_INDEX, hook_id)
            committed = self._kv.transact(
                checks=[Check(chat_key, None), Check(hook_key, None)],
                writes=[Write(chat_key, hook_id), Write(hook_key, str(chat_id))],
            )
            if committed:
                logger.info("Created hook %s for chat %s", hook_id, chat_id)
                self._audit_created(chat_id, hook_id)
                return hook_id
            # Either another request bound this chat first (picked up by the
            # re-read above) or the hook id collided.
            logger.debug("Binding conflict for chat %s, retrying", chat_id)

        raise StorageError(f"could not allocate a hook id for chat {chat_id}")

    def _audit_created(self, chat_id: int, hook_id: str) -> None:
        # Binding is committed at this point; audit failures are only logged
        if not self.audit_logger:
            return
        try:
            self.audit_logger.log(AuditEvent(
                event_type=AuditEventType.BINDING_CREATED,
                chat_id=chat_id,
                action="create_binding",
                result="success",
                risk_level=RiskLevel.INFO,
                details={"hook_id": hook_id},
            ))
        except OSError:
            logger.exception("Audit write failed for binding of chat %s", chat_id)

    def resolve_chat(self, hook_id: str) -> int | None:
        """Chat bound to ``hook_id``, or None for unknown ids."""
        if not hook_id:
            return None
        value = self._kv.get((HOOK_INDEX, hook_id))
        if value is None:
            return None
        try:
            return int(value)
        except ValueError as exc:
            raise StorageError(f"corrupt chat id {value!r} for hook {hook_id}") from exc

    def get_hook(self, chat_id: int) -> str | None:
        return self._kv.get((CHAT_INDEX, str(chat_id)))

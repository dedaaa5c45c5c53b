"""Tests for the chat <-> hook binding store."""

from __future__ import annotations

import re
import threading
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from src.errors import StorageError
from src.models import AuditEventType
from src.store.bindings import (
    CHAT_INDEX,
    HOOK_INDEX,
    BindingStore,
    full_hook_id,
    short_hook_id,
)
from src.store.kv import KeyValueStore, Write


class TestCreateOrGet:
    def test_create_returns_hook_id(self, binding_store: BindingStore) -> None:
        hook_id = binding_store.create_or_get_binding(42)
        assert hook_id
        assert binding_store.get_hook(42) == hook_id

    def test_idempotent_for_same_chat(self, binding_store: BindingStore) -> None:
        first = binding_store.create_or_get_binding(42)
        second = binding_store.create_or_get_binding(42)
        assert first == second

    def test_distinct_chats_get_distinct_hooks(self, binding_store: BindingStore) -> None:
        hooks = {binding_store.create_or_get_binding(chat) for chat in range(20)}
        assert len(hooks) == 20

    def test_negative_group_chat_ids(self, binding_store: BindingStore) -> None:
        hook_id = binding_store.create_or_get_binding(-1001234567890)
        assert binding_store.resolve_chat(hook_id) == -1001234567890

    def test_both_directions_written(self, kv_store: KeyValueStore) -> None:
        store = BindingStore(kv_store, hook_id_factory=lambda: "fixedhook")
        store.create_or_get_binding(7)
        assert kv_store.get((CHAT_INDEX, "7")) == "fixedhook"
        assert kv_store.get((HOOK_INDEX, "fixedhook")) == "7"

    def test_hook_collision_generates_new_id(self, kv_store: KeyValueStore) -> None:
        kv_store.transact([], [
            Write((CHAT_INDEX, "1"), "taken"),
            Write((HOOK_INDEX, "taken"), "1"),
        ])
        ids = iter(["taken", "fresh"])
        store = BindingStore(kv_store, hook_id_factory=lambda: next(ids))

        assert store.create_or_get_binding(2) == "fresh"
        assert store.resolve_chat("taken") == 1

    def test_gives_up_after_repeated_collisions(self, kv_store: KeyValueStore) -> None:
        kv_store.transact([], [Write((HOOK_INDEX, "taken"), "1")])
        store = BindingStore(kv_store, hook_id_factory=lambda: "taken")
        with pytest.raises(StorageError):
            store.create_or_get_binding(2)
        assert store.get_hook(2) is None

    def test_concurrent_calls_bind_once(self, tmp_path: Path) -> None:
        kv = KeyValueStore(str(tmp_path / "race.db"))
        store = BindingStore(kv)
        results: list[str] = []
        barrier = threading.Barrier(8)

        def worker() -> None:
            barrier.wait()
            results.append(store.create_or_get_binding(99))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(set(results)) == 1
        assert store.get_hook(99) == results[0]
        kv.close()

    def test_audits_only_new_bindings(self, kv_store: KeyValueStore) -> None:
        audit = MagicMock()
        store = BindingStore(kv_store, audit_logger=audit)
        store.create_or_get_binding(5)
        store.create_or_get_binding(5)

        audit.log.assert_called_once()
        event = audit.log.call_args[0][0]
        assert event.event_type == AuditEventType.BINDING_CREATED
        assert event.chat_id == 5

    def test_audit_failure_keeps_binding(self, kv_store: KeyValueStore) -> None:
        audit = MagicMock()
        audit.log.side_effect = OSError("disk full")
        store = BindingStore(kv_store, audit_logger=audit)

        hook_id = store.create_or_get_binding(5)

        audit.log.assert_called_once()
        assert store.resolve_chat(hook_id) == 5
        assert store.create_or_get_binding(5) == hook_id


class TestResolve:
    def test_resolves_originating_chat(self, binding_store: BindingStore) -> None:
        for chat in (1, 42, 123456789):
            hook_id = binding_store.create_or_get_binding(chat)
            assert binding_store.resolve_chat(hook_id) == chat

    def test_unknown_hook_returns_none(self, binding_store: BindingStore) -> None:
        assert binding_store.resolve_chat("unknown-id") is None

    def test_empty_hook_returns_none(self, binding_store: BindingStore) -> None:
        assert binding_store.resolve_chat("") is None

    def test_resolve_has_no_side_effects(self, binding_store: BindingStore) -> None:
        binding_store.resolve_chat("nope")
        assert binding_store.get_hook(0) is None

    def test_corrupt_value_raises_storage_error(self, kv_store: KeyValueStore) -> None:
        kv_store.transact([], [Write((HOOK_INDEX, "bad"), "not-a-number")])
        with pytest.raises(StorageError):
            BindingStore(kv_store).resolve_chat("bad")


class TestHookIdFactories:
    def test_full_hook_id_is_32_hex(self) -> None:
        assert re.fullmatch(r"[0-9a-f]{32}", full_hook_id())

    def test_short_hook_id_is_8_hex(self) -> None:
        assert re.fullmatch(r"[0-9a-f]{8}", short_hook_id())

    def test_ids_are_random(self) -> None:
        assert len({full_hook_id() for _ in range(100)}) == 100

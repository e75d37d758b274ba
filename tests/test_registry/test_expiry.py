"""Tests for session/token timers, detachment and the background sweeper."""
from __future__ import annotations

import json
import threading
import time

import pytest

from session_tokens.audit import RegistryAuditLogger
from session_tokens.config import RegistryConfig
from session_tokens.errors import DetachNotAllowedError
from session_tokens.registry import SessionSweeper, SessionTokenRegistry
from session_tokens.store import InMemoryStore


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture()
def registry(store: InMemoryStore) -> SessionTokenRegistry:
    config = RegistryConfig(session_timeout=10, detached_session_timeout=3)
    return SessionTokenRegistry(store, config=config)


# ---------------------------------------------------------------------------
# Session timers
# ---------------------------------------------------------------------------


class TestSessionTimeout:
    def test_new_session_gets_general_timeout(self, registry: SessionTokenRegistry) -> None:
        registry.add_session("session-1", "alice")
        assert registry.get_session_timeout("session-1") == 10
        assert registry.get_session_time_left("session-1") == 10

    def test_countdown(self, registry: SessionTokenRegistry) -> None:
        registry.add_session("session-1", "alice")
        registry.decrement_timers(4)
        assert registry.get_session_time_left("session-1") == 6

    def test_expired_session_is_destroyed(self, registry: SessionTokenRegistry) -> None:
        registry.add_session("session-1", "alice", "t-1")
        expired_sessions, _ = registry.decrement_timers(10)
        assert expired_sessions == ["session-1"]
        assert registry.active_session("session-1", "alice") is None
        assert registry.from_token("t-1") is None

    def test_set_session_timeout_restarts(self, registry: SessionTokenRegistry) -> None:
        registry.add_session("session-1", "alice")
        registry.decrement_timers(8)
        registry.set_session_timeout("session-1", 20)
        assert registry.get_session_time_left("session-1") == 20
        registry.decrement_timers(15)
        assert registry.has_session("session-1")

    def test_general_timeout_applies_to_later_sessions(self, registry: SessionTokenRegistry) -> None:
        registry.set_general_session_timeout(42)
        registry.add_session("session-1", "alice")
        assert registry.get_session_timeout("session-1") == 42

    def test_non_positive_timeout_rejected(self, registry: SessionTokenRegistry) -> None:
        with pytest.raises(ValueError):
            registry.set_general_session_timeout(0)

    def test_unknown_session_timing_is_none(self, registry: SessionTokenRegistry) -> None:
        assert registry.get_session_timeout("nope") is None
        assert registry.get_session_time_left("nope") is None

    def test_expiry_is_audited(self, store: InMemoryStore) -> None:
        audit = RegistryAuditLogger()
        registry = SessionTokenRegistry(store, config=RegistryConfig(session_timeout=1), audit_logger=audit)
        registry.add_session("session-1", "alice")
        registry.decrement_timers(2)
        assert audit.read_log()[-1]["event_type"] == "session_expired"

    def test_shared_timing_republished(self, registry: SessionTokenRegistry, store: InMemoryStore) -> None:
        registry.add_session("session-1", "alice", shared=True)
        registry.decrement_timers(4)
        assert json.loads(store.get_key_value("session-1") or "{}")["time_left"] == 6


# ---------------------------------------------------------------------------
# Detachment
# ---------------------------------------------------------------------------


class TestDetachment:
    def test_detach_requires_permission(self, registry: SessionTokenRegistry) -> None:
        registry.add_session("session-1", "alice")
        with pytest.raises(DetachNotAllowedError):
            registry.detach_session("session-1")

    def test_detached_session_uses_detached_timeout(self, registry: SessionTokenRegistry) -> None:
        registry.add_session("session-1", "alice")
        registry.allow_session_detach("session-1")
        assert registry.detach_session("session-1") is True
        assert registry.list_detached_sessions() == ["session-1"]
        registry.decrement_timers(2)
        assert registry.has_session("session-1")
        registry.decrement_timers(1)
        assert not registry.has_session("session-1")
        assert registry.list_detached_sessions() == []

    def test_attach_returns_to_normal_countdown(self, registry: SessionTokenRegistry) -> None:
        registry.add_session("session-1", "alice")
        registry.allow_session_detach("session-1")
        registry.detach_session("session-1")
        assert registry.attach_session("session-1") is True
        assert registry.list_detached_sessions() == []
        registry.decrement_timers(5)
        assert registry.has_session("session-1")

    def test_unknown_session(self, registry: SessionTokenRegistry) -> None:
        assert registry.detach_session("nope") is False
        assert registry.attach_session("nope") is False


# ---------------------------------------------------------------------------
# Token timers
# ---------------------------------------------------------------------------


class TestTokenTimeout:
    def test_tokens_never_expire_by_default(self, registry: SessionTokenRegistry) -> None:
        registry.add_token("t-1", "v")
        assert registry.get_token_timeout("t-1") is None
        registry.decrement_timers(1_000_000)
        assert registry.transition_token_is_active("t-1") == "v"

    def test_general_token_timeout(self, store: InMemoryStore) -> None:
        registry = SessionTokenRegistry(store, config=RegistryConfig(token_timeout=5))
        registry.add_token("t-1", "v")
        _, expired_tokens = registry.decrement_timers(5)
        assert expired_tokens == ["t-1"]
        assert store.get_key_value("t-1") is None

    def test_set_token_timeout(self, registry: SessionTokenRegistry) -> None:
        registry.add_session("session-1", "alice", "t-1")
        registry.set_token_timeout("t-1", 2)
        assert registry.get_token_time_left("t-1") == 2
        registry.decrement_timers(2)
        assert registry.list_bounded_tokens("session-1") == []
        assert registry.has_session("session-1")

    def test_set_general_token_timeout(self, registry: SessionTokenRegistry) -> None:
        registry.set_general_token_timeout(7)
        registry.add_token("t-1", "v")
        assert registry.get_token_timeout("t-1") == 7

    def test_disownment_timeout_only_for_carried(self, registry: SessionTokenRegistry) -> None:
        registry.add_session("session-1", "alice", "b-1")
        registry.add_transferable_token("t-1", "v", "alice")
        assert registry.set_disownment_token_timeout("b-1", 5) is False
        assert registry.set_disownment_token_timeout("t-1", 5) is True

    @pytest.mark.parametrize("timeout", [0, -1.5])
    def test_non_positive_disownment_timeout_rejected(
        self, registry: SessionTokenRegistry, timeout: float
    ) -> None:
        registry.add_session("session-1", "alice")
        registry.add_transferable_token("t-1", "v", "alice")
        with pytest.raises(ValueError):
            registry.set_disownment_token_timeout("t-1", timeout)
        assert registry.set_disownment_token_timeout("t-1", 1) is True

    def test_orphan_expires_after_disownment_timeout(self, registry: SessionTokenRegistry) -> None:
        registry.add_session("session-1", "alice")
        registry.add_transferable_token("t-1", "v", "alice")
        registry.set_disownment_token_timeout("t-1", 5)
        registry.destroy_session("session-1")
        registry.decrement_timers(4)
        assert registry.list_unassigned_tokens() == ["t-1"]
        registry.decrement_timers(1)
        assert registry.list_unassigned_tokens() == []
        assert registry.transition_token_is_active("t-1") is None


# ---------------------------------------------------------------------------
# SessionSweeper
# ---------------------------------------------------------------------------


class TestSessionSweeper:
    def test_calls_countdown_until_stopped(self) -> None:
        calls: list[float] = []
        called = threading.Event()

        def countdown(elapsed: float) -> None:
            calls.append(elapsed)
            called.set()

        sweeper = SessionSweeper(countdown, interval=0.01)
        sweeper.start()
        assert called.wait(2.0)
        sweeper.stop(timeout=2.0)
        assert not sweeper.is_alive()
        assert all(elapsed > 0 for elapsed in calls)

    def test_survives_countdown_errors(self) -> None:
        calls: list[float] = []

        def countdown(elapsed: float) -> None:
            calls.append(elapsed)
            raise RuntimeError("boom")

        sweeper = SessionSweeper(countdown, interval=0.01)
        sweeper.start()
        deadline = time.monotonic() + 2.0
        while len(calls) < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
        sweeper.stop(timeout=2.0)
        assert len(calls) >= 2

    def test_registry_sweeper_expires_sessions(self, store: InMemoryStore) -> None:
        config = RegistryConfig(session_timeout=0.05, sweep_interval=0.01)
        registry = SessionTokenRegistry(store, config=config)
        registry.add_session("session-1", "alice")
        registry.start_sweeper()
        try:
            deadline = time.monotonic() + 2.0
            while registry.has_session("session-1") and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            registry.shutdown()
        assert not registry.has_session("session-1")

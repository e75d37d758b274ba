"""Concurrent access tests for SessionTokenRegistry."""
from __future__ import annotations

import threading

from session_tokens.registry import SessionTokenRegistry
from session_tokens.store import InMemoryStore

THREADS = 8
ROUNDS = 50


def _run(workers: list[threading.Thread]) -> None:
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join(timeout=10)
        assert not worker.is_alive()


class TestConcurrentAccess:
    def test_parallel_sessions_do_not_interfere(self) -> None:
        registry = SessionTokenRegistry(InMemoryStore())
        errors: list[BaseException] = []

        def work(n: int) -> None:
            try:
                for r in range(ROUNDS):
                    session = f"session-{n}-{r}"
                    owner = f"owner-{n}"
                    registry.add_session(session, owner, f"b-{n}-{r}")
                    registry.add_transferable_token(f"t-{n}-{r}", "v", owner)
                    assert registry.active_session(session, owner) is True
                    registry.destroy_session(session)
            except BaseException as exc:  # noqa: BLE001 - surfaced below
                errors.append(exc)

        _run([threading.Thread(target=work, args=(n,)) for n in range(THREADS)])

        assert errors == []
        assert registry.session_count() == 0
        assert len(registry.list_unassigned_tokens()) == THREADS * ROUNDS

    def test_transfer_racing_destroy_leaves_consistent_state(self) -> None:
        for _ in range(20):
            registry = SessionTokenRegistry(InMemoryStore())
            registry.add_session("S1", "O1")
            registry.add_session("S2", "O2")
            registry.add_transferable_token("T1", "payload", "O1")
            barrier = threading.Barrier(2)

            def transfer() -> None:
                barrier.wait()
                try:
                    registry.transfer_token("T1", "O1", "O2")
                except ValueError:
                    pass

            def destroy() -> None:
                barrier.wait()
                registry.destroy_session("S1")

            _run([threading.Thread(target=transfer), threading.Thread(target=destroy)])

            # Either the transfer won (token carried by S2) or the destroy
            # won (token unassigned); never both, never neither.
            carried_by_s2 = registry.list_transferable_tokens("S2") == ["T1"]
            unassigned = registry.list_unassigned_tokens() == ["T1"]
            assert carried_by_s2 != unassigned
            assert registry.transition_token_is_active("T1") == "payload"
            if carried_by_s2:
                assert registry.from_token("T1") == "O2"
            else:
                assert registry.from_token("T1") is None

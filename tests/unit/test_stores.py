"""Tests for the reference stores and the ownership-key hasher."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from session_tokens.store import FilesystemStore, InMemoryStore, OwnershipHasher, Store


# ---------------------------------------------------------------------------
# OwnershipHasher
# ---------------------------------------------------------------------------


class TestOwnershipHasher:
    def test_hash_verifies_for_same_key(self) -> None:
        hasher = OwnershipHasher()
        assert hasher.verify(hasher.hash("alice"), "alice")

    def test_hash_rejects_other_key(self) -> None:
        hasher = OwnershipHasher()
        assert not hasher.verify(hasher.hash("alice"), "bob")

    def test_hashes_are_salted(self) -> None:
        hasher = OwnershipHasher()
        assert hasher.hash("alice") != hasher.hash("alice")

    def test_hash_does_not_contain_key(self) -> None:
        hasher = OwnershipHasher()
        assert "alice" not in hasher.hash("alice")

    def test_different_secret_rejects(self) -> None:
        issued = OwnershipHasher(b"a" * 32).hash("alice")
        assert not OwnershipHasher(b"b" * 32).verify(issued, "alice")

    def test_same_secret_verifies_across_instances(self) -> None:
        issued = OwnershipHasher(b"s" * 32).hash("alice")
        assert OwnershipHasher(b"s" * 32).verify(issued, "alice")

    @pytest.mark.parametrize("malformed", ["", "nodollar", "zz$zz", "00$"])
    def test_malformed_hash_is_rejected(self, malformed: str) -> None:
        assert not OwnershipHasher().verify(malformed, "alice")


# ---------------------------------------------------------------------------
# InMemoryStore
# ---------------------------------------------------------------------------


@pytest.fixture()
def memory_store() -> InMemoryStore:
    return InMemoryStore()


class TestInMemoryStore:
    def test_is_a_store(self, memory_store: InMemoryStore) -> None:
        assert isinstance(memory_store, Store)

    def test_session_hash_checks(self, memory_store: InMemoryStore) -> None:
        hash_value = memory_store.set_session_key_value("session-1", "alice")
        assert memory_store.check_hash(hash_value, "alice")
        assert not memory_store.check_hash(hash_value, "mallory")

    def test_del_session_reports_existence(self, memory_store: InMemoryStore) -> None:
        memory_store.set_session_key_value("session-1", "alice")
        assert memory_store.del_session_key_value("session-1") is True
        assert memory_store.del_session_key_value("session-1") is False
        assert not memory_store.has_session("session-1")

    def test_value_round_trip(self, memory_store: InMemoryStore) -> None:
        memory_store.set_key_value("t1", "v1")
        assert memory_store.get_key_value("t1") == "v1"
        assert "t1" in memory_store
        assert len(memory_store) == 1

    def test_missing_value_is_none(self, memory_store: InMemoryStore) -> None:
        assert memory_store.get_key_value("nope") is None

    def test_del_value_is_idempotent(self, memory_store: InMemoryStore) -> None:
        memory_store.set_key_value("t1", "v1")
        memory_store.del_key_value("t1")
        memory_store.del_key_value("t1")
        assert memory_store.get_key_value("t1") is None


# ---------------------------------------------------------------------------
# FilesystemStore
# ---------------------------------------------------------------------------


class TestFilesystemStore:
    def test_creates_directory_and_secret(self, tmp_path: Path) -> None:
        base = tmp_path / "store"
        FilesystemStore(base)
        assert (base / "secret.key").exists()
        assert len((base / "secret.key").read_bytes()) == 32

    def test_values_persist_across_instances(self, tmp_path: Path) -> None:
        FilesystemStore(tmp_path).set_key_value("t1", "payload")
        assert FilesystemStore(tmp_path).get_key_value("t1") == "payload"

    def test_hash_verifies_across_instances(self, tmp_path: Path) -> None:
        hash_value = FilesystemStore(tmp_path).set_session_key_value("session-1", "alice")
        reopened = FilesystemStore(tmp_path)
        assert reopened.check_hash(hash_value, "alice")
        assert not reopened.check_hash(hash_value, "bob")

    def test_sessions_persist_and_delete(self, tmp_path: Path) -> None:
        store = FilesystemStore(tmp_path)
        store.set_session_key_value("session-1", "alice")
        assert FilesystemStore(tmp_path).list_sessions() == ["session-1"]
        assert store.del_session_key_value("session-1") is True
        assert FilesystemStore(tmp_path).list_sessions() == []

    def test_delete_value_persists(self, tmp_path: Path) -> None:
        store = FilesystemStore(tmp_path)
        store.set_key_value("t1", "v")
        store.del_key_value("t1")
        assert FilesystemStore(tmp_path).get_key_value("t1") is None

    def test_list_tokens_sorted(self, tmp_path: Path) -> None:
        store = FilesystemStore(tmp_path)
        store.set_key_value("b", "2")
        store.set_key_value("a", "1")
        assert store.list_tokens() == ["a", "b"]

    def test_document_is_json(self, tmp_path: Path) -> None:
        store = FilesystemStore(tmp_path)
        store.set_key_value("t1", "v1")
        document = json.loads((tmp_path / "store.json").read_text(encoding="utf-8"))
        assert document["values"] == {"t1": "v1"}
        assert not (tmp_path / "store.json.tmp").exists()

from __future__ import annotations

import pytest

from epochstake.runtime.kv_store import MemoryKVStore, ReadOnlyError


def test_writes_commit_only_on_success() -> None:
    store = MemoryKVStore()
    with store.transaction() as kv:
        kv.set("a", "1")

    with pytest.raises(RuntimeError):
        with store.transaction() as kv:
            kv.set("a", "2")
            kv.set("b", "3")
            assert kv.get("a") == "2"
            raise RuntimeError("abort")

    assert store.dump() == {"a": "1"}


def test_scan_merges_staged_writes_and_deletes() -> None:
    store = MemoryKVStore()
    with store.transaction() as kv:
        for k in ("p/1", "p/2", "p/3", "q/1"):
            kv.set(k, k)

    with store.transaction() as kv:
        kv.delete("p/2")
        kv.set("p/0", "new")
        assert [k for k, _ in kv.scan("p/")] == ["p/0", "p/1", "p/3"]
        assert [k for k, _ in kv.scan("p/", start_after="p/0", limit=1)] == ["p/1"]
        assert kv.get("p/2") is None

    assert sorted(store.dump()) == ["p/0", "p/1", "p/3", "q/1"]


def test_readonly_transaction_rejects_writes() -> None:
    store = MemoryKVStore()
    with pytest.raises(ReadOnlyError):
        with store.transaction(readonly=True) as kv:
            kv.set("x", "y")
    assert store.dump() == {}

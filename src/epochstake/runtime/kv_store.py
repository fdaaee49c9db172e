# src/epochstake/runtime/kv_store.py
from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Protocol, Tuple

# Upper bound used to turn a key prefix into a half-open range scan.
PREFIX_END = "\U0010ffff"


class KV(Protocol):
    """Transaction handle: atomic get/set/delete plus ordered prefix scans.

    Values are canonical JSON text; typed access lives in epochstake.ledger.keys.
    """

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def scan(
        self,
        prefix: str,
        *,
        start_after: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Tuple[str, str]]: ...


class ReadOnlyError(RuntimeError):
    pass


class KVStore(ABC):
    """Abstract store. Every engine operation runs inside exactly one transaction.

    - transaction() commits on normal exit and discards every write if the
      body raises.
    - transaction(readonly=True) yields a consistent view that rejects writes
      and is never committed.
    """

    @abstractmethod
    def transaction(self, *, readonly: bool = False):  # -> ContextManager[KV]
        raise NotImplementedError


class _OverlayTx:
    """Staged writes over a base mapping. None marks a deleted key."""

    def __init__(self, base: Dict[str, str], *, readonly: bool) -> None:
        self._base = base
        self._writes: Dict[str, Optional[str]] = {}
        self._readonly = bool(readonly)

    def get(self, key: str) -> Optional[str]:
        if key in self._writes:
            return self._writes[key]
        return self._base.get(key)

    def set(self, key: str, value: str) -> None:
        if self._readonly:
            raise ReadOnlyError(f"write to {key!r} in read-only transaction")
        if not isinstance(value, str):
            raise TypeError("kv values must be str")
        self._writes[key] = value

    def delete(self, key: str) -> None:
        if self._readonly:
            raise ReadOnlyError(f"delete of {key!r} in read-only transaction")
        self._writes[key] = None

    def scan(
        self,
        prefix: str,
        *,
        start_after: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Tuple[str, str]]:
        keys = {k for k in self._base if k.startswith(prefix)}
        keys.update(k for k in self._writes if k.startswith(prefix))

        out: List[Tuple[str, str]] = []
        for k in sorted(keys):
            if start_after is not None and k <= start_after:
                continue
            v = self.get(k)
            if v is None:
                continue
            out.append((k, v))
            if limit is not None and len(out) >= int(limit):
                break
        return out

    def commit(self) -> None:
        for k, v in self._writes.items():
            if v is None:
                self._base.pop(k, None)
            else:
                self._base[k] = v
        self._writes.clear()


class MemoryKVStore(KVStore):
    """In-process store for tests and ephemeral instances.

    Transactions are serialized with a lock, so a failed operation never
    exposes staged writes to concurrent readers.
    """

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    @contextmanager
    def transaction(self, *, readonly: bool = False) -> Iterator[KV]:
        with self._lock:
            tx = _OverlayTx(self._data, readonly=readonly)
            yield tx
            if not readonly:
                tx.commit()

    def dump(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._data)

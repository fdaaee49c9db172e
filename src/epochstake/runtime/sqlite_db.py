# src/epochstake/runtime/sqlite_db.py
from __future__ import annotations

import json
import os
import random
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple

from epochstake.runtime.kv_store import KV, PREFIX_END, KVStore, ReadOnlyError


def _now_ms() -> int:
    return int(time.time() * 1000)


def _canon_json(obj: Any) -> str:
    """Canonical JSON encoding.

    Keep this stable: persisted values are compared byte-for-byte in tests.
    """
    # IMPORTANT: Do not silently coerce unknown types (e.g. default=str). If
    # non-JSON types leak into persisted structures we must fail fast.
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _env_int(name: str, default: int) -> int:
    try:
        raw = str(os.environ.get(name, "")).strip()
        return int(raw) if raw else int(default)
    except Exception:
        return int(default)


class SqliteDB:
    """SQLite manager for the staking store.

    Design goals:
      - single durable DB file
      - cross-process safe (SQLite locks)
      - cross-thread safe by never sharing connections

    SQLite allows only one writer at a time. Under multi-process workloads,
    BEGIN IMMEDIATE can transiently fail with "database is locked", so
    write_tx() retries with bounded backoff.
    """

    SCHEMA_VERSION = 1

    def __init__(self, *, path: str) -> None:
        self.path = str(path)

    @staticmethod
    def _sqlite_synchronous_pragma() -> str:
        """Return a safe PRAGMA synchronous value.

        Defaults:
          - prod        -> FULL
          - dev/testnet -> NORMAL

        Override with EPOCHSTAKE_SQLITE_SYNCHRONOUS in {OFF,NORMAL,FULL,EXTRA}.
        """
        mode = (os.environ.get("EPOCHSTAKE_MODE") or "prod").strip().lower()
        default = "FULL" if mode == "prod" else "NORMAL"
        raw = (os.environ.get("EPOCHSTAKE_SQLITE_SYNCHRONOUS") or default).strip().upper()

        if raw not in {"OFF", "NORMAL", "FULL", "EXTRA"}:
            raw = default
        return raw

    def ensure_parent_dir(self) -> None:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        self.ensure_parent_dir()

        connect_timeout_s = float(_env_int("EPOCHSTAKE_SQLITE_CONNECT_TIMEOUT_MS", 30_000)) / 1000.0

        con = sqlite3.connect(
            self.path,
            timeout=connect_timeout_s,
            isolation_level=None,  # we manage BEGIN/COMMIT ourselves
            check_same_thread=False,
        )
        con.row_factory = sqlite3.Row

        row = con.execute("PRAGMA journal_mode=WAL;").fetchone()
        mode = str(row[0]).strip().lower() if row is not None else ""
        if mode and mode != "wal":
            raise RuntimeError(f"sqlite journal_mode is '{mode}', expected 'wal'")

        con.execute(f"PRAGMA synchronous={self._sqlite_synchronous_pragma()};")
        con.execute("PRAGMA temp_store=MEMORY;")

        busy_ms = max(0, _env_int("EPOCHSTAKE_SQLITE_BUSY_TIMEOUT_MS", int(connect_timeout_s * 1000)))
        con.execute(f"PRAGMA busy_timeout={busy_ms};")

        return con

    def init_schema(self) -> None:
        with self.write_tx() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS meta (
                  key TEXT PRIMARY KEY,
                  value TEXT NOT NULL
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                  key TEXT PRIMARY KEY,
                  value TEXT NOT NULL,
                  updated_ts_ms INTEGER NOT NULL
                );
                """
            )

            row = con.execute("SELECT value FROM meta WHERE key='schema_version' LIMIT 1;").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(self.SCHEMA_VERSION),))
            else:
                try:
                    v = int(str(row["value"]))
                except Exception:
                    v = 0
                if v != self.SCHEMA_VERSION:
                    raise RuntimeError(
                        f"sqlite schema_version mismatch: have={v} want={self.SCHEMA_VERSION}. "
                        "Refuse to start to avoid corrupting data."
                    )

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        con = self._connect()
        try:
            yield con
        finally:
            con.close()

    @staticmethod
    def _is_locked_error(e: Exception) -> bool:
        msg = str(e).lower()
        return ("database is locked" in msg) or ("database is busy" in msg)

    def _backoff(self, attempt: int, deadline_ts: int) -> None:
        base_sleep = max(0.001, float(_env_int("EPOCHSTAKE_SQLITE_WRITE_BACKOFF_BASE_MS", 5)) / 1000.0)
        max_sleep = max(base_sleep, float(_env_int("EPOCHSTAKE_SQLITE_WRITE_BACKOFF_MAX_MS", 250)) / 1000.0)
        sleep_s = min(max_sleep, base_sleep * (2.0 ** min(attempt, 8)))
        sleep_s = sleep_s * (0.5 + random.random())  # jitter in [0.5x, 1.5x]
        remaining_s = max(0.0, (deadline_ts - _now_ms()) / 1000.0)
        time.sleep(min(sleep_s, remaining_s))

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction with bounded retry on writer-lock contention.

        Policy:
          - retry BEGIN IMMEDIATE (and COMMIT) until a deadline
          - exponential backoff with jitter
          - then raise (fail closed)
        Any exception raised by the body rolls the transaction back.
        """
        deadline_ms = max(250, _env_int("EPOCHSTAKE_SQLITE_WRITE_DEADLINE_MS", 30_000))
        deadline_ts = _now_ms() + deadline_ms

        with self.connection() as con:
            attempt = 0
            while True:
                try:
                    con.execute("BEGIN IMMEDIATE;")
                    break
                except sqlite3.OperationalError as e:
                    if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                        raise
                    self._backoff(attempt, deadline_ts)
                    attempt += 1

            try:
                yield con

                c_attempt = 0
                while True:
                    try:
                        con.execute("COMMIT;")
                        break
                    except sqlite3.OperationalError as e:
                        if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                            raise
                        self._backoff(c_attempt, deadline_ts)
                        c_attempt += 1
            except BaseException:
                if con.in_transaction:
                    con.execute("ROLLBACK;")
                raise

    @contextmanager
    def read_tx(self) -> Iterator[sqlite3.Connection]:
        """Consistent read snapshot; always rolled back."""
        with self.connection() as con:
            con.execute("BEGIN DEFERRED;")
            try:
                yield con
            finally:
                if con.in_transaction:
                    con.execute("ROLLBACK;")


class _SqliteTx:
    def __init__(self, con: sqlite3.Connection, *, readonly: bool) -> None:
        self._con = con
        self._readonly = bool(readonly)

    def get(self, key: str) -> Optional[str]:
        row = self._con.execute("SELECT value FROM kv WHERE key=? LIMIT 1;", (str(key),)).fetchone()
        return None if row is None else str(row["value"])

    def set(self, key: str, value: str) -> None:
        if self._readonly:
            raise ReadOnlyError(f"write to {key!r} in read-only transaction")
        if not isinstance(value, str):
            raise TypeError("kv values must be str")
        self._con.execute(
            """
            INSERT INTO kv(key, value, updated_ts_ms) VALUES(?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_ts_ms=excluded.updated_ts_ms;
            """,
            (str(key), value, _now_ms()),
        )

    def delete(self, key: str) -> None:
        if self._readonly:
            raise ReadOnlyError(f"delete of {key!r} in read-only transaction")
        self._con.execute("DELETE FROM kv WHERE key=?;", (str(key),))

    def scan(
        self,
        prefix: str,
        *,
        start_after: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Tuple[str, str]]:
        lo = str(prefix)
        hi = lo + PREFIX_END
        sql = "SELECT key, value FROM kv WHERE key >= ? AND key < ?"
        args: list[Any] = [lo, hi]
        if start_after is not None:
            sql += " AND key > ?"
            args.append(str(start_after))
        sql += " ORDER BY key ASC"
        if limit is not None:
            sql += " LIMIT ?"
            args.append(int(limit))
        rows = self._con.execute(sql + ";", tuple(args)).fetchall()
        return [(str(r["key"]), str(r["value"])) for r in rows]


class SqliteKVStore(KVStore):
    """KV store persisted in SQLite; one SQLite transaction per engine operation."""

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db
        self._db.init_schema()

    @property
    def db(self) -> SqliteDB:
        return self._db

    @contextmanager
    def transaction(self, *, readonly: bool = False) -> Iterator[KV]:
        if readonly:
            with self._db.read_tx() as con:
                yield _SqliteTx(con, readonly=True)
            return
        with self._db.write_tx() as con:
            yield _SqliteTx(con, readonly=False)

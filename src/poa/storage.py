"""
poa.storage — Record store backends for verification records.

Backends: MemoryRecordStore, SQLiteRecordStore

Records are replaced wholesale, never patched, so a concurrent reader always
sees one complete snapshot. A given id is created once and afterwards only
replaced by the run that owns it.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from typing import Optional

from poa.models import VerificationRecord

DEFAULT_LIST_LIMIT = 20
MAX_LIST_LIMIT = 100


class RecordExistsError(KeyError):
    """Raised by create() when the id is already taken."""


def clamp_limit(limit: Optional[int]) -> int:
    if not limit or limit < 1:
        return DEFAULT_LIST_LIMIT
    return min(limit, MAX_LIST_LIMIT)


# ─── Abstract Store ────────────────────────────────────────────────

class RecordStore(ABC):
    """Persistence interface for VerificationRecord snapshots."""

    @abstractmethod
    def create(self, record: VerificationRecord) -> None: ...

    @abstractmethod
    def get(self, record_id: str) -> Optional[VerificationRecord]: ...

    @abstractmethod
    def replace(self, record_id: str, record: VerificationRecord) -> None: ...

    @abstractmethod
    def list_recent(self, limit: int = DEFAULT_LIST_LIMIT) -> list[VerificationRecord]: ...

    @abstractmethod
    def count(self) -> int: ...

    @abstractmethod
    def all_records(self) -> list[VerificationRecord]: ...


# ─── Memory Store ──────────────────────────────────────────────────

class MemoryRecordStore(RecordStore):
    """In-process dict storage (default)."""

    def __init__(self):
        self._records: dict[str, VerificationRecord] = {}
        self._lock = threading.Lock()

    def create(self, record: VerificationRecord) -> None:
        with self._lock:
            if record.id in self._records:
                raise RecordExistsError(record.id)
            self._records[record.id] = record

    def get(self, record_id: str) -> Optional[VerificationRecord]:
        return self._records.get(record_id)

    def replace(self, record_id: str, record: VerificationRecord) -> None:
        with self._lock:
            if record_id not in self._records:
                raise KeyError(record_id)
            self._records[record_id] = record

    def list_recent(self, limit: int = DEFAULT_LIST_LIMIT) -> list[VerificationRecord]:
        records = sorted(self.all_records(), key=lambda r: r.created_at, reverse=True)
        return records[:clamp_limit(limit)]

    def count(self) -> int:
        return len(self._records)

    def all_records(self) -> list[VerificationRecord]:
        with self._lock:
            return list(self._records.values())


# ─── SQLite Store ──────────────────────────────────────────────────

class SQLiteRecordStore(RecordStore):
    """File-based SQLite with WAL mode, thread-safe."""

    def __init__(self, db_path: str = "poa.db"):
        self._db_path = db_path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        if db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS verifications (
                id TEXT PRIMARY KEY,
                agent_name TEXT NOT NULL,
                status TEXT NOT NULL,
                data TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)
        self._conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_verif_created ON verifications(created_at)")
        self._conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_verif_agent ON verifications(agent_name)")
        self._conn.commit()

    def create(self, record: VerificationRecord) -> None:
        with self._lock:
            try:
                self._conn.execute(
                    "INSERT INTO verifications (id, agent_name, status, data, created_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (record.id, record.agent_name, record.status.value,
                     json.dumps(record.to_dict()), record.created_at.isoformat()),
                )
            except sqlite3.IntegrityError:
                raise RecordExistsError(record.id) from None
            self._conn.commit()

    def get(self, record_id: str) -> Optional[VerificationRecord]:
        with self._lock:
            row = self._conn.execute(
                "SELECT data FROM verifications WHERE id = ?", (record_id,)).fetchone()
        return VerificationRecord.from_dict(json.loads(row[0])) if row else None

    def replace(self, record_id: str, record: VerificationRecord) -> None:
        with self._lock:
            cur = self._conn.execute(
                "UPDATE verifications SET status = ?, data = ? WHERE id = ?",
                (record.status.value, json.dumps(record.to_dict()), record_id),
            )
            if cur.rowcount == 0:
                raise KeyError(record_id)
            self._conn.commit()

    def list_recent(self, limit: int = DEFAULT_LIST_LIMIT) -> list[VerificationRecord]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT data FROM verifications ORDER BY created_at DESC LIMIT ?",
                (clamp_limit(limit),),
            ).fetchall()
        return [VerificationRecord.from_dict(json.loads(r[0])) for r in rows]

    def count(self) -> int:
        with self._lock:
            return self._conn.execute("SELECT COUNT(*) FROM verifications").fetchone()[0]

    def all_records(self) -> list[VerificationRecord]:
        with self._lock:
            rows = self._conn.execute("SELECT data FROM verifications").fetchall()
        return [VerificationRecord.from_dict(json.loads(r[0])) for r in rows]

    def close(self) -> None:
        self._conn.close()


def open_store(location: str = "memory") -> RecordStore:
    """'memory' for the in-process store, anything else is a SQLite path."""
    if not location or location == "memory":
        return MemoryRecordStore()
    return SQLiteRecordStore(location)

"""
Shared sqlite database for the artifact, interest and customer stores.

Prototype: one SQLite connection shared across request threads.
Production: PostgreSQL, where the same compare-and-set statements apply.

Behavioral Contract:
- Every store operation runs inside transaction(); nested scopes join the
  outermost one, which alone commits or rolls back.
- The connection lock is re-entrant and held for the whole scope, so a
  multi-statement unit (artifact transition + interest insert) is atomic
  with respect to other threads.
"""

import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

SCHEMA = """
CREATE TABLE IF NOT EXISTS customer (
    id TEXT PRIMARY KEY,
    fields_json TEXT NOT NULL DEFAULT '{}',
    additional_data_json TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS customer_note (
    id TEXT PRIMARY KEY,
    customer_id TEXT NOT NULL REFERENCES customer(id),
    content TEXT NOT NULL,
    source TEXT NOT NULL,
    tags_json TEXT NOT NULL DEFAULT '[]',
    raw_input TEXT,
    metadata_json TEXT NOT NULL DEFAULT '{}',
    created_by TEXT,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_note_customer ON customer_note(customer_id);

CREATE TABLE IF NOT EXISTS artifact (
    id TEXT PRIMARY KEY,
    customer_id TEXT NOT NULL,
    artifact_type TEXT NOT NULL,
    status TEXT NOT NULL,
    batch_id TEXT,
    created_by_type TEXT NOT NULL,
    created_by_id TEXT,
    payload_json TEXT NOT NULL,
    edited_value_json TEXT,
    overrides_json TEXT NOT NULL DEFAULT '{}',
    decided_by TEXT,
    decided_at TEXT,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_artifact_customer_status ON artifact(customer_id, status);
CREATE INDEX IF NOT EXISTS idx_artifact_batch ON artifact(batch_id);

CREATE TABLE IF NOT EXISTS interest (
    id TEXT PRIMARY KEY,
    customer_id TEXT NOT NULL,
    category TEXT NOT NULL,
    label TEXT NOT NULL,
    description TEXT,
    status TEXT NOT NULL,
    source_type TEXT NOT NULL,
    source_artifact_id TEXT UNIQUE REFERENCES artifact(id),
    source_text TEXT,
    confidence TEXT,
    created_by TEXT NOT NULL,
    archived_by TEXT,
    archived_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_interest_customer_status ON interest(customer_id, status);

CREATE TABLE IF NOT EXISTS interest_audit (
    id TEXT PRIMARY KEY,
    interest_id TEXT NOT NULL REFERENCES interest(id),
    action TEXT NOT NULL,
    actor_id TEXT,
    actor_type TEXT NOT NULL,
    previous_state_json TEXT,
    new_state_json TEXT,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_interest_audit_interest ON interest_audit(interest_id);
"""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_db_time(value: Optional[datetime]) -> Optional[str]:
    """Fixed-width ISO timestamps, so text ordering equals time ordering."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f+00:00")


def from_db_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def dumps(value: Any) -> str:
    return json.dumps(value, default=str)


def loads(value: Optional[str], default: Any = None) -> Any:
    return json.loads(value) if value is not None else default


class Database:
    """Owns the connection, the schema and the transaction scope."""

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._depth = 0
        self._init_schema()

    def _init_schema(self) -> None:
        with self._lock:
            self._conn.executescript(SCHEMA)
            self._conn.commit()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a unit of work; nested calls join the enclosing transaction."""
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self._conn
                finally:
                    self._depth -= 1
                return

            self._depth = 1
            try:
                yield self._conn
                self._conn.commit()
            except BaseException:
                self._conn.rollback()
                raise
            finally:
                self._depth = 0

    def close(self) -> None:
        with self._lock:
            self._conn.close()

from __future__ import annotations

import json
import re
import sqlite3
from pathlib import Path
from typing import Iterable, Protocol

from ..models import Record


class RecordStore(Protocol):
    """The narrow slice of the long-term store that feedsync writes to."""

    def create_record(self, record: Record) -> bool: ...

    def get_record_by_id(self, record_id: str) -> Record | None: ...

    def get_records_by_room_ids(self, agent_id: str, room_ids: Iterable[str]) -> list[Record]: ...

    def get_records(self, room_id: str, agent_id: str, count: int = 10) -> list[Record]: ...

    def ensure_user_exists(self, user_id: str, username: str | None, name: str | None, source: str) -> None: ...

    def ensure_connection(
        self, user_id: str, room_id: str, username: str | None, name: str | None, source: str
    ) -> None: ...


def _slug_account(account: str) -> str:
    account = (account or "").strip().lstrip("@").lower()
    if not account:
        return "unknown"
    # Keep it filesystem-safe
    return re.sub(r"[^a-z0-9._-]+", "_", account)


def db_path_for_account(account_handle: str) -> Path:
    base = Path.home() / ".feedsync" / "accounts" / _slug_account(account_handle)
    return base / "records.db"


def open_db(path: Path | str) -> sqlite3.Connection:
    if str(path) != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row

    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute("PRAGMA busy_timeout=5000;")
    return conn


MIGRATIONS: list[str] = [
    # 1
    """
    CREATE TABLE IF NOT EXISTS schema_migrations (
      version INTEGER PRIMARY KEY,
      applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
    );

    CREATE TABLE IF NOT EXISTS accounts (
      id TEXT PRIMARY KEY,
      username TEXT,
      name TEXT,
      source TEXT NOT NULL DEFAULT '',
      created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
    );

    CREATE TABLE IF NOT EXISTS rooms (
      id TEXT PRIMARY KEY,
      created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
    );

    CREATE TABLE IF NOT EXISTS participants (
      user_id TEXT NOT NULL,
      room_id TEXT NOT NULL,
      PRIMARY KEY (user_id, room_id),
      FOREIGN KEY (user_id) REFERENCES accounts(id) ON DELETE CASCADE,
      FOREIGN KEY (room_id) REFERENCES rooms(id) ON DELETE CASCADE
    );

    CREATE TABLE IF NOT EXISTS records (
      id TEXT PRIMARY KEY,
      user_id TEXT NOT NULL,
      agent_id TEXT NOT NULL,
      room_id TEXT NOT NULL,
      content_json TEXT NOT NULL,
      created_at INTEGER NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_records_agent_room ON records(agent_id, room_id, created_at);
    """,
]


def ensure_schema(conn: sqlite3.Connection) -> None:
    conn.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now')))")
    cur = conn.execute("SELECT COALESCE(MAX(version), 0) AS v FROM schema_migrations")
    current = int(cur.fetchone()["v"])

    for idx, sql in enumerate(MIGRATIONS, start=1):
        if idx <= current:
            continue
        with conn:
            conn.executescript(sql)
            conn.execute("INSERT INTO schema_migrations(version) VALUES (?)", (idx,))


def _row_to_record(row: sqlite3.Row) -> Record:
    return Record(
        id=row["id"],
        user_id=row["user_id"],
        agent_id=row["agent_id"],
        room_id=row["room_id"],
        content=json.loads(row["content_json"]),
        created_at=int(row["created_at"]),
    )


class SQLiteRecordStore:
    """RecordStore on a local SQLite file. Every write is idempotent."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        ensure_schema(conn)

    @classmethod
    def for_account(cls, account_handle: str) -> "SQLiteRecordStore":
        return cls(open_db(db_path_for_account(account_handle)))

    def create_record(self, record: Record) -> bool:
        """Insert unless the id exists. Returns True when a row was written."""
        with self.conn:
            cur = self.conn.execute(
                "INSERT OR IGNORE INTO records(id, user_id, agent_id, room_id, content_json, created_at) VALUES (?,?,?,?,?,?)",
                (
                    record.id,
                    record.user_id,
                    record.agent_id,
                    record.room_id,
                    json.dumps(record.content, ensure_ascii=False),
                    int(record.created_at),
                ),
            )
        return cur.rowcount > 0

    def get_record_by_id(self, record_id: str) -> Record | None:
        row = self.conn.execute("SELECT * FROM records WHERE id=?", (record_id,)).fetchone()
        return _row_to_record(row) if row else None

    def get_records_by_room_ids(self, agent_id: str, room_ids: Iterable[str]) -> list[Record]:
        room_ids = list(dict.fromkeys(room_ids))
        if not room_ids:
            return []
        placeholders = ",".join(["?"] * len(room_ids))
        rows = self.conn.execute(
            f"SELECT * FROM records WHERE agent_id=? AND room_id IN ({placeholders}) ORDER BY created_at, rowid",
            (agent_id, *room_ids),
        ).fetchall()
        return [_row_to_record(r) for r in rows]

    def get_records(self, room_id: str, agent_id: str, count: int = 10) -> list[Record]:
        """Most recent records in a room, newest first."""
        rows = self.conn.execute(
            "SELECT * FROM records WHERE agent_id=? AND room_id=? ORDER BY created_at DESC, rowid DESC LIMIT ?",
            (agent_id, room_id, int(count)),
        ).fetchall()
        return [_row_to_record(r) for r in rows]

    def ensure_user_exists(self, user_id: str, username: str | None, name: str | None, source: str) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT INTO accounts(id, username, name, source) VALUES (?,?,?,?) "
                "ON CONFLICT(id) DO UPDATE SET username=COALESCE(excluded.username, username), name=COALESCE(excluded.name, name)",
                (user_id, username, name, source or ""),
            )

    def ensure_connection(
        self, user_id: str, room_id: str, username: str | None, name: str | None, source: str
    ) -> None:
        self.ensure_user_exists(user_id, username, name, source)
        with self.conn:
            self.conn.execute("INSERT OR IGNORE INTO rooms(id) VALUES (?)", (room_id,))
            self.conn.execute(
                "INSERT OR IGNORE INTO participants(user_id, room_id) VALUES (?,?)",
                (user_id, room_id),
            )

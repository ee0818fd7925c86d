"""SQLite-backed persistence for user records."""
from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator, List, Optional

from .models import User

_TABLE = "users"


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the registry database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "roster.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, datetime):
        raise TypeError(f"created_at must be a datetime, not {type(value).__name__}")
    return value.isoformat()


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


class Database:
    """Simple wrapper around SQLite for persisting user records.

    Every public method opens its own connection and runs exactly one
    transaction, which is committed on success and rolled back on error.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._clock_lock = threading.Lock()
        self._last_created_at: Optional[datetime] = None

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the database file and the users table if they do not exist."""

        _ensure_directory(self._path)
        with self._transaction() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_TABLE} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT,
                    email TEXT,
                    age INTEGER,
                    created_at TEXT
                )
                """
            )

    # ------------------------------------------------------------------
    # User records
    # ------------------------------------------------------------------
    def insert_user(self, user: User) -> User:
        """Persist ``user`` under a freshly generated identity and return it."""

        created_at = user.created_at or self._next_created_at()
        with self._transaction() as conn:
            cursor = conn.execute(
                f"INSERT INTO {_TABLE} (name, email, age, created_at) VALUES (?, ?, ?, ?)",
                (user.name, user.email, user.age, _serialize_datetime(created_at)),
            )
            user_id = cursor.lastrowid

        return User(
            id=int(user_id),
            name=user.name,
            email=user.email,
            age=user.age,
            created_at=created_at,
        )

    def put_user(self, user: User) -> User:
        """Replace the row stored under ``user.id``, inserting it when absent.

        The stored creation timestamp always wins over the incoming one so that
        ``created_at`` never changes once assigned.
        """

        if user.id is None:
            raise ValueError("Cannot update a user record without an id")

        fallback_created_at = user.created_at or self._next_created_at()
        with self._transaction() as conn:
            conn.execute(
                f"""
                INSERT INTO {_TABLE} (id, name, email, age, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    email = excluded.email,
                    age = excluded.age,
                    created_at = COALESCE({_TABLE}.created_at, excluded.created_at)
                """,
                (
                    user.id,
                    user.name,
                    user.email,
                    user.age,
                    _serialize_datetime(fallback_created_at),
                ),
            )
            row = conn.execute(f"SELECT * FROM {_TABLE} WHERE id = ?", (user.id,)).fetchone()

        return self._row_to_user(row)

    def delete_user(self, user_id: int) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(f"DELETE FROM {_TABLE} WHERE id = ?", (user_id,))
            return cursor.rowcount > 0

    def get_user(self, user_id: int) -> Optional[User]:
        with self._transaction() as conn:
            row = conn.execute(f"SELECT * FROM {_TABLE} WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def list_users(self) -> List[User]:
        with self._transaction() as conn:
            rows = conn.execute(f"SELECT * FROM {_TABLE}").fetchall()
        return [self._row_to_user(row) for row in rows]

    def count_users(self) -> int:
        with self._transaction() as conn:
            row = conn.execute(f"SELECT COUNT(*) AS total FROM {_TABLE}").fetchone()
        return int(row["total"])

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _next_created_at(self) -> datetime:
        # Strictly increasing per database, even on a coarse or stepped-back clock.
        with self._clock_lock:
            now = _current_timestamp()
            if self._last_created_at is not None and now <= self._last_created_at:
                now = self._last_created_at + timedelta(microseconds=1)
            self._last_created_at = now
            return now

    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=int(row["id"]),
            name=row["name"],
            email=row["email"],
            age=row["age"],
            created_at=_parse_datetime(row["created_at"]),
        )


__all__ = ["Database", "resolve_database_path"]

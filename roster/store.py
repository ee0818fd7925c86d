"""Asynchronous record store used by the registry and the HTTP API."""

from __future__ import annotations

import logging
import sqlite3
from functools import partial
from pathlib import Path
from typing import Callable, List, Optional, TypeVar

import anyio
import anyio.to_thread

from .database import Database
from .errors import PersistenceError
from .models import User

logger = logging.getLogger("roster.store")

T = TypeVar("T")


class RecordStore:
    """Identity-managed persistence of :class:`User` records.

    Each operation runs one SQLite transaction in a worker thread. Storage
    failures surface once as :class:`PersistenceError`; nothing is retried.
    """

    def __init__(self, database: Database) -> None:
        self._database = database
        self._open_lock = anyio.Lock()
        self._opened = False

    @classmethod
    def at_path(cls, path: Path) -> "RecordStore":
        return cls(Database(path))

    @property
    def database(self) -> Database:
        return self._database

    @property
    def is_open(self) -> bool:
        return self._opened

    async def open(self) -> "RecordStore":
        """Ensure the database and its collection exist. Safe to call repeatedly."""

        async with self._open_lock:
            if not self._opened:
                await self._run("open the record store", self._database.initialize)
                self._opened = True
                logger.info("Record store opened at %s", self._database.path)
        return self

    async def create(self, record: User) -> User:
        """Persist ``record`` under a new identity and return the stored copy."""

        await self.open()
        created = await self._run("create user", partial(self._database.insert_user, record))
        logger.info("Created user %s", created.id)
        return created

    async def update(self, record: User) -> User:
        """Replace the record stored under ``record.id``, inserting it if absent."""

        if record.id is None:
            raise ValueError("Cannot update a user record without an id")
        await self.open()
        stored = await self._run("update user", partial(self._database.put_user, record))
        logger.info("Updated user %s", stored.id)
        return stored

    async def delete(self, user_id: int) -> None:
        """Remove the record with ``user_id``; unknown ids are ignored."""

        await self.open()
        removed = await self._run("delete user", partial(self._database.delete_user, user_id))
        if removed:
            logger.info("Deleted user %s", user_id)
        else:
            logger.debug("Delete requested for unknown user %s", user_id)

    async def get(self, user_id: int) -> Optional[User]:
        await self.open()
        return await self._run("load user", partial(self._database.get_user, user_id))

    async def list_all(self) -> List[User]:
        """Return every stored record in the engine's natural order."""

        await self.open()
        return await self._run("list users", self._database.list_users)

    async def count(self) -> int:
        await self.open()
        return await self._run("count users", self._database.count_users)

    async def _run(self, operation: str, func: Callable[[], T]) -> T:
        try:
            return await anyio.to_thread.run_sync(func)
        except (sqlite3.Error, OSError, TypeError) as exc:
            logger.error("Unable to %s: %s", operation, exc)
            raise PersistenceError(operation, str(exc)) from exc


__all__ = ["RecordStore"]

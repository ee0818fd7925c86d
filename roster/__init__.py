"""Core utilities for the roster user registry."""

from __future__ import annotations

from typing import Any

from .database import Database, resolve_database_path
from .errors import PersistenceError
from .models import User
from .store import RecordStore
from .view import SortDirection, SortKey, ViewParams, ViewResult, derive_view


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the HTTP API application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "Database",
    "PersistenceError",
    "RecordStore",
    "SortDirection",
    "SortKey",
    "User",
    "ViewParams",
    "ViewResult",
    "create_app",
    "derive_view",
    "resolve_database_path",
]

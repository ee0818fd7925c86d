"""Domain models for the roster registry."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class User:
    """A user record as held by the record store.

    ``id`` stays ``None`` until the store persists the record for the first
    time. Field contents are not validated here; callers validate before
    handing records to the store.
    """

    name: Optional[str]
    email: Optional[str]
    age: Optional[int]
    id: Optional[int] = None
    created_at: Optional[datetime] = None


__all__ = ["User"]

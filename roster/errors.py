"""Exceptions raised by the roster core."""

from __future__ import annotations


class PersistenceError(RuntimeError):
    """Raised when a storage transaction could not be committed."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"Failed to {operation}: {message}")
        self.operation = operation


__all__ = ["PersistenceError"]

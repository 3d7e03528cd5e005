"""tfstate exception hierarchy.

Every error carries an explicit ``kind`` so callers branch on the failure
category instead of on message text.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    LOCK_CONFLICT = "LOCK_CONFLICT"
    NOT_LOCKED = "NOT_LOCKED"
    VALIDATION = "VALIDATION"
    STORAGE = "STORAGE"


class TFStateError(Exception):
    """Base exception for all tfstate errors."""

    kind: ErrorKind = ErrorKind.STORAGE


class StateLockedError(TFStateError):
    """State is locked by a lock ID other than the caller's.

    ``lock_data`` is the serialized lock request of the current holder.
    """

    kind = ErrorKind.LOCK_CONFLICT

    def __init__(self, name: str, lock_data: str | None, message: str = "State is locked") -> None:
        self.name = name
        self.lock_data = lock_data
        super().__init__(f"{message}: {name!r}")


class StateNotLockedError(TFStateError):
    """Unlock requested for a state that holds no lock."""

    kind = ErrorKind.NOT_LOCKED

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"State is not locked: {name!r}")


class InvalidStateNameError(TFStateError, ValueError):
    """State name does not match the accepted pattern."""

    kind = ErrorKind.VALIDATION


class StorageError(TFStateError):
    """Underlying storage engine failed; the operation was rolled back."""

    kind = ErrorKind.STORAGE

"""State record model and its lock transition rules."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, model_validator

from tfstate.core.exceptions import StateLockedError, StateNotLockedError
from tfstate.models.lock import LockRequest


class StateRecord(BaseModel):
    """One named state: its document plus the current lock, if any.

    Transition methods never mutate in place. They either return the record
    that should be persisted or raise the failure the caller must report, so
    every backend applies identical rules inside its own transaction.
    A record that does not exist yet is represented as ``StateRecord(name=...)``.
    """

    name: str
    data: Optional[str] = None
    locked: bool = False
    lock_id: Optional[str] = None
    lock_data: Optional[str] = None

    @model_validator(mode="after")
    def _lock_fields_match_flag(self) -> "StateRecord":
        has_lock_fields = bool(self.lock_id) and bool(self.lock_data)
        has_any_lock_field = bool(self.lock_id) or bool(self.lock_data)
        if self.locked and not has_lock_fields:
            raise ValueError(f"locked state {self.name!r} is missing lock_id or lock_data")
        if not self.locked and has_any_lock_field:
            raise ValueError(f"unlocked state {self.name!r} carries lock fields")
        return self

    def lock(self, lock_request: LockRequest) -> "StateRecord":
        if self.locked:
            raise StateLockedError(self.name, self.lock_data, "State is already locked")
        return self.model_copy(update={
            "locked": True,
            "lock_id": lock_request.id,
            "lock_data": lock_request.to_lock_data(),
        })

    def unlock(self, lock_request: LockRequest) -> "StateRecord":
        if not self.locked:
            raise StateNotLockedError(self.name)
        if lock_request.id != self.lock_id:
            raise StateLockedError(self.name, self.lock_data, "State is locked by another ID")
        return self.model_copy(update={"locked": False, "lock_id": None, "lock_data": None})

    def check_writable(self, lock_id: str | None) -> None:
        if self.locked and lock_id != self.lock_id:
            raise StateLockedError(self.name, self.lock_data, "State is locked out")

    def write(self, data: str, lock_id: str | None = None) -> "StateRecord":
        self.check_writable(lock_id)
        return self.model_copy(update={"data": data})

    def check_deletable(self, force: bool = False) -> None:
        # force skips the lock ID comparison entirely
        if self.locked and not force:
            raise StateLockedError(self.name, self.lock_data, "State is locked")

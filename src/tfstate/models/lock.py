"""Lock request body sent by Terraform's http backend on LOCK/UNLOCK."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class LockRequest(BaseModel):
    """Terraform ``LockInfo`` document.

    Only ``ID`` is interpreted by the store. The remaining fields, and any
    extra keys a client sends, are persisted verbatim as the lock metadata
    returned to callers that lose a lock contention.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(alias="ID", min_length=1, max_length=50)
    operation: Optional[str] = Field(default=None, alias="Operation")
    info: Optional[str] = Field(default=None, alias="Info")
    who: Optional[str] = Field(default=None, alias="Who")
    version: Optional[str] = Field(default=None, alias="Version")
    created: Optional[str] = Field(default=None, alias="Created")
    path: Optional[str] = Field(default=None, alias="Path")

    def to_lock_data(self) -> str:
        """Serialize to the JSON stored as lock metadata."""
        return self.model_dump_json(by_alias=True)

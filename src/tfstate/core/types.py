"""Type aliases and name rules shared across tfstate."""

from __future__ import annotations

import re

from tfstate.core.exceptions import InvalidStateNameError

StateName = str
LockID = str

STATE_NAME_PATTERN = r"^[a-z0-9_-]{4,100}$"
_STATE_NAME_RE = re.compile(STATE_NAME_PATTERN)


def validate_state_name(name: str) -> StateName:
    """Return ``name`` unchanged, or raise InvalidStateNameError."""
    if not isinstance(name, str) or not _STATE_NAME_RE.fullmatch(name):
        raise InvalidStateNameError(f"Invalid state name: {name!r}")
    return name

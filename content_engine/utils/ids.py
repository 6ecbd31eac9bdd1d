"""ID helpers."""

from __future__ import annotations

import uuid


def new_version_id() -> str:
    """Generate a time-based UUID1 string for a new version."""
    return str(uuid.uuid1())

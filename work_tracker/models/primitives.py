"""
Common primitives shared by every document type.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from ulid import ULID


def generate_id() -> str:
    """Generate a ULID for entity IDs.

    ULIDs are lexicographically sortable and globally unique.
    """
    return str(ULID())


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def days_since(moment: datetime, now: datetime | None = None) -> float:
    """Fractional days elapsed since ``moment``."""
    now = now or utc_now()
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (now - moment).total_seconds() / 86400.0


class GitContext(BaseModel):
    """Repository location an entity was recorded in."""

    model_config = ConfigDict(extra="ignore")

    branch: str = Field(default="", description="Checked-out branch name")
    worktree: str = Field(default="", description="Worktree directory name")
    working_directory: str = Field(default="", description="Absolute working directory")
    remote_url: str = Field(default="", description="URL of the origin remote")

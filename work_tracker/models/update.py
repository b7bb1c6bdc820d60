"""
Update record for the per-Work progress journal.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import UpdateType
from .primitives import generate_id, utc_now


class Update(BaseModel):
    """One journal entry. Parsed entries may have zero-valued fields."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=generate_id)
    work_id: str = ""
    timestamp: Optional[datetime] = Field(default_factory=utc_now)
    author: str = ""
    type: UpdateType = UpdateType.MANUAL
    session: str = ""
    title: str = ""
    summary: str = ""
    tasks_completed: List[str] = Field(default_factory=list)
    tasks_added: List[str] = Field(default_factory=list)
    progress_before: Optional[int] = None
    progress_after: Optional[int] = None

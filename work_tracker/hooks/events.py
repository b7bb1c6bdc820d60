"""
Hook event types and the payloads passed to and returned from handlers.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ..models import Work, utc_now


class HookType(str, Enum):
    """Events a handler can be registered for."""

    BEFORE_STATUS_CHANGE = "before_status_change"
    AFTER_STATUS_CHANGE = "after_status_change"
    BEFORE_SCHEDULE_CHANGE = "before_schedule_change"
    AFTER_SCHEDULE_CHANGE = "after_schedule_change"
    PROGRESS_UPDATED = "progress_updated"
    ACTIVITY_DETECTED = "activity_detected"
    INACTIVITY_WARNING = "inactivity_warning"
    GIT_CONTEXT_CHANGED = "git_context_changed"
    COMMIT_DETECTED = "commit_detected"


class HookContext(BaseModel):
    """
    Payload handed to every handler of one dispatch.

    Sequential dispatch passes the same instance to each handler in turn.
    Concurrent dispatch gives each handler its own deep copy, so changes made
    there never reach the caller.
    """

    event_type: HookType
    work_item: Optional[Work] = None
    old_work_item: Optional[Work] = None
    timestamp: datetime = Field(default_factory=utc_now)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def snapshot(self) -> "HookContext":
        return self.model_copy(deep=True)

    def __str__(self) -> str:
        work_id = self.work_item.id if self.work_item else None
        return f"HookContext(event={self.event_type.value}, work={work_id})"


class HookResult(BaseModel):
    """Outcome of one handler invocation."""

    hook_name: str
    success: bool
    error: Optional[str] = None
    duration: float = 0.0
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()

"""
Default automation handlers.
"""

from typing import Any, Dict, Optional

from ..models import Schedule, WorkStatus, utc_now
from .dispatcher import HookDispatcher
from .events import HookContext, HookType


async def activity_detector(context: HookContext) -> Optional[Dict[str, Any]]:
    """Stamp the Work item's last activity and bump its score."""
    work = context.work_item
    if work is None or not context.metadata.get("record_activity", True):
        return None
    now = utc_now()
    work.metadata.last_activity_at = now
    work.metadata.activity_score += 1
    return {"last_activity_at": now.isoformat()}


async def commit_tracker(context: HookContext) -> Optional[Dict[str, Any]]:
    """Record a detected commit as a completed task."""
    work = context.work_item
    info = context.metadata.get("commit_info") or {}
    commit_hash = info.get("hash", "")
    if work is None or not commit_hash:
        return None

    task = f"Commit: {commit_hash[:8]} - {info.get('message', '').strip()}"
    if task not in work.metadata.completed_tasks:
        work.metadata.completed_tasks.append(task)
    return {"commit": commit_hash[:8]}


async def decay_warner(context: HookContext) -> Optional[Dict[str, Any]]:
    work = context.work_item
    if work is None:
        return None
    if work.schedule != Schedule.NOW or work.metadata.status != WorkStatus.IN_PROGRESS:
        return None

    days = context.metadata.get("inactive_days", work.inactive_days())
    warning = f"Inactive for {days} days - consider moving to NEXT"
    if warning not in work.metadata.warnings:
        work.metadata.warnings.append(warning)
    work.metadata.decay_warning = True
    return {"warning": warning}


def register_default_hooks(dispatcher: HookDispatcher) -> None:
    dispatcher.register(HookType.BEFORE_STATUS_CHANGE, "activity_detector", activity_detector)
    dispatcher.register(HookType.COMMIT_DETECTED, "commit_tracker", commit_tracker)
    dispatcher.register(HookType.INACTIVITY_WARNING, "decay_warner", decay_warner)

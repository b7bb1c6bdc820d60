"""
Work container model.

A Work item is the top-level unit of tracked effort. Its schedule doubles as
its storage bucket, so changing it is a relocation handled by the store.
Artifact references are only changed through the association service.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .enums import Priority, Schedule, WorkStatus, Effort
from .primitives import GitContext, days_since, generate_id, utc_now

# Sort rank used by every priority-ordered listing.
PRIORITY_RANK: Dict[str, int] = {
    Priority.CRITICAL.value: 0,
    Priority.HIGH.value: 1,
    Priority.MEDIUM.value: 2,
    Priority.LOW.value: 3,
}

SCHEDULE_RANK: Dict[str, int] = {
    Schedule.NOW.value: 1,
    Schedule.NEXT.value: 2,
    Schedule.LATER.value: 3,
}

# Days without activity before a Work item in each schedule decays.
INACTIVITY_DAYS: Dict[str, int] = {
    Schedule.NOW.value: 7,
    Schedule.NEXT.value: 30,
    Schedule.LATER.value: 90,
}

TERMINAL_STATUSES = frozenset(
    {WorkStatus.COMPLETED, WorkStatus.CANCELED, WorkStatus.ARCHIVED}
)


def priority_rank(priority: Any) -> int:
    """Rank of a priority value; unknown values sort last."""
    value = getattr(priority, "value", priority)
    return PRIORITY_RANK.get(value, 4)


class WorkMetadata(BaseModel):
    """Status, planning and activity fields kept under ``metadata``."""

    model_config = ConfigDict(extra="ignore")

    status: WorkStatus = WorkStatus.ACTIVE
    priority: Priority = Priority.MEDIUM
    estimated_effort: Effort = Effort.MEDIUM
    progress_percent: int = 0

    milestones: List[str] = Field(default_factory=list)
    completed_tasks: List[str] = Field(default_factory=list)
    pending_tasks: List[str] = Field(default_factory=list)
    blocked_by: List[str] = Field(default_factory=list)
    blocks: List[str] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list)

    success_criteria: List[str] = Field(default_factory=list)
    acceptance_criteria: List[str] = Field(default_factory=list)
    delivery_targets: List[str] = Field(default_factory=list)

    review_required: bool = False
    reviewed_by: List[str] = Field(default_factory=list)
    quality_checks: List[str] = Field(default_factory=list)

    artifact_count: int = 0
    last_artifact_added: Optional[datetime] = None
    activity_score: float = 0.0
    last_activity_at: Optional[datetime] = None
    decay_warning: bool = False
    warnings: List[str] = Field(default_factory=list)


class Work(BaseModel):
    """A tracked unit of work stored under ``<root>/<schedule>/``."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=generate_id)
    title: str
    description: str = ""
    schedule: Schedule = Schedule.LATER
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    git_context: GitContext = Field(default_factory=GitContext)
    session_number: str = ""
    technical_tags: List[str] = Field(default_factory=list)
    artifact_refs: Tuple[str, ...] = ()
    metadata: WorkMetadata = Field(default_factory=WorkMetadata)

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    group_id: Optional[str] = None
    overview_updated: Optional[datetime] = None
    updates_ref: Optional[str] = None

    # Document body and location; never part of the header.
    content: str = Field(default="", exclude=True)
    filename: str = Field(default="", exclude=True)
    path: Optional[Path] = Field(default=None, exclude=True)

    def touch(self) -> None:
        self.updated_at = utc_now()

    @property
    def status(self) -> WorkStatus:
        return self.metadata.status

    @property
    def priority(self) -> Priority:
        return self.metadata.priority

    def is_active(self) -> bool:
        return self.metadata.status in (WorkStatus.ACTIVE, WorkStatus.IN_PROGRESS)

    def is_terminal(self) -> bool:
        return self.metadata.status in TERMINAL_STATUSES

    def has_tag(self, tag: str) -> bool:
        return tag.lower() in (t.lower() for t in self.technical_tags)

    # Association bookkeeping. Call through AssociationService only.

    def _link_artifact(self, artifact_id: str) -> bool:
        if artifact_id in self.artifact_refs:
            return False
        now = utc_now()
        self.artifact_refs = self.artifact_refs + (artifact_id,)
        self.metadata.artifact_count = len(self.artifact_refs)
        self.metadata.last_artifact_added = now
        self.metadata.last_activity_at = now
        self.metadata.decay_warning = False
        self.updated_at = now
        return True

    def _unlink_artifact(self, artifact_id: str) -> bool:
        if artifact_id not in self.artifact_refs:
            return False
        self.artifact_refs = tuple(a for a in self.artifact_refs if a != artifact_id)
        self.metadata.artifact_count = len(self.artifact_refs)
        self.touch()
        return True

    # Status transitions

    def update_progress(self, progress: int) -> None:
        """Set progress, clamped to 0..100. Reaching 100 completes the item."""
        progress = max(0, min(100, progress))
        self.metadata.progress_percent = progress
        self.metadata.last_activity_at = utc_now()
        self.touch()
        if progress == 100:
            self.mark_as_completed()

    def mark_as_completed(self) -> None:
        now = utc_now()
        self.metadata.status = WorkStatus.COMPLETED
        self.metadata.progress_percent = 100
        self.completed_at = now
        self.updated_at = now

    def mark_as_blocked(self, blockers: Optional[List[str]] = None) -> None:
        self.metadata.status = WorkStatus.BLOCKED
        for blocker in blockers or []:
            if blocker not in self.metadata.blocked_by:
                self.metadata.blocked_by.append(blocker)
        self.touch()

    # Decay

    def last_activity(self) -> datetime:
        return self.metadata.last_activity_at or self.updated_at

    def calculate_activity_score(self, now: Optional[datetime] = None) -> float:
        """Recompute and store the activity score.

        Recency contributes up to 10 points (whole days only, so the value is
        stable within a day), each artifact 2, progress up to 10, and the
        schedule/status a small bonus.
        """
        score = 0.0
        if self.metadata.last_activity_at is not None:
            days = int(days_since(self.metadata.last_activity_at, now))
            if days < 1:
                score += 10.0
            elif days < 7:
                score += 5.0 - days

        score += 2.0 * len(self.artifact_refs)
        score += 0.1 * self.metadata.progress_percent

        if self.schedule == Schedule.NOW:
            score += 5.0
        elif self.schedule == Schedule.NEXT:
            score += 2.0

        if self.metadata.status == WorkStatus.IN_PROGRESS:
            score += 3.0
        elif self.metadata.status == WorkStatus.ACTIVE:
            score += 1.0

        self.metadata.activity_score = score
        return score

    def inactive_days(self, now: Optional[datetime] = None) -> int:
        return int(days_since(self.last_activity(), now))

    def should_decay(self, now: Optional[datetime] = None) -> bool:
        if self.is_terminal():
            return False

        limit = INACTIVITY_DAYS.get(self.schedule.value)
        if limit is not None and self.inactive_days(now) > limit:
            return True

        return (
            self.metadata.artifact_count == 0
            and not self.artifact_refs
            and days_since(self.created_at, now) > 14
        )

    def schedule_priority(self) -> int:
        return SCHEDULE_RANK.get(self.schedule.value, 4)

    def overview(self) -> Dict[str, Any]:
        """Summary used by list views and the CLI."""
        return {
            "id": self.id,
            "title": self.title,
            "schedule": self.schedule.value,
            "status": self.metadata.status.value,
            "priority": self.metadata.priority.value,
            "progress_percent": self.metadata.progress_percent,
            "artifact_count": len(self.artifact_refs),
            "activity_score": self.metadata.activity_score,
            "tags": list(self.technical_tags),
            "updated_at": self.updated_at.isoformat(),
        }

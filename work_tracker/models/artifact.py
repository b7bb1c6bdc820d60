"""
Artifact model: typed supporting evidence for Work items.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .enums import ArtifactStatus, ArtifactType
from .primitives import GitContext, days_since, generate_id, utc_now

# Days without activity before an artifact of each type decays.
INACTIVITY_DAYS: Dict[str, int] = {
    ArtifactType.UPDATE.value: 30,
    ArtifactType.ANALYSIS.value: 90,
    ArtifactType.DECISION.value: 180,
    ArtifactType.PLAN.value: 180,
}
DEFAULT_INACTIVITY_DAYS = 60

ORPHAN_GRACE_DAYS = 30
UNREFERENCED_GRACE_DAYS = 14


class WorkAssignment(BaseModel):
    """One entry of an artifact's assignment history."""

    model_config = ConfigDict(extra="ignore")

    work_id: str
    assigned_at: datetime = Field(default_factory=utc_now)
    assigned_by: str = "user"


class ArtifactMetadata(BaseModel):
    """Lifecycle and type-specific fields kept under ``metadata``."""

    model_config = ConfigDict(extra="ignore")

    status: ArtifactStatus = ArtifactStatus.ACTIVE
    confidence: Optional[str] = None

    work_assignments: List[WorkAssignment] = Field(default_factory=list)
    last_assigned_at: Optional[datetime] = None
    reference_count: int = 0
    activity_score: float = 0.0
    last_activity_at: Optional[datetime] = None
    decay_warning: bool = False
    orphaned_at: Optional[datetime] = None

    # plan
    implementation_status: Optional[str] = None
    phases: List[str] = Field(default_factory=list)
    estimated_effort: Optional[str] = None
    # decision
    enforcement_active: Optional[bool] = None
    supersedes: List[str] = Field(default_factory=list)
    alternatives_considered: List[str] = Field(default_factory=list)
    review_date: Optional[datetime] = None
    # analysis
    analysis_scope: Optional[str] = None
    tools_used: List[str] = Field(default_factory=list)
    confidence_level: Optional[str] = None
    # update
    updates_item: Optional[str] = None
    progress_percentage: Optional[int] = None
    blockers_identified: List[str] = Field(default_factory=list)
    # proposal
    approval_status: Optional[str] = None
    estimated_impact: Optional[str] = None
    dependencies: List[str] = Field(default_factory=list)

    @classmethod
    def defaults_for(cls, artifact_type: ArtifactType) -> "ArtifactMetadata":
        """Metadata with the per-type defaults applied on creation."""
        meta = cls()
        if artifact_type == ArtifactType.PLAN:
            meta.implementation_status = "not_started"
        elif artifact_type == ArtifactType.DECISION:
            meta.enforcement_active = True
        elif artifact_type == ArtifactType.PROPOSAL:
            meta.approval_status = "pending"
        return meta


class Artifact(BaseModel):
    """A plan, proposal, analysis, update or decision document."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=generate_id)
    type: ArtifactType
    summary: str
    technical_tags: List[str] = Field(default_factory=list)
    session_number: str = ""
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    git_context: GitContext = Field(default_factory=GitContext)
    related_artifacts: Tuple[str, ...] = ()
    work_refs: Tuple[str, ...] = ()
    group_id: Optional[str] = None
    metadata: ArtifactMetadata = Field(default_factory=ArtifactMetadata)

    content: str = Field(default="", exclude=True)
    filename: str = Field(default="", exclude=True)
    path: Optional[Path] = Field(default=None, exclude=True)

    def touch(self) -> None:
        self.updated_at = utc_now()

    @property
    def status(self) -> ArtifactStatus:
        return self.metadata.status

    def is_orphaned(self) -> bool:
        """No work refs, no related artifacts, no group and never referenced."""
        return (
            not self.work_refs
            and not self.related_artifacts
            and not self.group_id
            and self.metadata.reference_count == 0
        )

    def is_enforced_decision(self) -> bool:
        return self.type == ArtifactType.DECISION and bool(
            self.metadata.enforcement_active
        )

    # Association bookkeeping. Call through AssociationService only.

    def _link_work(self, work_id: str, assigned_by: str = "user") -> bool:
        if work_id in self.work_refs:
            return False
        now = utc_now()
        self.work_refs = self.work_refs + (work_id,)
        self.metadata.work_assignments.append(
            WorkAssignment(work_id=work_id, assigned_at=now, assigned_by=assigned_by)
        )
        self.metadata.last_assigned_at = now
        self.metadata.last_activity_at = now
        self.metadata.orphaned_at = None
        self.metadata.decay_warning = False
        self.metadata.status = ArtifactStatus.ACTIVE
        self.updated_at = now
        return True

    def _unlink_work(self, work_id: str) -> bool:
        if work_id not in self.work_refs:
            return False
        self.work_refs = tuple(w for w in self.work_refs if w != work_id)
        self.touch()
        if self.is_orphaned():
            self.metadata.orphaned_at = self.updated_at
        return True

    def _set_reference_count(self, count: int) -> None:
        self.metadata.reference_count = count
        self.touch()
        if count > 0:
            self.metadata.decay_warning = False
            self.metadata.orphaned_at = None
        elif self.is_orphaned() and self.metadata.orphaned_at is None:
            self.metadata.orphaned_at = self.updated_at

    def _set_group(self, group_id: Optional[str]) -> None:
        self.group_id = group_id
        self.touch()
        if self.is_orphaned():
            self.metadata.orphaned_at = self.updated_at
        else:
            self.metadata.orphaned_at = None

    # Decay

    def last_activity(self) -> datetime:
        return self.metadata.last_activity_at or self.updated_at

    def inactive_days(self, now: Optional[datetime] = None) -> int:
        return int(days_since(self.last_activity(), now))

    def calculate_activity_score(self, now: Optional[datetime] = None) -> float:
        score = 0.0
        if self.metadata.last_activity_at is not None:
            days = int(days_since(self.metadata.last_activity_at, now))
            if days < 1:
                score += 10.0
            elif days < 7:
                score += 5.0 - days

        score += 2.0 * self.metadata.reference_count
        score += 3.0 * len(self.work_refs)
        score += 1.0 * len(self.related_artifacts)
        if self.group_id:
            score += 2.0

        if self.is_enforced_decision():
            score += 5.0
        elif (
            self.type == ArtifactType.PLAN
            and self.metadata.implementation_status == "in_progress"
        ):
            score += 3.0
        elif self.type == ArtifactType.UPDATE:
            score += 2.0

        self.metadata.activity_score = score
        return score

    def should_decay(self, now: Optional[datetime] = None) -> bool:
        if self.metadata.status == ArtifactStatus.ARCHIVED:
            return False
        if self.is_enforced_decision():
            return False

        if self.is_orphaned():
            if self.metadata.orphaned_at is not None:
                if days_since(self.metadata.orphaned_at, now) > ORPHAN_GRACE_DAYS:
                    return True
            elif days_since(self.created_at, now) > UNREFERENCED_GRACE_DAYS:
                return True

        limit = INACTIVITY_DAYS.get(self.type.value, DEFAULT_INACTIVITY_DAYS)
        return self.inactive_days(now) > limit

    def overview(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "summary": self.summary,
            "status": self.metadata.status.value,
            "work_refs": list(self.work_refs),
            "group_id": self.group_id,
            "activity_score": self.metadata.activity_score,
            "tags": list(self.technical_tags),
            "updated_at": self.updated_at.isoformat(),
        }

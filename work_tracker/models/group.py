"""
Group model: a cluster of related Artifacts considered for promotion to Work.

All scores are deterministic functions of the group's own fields plus the
time elapsed since ``metadata.last_modified``.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .enums import ArtifactType, GroupStatus, Priority, Schedule
from .primitives import GitContext, days_since, generate_id, utc_now

READY_MIN_ARTIFACTS = 2
READY_MIN_READINESS = 0.7
READY_MIN_COHESION = 0.6


class GroupMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: GroupStatus = GroupStatus.ACTIVE
    consolidated_at: Optional[datetime] = None
    consolidated_by: Optional[str] = None
    consolidated_work_id: Optional[str] = None

    artifact_count: int = 0
    type_distribution: Dict[str, int] = Field(default_factory=dict)
    confidence_score: float = 0.0
    similarity_score: float = 0.0
    last_modified: datetime = Field(default_factory=utc_now)

    activity_score: float = 0.0
    recommended_for_work: bool = False
    completion_score: float = 0.0
    readiness_score: float = 0.0
    cohesion_score: float = 0.0

    related_groups: List[str] = Field(default_factory=list)
    merge_candidate: bool = False
    split_suggested: bool = False

    suggested_work_title: Optional[str] = None
    suggested_schedule: Optional[Schedule] = None
    suggested_priority: Optional[Priority] = None
    consolidation_notes: Optional[str] = None
    needs_review: bool = False


class WorkSuggestion(BaseModel):
    """Fields for the Work item a group would consolidate into."""

    title: str
    description: str
    schedule: Schedule
    priority: Priority
    technical_tags: List[str] = Field(default_factory=list)
    artifact_ids: List[str] = Field(default_factory=list)


class Group(BaseModel):
    """A named set of artifacts stored under ``<root>/groups/``."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=generate_id)
    name: str
    description: str = ""
    theme: str = ""
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    git_context: GitContext = Field(default_factory=GitContext)
    session_number: str = ""
    artifact_ids: Tuple[str, ...] = ()
    work_refs: Tuple[str, ...] = ()
    technical_tags: List[str] = Field(default_factory=list)
    metadata: GroupMetadata = Field(default_factory=GroupMetadata)

    content: str = Field(default="", exclude=True)
    filename: str = Field(default="", exclude=True)
    path: Optional[Path] = Field(default=None, exclude=True)

    @property
    def status(self) -> GroupStatus:
        return self.metadata.status

    def touch(self) -> None:
        now = utc_now()
        self.updated_at = now
        self.metadata.last_modified = now

    def _add_member(self, artifact_id: str) -> bool:
        if artifact_id in self.artifact_ids:
            return False
        self.artifact_ids = self.artifact_ids + (artifact_id,)
        self.metadata.artifact_count = len(self.artifact_ids)
        self.touch()
        return True

    def _remove_member(self, artifact_id: str) -> bool:
        if artifact_id not in self.artifact_ids:
            return False
        self.artifact_ids = tuple(a for a in self.artifact_ids if a != artifact_id)
        self.metadata.artifact_count = len(self.artifact_ids)
        self.touch()
        return True

    def update_type_distribution(self, types: Iterable[ArtifactType]) -> None:
        """Rebuild the type histogram from the member artifacts' types."""
        distribution: Dict[str, int] = {}
        for artifact_type in types:
            key = getattr(artifact_type, "value", artifact_type)
            distribution[key] = distribution.get(key, 0) + 1
        self.metadata.type_distribution = distribution
        self.metadata.artifact_count = len(self.artifact_ids)

    def has_mixed_types(self) -> bool:
        return len(self.metadata.type_distribution) > 1

    def dominant_type(self) -> Optional[str]:
        if not self.metadata.type_distribution:
            return None
        # Ties resolve alphabetically so the result is stable.
        return sorted(
            self.metadata.type_distribution.items(), key=lambda kv: (-kv[1], kv[0])
        )[0][0]

    def calculate_scores(self, now: Optional[datetime] = None) -> None:
        meta = self.metadata
        meta.artifact_count = len(self.artifact_ids)
        count = meta.artifact_count

        size_score = min(count / 10.0, 1.0)

        age_days = days_since(meta.last_modified, now)
        age_score = 1.0
        if age_days > 7:
            age_score = max(1.0 - (age_days - 7) / 30.0, 0.3)

        cohesion = 0.5
        if self.technical_tags:
            cohesion += 0.2
        if not self.has_mixed_types():
            cohesion += 0.2
        meta.cohesion_score = min(cohesion, 1.0)

        meta.completion_score = 0.7 * size_score + 0.3 * meta.cohesion_score
        meta.readiness_score = (size_score + meta.cohesion_score + age_score) / 3.0

        activity = 0.0
        if age_days < 1:
            activity = 10.0
        elif age_days < 7:
            activity = 5.0 - age_days
        meta.activity_score = activity + 0.5 * count

        meta.recommended_for_work = self.is_ready_for_work()

    def is_ready_for_work(self) -> bool:
        meta = self.metadata
        return (
            meta.status == GroupStatus.ACTIVE
            and meta.artifact_count >= READY_MIN_ARTIFACTS
            and meta.readiness_score >= READY_MIN_READINESS
            and meta.cohesion_score >= READY_MIN_COHESION
        )

    def should_split(self) -> bool:
        meta = self.metadata
        return (
            meta.artifact_count > 8
            and self.has_mixed_types()
            and meta.cohesion_score < 0.5
        )

    def should_merge(self) -> bool:
        meta = self.metadata
        return (
            meta.artifact_count < 3
            and meta.merge_candidate
            and meta.cohesion_score < 0.6
        )

    def generate_work_suggestion(self) -> WorkSuggestion:
        meta = self.metadata
        theme = self.theme or self.name

        if meta.suggested_work_title:
            title = meta.suggested_work_title
        else:
            prefix = {
                ArtifactType.PLAN.value: "Implement ",
                ArtifactType.PROPOSAL.value: "Evaluate and Implement ",
                ArtifactType.ANALYSIS.value: "Act on Analysis of ",
            }.get(self.dominant_type() or "", "Work on ")
            title = prefix + theme

        description = self.description or (
            f"Work item consolidated from {meta.artifact_count} artifacts "
            f"related to {theme}"
        )

        if meta.readiness_score > 0.8 and meta.activity_score > 5:
            schedule = Schedule.NOW
        elif meta.readiness_score > 0.6:
            schedule = Schedule.NEXT
        else:
            schedule = Schedule.LATER

        combined = (meta.activity_score / 10.0 + meta.completion_score) / 2.0
        if combined > 0.8:
            priority = Priority.HIGH
        elif combined > 0.5:
            priority = Priority.MEDIUM
        else:
            priority = Priority.LOW

        return WorkSuggestion(
            title=title,
            description=description,
            schedule=schedule,
            priority=priority,
            technical_tags=list(self.technical_tags),
            artifact_ids=list(self.artifact_ids),
        )

    def mark_as_consolidated(self, work_id: str, method: str) -> None:
        now = utc_now()
        self.metadata.status = GroupStatus.CONSOLIDATED
        self.metadata.consolidated_at = now
        self.metadata.consolidated_by = method
        self.metadata.consolidated_work_id = work_id
        self.metadata.recommended_for_work = False
        if work_id not in self.work_refs:
            self.work_refs = self.work_refs + (work_id,)
        self.updated_at = now

    def render_body(self, members: Iterable["object"] = ()) -> str:
        """Markdown body summarising the group and its members."""
        meta = self.metadata
        lines = [
            f"# {self.name}",
            "",
            "## Overview",
            "",
            self.description or "_No description._",
            "",
            f"- **Theme**: {self.theme or 'n/a'}",
            f"- **Status**: {meta.status.value}",
            f"- **Artifacts**: {meta.artifact_count}",
            f"- **Readiness**: {meta.readiness_score:.2f}",
            f"- **Cohesion**: {meta.cohesion_score:.2f}",
            "",
        ]
        if meta.type_distribution:
            lines += ["## Artifact Types", ""]
            for artifact_type, count in sorted(meta.type_distribution.items()):
                lines.append(f"- {artifact_type}: {count}")
            lines.append("")

        members = list(members)
        if members:
            lines += ["## Included Artifacts", ""]
            for artifact in members:
                lines.append(f"- [{artifact.type.value}] {artifact.summary} ({artifact.id})")
            lines.append("")

        if meta.status == GroupStatus.ACTIVE:
            suggestion = self.generate_work_suggestion()
            lines += [
                "## Consolidation Suggestion",
                "",
                f"- **Title**: {suggestion.title}",
                f"- **Schedule**: {suggestion.schedule.value}",
                f"- **Priority**: {suggestion.priority.value}",
                f"- **Ready for work**: {'yes' if self.is_ready_for_work() else 'no'}",
            ]
        elif meta.consolidated_work_id:
            lines.append(f"Consolidated into work item {meta.consolidated_work_id}.")
        return "\n".join(lines).strip()

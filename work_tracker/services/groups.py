"""
Group service: artifact grouping, scoring and consolidation into Work.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional

import structlog
from pydantic import BaseModel, Field

from ..errors import NotFoundError, ValidationFailureError, WorkTrackerError
from ..models import (
    Artifact,
    GitContext,
    Group,
    GroupStatus,
    Schedule,
    Work,
    WorkMetadata,
    WorkStatus,
    utc_now,
)
from ..store import EntityStore

logger = structlog.get_logger(__name__)


class ConsolidationResult(BaseModel):
    """Outcome of promoting a group into a Work item."""

    work: Work
    group: Group
    updated_artifacts: List[str] = Field(default_factory=list)
    failed_artifacts: List[str] = Field(default_factory=list)


class GroupHealthReport(BaseModel):
    total_groups: int = 0
    active_groups: int = 0
    consolidated_groups: int = 0
    archived_groups: int = 0
    ready_for_work: int = 0
    merge_candidates: int = 0
    split_suggested: int = 0
    average_size: float = 0.0
    average_readiness: float = 0.0
    average_cohesion: float = 0.0
    recommendations: List[str] = Field(default_factory=list)


class GroupService:
    """Creates, scores and consolidates groups. Persists through the store."""

    def __init__(self, store: EntityStore):
        self.store = store

    def _members(self, group: Group) -> List[Artifact]:
        by_id = {a.id: a for a in self.store.list_all_artifacts()}
        return [by_id[a] for a in group.artifact_ids if a in by_id]

    def refresh_scores(self, group: Group, now: Optional[datetime] = None) -> Group:
        """Recompute type distribution, scores and body from live member data."""
        members = self._members(group)
        group.update_type_distribution(a.type for a in members)
        group.calculate_scores(now)
        group.content = group.render_body(members)
        return group

    def create_group(
        self,
        name: str,
        description: str = "",
        theme: str = "",
        artifact_ids: Iterable[str] = (),
        technical_tags: Optional[List[str]] = None,
        session_number: str = "",
        git_context: Optional[GitContext] = None,
    ) -> Group:
        group = Group(
            name=name,
            description=description,
            theme=theme,
            technical_tags=list(technical_tags or []),
            session_number=session_number,
            git_context=git_context or GitContext(),
        )

        members: List[Artifact] = []
        for artifact_id in artifact_ids:
            members.append(self.store.get_artifact(artifact_id))
        for artifact in members:
            group._add_member(artifact.id)

        self.refresh_scores(group)
        self.store.write_group(group)

        for artifact in members:
            artifact._set_group(group.id)
            self.store.write_artifact(artifact)

        logger.info("group_created", group_id=group.id, artifact_count=len(members))
        return group

    def update_group(self, group: Group) -> Group:
        group.touch()
        self.refresh_scores(group)
        self.store.write_group(group)
        return group

    def get_group(self, group_id: str) -> Group:
        return self.store.get_group(group_id)

    def list_groups(self) -> List[Group]:
        return self.store.list_groups()

    def add_artifact_to_group(self, group_id: str, artifact_id: str) -> Group:
        group = self.store.get_group(group_id)
        artifact = self.store.get_artifact(artifact_id)
        if group._add_member(artifact.id):
            self.update_group(group)
        if artifact.group_id != group.id:
            artifact._set_group(group.id)
            self.store.write_artifact(artifact)
        return group

    def remove_artifact_from_group(self, group_id: str, artifact_id: str) -> Group:
        group = self.store.get_group(group_id)
        if group._remove_member(artifact_id):
            self.update_group(group)
        try:
            artifact = self.store.get_artifact(artifact_id)
        except NotFoundError:
            return group
        if artifact.group_id == group.id:
            artifact._set_group(None)
            self.store.write_artifact(artifact)
        return group

    def delete_group(self, group_id: str) -> None:
        """Detach members, then remove the group document."""
        group = self.store.get_group(group_id)
        for artifact in self._members(group):
            if artifact.group_id != group.id:
                continue
            artifact._set_group(None)
            try:
                self.store.write_artifact(artifact)
            except WorkTrackerError as exc:
                logger.warning(
                    "group_member_detach_failed", artifact_id=artifact.id, error=exc.message
                )
        self.store.delete_group(group)

    def consolidate_group_to_work(
        self, group_id: str, method: str = "manual"
    ) -> ConsolidationResult:
        """Promote a ready group into a new Work item.

        Member artifacts are linked to the new Work one at a time; a failure on
        one member is logged and recorded, not raised.
        """
        group = self.store.get_group(group_id)
        self.refresh_scores(group)
        if not group.is_ready_for_work():
            raise ValidationFailureError(
                f"group {group.id} is not ready for work "
                f"(readiness={group.metadata.readiness_score:.2f}, "
                f"cohesion={group.metadata.cohesion_score:.2f}, "
                f"artifacts={group.metadata.artifact_count})"
            )

        suggestion = group.generate_work_suggestion()
        now = utc_now()
        work = Work(
            title=suggestion.title,
            description=suggestion.description,
            schedule=suggestion.schedule,
            session_number=group.session_number,
            git_context=group.git_context.model_copy(),
            technical_tags=suggestion.technical_tags,
            artifact_refs=tuple(suggestion.artifact_ids),
            group_id=group.id,
            metadata=WorkMetadata(
                priority=suggestion.priority,
                artifact_count=len(suggestion.artifact_ids),
                last_artifact_added=now,
                last_activity_at=now,
            ),
            content=_consolidated_body(group, self._members(group)),
        )
        if work.schedule == Schedule.NOW:
            work.metadata.status = WorkStatus.IN_PROGRESS
            work.started_at = now
        self.store.write_work(work)

        group.mark_as_consolidated(work.id, method)
        group.content = group.render_body(self._members(group))
        self.store.write_group(group)

        result = ConsolidationResult(work=work, group=group)
        for artifact_id in group.artifact_ids:
            try:
                artifact = self.store.get_artifact(artifact_id)
                artifact._link_work(work.id, assigned_by=f"consolidation:{method}")
                self.store.write_artifact(artifact)
            except WorkTrackerError as exc:
                logger.warning(
                    "consolidation_artifact_failed",
                    group_id=group.id,
                    artifact_id=artifact_id,
                    error=exc.message,
                )
                result.failed_artifacts.append(artifact_id)
            else:
                result.updated_artifacts.append(artifact_id)

        logger.info(
            "group_consolidated",
            group_id=group.id,
            work_id=work.id,
            method=method,
            failed=len(result.failed_artifacts),
        )
        return result

    def get_consolidation_candidates(self) -> List[Group]:
        candidates = []
        for group in self.store.list_groups():
            self.refresh_scores(group)
            if group.is_ready_for_work():
                candidates.append(group)
        return sorted(candidates, key=lambda g: -g.metadata.readiness_score)

    def analyze_group_health(self) -> GroupHealthReport:
        """Aggregate reporting only; nothing is written."""
        groups = self.store.list_groups()
        report = GroupHealthReport(total_groups=len(groups))
        if not groups:
            report.recommendations.append(
                "No groups yet; group related artifacts to plan new work"
            )
            return report

        for group in groups:
            self.refresh_scores(group)
            status = group.metadata.status
            if status == GroupStatus.ACTIVE:
                report.active_groups += 1
            elif status == GroupStatus.CONSOLIDATED:
                report.consolidated_groups += 1
            elif status == GroupStatus.ARCHIVED:
                report.archived_groups += 1
            if group.is_ready_for_work():
                report.ready_for_work += 1
            if group.should_merge():
                report.merge_candidates += 1
            if group.should_split():
                report.split_suggested += 1

        count = float(len(groups))
        report.average_size = sum(g.metadata.artifact_count for g in groups) / count
        report.average_readiness = sum(g.metadata.readiness_score for g in groups) / count
        report.average_cohesion = sum(g.metadata.cohesion_score for g in groups) / count

        if report.ready_for_work:
            report.recommendations.append(
                f"{report.ready_for_work} group(s) ready to consolidate into work"
            )
        if report.split_suggested:
            report.recommendations.append(
                f"{report.split_suggested} group(s) mix unrelated artifacts and should be split"
            )
        if report.merge_candidates:
            report.recommendations.append(
                f"{report.merge_candidates} small group(s) could be merged"
            )
        if report.average_cohesion < 0.6:
            report.recommendations.append("Average cohesion is low; tighten group themes")
        return report


def _consolidated_body(group: Group, members: List[Artifact]) -> str:
    lines = [
        f"# {group.name}",
        "",
        f"Consolidated from group `{group.id}`.",
        "",
    ]
    if group.description:
        lines += [group.description, ""]
    if members:
        lines += ["## Source Artifacts", ""]
        lines += [f"- [{a.type.value}] {a.summary}" for a in members]
    return "\n".join(lines)

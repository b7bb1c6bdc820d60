"""
Lifecycle service: decay analysis and cleanup.

Analysis is a pure function of the documents on disk. Activity scores are
recomputed on the loaded copies before any decay predicate is evaluated, and
nothing is written unless an action is explicitly executed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

import structlog
from pydantic import BaseModel, Field

from ..errors import ValidationFailureError, WorkTrackerError
from ..models import (
    ActionPriority,
    ActionType,
    Artifact,
    ArtifactStatus,
    ArtifactType,
    Group,
    GroupStatus,
    ItemKind,
    Schedule,
    Work,
    WorkStatus,
    utc_now,
)
from ..models.primitives import days_since
from ..store import EntityStore
from .groups import GroupService

logger = structlog.get_logger(__name__)

ACTION_PRIORITY_RANK = {
    ActionPriority.HIGH: 0,
    ActionPriority.MEDIUM: 1,
    ActionPriority.LOW: 2,
}


class LifecyclePolicy(BaseModel):
    """Thresholds, in days unless noted, used to rank cleanup actions."""

    now_inactive_high_days: int = 14
    auto_safe_inactive_days: int = 90
    unsupported_high_days: int = 7
    orphan_escalate_days: int = 14
    orphan_update_archive_days: int = 30
    orphan_decision_auto_safe_days: int = 30
    group_stale_days: int = 30
    group_min_activity: float = 1.0


class CleanupAction(BaseModel):
    item_id: str
    item_kind: ItemKind
    item_title: str = ""
    action_type: ActionType
    priority: ActionPriority
    reason: str
    auto_safe: bool = False


class DecaySummary(BaseModel):
    total_items: int = 0
    healthy_items: int = 0
    items_needing_review: int = 0
    items_needing_action: int = 0
    orphaned_artifacts: int = 0
    stale_items: int = 0
    unsupported_work: int = 0
    health_score: float = 1.0


class DecayReport(BaseModel):
    generated_at: datetime = Field(default_factory=utc_now)
    stale_work: List[Work] = Field(default_factory=list)
    stale_artifacts: List[Artifact] = Field(default_factory=list)
    orphaned_artifacts: List[Artifact] = Field(default_factory=list)
    stale_groups: List[Group] = Field(default_factory=list)
    unsupported_work: List[Work] = Field(default_factory=list)
    actions: List[CleanupAction] = Field(default_factory=list)
    summary: DecaySummary = Field(default_factory=DecaySummary)


class ActionOutcome(BaseModel):
    action: CleanupAction
    success: bool
    error: Optional[str] = None


class CleanupReport(BaseModel):
    dry_run: bool = False
    outcomes: List[ActionOutcome] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)


class HealthMetrics(BaseModel):
    total_work: int = 0
    total_artifacts: int = 0
    total_groups: int = 0
    health_score: float = 1.0
    stale_work: int = 0
    stale_artifacts: int = 0
    orphaned_artifacts: int = 0
    stale_groups: int = 0
    unsupported_work: int = 0
    auto_safe_actions: int = 0
    actions_by_priority: Dict[str, int] = Field(default_factory=dict)
    actions_by_type: Dict[str, int] = Field(default_factory=dict)


class RefreshReport(BaseModel):
    updated: int = 0
    unchanged: int = 0
    failed: int = 0


def _archive_note(reason: str, now: datetime) -> str:
    return f"\n\n---\n**ARCHIVED**: {now:%Y-%m-%d %H:%M:%S}\n*Reason: {reason}*"


class LifecycleService:
    """Classifies stale and orphaned entities and executes cleanup actions."""

    def __init__(
        self,
        store: EntityStore,
        groups: Optional[GroupService] = None,
        policy: Optional[LifecyclePolicy] = None,
    ):
        self.store = store
        self.groups = groups or GroupService(store)
        self.policy = policy or LifecyclePolicy()

    # Classification

    def is_unsupported(self, work: Work) -> bool:
        return (
            not work.artifact_refs
            and not work.is_terminal()
            and work.schedule != Schedule.CLOSED
        )

    def is_group_stale(self, group: Group, now: Optional[datetime] = None) -> bool:
        if group.metadata.status != GroupStatus.ACTIVE:
            return False
        meta = group.metadata
        if meta.artifact_count == 0:
            return True
        if (
            days_since(meta.last_modified, now) > self.policy.group_stale_days
            and not group.is_ready_for_work()
        ):
            return True
        return meta.activity_score < self.policy.group_min_activity

    def _apply_auto_safe(self, action: CleanupAction, days: int) -> CleanupAction:
        """Anything inactive past the auto-safe threshold is archived at high priority."""
        if days > self.policy.auto_safe_inactive_days:
            action.priority = ActionPriority.HIGH
            action.action_type = ActionType.ARCHIVE
            action.auto_safe = True
        return action

    def create_work_decay_action(
        self, work: Work, now: Optional[datetime] = None
    ) -> CleanupAction:
        days = work.inactive_days(now)
        action = CleanupAction(
            item_id=work.id,
            item_kind=ItemKind.WORK,
            item_title=work.title,
            action_type=ActionType.REVIEW,
            priority=ActionPriority.MEDIUM,
            reason=f"Inactive for {days} days",
        )
        if days > self.policy.auto_safe_inactive_days:
            return self._apply_auto_safe(action, days)
        if work.schedule == Schedule.NOW and days > self.policy.now_inactive_high_days:
            action.priority = ActionPriority.HIGH
            action.reason = f"NOW item inactive for {days} days"
        return action

    def create_unsupported_work_action(
        self, work: Work, now: Optional[datetime] = None
    ) -> CleanupAction:
        age = days_since(work.created_at, now)
        return CleanupAction(
            item_id=work.id,
            item_kind=ItemKind.WORK,
            item_title=work.title,
            action_type=ActionType.REVIEW,
            priority=(
                ActionPriority.HIGH
                if age > self.policy.unsupported_high_days
                else ActionPriority.MEDIUM
            ),
            reason="Work item has no supporting artifacts",
        )

    def create_orphan_action(
        self, artifact: Artifact, now: Optional[datetime] = None
    ) -> CleanupAction:
        age = days_since(artifact.created_at, now)
        action = CleanupAction(
            item_id=artifact.id,
            item_kind=ItemKind.ARTIFACT,
            item_title=artifact.summary,
            action_type=ActionType.CONSOLIDATE,
            priority=ActionPriority.LOW,
            reason=f"Orphaned {artifact.type.value} with no work references",
        )

        if artifact.type == ArtifactType.DECISION:
            if artifact.is_enforced_decision():
                action.priority = ActionPriority.MEDIUM
                action.action_type = ActionType.REVIEW
                action.reason = "Enforced decision is not linked to any work"
            elif age > self.policy.orphan_decision_auto_safe_days:
                action.action_type = ActionType.ARCHIVE
                action.auto_safe = True
        elif artifact.type == ArtifactType.UPDATE:
            if age > self.policy.orphan_update_archive_days:
                action.priority = ActionPriority.MEDIUM
                action.action_type = ActionType.ARCHIVE
                action.auto_safe = True
        elif artifact.type in (ArtifactType.PLAN, ArtifactType.PROPOSAL):
            if age > self.policy.orphan_escalate_days:
                action.priority = ActionPriority.MEDIUM
        return self._apply_auto_safe(action, artifact.inactive_days(now))

    def create_stale_artifact_action(
        self, artifact: Artifact, now: Optional[datetime] = None
    ) -> CleanupAction:
        days = artifact.inactive_days(now)
        action = CleanupAction(
            item_id=artifact.id,
            item_kind=ItemKind.ARTIFACT,
            item_title=artifact.summary,
            action_type=ActionType.ARCHIVE,
            priority=ActionPriority.LOW,
            reason=f"Inactive for {days} days",
        )
        return self._apply_auto_safe(action, days)

    def create_group_action(
        self, group: Group, now: Optional[datetime] = None
    ) -> CleanupAction:
        meta = group.metadata
        if meta.artifact_count == 0:
            reason = "Group has no artifacts"
        elif meta.activity_score < self.policy.group_min_activity:
            reason = f"Low group activity ({meta.activity_score:.1f})"
        else:
            reason = f"Group unmodified for {int(days_since(meta.last_modified, now))} days"

        ready = group.is_ready_for_work()
        return CleanupAction(
            item_id=group.id,
            item_kind=ItemKind.GROUP,
            item_title=group.name,
            action_type=ActionType.CONSOLIDATE if ready else ActionType.REVIEW,
            priority=ActionPriority.MEDIUM,
            reason=reason,
        )

    # Analysis

    def analyze_decay(self, now: Optional[datetime] = None) -> DecayReport:
        """Classify every entity and rank the resulting cleanup actions.

        Listing failures propagate; nothing is persisted.
        """
        now = now or utc_now()
        works = self.store.list_all_work()
        artifacts = self.store.list_all_artifacts()
        groups = self.store.list_groups()

        report = DecayReport(generated_at=now)
        actions: List[CleanupAction] = []

        for work in works:
            work.calculate_activity_score(now)
            stale = work.should_decay(now)
            if stale:
                report.stale_work.append(work)
                actions.append(self.create_work_decay_action(work, now))
            if self.is_unsupported(work):
                report.unsupported_work.append(work)
                if not stale:
                    actions.append(self.create_unsupported_work_action(work, now))

        for artifact in artifacts:
            if artifact.metadata.status == ArtifactStatus.ARCHIVED:
                continue
            artifact.calculate_activity_score(now)
            orphaned = artifact.is_orphaned()
            if orphaned:
                report.orphaned_artifacts.append(artifact)
                actions.append(self.create_orphan_action(artifact, now))
            if artifact.should_decay(now):
                report.stale_artifacts.append(artifact)
                if not orphaned:
                    actions.append(self.create_stale_artifact_action(artifact, now))

        for group in groups:
            self.groups.refresh_scores(group, now)
            if self.is_group_stale(group, now):
                report.stale_groups.append(group)
                actions.append(self.create_group_action(group, now))

        # sorted() is stable, so equal priorities keep discovery order.
        report.actions = sorted(actions, key=lambda a: ACTION_PRIORITY_RANK[a.priority])
        report.summary = self._summarize(report, len(works) + len(artifacts) + len(groups))

        logger.info(
            "decay_analyzed",
            total=report.summary.total_items,
            actions=len(report.actions),
            health=round(report.summary.health_score, 3),
        )
        return report

    @staticmethod
    def _summarize(report: DecayReport, total: int) -> DecaySummary:
        stale = len(report.stale_work) + len(report.stale_artifacts) + len(report.stale_groups)
        problems = stale + len(report.orphaned_artifacts) + len(report.unsupported_work)
        flagged = {
            e.id
            for e in [
                *report.stale_work,
                *report.stale_artifacts,
                *report.stale_groups,
                *report.orphaned_artifacts,
                *report.unsupported_work,
            ]
        }

        health = 1.0 if total == 0 else 1.0 - problems / float(total)
        return DecaySummary(
            total_items=total,
            healthy_items=max(total - len(flagged), 0),
            items_needing_review=sum(
                1 for a in report.actions if a.action_type != ActionType.ARCHIVE
            ),
            items_needing_action=sum(
                1 for a in report.actions if a.action_type == ActionType.ARCHIVE
            ),
            orphaned_artifacts=len(report.orphaned_artifacts),
            stale_items=stale,
            unsupported_work=len(report.unsupported_work),
            health_score=min(max(health, 0.0), 1.0),
        )

    def get_orphaned_artifacts(self) -> List[Artifact]:
        orphans = [
            a
            for a in self.store.list_all_artifacts()
            if a.is_orphaned() and a.metadata.status != ArtifactStatus.ARCHIVED
        ]
        return sorted(orphans, key=lambda a: a.created_at)

    def get_unsupported_work(self) -> List[Work]:
        return [w for w in self.store.list_all_work() if self.is_unsupported(w)]

    def get_health_metrics(self, now: Optional[datetime] = None) -> HealthMetrics:
        report = self.analyze_decay(now)
        metrics = HealthMetrics(
            total_work=len(self.store.list_all_work()),
            total_artifacts=len(self.store.list_all_artifacts()),
            total_groups=len(self.store.list_groups()),
            health_score=report.summary.health_score,
            stale_work=len(report.stale_work),
            stale_artifacts=len(report.stale_artifacts),
            orphaned_artifacts=len(report.orphaned_artifacts),
            stale_groups=len(report.stale_groups),
            unsupported_work=len(report.unsupported_work),
            auto_safe_actions=sum(1 for a in report.actions if a.auto_safe),
        )
        for action in report.actions:
            key = action.priority.value
            metrics.actions_by_priority[key] = metrics.actions_by_priority.get(key, 0) + 1
            key = action.action_type.value
            metrics.actions_by_type[key] = metrics.actions_by_type.get(key, 0) + 1
        return metrics

    # Execution

    def execute_cleanup_action(
        self, action: CleanupAction, now: Optional[datetime] = None
    ) -> None:
        """Apply one action. Errors propagate to the caller."""
        now = now or utc_now()
        if action.item_kind == ItemKind.WORK:
            self._execute_work_action(action, now)
        elif action.item_kind == ItemKind.ARTIFACT:
            self._execute_artifact_action(action, now)
        elif action.item_kind == ItemKind.GROUP:
            self._execute_group_action(action, now)
        else:
            raise ValidationFailureError(f"unsupported item kind {action.item_kind}")

        logger.info(
            "cleanup_action_executed",
            item_id=action.item_id,
            item_kind=action.item_kind.value,
            action=action.action_type.value,
        )

    def _execute_work_action(self, action: CleanupAction, now: datetime) -> None:
        work = self.store.get_work(action.item_id)
        if action.action_type == ActionType.ARCHIVE:
            work.content += _archive_note(action.reason, now)
            work.metadata.status = WorkStatus.ARCHIVED
            if work.completed_at is None:
                work.completed_at = now
            work.updated_at = now
            if work.schedule != Schedule.CLOSED:
                self.store.update_schedule(work, Schedule.CLOSED)
            else:
                self.store.write_work(work)
        else:
            work.metadata.decay_warning = True
            self.store.write_work(work)

    def _execute_artifact_action(self, action: CleanupAction, now: datetime) -> None:
        artifact = self.store.get_artifact(action.item_id)
        if action.action_type == ActionType.ARCHIVE:
            artifact.content += _archive_note(action.reason, now)
            artifact.metadata.status = ArtifactStatus.ARCHIVED
        else:
            artifact.metadata.decay_warning = True
        artifact.updated_at = now
        self.store.write_artifact(artifact)

    def _execute_group_action(self, action: CleanupAction, now: datetime) -> None:
        if action.action_type == ActionType.CONSOLIDATE:
            self.groups.consolidate_group_to_work(action.item_id, method="lifecycle")
            return

        group = self.store.get_group(action.item_id)
        if action.action_type == ActionType.ARCHIVE:
            group.metadata.status = GroupStatus.ARCHIVED
        else:
            group.metadata.needs_review = True
        group.updated_at = now
        self.store.write_group(group)

    def auto_cleanup(
        self, dry_run: bool = False, now: Optional[datetime] = None
    ) -> CleanupReport:
        """Execute every auto-safe action, collecting failures instead of raising."""
        report = self.analyze_decay(now)
        cleanup = CleanupReport(dry_run=dry_run)
        for action in report.actions:
            if not action.auto_safe:
                continue
            if dry_run:
                cleanup.outcomes.append(ActionOutcome(action=action, success=True))
                continue
            try:
                self.execute_cleanup_action(action, now)
            except WorkTrackerError as exc:
                logger.warning(
                    "cleanup_action_failed",
                    item_id=action.item_id,
                    action=action.action_type.value,
                    error=exc.message,
                )
                cleanup.outcomes.append(
                    ActionOutcome(action=action, success=False, error=exc.message)
                )
            else:
                cleanup.outcomes.append(ActionOutcome(action=action, success=True))

        logger.info(
            "auto_cleanup_finished",
            dry_run=dry_run,
            succeeded=cleanup.succeeded,
            failed=cleanup.failed,
        )
        return cleanup

    def refresh_all_activity_scores(self, now: Optional[datetime] = None) -> RefreshReport:
        """Recompute and persist activity scores and decay warnings."""
        now = now or utc_now()
        report = RefreshReport()

        for work in self.store.list_all_work():
            before = (work.metadata.activity_score, work.metadata.decay_warning)
            work.calculate_activity_score(now)
            work.metadata.decay_warning = work.should_decay(now)
            self._persist_refresh(
                report, before, (work.metadata.activity_score, work.metadata.decay_warning),
                lambda w=work: self.store.write_work(w), work.id,
            )

        for artifact in self.store.list_all_artifacts():
            before = (artifact.metadata.activity_score, artifact.metadata.decay_warning)
            artifact.calculate_activity_score(now)
            artifact.metadata.decay_warning = artifact.should_decay(now)
            self._persist_refresh(
                report,
                before,
                (artifact.metadata.activity_score, artifact.metadata.decay_warning),
                lambda a=artifact: self.store.write_artifact(a),
                artifact.id,
            )

        logger.info("activity_scores_refreshed", **report.model_dump())
        return report

    @staticmethod
    def _persist_refresh(report, before, after, write, entity_id) -> None:
        if before == after:
            report.unchanged += 1
            return
        try:
            write()
        except WorkTrackerError as exc:
            logger.warning("activity_refresh_failed", entity_id=entity_id, error=exc.message)
            report.failed += 1
        else:
            report.updated += 1

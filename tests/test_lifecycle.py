"""Tests for decay analysis and cleanup."""

import pytest

from work_tracker.errors import NotFoundError
from work_tracker.models import (
    ActionPriority,
    ActionType,
    ArtifactMetadata,
    ArtifactStatus,
    ArtifactType,
    GroupStatus,
    ItemKind,
    Schedule,
    WorkStatus,
    utc_now,
)
from work_tracker.services import AssociationService, CleanupAction, GroupService, LifecycleService


@pytest.fixture
def lifecycle(store):
    return LifecycleService(store)


@pytest.fixture
def link(store):
    associations = AssociationService(store)

    def factory(work, artifact):
        return associations.create_association(work.id, artifact.id)

    return factory


class TestAnalyzeDecay:
    """Tests for decay classification and ranking."""

    def test_empty_store_is_healthy(self, lifecycle):
        """An empty store has no actions and full health."""
        report = lifecycle.analyze_decay()

        assert report.actions == []
        assert report.summary.total_items == 0
        assert report.summary.health_score == 1.0

    def test_fresh_linked_work_is_healthy(self, lifecycle, make_work, make_artifact, link):
        """Fresh linked items are all healthy."""
        work = make_work()
        link(work, make_artifact())

        report = lifecycle.analyze_decay()

        assert report.actions == []
        assert report.summary.total_items == 2
        assert report.summary.healthy_items == 2
        assert report.summary.health_score == 1.0

    def test_stale_now_work_is_high_priority(self, lifecycle, make_work):
        """A now item idle for 20 days is high priority but not auto-safe."""
        work = make_work(title="Stale", status=WorkStatus.IN_PROGRESS, inactive_days=20)

        report = lifecycle.analyze_decay()

        assert [w.id for w in report.stale_work] == [work.id]
        assert [w.id for w in report.unsupported_work] == [work.id]
        assert len(report.actions) == 1
        action = report.actions[0]
        assert action.item_kind == ItemKind.WORK
        assert action.priority == ActionPriority.HIGH
        assert action.action_type == ActionType.REVIEW
        assert action.reason == "NOW item inactive for 20 days"
        assert not action.auto_safe

    def test_long_inactive_work_is_auto_safe_archive(self, lifecycle, make_work):
        """Work idle past the auto-safe threshold is archived automatically."""
        make_work(schedule=Schedule.LATER, inactive_days=100)

        action = lifecycle.analyze_decay().actions[0]

        assert action.action_type == ActionType.ARCHIVE
        assert action.priority == ActionPriority.HIGH
        assert action.auto_safe

    def test_health_score_is_clamped(self, lifecycle, make_work):
        """The health score never drops below zero."""
        make_work(inactive_days=20)

        summary = lifecycle.analyze_decay().summary

        assert summary.stale_items == 1
        assert summary.unsupported_work == 1
        assert summary.health_score == 0.0

    def test_terminal_work_is_ignored(self, lifecycle, make_work):
        """Completed Work produces no actions."""
        make_work(schedule=Schedule.CLOSED, status=WorkStatus.COMPLETED, inactive_days=200)

        report = lifecycle.analyze_decay()

        assert report.stale_work == []
        assert report.unsupported_work == []

    def test_new_unsupported_work_gets_medium_review(self, lifecycle, make_work):
        """New Work without artifacts gets a medium review."""
        make_work(schedule=Schedule.NEXT)

        action = lifecycle.analyze_decay().actions[0]

        assert action.reason == "Work item has no supporting artifacts"
        assert action.priority == ActionPriority.MEDIUM

    def test_actions_ranked_by_priority(self, lifecycle, make_work, make_artifact, link):
        """Actions come out high priority first."""
        make_artifact(summary="fresh orphan")
        stale = make_work(title="stale", inactive_days=20)
        fresh = make_work(title="fresh", schedule=Schedule.NEXT)
        link(fresh, make_artifact(summary="support"))

        actions = lifecycle.analyze_decay().actions

        assert [a.priority for a in actions] == [ActionPriority.HIGH, ActionPriority.LOW]
        assert actions[0].item_id == stale.id

    def test_analysis_is_idempotent_and_read_only(self, store, lifecycle, make_work, make_artifact):
        """Repeated analysis matches and writes nothing."""
        make_work(inactive_days=20)
        make_artifact(created_days=40)
        before = sorted(p.read_text() for p in store.root.rglob("*.md"))
        now = utc_now()

        first = lifecycle.analyze_decay(now)
        second = lifecycle.analyze_decay(now)

        assert first.actions == second.actions
        assert first.summary == second.summary
        assert sorted(p.read_text() for p in store.root.rglob("*.md")) == before


class TestOrphanActions:
    """Orphan actions depend on artifact type and age."""

    def _action(self, lifecycle, make_artifact, artifact_type, days, **kwargs):
        artifact = make_artifact(artifact_type=artifact_type, created_days=days, **kwargs)
        return lifecycle.create_orphan_action(artifact)

    def test_old_update_is_archived(self, lifecycle, make_artifact):
        """An orphaned update older than 30 days is archived."""
        action = self._action(lifecycle, make_artifact, ArtifactType.UPDATE, 31)
        assert action.action_type == ActionType.ARCHIVE
        assert action.priority == ActionPriority.MEDIUM
        assert action.auto_safe

    def test_enforced_decision_needs_review(self, lifecycle, make_artifact):
        """An orphaned enforced decision is sent for review."""
        action = self._action(lifecycle, make_artifact, ArtifactType.DECISION, 60)
        assert action.action_type == ActionType.REVIEW
        assert action.priority == ActionPriority.MEDIUM
        assert not action.auto_safe

    def test_old_unenforced_decision_is_archived(self, lifecycle, make_artifact):
        """An old orphaned decision that is not enforced is archived."""
        action = self._action(
            lifecycle,
            make_artifact,
            ArtifactType.DECISION,
            31,
            metadata=ArtifactMetadata(enforcement_active=False),
        )
        assert action.action_type == ActionType.ARCHIVE
        assert action.auto_safe

    def test_plan_escalates_after_two_weeks(self, lifecycle, make_artifact):
        """Orphaned plans move to medium priority after two weeks."""
        young = self._action(lifecycle, make_artifact, ArtifactType.PLAN, 3)
        old = self._action(lifecycle, make_artifact, ArtifactType.PLAN, 15)

        assert young.priority == ActionPriority.LOW
        assert young.action_type == ActionType.CONSOLIDATE
        assert old.priority == ActionPriority.MEDIUM

    def test_long_inactive_orphan_plan_is_auto_safe(self, lifecycle, make_artifact):
        """An orphan idle past the auto-safe threshold is archived at high priority."""
        action = self._action(lifecycle, make_artifact, ArtifactType.PLAN, 120)

        assert action.priority == ActionPriority.HIGH
        assert action.action_type == ActionType.ARCHIVE
        assert action.auto_safe

    def test_long_inactive_enforced_decision_is_auto_safe(self, lifecycle, make_artifact):
        """The auto-safe threshold overrides the enforced-decision review."""
        action = self._action(lifecycle, make_artifact, ArtifactType.DECISION, 120)

        assert action.priority == ActionPriority.HIGH
        assert action.action_type == ActionType.ARCHIVE
        assert action.auto_safe


class TestStaleArtifactActions:
    """Linked artifacts that stopped changing are archived."""

    def test_recently_stale_artifact_is_low_priority(self, lifecycle, make_artifact):
        """Stale but under the auto-safe threshold stays low and needs confirmation."""
        artifact = make_artifact(
            artifact_type=ArtifactType.ANALYSIS, created_days=60, work_refs=("W1",)
        )

        action = lifecycle.create_stale_artifact_action(artifact)

        assert action.priority == ActionPriority.LOW
        assert action.action_type == ActionType.ARCHIVE
        assert not action.auto_safe

    def test_long_inactive_linked_artifact_is_high_and_auto_safe(
        self, lifecycle, make_artifact
    ):
        """A linked artifact idle for 120 days is ranked high in the decay report."""
        artifact = make_artifact(
            artifact_type=ArtifactType.ANALYSIS, created_days=120, work_refs=("W1",)
        )

        report = lifecycle.analyze_decay()

        assert [a.id for a in report.stale_artifacts] == [artifact.id]
        assert report.orphaned_artifacts == []
        actions = [(a.priority, a.auto_safe, a.action_type) for a in report.actions]
        assert actions == [(ActionPriority.HIGH, True, ActionType.ARCHIVE)]

    def test_stale_orphan_gets_one_action(self, lifecycle, make_artifact):
        """A stale orphan produces a single action."""
        artifact = make_artifact(created_days=20)

        report = lifecycle.analyze_decay()

        assert [a.id for a in report.stale_artifacts] == [artifact.id]
        assert [a.id for a in report.orphaned_artifacts] == [artifact.id]
        assert len(report.actions) == 1

    def test_archived_artifacts_are_skipped(self, lifecycle, make_artifact):
        """Archived artifacts are left out of the analysis."""
        make_artifact(
            created_days=60, metadata=ArtifactMetadata(status=ArtifactStatus.ARCHIVED)
        )

        report = lifecycle.analyze_decay()

        assert report.actions == []
        assert lifecycle.get_orphaned_artifacts() == []


class TestGroups:
    """Tests for stale group detection."""

    def test_empty_group_is_stale(self, store, lifecycle):
        """A group without artifacts is flagged for review."""
        group = GroupService(store).create_group("Empty")

        report = lifecycle.analyze_decay()

        assert [g.id for g in report.stale_groups] == [group.id]
        action = report.actions[0]
        assert action.item_kind == ItemKind.GROUP
        assert action.action_type == ActionType.REVIEW
        assert action.reason == "Group has no artifacts"


class TestExecuteCleanup:
    """Tests for executing cleanup actions."""

    def test_archive_work_moves_it_to_closed(self, store, lifecycle, make_work):
        """Archiving Work moves it to closed with an archive note."""
        work = make_work(schedule=Schedule.LATER, inactive_days=100)
        action = lifecycle.analyze_decay().actions[0]

        lifecycle.execute_cleanup_action(action)

        archived = store.get_work(work.id)
        assert archived.schedule == Schedule.CLOSED
        assert archived.metadata.status == WorkStatus.ARCHIVED
        assert "**ARCHIVED**" in archived.content
        assert store.list_work(Schedule.LATER) == []

    def test_review_work_sets_decay_warning(self, store, lifecycle, make_work):
        """A review action sets the decay warning."""
        work = make_work(inactive_days=20)
        lifecycle.execute_cleanup_action(lifecycle.analyze_decay().actions[0])

        assert store.get_work(work.id).metadata.decay_warning

    def test_archive_artifact(self, store, lifecycle, make_artifact):
        """Archiving an artifact changes its status."""
        artifact = make_artifact(artifact_type=ArtifactType.UPDATE, created_days=40)
        action = lifecycle.create_orphan_action(artifact)

        lifecycle.execute_cleanup_action(action)

        stored = store.get_artifact(artifact.id)
        assert stored.metadata.status == ArtifactStatus.ARCHIVED
        assert "**ARCHIVED**" in stored.content

    def test_review_group_flags_it(self, store, lifecycle):
        """Reviewing a group flags it."""
        group = GroupService(store).create_group("Empty")
        lifecycle.execute_cleanup_action(lifecycle.analyze_decay().actions[0])

        stored = store.get_group(group.id)
        assert stored.metadata.needs_review
        assert stored.metadata.status == GroupStatus.ACTIVE

    def test_missing_item_raises(self, lifecycle):
        """Executing an action for a missing item raises NotFoundError."""
        action = CleanupAction(
            item_id="missing",
            item_kind=ItemKind.WORK,
            action_type=ActionType.ARCHIVE,
            priority=ActionPriority.HIGH,
            reason="gone",
        )
        with pytest.raises(NotFoundError):
            lifecycle.execute_cleanup_action(action)


class TestAutoCleanup:
    """Tests for batch execution of auto-safe actions."""

    def test_dry_run_writes_nothing(self, store, lifecycle, make_work):
        """A dry run leaves every document unchanged."""
        work = make_work(schedule=Schedule.LATER, inactive_days=100)

        report = lifecycle.auto_cleanup(dry_run=True)

        assert report.dry_run
        assert report.succeeded == 1
        assert store.get_work(work.id).schedule == Schedule.LATER

    def test_only_auto_safe_actions_run(self, store, lifecycle, make_work):
        """Auto-cleanup only runs auto-safe actions."""
        old = make_work(title="old", schedule=Schedule.LATER, inactive_days=100)
        stale = make_work(title="stale", inactive_days=20)

        report = lifecycle.auto_cleanup()

        assert [o.action.item_id for o in report.outcomes] == [old.id]
        assert store.get_work(old.id).metadata.status == WorkStatus.ARCHIVED
        assert store.get_work(stale.id).metadata.status == WorkStatus.ACTIVE

    def test_failures_are_collected(self, store, lifecycle, make_work, make_artifact, monkeypatch):
        """Action failures are collected and the run continues."""
        make_work(title="old", schedule=Schedule.LATER, inactive_days=100)
        artifact = make_artifact(artifact_type=ArtifactType.UPDATE, created_days=40)
        original = store.get_artifact

        def flaky(artifact_id):
            if artifact_id == artifact.id:
                raise NotFoundError("artifact", artifact_id)
            return original(artifact_id)

        monkeypatch.setattr(store, "get_artifact", flaky)

        report = lifecycle.auto_cleanup()

        assert report.succeeded == 1
        assert report.failed == 1
        failed = [o for o in report.outcomes if not o.success][0]
        assert failed.action.item_id == artifact.id
        assert "not found" in failed.error


class TestHealthAndRefresh:
    """Tests for health metrics and score refresh."""

    def test_health_metrics(self, lifecycle, make_work, make_artifact):
        """Health metrics count actions by priority and type."""
        make_work(schedule=Schedule.LATER, inactive_days=100)
        make_artifact()

        metrics = lifecycle.get_health_metrics()

        assert metrics.total_work == 1
        assert metrics.total_artifacts == 1
        assert metrics.stale_work == 1
        assert metrics.orphaned_artifacts == 1
        assert metrics.auto_safe_actions == 1
        assert metrics.actions_by_priority == {"high": 1, "low": 1}
        assert metrics.actions_by_type == {"archive": 1, "consolidate": 1}

    def test_unsupported_work_query(self, lifecycle, make_work, make_artifact, link):
        """Unsupported Work is listed."""
        lonely = make_work(title="lonely")
        supported = make_work(title="supported")
        link(supported, make_artifact())
        make_work(title="done", schedule=Schedule.CLOSED, status=WorkStatus.COMPLETED)

        assert [w.id for w in lifecycle.get_unsupported_work()] == [lonely.id]

    def test_refresh_persists_scores_once(self, store, lifecycle, make_work):
        """Refreshing writes changed scores once and is stable on rerun."""
        work = make_work(inactive_days=20)
        now = utc_now()

        first = lifecycle.refresh_all_activity_scores(now)
        second = lifecycle.refresh_all_activity_scores(now)

        assert first.updated == 1
        assert second.updated == 0
        assert second.unchanged == 1
        stored = store.get_work(work.id)
        assert stored.metadata.decay_warning
        # schedule 5 + active 1
        assert stored.metadata.activity_score == 6.0

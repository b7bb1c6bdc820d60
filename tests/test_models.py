"""Tests for domain model behaviour."""

from datetime import timedelta

import pytest

from work_tracker.models import (
    Artifact,
    ArtifactMetadata,
    ArtifactType,
    Group,
    GroupStatus,
    Priority,
    Schedule,
    Work,
    WorkMetadata,
    WorkStatus,
    generate_id,
    utc_now,
)
from work_tracker.models.primitives import days_since


class TestPrimitives:
    """Tests for id and time helpers."""

    def test_ids_are_unique_ulids(self):
        """Generated ids are unique 26-character ULIDs."""
        ids = {generate_id() for _ in range(100)}
        assert len(ids) == 100
        assert all(len(i) == 26 for i in ids)

    def test_days_since_accepts_naive_datetimes(self):
        """Naive datetimes are treated as UTC."""
        now = utc_now()
        naive = (now - timedelta(days=2)).replace(tzinfo=None)
        assert days_since(naive, now) == pytest.approx(2.0)


class TestWork:
    """Tests for Work scoring and transitions."""

    def test_activity_score(self):
        """The Work activity score adds recency, links and status."""
        now = utc_now()
        work = Work(
            title="Scored",
            schedule=Schedule.NOW,
            artifact_refs=("a", "b"),
            metadata=WorkMetadata(
                status=WorkStatus.IN_PROGRESS,
                progress_percent=50,
                last_activity_at=now,
            ),
        )
        # recency 10 + artifacts 4 + progress 5 + schedule 5 + status 3
        assert work.calculate_activity_score(now) == 27.0
        assert work.metadata.activity_score == 27.0

    def test_activity_score_is_idempotent(self):
        """Scoring twice gives the same result."""
        now = utc_now()
        work = Work(
            title="Stable",
            schedule=Schedule.NEXT,
            metadata=WorkMetadata(last_activity_at=now - timedelta(days=3, hours=5)),
        )
        first = work.calculate_activity_score(now)
        assert work.calculate_activity_score(now) == first
        # recency 2 + schedule 2 + active 1
        assert first == 5.0

    def test_update_progress_clamps_and_completes(self):
        """Progress is clamped and 100% completes the item."""
        work = Work(title="Progress")
        work.update_progress(140)

        assert work.metadata.progress_percent == 100
        assert work.metadata.status == WorkStatus.COMPLETED
        assert work.completed_at is not None
        assert work.is_terminal()

        other = Work(title="Negative")
        other.update_progress(-5)
        assert other.metadata.progress_percent == 0
        assert other.metadata.status == WorkStatus.ACTIVE

    def test_mark_as_blocked_deduplicates_blockers(self):
        """Repeated blockers are stored once."""
        work = Work(title="Blocked")
        work.mark_as_blocked(["api"])
        work.mark_as_blocked(["api", "design"])

        assert work.metadata.status == WorkStatus.BLOCKED
        assert work.metadata.blocked_by == ["api", "design"]

    @pytest.mark.parametrize(
        "schedule,inactive,expected",
        [
            (Schedule.NOW, 8, True),
            (Schedule.NOW, 6, False),
            (Schedule.NEXT, 8, False),
            (Schedule.NEXT, 31, True),
            (Schedule.LATER, 60, False),
            (Schedule.LATER, 91, True),
        ],
    )
    def test_should_decay_by_schedule(self, schedule, inactive, expected):
        """Each schedule has its own inactivity limit."""
        now = utc_now()
        work = Work(
            title="Decay",
            schedule=schedule,
            created_at=now - timedelta(days=inactive),
            artifact_refs=("a",),
            metadata=WorkMetadata(
                artifact_count=1, last_activity_at=now - timedelta(days=inactive)
            ),
        )
        assert work.should_decay(now) is expected

    def test_unsupported_work_decays_after_two_weeks(self):
        """Work without artifacts decays after two weeks."""
        now = utc_now()
        work = Work(
            title="No artifacts",
            schedule=Schedule.LATER,
            created_at=now - timedelta(days=15),
            metadata=WorkMetadata(last_activity_at=now),
        )
        assert work.should_decay(now)

    def test_terminal_work_never_decays(self):
        """Completed and cancelled Work never decays."""
        now = utc_now()
        work = Work(
            title="Done",
            schedule=Schedule.NOW,
            created_at=now - timedelta(days=400),
            metadata=WorkMetadata(
                status=WorkStatus.COMPLETED, last_activity_at=now - timedelta(days=400)
            ),
        )
        assert not work.should_decay(now)


class TestArtifact:
    """Tests for Artifact orphan and decay rules."""

    def test_defaults_per_type(self):
        """Each artifact type gets its own metadata defaults."""
        assert ArtifactMetadata.defaults_for(ArtifactType.PLAN).implementation_status == (
            "not_started"
        )
        assert ArtifactMetadata.defaults_for(ArtifactType.DECISION).enforcement_active is True
        assert ArtifactMetadata.defaults_for(ArtifactType.PROPOSAL).approval_status == "pending"

    def test_orphan_rule(self):
        """An artifact with no links of any kind is orphaned."""
        artifact = Artifact(type=ArtifactType.PLAN, summary="Plan")
        assert artifact.is_orphaned()

        artifact._link_work("w1")
        assert not artifact.is_orphaned()
        assert artifact.metadata.work_assignments[0].work_id == "w1"

        artifact._unlink_work("w1")
        assert artifact.is_orphaned()
        assert artifact.metadata.orphaned_at is not None

    def test_related_artifacts_or_group_prevent_orphaning(self):
        """Relations or group membership keep an artifact from being orphaned."""
        related = Artifact(type=ArtifactType.PLAN, summary="Plan", related_artifacts=("x",))
        grouped = Artifact(type=ArtifactType.PLAN, summary="Plan", group_id="g1")

        assert not related.is_orphaned()
        assert not grouped.is_orphaned()

    def test_link_is_idempotent(self):
        """Linking the same Work item twice records one assignment."""
        artifact = Artifact(type=ArtifactType.ANALYSIS, summary="Analysis")
        assert artifact._link_work("w1")
        assert not artifact._link_work("w1")
        assert artifact.work_refs == ("w1",)

    def test_enforced_decision_never_decays(self):
        """Enforced decisions are exempt from decay."""
        now = utc_now()
        decision = Artifact(
            type=ArtifactType.DECISION,
            summary="Use ULIDs",
            created_at=now - timedelta(days=500),
            updated_at=now - timedelta(days=500),
            metadata=ArtifactMetadata.defaults_for(ArtifactType.DECISION),
        )
        assert not decision.should_decay(now)

    def test_unreferenced_artifact_decays_after_two_weeks(self):
        """An artifact that was never referenced decays after two weeks."""
        now = utc_now()
        artifact = Artifact(
            type=ArtifactType.PLAN,
            summary="Forgotten plan",
            created_at=now - timedelta(days=20),
            updated_at=now - timedelta(days=20),
        )
        assert artifact.should_decay(now)

    def test_linked_artifact_decays_by_type_threshold(self):
        """Linked artifacts decay on their per-type inactivity limit."""
        now = utc_now()

        def linked(artifact_type, days):
            return Artifact(
                type=artifact_type,
                summary="Linked",
                work_refs=("w1",),
                created_at=now - timedelta(days=days),
                updated_at=now - timedelta(days=days),
            )

        assert not linked(ArtifactType.PLAN, 100).should_decay(now)
        assert linked(ArtifactType.PLAN, 181).should_decay(now)
        assert linked(ArtifactType.UPDATE, 31).should_decay(now)
        assert linked(ArtifactType.PROPOSAL, 61).should_decay(now)


class TestGroup:
    """Tests for group scoring and work suggestions."""

    def _group(self, types, tags=("auth",)):
        group = Group(
            name="Auth",
            theme="authentication",
            artifact_ids=tuple(f"a{i}" for i in range(len(types))),
            technical_tags=list(tags),
        )
        group.update_type_distribution(types)
        group.calculate_scores()
        return group

    def test_cohesive_group_is_ready(self):
        """A tagged, cohesive group is ready for Work."""
        group = self._group([ArtifactType.PLAN] * 3)
        meta = group.metadata

        assert meta.cohesion_score == pytest.approx(0.9)
        assert meta.readiness_score == pytest.approx((0.3 + 0.9 + 1.0) / 3)
        assert group.is_ready_for_work()
        assert meta.recommended_for_work

    def test_untagged_group_is_not_ready(self):
        """A group without shared tags is not ready."""
        group = self._group([ArtifactType.PLAN] * 3, tags=())

        assert group.metadata.readiness_score == pytest.approx((0.3 + 0.7 + 1.0) / 3)
        assert not group.is_ready_for_work()

    def test_single_artifact_group_is_not_ready(self):
        """One artifact is not enough to be ready."""
        group = self._group([ArtifactType.PLAN])
        assert not group.is_ready_for_work()

    def test_work_suggestion(self):
        """The suggestion uses the group's dominant type and tags."""
        group = self._group([ArtifactType.PLAN] * 3)
        suggestion = group.generate_work_suggestion()

        assert suggestion.title == "Implement authentication"
        assert suggestion.schedule == Schedule.NEXT
        assert suggestion.priority == Priority.HIGH
        assert suggestion.artifact_ids == ["a0", "a1", "a2"]
        assert suggestion.technical_tags == ["auth"]

    def test_dominant_type_breaks_ties_alphabetically(self):
        """Type ties resolve alphabetically."""
        group = self._group([ArtifactType.PROPOSAL, ArtifactType.ANALYSIS])
        assert group.has_mixed_types()
        assert group.dominant_type() == "analysis"

    def test_old_groups_lose_readiness(self):
        """Groups untouched for too long stop being ready."""
        group = self._group([ArtifactType.PLAN] * 3)
        later = group.metadata.last_modified + timedelta(days=30)
        group.calculate_scores(later)

        assert not group.is_ready_for_work()
        assert group.metadata.activity_score == pytest.approx(1.5)

    def test_should_merge_small_candidates(self):
        """Small groups with overlapping tags should merge."""
        group = self._group([ArtifactType.PLAN, ArtifactType.ANALYSIS], tags=())
        group.metadata.merge_candidate = True

        assert group.should_merge()

    def test_mark_as_consolidated(self):
        """Consolidation records the Work id and changes the status."""
        group = self._group([ArtifactType.PLAN] * 3)
        group.mark_as_consolidated("w1", "manual")

        assert group.metadata.status == GroupStatus.CONSOLIDATED
        assert group.metadata.consolidated_work_id == "w1"
        assert group.work_refs == ("w1",)
        assert not group.is_ready_for_work()

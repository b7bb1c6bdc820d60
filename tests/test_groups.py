"""Tests for group management and consolidation."""

import pytest

from work_tracker.errors import NotFoundError, ValidationFailureError
from work_tracker.models import ArtifactType, GroupStatus, Priority, Schedule
from work_tracker.services import GroupService


@pytest.fixture
def groups(store):
    return GroupService(store)


@pytest.fixture
def plans(make_artifact):
    return [make_artifact(summary=f"Auth plan {i}", technical_tags=["auth"]) for i in range(3)]


class TestGroupMembership:
    """Tests for creating groups and editing members."""

    def test_create_group_links_members(self, store, groups, plans):
        """Creating a group links every member artifact."""
        group = groups.create_group(
            "Auth", theme="authentication", artifact_ids=[a.id for a in plans]
        )

        stored = store.get_group(group.id)
        assert stored.artifact_ids == tuple(a.id for a in plans)
        assert stored.metadata.artifact_count == 3
        assert stored.metadata.type_distribution == {"plan": 3}
        assert "## Included Artifacts" in stored.content
        for artifact in plans:
            assert store.get_artifact(artifact.id).group_id == group.id

    def test_create_group_with_unknown_artifact_writes_nothing(self, store, groups):
        """An unknown member id aborts group creation."""
        with pytest.raises(NotFoundError):
            groups.create_group("Broken", artifact_ids=["missing"])

        assert store.list_groups() == []

    def test_add_and_remove_artifact(self, store, groups, make_artifact):
        """Members can be added and removed."""
        group = groups.create_group("Growing")
        artifact = make_artifact(artifact_type=ArtifactType.ANALYSIS)

        groups.add_artifact_to_group(group.id, artifact.id)
        assert store.get_group(group.id).artifact_ids == (artifact.id,)
        assert store.get_artifact(artifact.id).group_id == group.id

        groups.remove_artifact_from_group(group.id, artifact.id)
        assert store.get_group(group.id).artifact_ids == ()
        stored = store.get_artifact(artifact.id)
        assert stored.group_id is None
        assert stored.is_orphaned()

    def test_adding_twice_keeps_one_member(self, store, groups, make_artifact):
        """Adding a member twice keeps one entry."""
        group = groups.create_group("Once")
        artifact = make_artifact()

        groups.add_artifact_to_group(group.id, artifact.id)
        groups.add_artifact_to_group(group.id, artifact.id)

        assert store.get_group(group.id).artifact_ids == (artifact.id,)

    def test_delete_group_detaches_members(self, store, groups, plans):
        """Deleting a group detaches its members."""
        group = groups.create_group("Short lived", artifact_ids=[a.id for a in plans])

        groups.delete_group(group.id)

        assert store.list_groups() == []
        assert all(store.get_artifact(a.id).group_id is None for a in plans)


class TestConsolidation:
    """Tests for promoting a group into a Work item."""

    def test_consolidate_ready_group(self, store, groups, plans):
        """A ready group becomes one next-scheduled Work item."""
        group = groups.create_group(
            "Auth",
            theme="authentication",
            artifact_ids=[a.id for a in plans],
            technical_tags=["auth"],
        )

        result = groups.consolidate_group_to_work(group.id)

        work = store.get_work(result.work.id)
        assert work.title == "Implement authentication"
        assert work.schedule == Schedule.NEXT
        assert work.metadata.priority == Priority.HIGH
        assert work.group_id == group.id
        assert set(work.artifact_refs) == {a.id for a in plans}
        assert work.metadata.artifact_count == 3

        stored_group = store.get_group(group.id)
        assert stored_group.metadata.status == GroupStatus.CONSOLIDATED
        assert stored_group.metadata.consolidated_work_id == work.id
        assert stored_group.work_refs == (work.id,)

        assert sorted(result.updated_artifacts) == sorted(a.id for a in plans)
        assert result.failed_artifacts == []
        for artifact in plans:
            stored = store.get_artifact(artifact.id)
            assert work.id in stored.work_refs
            assert stored.metadata.work_assignments[-1].assigned_by == "consolidation:manual"

    def test_group_without_tags_is_not_ready(self, store, groups, plans):
        """A group without tags cannot be consolidated."""
        group = groups.create_group("Untagged", artifact_ids=[a.id for a in plans])

        with pytest.raises(ValidationFailureError):
            groups.consolidate_group_to_work(group.id)

        assert store.list_all_work() == []
        assert store.get_group(group.id).metadata.status == GroupStatus.ACTIVE

    def test_consolidated_group_cannot_consolidate_again(self, groups, plans):
        """A group is consolidated only once."""
        group = groups.create_group(
            "Auth", artifact_ids=[a.id for a in plans], technical_tags=["auth"]
        )
        groups.consolidate_group_to_work(group.id)

        with pytest.raises(ValidationFailureError):
            groups.consolidate_group_to_work(group.id)

    def test_member_failures_are_recorded(self, store, groups, plans):
        """Member link failures are recorded without aborting."""
        group = groups.create_group(
            "Auth", artifact_ids=[a.id for a in plans], technical_tags=["auth"]
        )
        # Delete one member document behind the group's back.
        store.get_artifact(plans[0].id).path.unlink()

        result = groups.consolidate_group_to_work(group.id)

        assert result.failed_artifacts == [plans[0].id]
        assert sorted(result.updated_artifacts) == sorted(a.id for a in plans[1:])

    def test_consolidation_candidates(self, groups, plans, make_artifact):
        """Only ready, unconsolidated groups are candidates."""
        ready = groups.create_group(
            "Ready", artifact_ids=[a.id for a in plans], technical_tags=["auth"]
        )
        groups.create_group("Too small", artifact_ids=[make_artifact().id])

        assert [g.id for g in groups.get_consolidation_candidates()] == [ready.id]


class TestGroupHealth:
    """Tests for the group health report."""

    def test_empty_report(self, groups):
        """An empty store reports no groups but still gives a recommendation."""
        report = groups.analyze_group_health()

        assert report.total_groups == 0
        assert report.recommendations

    def test_report_counts(self, groups, plans, make_artifact):
        """The group health report counts groups by state."""
        groups.create_group("Ready", artifact_ids=[a.id for a in plans], technical_tags=["auth"])
        groups.create_group("Small", artifact_ids=[make_artifact().id])

        report = groups.analyze_group_health()

        assert report.total_groups == 2
        assert report.active_groups == 2
        assert report.ready_for_work == 1
        assert report.average_size == pytest.approx(2.0)
        assert any("ready to consolidate" in r for r in report.recommendations)

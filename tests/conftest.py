"""Test configuration and fixtures."""

from datetime import timedelta
from typing import Callable

import pytest

from work_tracker.client import WorkTracker
from work_tracker.models import (
    Artifact,
    ArtifactMetadata,
    ArtifactType,
    Schedule,
    Work,
    WorkMetadata,
    WorkStatus,
    utc_now,
)
from work_tracker.store import EntityStore


def days_ago(days: float):
    return utc_now() - timedelta(days=days)


@pytest.fixture
def store(tmp_path) -> EntityStore:
    """An empty store rooted in a temporary directory."""
    store = EntityStore(tmp_path / "store")
    store.ensure_layout()
    return store


@pytest.fixture
def tracker(tmp_path) -> WorkTracker:
    """A tracker facade over a temporary root."""
    return WorkTracker(tmp_path / "tracker")


@pytest.fixture
def make_work(store) -> Callable[..., Work]:
    """Write a Work item with explicit ages straight through the store."""

    def factory(
        title: str = "Fix login bug",
        schedule: Schedule = Schedule.NOW,
        status: WorkStatus = WorkStatus.ACTIVE,
        inactive_days: float = 0,
        created_days: float = 0,
        artifact_refs=(),
        **kwargs,
    ) -> Work:
        created = days_ago(max(created_days, inactive_days))
        work = Work(
            title=title,
            schedule=schedule,
            created_at=created,
            updated_at=days_ago(inactive_days),
            artifact_refs=tuple(artifact_refs),
            metadata=WorkMetadata(
                status=status,
                last_activity_at=days_ago(inactive_days),
                artifact_count=len(artifact_refs),
            ),
            **kwargs,
        )
        store.write_work(work)
        return work

    return factory


@pytest.fixture
def make_artifact(store) -> Callable[..., Artifact]:
    """Write an Artifact with explicit ages straight through the store."""

    def factory(
        artifact_type: ArtifactType = ArtifactType.PLAN,
        summary: str = "Session storage plan",
        created_days: float = 0,
        **kwargs,
    ) -> Artifact:
        artifact = Artifact(
            type=artifact_type,
            summary=summary,
            created_at=days_ago(created_days),
            updated_at=days_ago(created_days),
            metadata=kwargs.pop("metadata", ArtifactMetadata.defaults_for(artifact_type)),
            **kwargs,
        )
        store.write_artifact(artifact)
        return artifact

    return factory

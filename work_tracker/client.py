"""
High-level client used by the CLI and other front ends.

``WorkTracker`` wires one storage root's store, services and hook
dispatcher together. ``MultiRootTracker`` aggregates read views across
several independent roots.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import structlog

from .config import Settings
from .errors import NotFoundError
from .gitinfo import capture_git_context
from .hooks import HookConfig, HookDispatcher, WorkWriter
from .models import (
    Artifact,
    ArtifactMetadata,
    ArtifactType,
    GitContext,
    Priority,
    Schedule,
    Update,
    Work,
    WorkMetadata,
    WorkStatus,
    utc_now,
)
from .services import (
    AssociationService,
    GroupService,
    LifecyclePolicy,
    LifecycleService,
    UpdatesJournal,
)
from .store import EntityStore, SearchResults
from .store.entity_store import work_sort_key

logger = structlog.get_logger(__name__)

PathLike = Union[str, Path]


class WorkTracker:
    """Facade over a single storage root."""

    def __init__(
        self,
        root: PathLike,
        hook_config: Optional[HookConfig] = None,
        policy: Optional[LifecyclePolicy] = None,
        capture_git: bool = False,
        update_author: str = "automation",
    ):
        self.store = EntityStore(root)
        self.associations = AssociationService(self.store)
        self.groups = GroupService(self.store)
        self.lifecycle = LifecycleService(self.store, groups=self.groups, policy=policy)
        self.journal = UpdatesJournal(self.store, default_author=update_author)
        self.hooks = HookDispatcher(hook_config)
        self.writer = WorkWriter(self.store, self.hooks, journal=self.journal)
        self.capture_git = capture_git

    @classmethod
    def from_settings(cls, settings: Settings, root: Optional[PathLike] = None) -> "WorkTracker":
        return cls(
            root or settings.work_tracker_root,
            hook_config=HookConfig.from_settings(settings),
            capture_git=settings.capture_git_context,
            update_author=settings.update_author,
        )

    @property
    def root(self) -> Path:
        return self.store.root

    def _git_context(self) -> GitContext:
        return capture_git_context() if self.capture_git else GitContext()

    # Work

    async def create_work(
        self,
        title: str,
        description: str = "",
        schedule: Schedule = Schedule.LATER,
        priority: Priority = Priority.MEDIUM,
        technical_tags: Iterable[str] = (),
        content: str = "",
        session_number: str = "",
        pending_tasks: Iterable[str] = (),
    ) -> Work:
        """Create and persist a Work item. Items scheduled for now start in progress."""
        work = Work(
            title=title,
            description=description,
            schedule=Schedule(schedule),
            technical_tags=list(technical_tags),
            session_number=session_number,
            git_context=self._git_context(),
            content=content,
            metadata=WorkMetadata(
                priority=Priority(priority), pending_tasks=list(pending_tasks)
            ),
        )
        if work.schedule == Schedule.NOW:
            work.metadata.status = WorkStatus.IN_PROGRESS
            work.started_at = work.created_at

        await self.writer.save(work)
        logger.info("work_created", work_id=work.id, schedule=work.schedule.value)
        return work

    async def create_work_with_tasks(
        self, title: str, tasks: Sequence[str], **kwargs: Any
    ) -> Work:
        content = kwargs.pop("content", "")
        checklist = "\n".join(f"- [ ] {task}" for task in tasks)
        if checklist:
            content = f"{content}\n\n## Tasks\n\n{checklist}".strip()
        return await self.create_work(title, content=content, pending_tasks=tasks, **kwargs)

    def get_work(self, work_id: str) -> Work:
        return self.store.get_work(work_id)

    def list_work(self, schedule: Optional[Schedule] = None) -> List[Work]:
        if schedule is None:
            return self.store.list_all_work()
        return self.store.list_work(Schedule(schedule))

    async def update_work_schedule(self, work_id: str, schedule: Schedule) -> Work:
        """Move a Work item to another schedule. Active items moved to now start."""
        work = self.store.get_work(work_id)
        schedule = Schedule(schedule)
        if schedule == Schedule.NOW and work.metadata.status == WorkStatus.ACTIVE:
            work.metadata.status = WorkStatus.IN_PROGRESS
            if work.started_at is None:
                work.started_at = utc_now()
        await self.writer.save(work, schedule=schedule)
        return work

    async def update_work_progress(self, work_id: str, progress: int) -> Work:
        work = self.store.get_work(work_id)
        await self.writer.update_progress(work, progress)
        return work

    async def complete_work(self, work_id: str) -> Work:
        """Mark a Work item completed and move it to the closed bucket."""
        work = self.store.get_work(work_id)
        work.mark_as_completed()
        await self.writer.save(work, schedule=Schedule.CLOSED)
        logger.info("work_completed", work_id=work.id)
        return work

    # Artifacts

    def create_artifact(
        self,
        artifact_type: ArtifactType,
        summary: str,
        content: str = "",
        technical_tags: Iterable[str] = (),
        related_artifacts: Iterable[str] = (),
        session_number: str = "",
        work_id: Optional[str] = None,
    ) -> Artifact:
        """Create and persist an Artifact, optionally linking it to a Work item."""
        artifact_type = ArtifactType(artifact_type)
        artifact = Artifact(
            type=artifact_type,
            summary=summary,
            content=content,
            technical_tags=list(technical_tags),
            related_artifacts=tuple(related_artifacts),
            session_number=session_number,
            git_context=self._git_context(),
            metadata=ArtifactMetadata.defaults_for(artifact_type),
        )
        self.store.write_artifact(artifact)
        logger.info("artifact_created", artifact_id=artifact.id, type=artifact_type.value)

        if work_id is not None:
            _, artifact = self.associations.create_association(work_id, artifact.id)
        return artifact

    def get_artifact(self, artifact_id: str) -> Artifact:
        return self.store.get_artifact(artifact_id)

    def list_artifacts(self, artifact_type: Optional[ArtifactType] = None) -> List[Artifact]:
        if artifact_type is None:
            return self.store.list_all_artifacts()
        return self.store.list_artifacts(ArtifactType(artifact_type))

    def associate(self, work_id: str, artifact_id: str) -> Tuple[Work, Artifact]:
        return self.associations.create_association(work_id, artifact_id)

    def dissociate(self, work_id: str, artifact_id: str) -> Tuple[Work, Artifact]:
        return self.associations.remove_association(work_id, artifact_id)

    def related_artifacts(self, artifact_id: str) -> List[Artifact]:
        return self.associations.resolve_related_artifacts(artifact_id)

    def set_reference_count(self, artifact_id: str, count: int) -> Artifact:
        return self.associations.update_reference_count(artifact_id, count)

    # Queries

    def search(self, query: str) -> SearchResults:
        return self.store.search(query)

    def work_overview(self, work_id: str) -> Dict[str, Any]:
        work = self.store.get_work(work_id)
        latest = self.journal.get_latest_update(work.id)
        overview = work.overview()
        overview["artifacts"] = [
            a.overview() for a in self.associations.resolve_work_artifacts(work.id)
        ]
        overview["latest_update"] = latest.model_dump(mode="json") if latest else None
        return overview

    def artifact_overview(self, artifact_id: str) -> Dict[str, Any]:
        artifact = self.store.get_artifact(artifact_id)
        overview = artifact.overview()
        overview["work"] = [
            w.overview() for w in self.associations.resolve_artifact_work(artifact.id)
        ]
        return overview

    # Updates journal

    def create_update(self, work_id: str, update: Update) -> Update:
        """Journal an update and point the Work item at its journal."""
        work = self.store.get_work(work_id)
        update = self.journal.create_update(work.id, update)
        ref = self.journal.get_updates_ref(work.id)
        if work.updates_ref != ref:
            work.updates_ref = ref
            work.touch()
            self.store.write_work(work)
        return update

    def get_updates(self, work_id: str) -> List[Update]:
        return self.journal.get_updates(work_id)


class MultiRootTracker:
    """Read-side aggregation over several independent storage roots."""

    def __init__(self, roots: Iterable[PathLike], **tracker_kwargs: Any):
        self.trackers: List[WorkTracker] = [
            WorkTracker(root, **tracker_kwargs) for root in roots
        ]

    @classmethod
    def from_settings(cls, settings: Settings) -> "MultiRootTracker":
        return cls(
            settings.all_roots(),
            hook_config=HookConfig.from_settings(settings),
            capture_git=settings.capture_git_context,
            update_author=settings.update_author,
        )

    @property
    def roots(self) -> List[Path]:
        return [t.root for t in self.trackers]

    def list_work(self, schedule: Optional[Schedule] = None) -> List[Tuple[Path, Work]]:
        """Work from every root, by priority then most recently updated."""
        rows = [(t.root, w) for t in self.trackers for w in t.list_work(schedule)]
        return sorted(rows, key=lambda row: work_sort_key(row[1]))

    def list_artifacts(
        self, artifact_type: Optional[ArtifactType] = None
    ) -> List[Tuple[Path, Artifact]]:
        rows = [(t.root, a) for t in self.trackers for a in t.list_artifacts(artifact_type)]
        return sorted(rows, key=lambda row: row[1].updated_at, reverse=True)

    def search(self, query: str) -> Dict[Path, SearchResults]:
        return {t.root: t.search(query) for t in self.trackers}

    def find_work(self, work_id: str) -> Tuple[WorkTracker, Work]:
        """Locate a Work item in whichever root holds it."""
        for tracker in self.trackers:
            for work in tracker.list_work():
                if work.id == work_id:
                    return tracker, work
        raise NotFoundError("work", work_id)

"""
Association service: the bidirectional Work <-> Artifact graph.

The graph is never persisted; it is rebuilt from the store on every call.
``create_association`` and ``remove_association`` are the only code paths that
change reference sets, and they always update both sides.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

import structlog
from pydantic import BaseModel, Field

from ..errors import ValidationFailureError, WorkTrackerError
from ..models import Artifact, Work
from ..store import EntityStore

logger = structlog.get_logger(__name__)


class AssociationGraph(BaseModel):
    """Derived relationship maps keyed by entity id."""

    work_to_artifacts: Dict[str, List[str]] = Field(default_factory=dict)
    artifact_to_work: Dict[str, List[str]] = Field(default_factory=dict)
    artifact_to_artifact: Dict[str, List[str]] = Field(default_factory=dict)
    orphaned_artifacts: List[str] = Field(default_factory=list)
    tag_clusters: Dict[str, List[str]] = Field(default_factory=dict)


class SimilarEntity(BaseModel):
    entity_id: str
    kind: str
    label: str
    overlap: int
    shared_tags: List[str] = Field(default_factory=list)


class AssociationSummary(BaseModel):
    total_work: int = 0
    total_artifacts: int = 0
    total_associations: int = 0
    orphaned_artifacts: int = 0
    unsupported_work: int = 0
    tag_count: int = 0
    most_connected_work: Optional[str] = None
    most_connected_work_refs: int = 0
    most_connected_artifact: Optional[str] = None
    most_connected_artifact_refs: int = 0


def _lower_tags(tags: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for tag in tags:
        tag = tag.strip().lower()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class AssociationService:
    """Builds and edits Work/Artifact relationships through the store."""

    def __init__(self, store: EntityStore):
        self.store = store

    def build_graph(self) -> AssociationGraph:
        graph = AssociationGraph()

        for work in self.store.list_all_work():
            graph.work_to_artifacts[work.id] = list(work.artifact_refs)
            for tag in _lower_tags(work.technical_tags):
                graph.tag_clusters.setdefault(tag, []).append(work.id)

        for artifact in self.store.list_all_artifacts():
            graph.artifact_to_work[artifact.id] = list(artifact.work_refs)
            if artifact.related_artifacts:
                graph.artifact_to_artifact[artifact.id] = list(artifact.related_artifacts)
            if artifact.is_orphaned():
                graph.orphaned_artifacts.append(artifact.id)
            for tag in _lower_tags(artifact.technical_tags):
                graph.tag_clusters.setdefault(tag, []).append(artifact.id)

        return graph

    def create_association(
        self, work_id: str, artifact_id: str, assigned_by: str = "user"
    ) -> Tuple[Work, Artifact]:
        """Link ``work_id`` and ``artifact_id`` on both sides and persist both."""
        work = self.store.get_work(work_id)
        artifact = self.store.get_artifact(artifact_id)

        snapshot = work.model_copy(deep=True)
        work_changed = work._link_artifact(artifact.id)
        artifact_changed = artifact._link_work(work.id, assigned_by=assigned_by)
        self._persist_pair(work, snapshot, artifact, work_changed, artifact_changed)

        logger.info("association_created", work_id=work.id, artifact_id=artifact.id)
        return work, artifact

    def remove_association(self, work_id: str, artifact_id: str) -> Tuple[Work, Artifact]:
        """Unlink both sides and persist both."""
        work = self.store.get_work(work_id)
        artifact = self.store.get_artifact(artifact_id)

        snapshot = work.model_copy(deep=True)
        work_changed = work._unlink_artifact(artifact.id)
        artifact_changed = artifact._unlink_work(work.id)
        self._persist_pair(work, snapshot, artifact, work_changed, artifact_changed)

        logger.info("association_removed", work_id=work.id, artifact_id=artifact.id)
        return work, artifact

    def _persist_pair(
        self,
        work: Work,
        snapshot: Work,
        artifact: Artifact,
        work_changed: bool,
        artifact_changed: bool,
    ) -> None:
        """Write both sides; if the artifact write fails, restore the work document."""
        if work_changed:
            self.store.write_work(work)
        if not artifact_changed:
            return
        try:
            self.store.write_artifact(artifact)
        except WorkTrackerError:
            if work_changed:
                logger.warning("association_rollback", work_id=work.id, artifact_id=artifact.id)
                self.store.write_work(snapshot)
            raise

    def resolve_work_artifacts(self, work_id: str) -> List[Artifact]:
        """Live artifacts referenced by a Work item, newest first. Dangling ids are dropped."""
        work = self.store.get_work(work_id)
        by_id = {a.id: a for a in self.store.list_all_artifacts()}
        artifacts = [by_id[ref] for ref in work.artifact_refs if ref in by_id]
        return sorted(artifacts, key=lambda a: a.created_at, reverse=True)

    def resolve_artifact_work(self, artifact_id: str) -> List[Work]:
        """Live Work items referenced by an artifact, in schedule order."""
        artifact = self.store.get_artifact(artifact_id)
        by_id = {w.id: w for w in self.store.list_all_work()}
        works = [by_id[ref] for ref in artifact.work_refs if ref in by_id]
        return sorted(
            works, key=lambda w: (w.schedule_priority(), -w.updated_at.timestamp())
        )

    def resolve_related_artifacts(self, artifact_id: str) -> List[Artifact]:
        """Live artifacts listed in ``related_artifacts``, in stored order."""
        artifact = self.store.get_artifact(artifact_id)
        by_id = {a.id: a for a in self.store.list_all_artifacts()}
        return [by_id[ref] for ref in artifact.related_artifacts if ref in by_id]

    def update_reference_count(self, artifact_id: str, count: int) -> Artifact:
        """Record how often an artifact is referenced from outside the graph."""
        if count < 0:
            raise ValidationFailureError(f"reference count must be >= 0, got {count}")
        artifact = self.store.get_artifact(artifact_id)
        artifact._set_reference_count(count)
        self.store.write_artifact(artifact)
        logger.info("reference_count_updated", artifact_id=artifact.id, count=count)
        return artifact

    def get_orphaned_artifacts(self) -> List[Artifact]:
        """Orphaned artifacts, oldest first."""
        orphans = [a for a in self.store.list_all_artifacts() if a.is_orphaned()]
        return sorted(orphans, key=lambda a: a.created_at)

    def find_similar_by_tags(
        self, tags: Iterable[str], exclude_id: Optional[str] = None
    ) -> List[SimilarEntity]:
        """Work and artifacts sharing at least one tag, by overlap descending."""
        wanted = set(_lower_tags(tags))
        if not wanted:
            return []

        candidates: List[Tuple[str, str, str, List[str]]] = []
        for work in self.store.list_all_work():
            candidates.append((work.id, "work", work.title, work.technical_tags))
        for artifact in self.store.list_all_artifacts():
            candidates.append(
                (artifact.id, "artifact", artifact.summary, artifact.technical_tags)
            )

        matches: List[SimilarEntity] = []
        for entity_id, kind, label, entity_tags in candidates:
            if entity_id == exclude_id:
                continue
            shared = [t for t in _lower_tags(entity_tags) if t in wanted]
            if shared:
                matches.append(
                    SimilarEntity(
                        entity_id=entity_id,
                        kind=kind,
                        label=label,
                        overlap=len(shared),
                        shared_tags=shared,
                    )
                )

        return sorted(matches, key=lambda m: (-m.overlap, m.entity_id))

    def get_association_summary(self) -> AssociationSummary:
        works = self.store.list_all_work()
        artifacts = self.store.list_all_artifacts()
        summary = AssociationSummary(
            total_work=len(works),
            total_artifacts=len(artifacts),
            total_associations=sum(len(w.artifact_refs) for w in works),
            orphaned_artifacts=sum(1 for a in artifacts if a.is_orphaned()),
            unsupported_work=sum(1 for w in works if not w.artifact_refs),
        )

        tags = set()
        for entity in [*works, *artifacts]:
            tags.update(_lower_tags(entity.technical_tags))
        summary.tag_count = len(tags)

        for work in works:
            if len(work.artifact_refs) > summary.most_connected_work_refs:
                summary.most_connected_work = work.id
                summary.most_connected_work_refs = len(work.artifact_refs)
        for artifact in artifacts:
            if len(artifact.work_refs) > summary.most_connected_artifact_refs:
                summary.most_connected_artifact = artifact.id
                summary.most_connected_artifact_refs = len(artifact.work_refs)

        return summary

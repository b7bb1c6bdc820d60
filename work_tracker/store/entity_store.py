"""
Entity store: Work, Artifact and Group documents under one storage root.

Directory resolution lives here and nowhere else. A Work item's schedule and
an Artifact's type select its directory, so a schedule change is a file
relocation performed by ``update_schedule``. Plain writes never move files.

The store assumes a single writer per document; there is no locking.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Type, TypeVar, Union

import structlog
from pydantic import BaseModel

from ..errors import (
    MalformedDocumentError,
    NotFoundError,
    StorageError,
    ValidationFailureError,
)
from ..models import (
    Artifact,
    ArtifactType,
    Group,
    Schedule,
    Work,
    priority_rank,
)
from .documents import generate_filename, normalize_body, parse_entity, render_entity

logger = structlog.get_logger(__name__)

WORK_DIRS: Dict[Schedule, str] = {
    Schedule.NOW: "now",
    Schedule.NEXT: "next",
    Schedule.LATER: "later",
    Schedule.CLOSED: "closed",
}

ARTIFACT_DIRS: Dict[ArtifactType, str] = {
    ArtifactType.PLAN: "plans",
    ArtifactType.PROPOSAL: "proposals",
    ArtifactType.ANALYSIS: "analysis",
    ArtifactType.UPDATE: "updates",
    ArtifactType.DECISION: "decisions",
}

ARTIFACTS_DIR = "artifacts"
GROUPS_DIR = "groups"
JOURNAL_DIR = "updates"

EntityT = TypeVar("EntityT", Work, Artifact, Group)
PathLike = Union[str, Path]


def work_sort_key(work: Work):
    """Priority rank, then most recently updated first."""
    return (priority_rank(work.metadata.priority), -work.updated_at.timestamp())


def _newest_first(entity: BaseModel) -> float:
    return -entity.updated_at.timestamp()


class EntityStore:
    """Reads and writes documents below ``root``."""

    def __init__(self, root: PathLike):
        self.root = Path(root)

    def __repr__(self) -> str:
        return f"EntityStore(root={str(self.root)!r})"

    # Directory resolution

    def work_dir(self, schedule: Schedule) -> Path:
        return self.root / WORK_DIRS[Schedule(schedule)]

    def artifact_dir(self, artifact_type: ArtifactType) -> Path:
        return self.root / ARTIFACTS_DIR / ARTIFACT_DIRS[ArtifactType(artifact_type)]

    @property
    def groups_dir(self) -> Path:
        return self.root / GROUPS_DIR

    @property
    def journal_dir(self) -> Path:
        return self.root / JOURNAL_DIR

    def ensure_layout(self) -> None:
        """Create every storage directory."""
        dirs = [self.work_dir(s) for s in Schedule]
        dirs += [self.artifact_dir(t) for t in ArtifactType]
        dirs += [self.groups_dir, self.journal_dir]
        for directory in dirs:
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StorageError(directory, str(exc)) from exc

    # Low-level I/O

    def read_text(self, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageError(path, str(exc)) from exc

    def write_text(self, path: Path, text: str) -> None:
        """Write to a temp file in the target directory, then rename over ``path``."""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(
                dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(text)
                os.replace(tmp, path)
            except BaseException:
                with contextlib.suppress(FileNotFoundError):
                    os.unlink(tmp)
                raise
        except OSError as exc:
            raise StorageError(path, str(exc)) from exc

    def _unlink(self, path: Path) -> None:
        try:
            path.unlink()
        except OSError as exc:
            raise StorageError(path, str(exc)) from exc

    def _scan(self, directory: Path, model: Type[EntityT]) -> List[EntityT]:
        """Parse every document in ``directory``, skipping unreadable ones."""
        if not directory.is_dir():
            return []
        try:
            paths = sorted(directory.glob("*.md"))
        except OSError as exc:
            raise StorageError(directory, str(exc)) from exc

        entities: List[EntityT] = []
        for path in paths:
            try:
                entities.append(self._read(path, model))
            except (MalformedDocumentError, StorageError) as exc:
                logger.warning("document_skipped", path=str(path), reason=exc.message)
        return entities

    @staticmethod
    def _dedupe(entities: Iterable[EntityT]) -> List[EntityT]:
        """Keep one entity per id, preferring the most recently updated copy.

        Duplicates only appear if a relocation was interrupted after the new
        document was written but before the old one was removed.
        """
        by_id: Dict[str, EntityT] = {}
        for entity in entities:
            current = by_id.get(entity.id)
            if current is None:
                by_id[entity.id] = entity
                continue
            if entity.updated_at > current.updated_at:
                by_id[entity.id] = entity
            logger.warning(
                "duplicate_document",
                entity_id=entity.id,
                kept=str(by_id[entity.id].path),
            )
        return list(by_id.values())

    # Reads

    def _read(self, path: PathLike, model: Type[EntityT]) -> EntityT:
        path = Path(path)
        return parse_entity(model, self.read_text(path), path)

    def read_work(self, path: PathLike) -> Work:
        return self._read(path, Work)

    def read_artifact(self, path: PathLike) -> Artifact:
        return self._read(path, Artifact)

    def read_group(self, path: PathLike) -> Group:
        return self._read(path, Group)

    # Writes

    def _write(self, entity: EntityT, directory: Path, relocate: bool = False) -> Path:
        if not entity.filename:
            entity.filename = self._filename_for(entity)

        target = directory / entity.filename
        if entity.path is not None and Path(entity.path) != target and not relocate:
            raise ValidationFailureError(
                f"{entity.id} lives at {entity.path}; use update_schedule to move it"
            )

        entity.content = normalize_body(entity.content)
        self.write_text(target, render_entity(entity))
        entity.path = target
        return target

    @staticmethod
    def _filename_for(entity: BaseModel) -> str:
        if isinstance(entity, Work):
            return generate_filename("work", entity.title, entity.created_at, entity.id)
        if isinstance(entity, Artifact):
            return generate_filename(
                entity.type.value, entity.summary, entity.created_at, entity.id
            )
        return generate_filename(
            "group", entity.name, entity.created_at, entity.id, max_words=3
        )

    def write_work(self, work: Work) -> Path:
        path = self._write(work, self.work_dir(work.schedule))
        logger.debug("work_written", work_id=work.id, path=str(path))
        return path

    def write_artifact(self, artifact: Artifact) -> Path:
        path = self._write(artifact, self.artifact_dir(artifact.type))
        logger.debug("artifact_written", artifact_id=artifact.id, path=str(path))
        return path

    def write_group(self, group: Group) -> Path:
        path = self._write(group, self.groups_dir)
        logger.debug("group_written", group_id=group.id, path=str(path))
        return path

    def update_schedule(self, work: Work, schedule: Schedule) -> Path:
        """Move ``work`` to ``schedule``'s directory.

        The new document is written atomically before the old one is removed.
        If the write fails the in-memory schedule is rolled back and the old
        document is left untouched.
        """
        schedule = Schedule(schedule)
        old_schedule = work.schedule
        old_path = Path(work.path) if work.path is not None else None
        old_updated_at = work.updated_at

        work.schedule = schedule
        work.touch()
        try:
            new_path = self._write(work, self.work_dir(schedule), relocate=True)
        except Exception:
            work.schedule = old_schedule
            work.path = old_path
            work.updated_at = old_updated_at
            raise

        if old_path is not None and old_path != new_path and old_path.exists():
            self._unlink(old_path)

        logger.info(
            "work_schedule_changed",
            work_id=work.id,
            old_schedule=old_schedule.value,
            new_schedule=schedule.value,
        )
        return new_path

    def delete_group(self, group: Group) -> None:
        path = Path(group.path) if group.path else self.groups_dir / group.filename
        if not group.filename or not path.exists():
            raise NotFoundError("group", group.id)
        self._unlink(path)
        group.path = None
        logger.info("group_deleted", group_id=group.id)

    # Listings

    def list_work(self, schedule: Schedule) -> List[Work]:
        works = self._dedupe(self._scan(self.work_dir(schedule), Work))
        return sorted(works, key=work_sort_key)

    def list_all_work(self) -> List[Work]:
        works: List[Work] = []
        for schedule in Schedule:
            works.extend(self._scan(self.work_dir(schedule), Work))
        return sorted(self._dedupe(works), key=work_sort_key)

    def list_artifacts(self, artifact_type: ArtifactType) -> List[Artifact]:
        artifacts = self._dedupe(self._scan(self.artifact_dir(artifact_type), Artifact))
        return sorted(artifacts, key=_newest_first)

    def list_all_artifacts(self) -> List[Artifact]:
        artifacts: List[Artifact] = []
        for artifact_type in ArtifactType:
            artifacts.extend(self._scan(self.artifact_dir(artifact_type), Artifact))
        return sorted(self._dedupe(artifacts), key=_newest_first)

    def list_groups(self) -> List[Group]:
        groups = self._dedupe(self._scan(self.groups_dir, Group))
        return sorted(groups, key=_newest_first)

    # Lookups

    @staticmethod
    def _find(entities: Iterable[EntityT], entity_id: str, kind: str) -> EntityT:
        for entity in entities:
            if entity.id == entity_id:
                return entity
        raise NotFoundError(kind, entity_id)

    def get_work(self, work_id: str) -> Work:
        return self._find(self.list_all_work(), work_id, "work")

    def get_artifact(self, artifact_id: str) -> Artifact:
        return self._find(self.list_all_artifacts(), artifact_id, "artifact")

    def get_group(self, group_id: str) -> Group:
        return self._find(self.list_groups(), group_id, "group")

    # Search

    def search(self, query: str) -> "SearchResults":
        """Case-insensitive substring match over titles, summaries, bodies and tags."""
        needle = query.strip().lower()
        if not needle:
            return SearchResults()

        def matches(*fields: Optional[str], tags: Iterable[str] = ()) -> bool:
            haystacks = [f for f in fields if f] + list(tags)
            return any(needle in h.lower() for h in haystacks)

        return SearchResults(
            work=[
                w
                for w in self.list_all_work()
                if matches(w.title, w.description, w.content, tags=w.technical_tags)
            ],
            artifacts=[
                a
                for a in self.list_all_artifacts()
                if matches(a.summary, a.content, tags=a.technical_tags)
            ],
            groups=[
                g
                for g in self.list_groups()
                if matches(g.name, g.description, g.theme, tags=g.technical_tags)
            ],
        )


class SearchResults(BaseModel):
    """Matches grouped by entity kind, each in its listing order."""

    work: List[Work] = []
    artifacts: List[Artifact] = []
    groups: List[Group] = []

    @property
    def total(self) -> int:
        return len(self.work) + len(self.artifacts) + len(self.groups)


"""
Document models for Work, Artifacts, Groups and Updates.
"""

from .artifact import Artifact, ArtifactMetadata, WorkAssignment
from .enums import (
    ActionPriority,
    ActionType,
    ArtifactStatus,
    ArtifactType,
    Effort,
    GroupStatus,
    ItemKind,
    Priority,
    Schedule,
    UpdateType,
    WorkStatus,
)
from .group import Group, GroupMetadata, WorkSuggestion
from .primitives import GitContext, generate_id, utc_now
from .update import Update
from .work import Work, WorkMetadata, priority_rank

__all__ = [
    "ActionPriority",
    "ActionType",
    "Artifact",
    "ArtifactMetadata",
    "ArtifactStatus",
    "ArtifactType",
    "Effort",
    "GitContext",
    "Group",
    "GroupMetadata",
    "GroupStatus",
    "ItemKind",
    "Priority",
    "Schedule",
    "Update",
    "UpdateType",
    "Work",
    "WorkAssignment",
    "WorkMetadata",
    "WorkStatus",
    "WorkSuggestion",
    "generate_id",
    "priority_rank",
    "utc_now",
]

"""
Work Tracker

A local-first tracker for Work items and their supporting Artifacts, stored
as markdown documents with YAML headers.
"""

import importlib.metadata

__version__ = importlib.metadata.version("work-tracker")

from .client import MultiRootTracker, WorkTracker
from .errors import (
    HookFailureError,
    MalformedDocumentError,
    NotFoundError,
    StorageError,
    ValidationFailureError,
    WorkTrackerError,
)
from .hooks import HookConfig, HookContext, HookDispatcher, HookResult, HookType, WorkWriter
from .models import Artifact, ArtifactType, Group, Schedule, Update, Work
from .services import (
    AssociationService,
    GroupService,
    LifecyclePolicy,
    LifecycleService,
    UpdatesJournal,
)
from .store import EntityStore

__all__ = [
    "Artifact",
    "ArtifactType",
    "AssociationService",
    "EntityStore",
    "Group",
    "GroupService",
    "HookConfig",
    "HookContext",
    "HookDispatcher",
    "HookFailureError",
    "HookResult",
    "HookType",
    "LifecyclePolicy",
    "LifecycleService",
    "MalformedDocumentError",
    "MultiRootTracker",
    "NotFoundError",
    "Schedule",
    "StorageError",
    "Update",
    "UpdatesJournal",
    "ValidationFailureError",
    "WorkTracker",
    "WorkTrackerError",
    "WorkWriter",
]

"""
Canonical enums for Work, Artifact and Group documents.

Values are the exact strings written to document headers.
"""

from enum import Enum


class Schedule(str, Enum):
    """Workflow bucket of a Work item. Also its storage directory."""

    NOW = "now"
    NEXT = "next"
    LATER = "later"
    CLOSED = "closed"


class WorkStatus(str, Enum):
    """Lifecycle status of a Work item."""

    DRAFT = "draft"
    ACTIVE = "active"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    COMPLETED = "completed"
    CANCELED = "canceled"
    ARCHIVED = "archived"
    ON_HOLD = "on_hold"


class Priority(str, Enum):
    """Work priority levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Effort(str, Enum):
    """Rough size estimate."""

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    EPIC = "epic"


class ArtifactType(str, Enum):
    """Kinds of supporting evidence."""

    PLAN = "plan"
    PROPOSAL = "proposal"
    ANALYSIS = "analysis"
    UPDATE = "update"
    DECISION = "decision"


class ArtifactStatus(str, Enum):
    """Lifecycle status of an Artifact."""

    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"
    STALE = "stale"


class GroupStatus(str, Enum):
    """Lifecycle status of a Group."""

    ACTIVE = "active"
    CONSOLIDATED = "consolidated"
    ARCHIVED = "archived"
    CANDIDATE = "candidate"


class UpdateType(str, Enum):
    """Origin of an Updates journal entry."""

    AUTOMATIC = "automatic"
    MANUAL = "manual"


class ItemKind(str, Enum):
    """Kind of entity a cleanup action targets."""

    WORK = "work"
    ARTIFACT = "artifact"
    GROUP = "group"


class ActionType(str, Enum):
    """Cleanup action types."""

    ARCHIVE = "archive"
    REVIEW = "review"
    CONSOLIDATE = "consolidate"


class ActionPriority(str, Enum):
    """Cleanup action priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

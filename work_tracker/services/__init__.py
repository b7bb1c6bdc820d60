"""
Services derived from, and writing through, the entity store.
"""

from .associations import (
    AssociationGraph,
    AssociationService,
    AssociationSummary,
    SimilarEntity,
)
from .groups import ConsolidationResult, GroupHealthReport, GroupService
from .lifecycle import (
    ActionOutcome,
    CleanupAction,
    CleanupReport,
    DecayReport,
    DecaySummary,
    HealthMetrics,
    LifecyclePolicy,
    LifecycleService,
    RefreshReport,
)
from .updates import UpdatesJournal

__all__ = [
    "ActionOutcome",
    "AssociationGraph",
    "AssociationService",
    "AssociationSummary",
    "CleanupAction",
    "CleanupReport",
    "ConsolidationResult",
    "DecayReport",
    "DecaySummary",
    "GroupHealthReport",
    "GroupService",
    "HealthMetrics",
    "LifecyclePolicy",
    "LifecycleService",
    "RefreshReport",
    "SimilarEntity",
    "UpdatesJournal",
]

"""
Document persistence.
"""

from .documents import generate_filename, parse_entity, render_entity, slugify
from .entity_store import ARTIFACT_DIRS, WORK_DIRS, EntityStore, SearchResults

__all__ = [
    "ARTIFACT_DIRS",
    "EntityStore",
    "SearchResults",
    "WORK_DIRS",
    "generate_filename",
    "parse_entity",
    "render_entity",
    "slugify",
]

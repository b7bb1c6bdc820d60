"""
Error taxonomy.

Every error carries a stable ``code`` for programmatic handling and a
human-readable ``message``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional


class WorkTrackerError(Exception):
    """Base class for all tracker errors."""

    code = "work_tracker_error"

    def __init__(self, message: str, code: Optional[str] = None):
        self.code = code or self.code
        self.message = message
        super().__init__(f"{self.code}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "error": type(self).__name__,
            "code": self.code,
            "message": self.message,
        }


class NotFoundError(WorkTrackerError):
    """A referenced entity id does not exist."""

    code = "not_found"

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} {entity_id} not found")


class MalformedDocumentError(WorkTrackerError):
    """A document's header block is missing or cannot be parsed."""

    code = "malformed_document"

    def __init__(self, path: Optional[Path], reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path or '<document>'}: {reason}")


class StorageError(WorkTrackerError):
    """Underlying filesystem failure on read, write or delete."""

    code = "io_failure"

    def __init__(self, path: Path, reason: str):
        self.path = path
        super().__init__(f"{path}: {reason}")


class ValidationFailureError(WorkTrackerError):
    """An invalid state transition was requested."""

    code = "validation_failure"


class HookFailureError(WorkTrackerError):
    """One or more hook handlers failed and the dispatcher does not continue on error."""

    code = "partial_hook_failure"

    def __init__(self, message: str, results: Optional[List[Any]] = None):
        self.results = list(results or [])
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["failed_hooks"] = [r.hook_name for r in self.results if not r.success]
        return data

"""
Updates journal: one markdown document per Work item, newest entry first.

Layout of ``<root>/updates/<work-id>.md``::

    ---
    work_id: <id>
    ---

    ## Update 2024-05-01 14:30 (Session: 12)
    ...

    ---

    ## Update 2024-04-30 09:10
    ...
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import structlog

from ..models import Update, UpdateType
from ..store import EntityStore
from ..store.documents import render_document, split_document

logger = structlog.get_logger(__name__)

BLOCK_SEPARATOR = "\n---\n\n"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"

_HEADING_RE = re.compile(
    r"^## Update (\d{4}-\d{2}-\d{2} \d{2}:\d{2})(?: \(Session: (.*)\))?\s*$"
)
_ID_RE = re.compile(r"^<!-- id: (\S+) -->$")
_AUTHOR_RE = re.compile(r"\*\*Author\*\*:\s*([^|]*)")
_TYPE_RE = re.compile(r"\*\*Type\*\*:\s*(\w+)")
_PROGRESS_RE = re.compile(r"^\*\*Progress\*\*:\s*(\d+)%\s*→\s*(\d+)%")
_STATUS_RE = re.compile(r"^\*\*Status\*\*:\s*(.*)$")
_RULE_RE = re.compile(r"^(\\*)---$")


def _escape_rules(text: str) -> str:
    """Backslash-escape bare ``---`` lines so they never read as block separators."""
    return "\n".join(
        "\\" + line if _RULE_RE.match(line) else line for line in text.splitlines()
    )


def _unescape_rule(line: str) -> str:
    return line[1:] if line.startswith("\\") and _RULE_RE.match(line) else line


def render_update(update: Update) -> str:
    heading = "## Update"
    if update.timestamp is not None:
        heading += f" {update.timestamp.astimezone(timezone.utc):{TIMESTAMP_FORMAT}}"
    if update.session:
        heading += f" (Session: {update.session})"

    lines = [heading, f"<!-- id: {update.id} -->"]
    lines.append(f"**Author**: {update.author} | **Type**: {update.type.value}")
    if update.progress_before is not None and update.progress_after is not None:
        lines.append(f"**Progress**: {update.progress_before}% → {update.progress_after}%")
    if update.title:
        lines.append(f"**Status**: {update.title}")
    if update.summary:
        lines += ["", _escape_rules(update.summary.strip())]
    if update.tasks_completed:
        lines += ["", "**Tasks Completed:**"]
        lines += [f"- ✅ {task}" for task in update.tasks_completed]
    if update.tasks_added:
        lines += ["", "**Tasks Added:**"]
        lines += [f"- ➕ {task}" for task in update.tasks_added]
    return "\n".join(lines)


def parse_update(block: str, work_id: str = "") -> Update:
    """Best-effort parse of one rendered block. Missing fields stay empty."""
    update = Update(work_id=work_id, timestamp=None)
    summary: List[str] = []
    section = None

    for raw in block.splitlines():
        line = raw.strip()
        heading = _HEADING_RE.match(line)
        if heading:
            update.timestamp = datetime.strptime(heading.group(1), TIMESTAMP_FORMAT).replace(
                tzinfo=timezone.utc
            )
            update.session = (heading.group(2) or "").strip()
            continue
        if line.startswith("## Update"):
            continue

        id_match = _ID_RE.match(line)
        if id_match:
            update.id = id_match.group(1)
            continue

        if line.startswith("**Author**") or line.startswith("**Type**"):
            author = _AUTHOR_RE.search(line)
            if author:
                update.author = author.group(1).strip()
            kind = _TYPE_RE.search(line)
            if kind and kind.group(1) in UpdateType._value2member_map_:
                update.type = UpdateType(kind.group(1))
            continue

        progress = _PROGRESS_RE.match(line)
        if progress:
            update.progress_before = int(progress.group(1))
            update.progress_after = int(progress.group(2))
            continue

        status = _STATUS_RE.match(line)
        if status:
            update.title = status.group(1).strip()
            continue

        if line == "**Tasks Completed:**":
            section = "completed"
            continue
        if line == "**Tasks Added:**":
            section = "added"
            continue

        if section == "completed" and line.startswith("- "):
            update.tasks_completed.append(line[2:].lstrip("✅").strip())
        elif section == "added" and line.startswith("- "):
            update.tasks_added.append(line[2:].lstrip("➕").strip())
        elif section is None and line:
            summary.append(_unescape_rule(line))

    update.summary = "\n".join(summary)
    return update


class UpdatesJournal:
    """Reads and prepends journal entries, independent of the Work documents."""

    def __init__(self, store: EntityStore, default_author: str = "automation"):
        self.store = store
        self.default_author = default_author

    @staticmethod
    def get_updates_ref(work_id: str) -> str:
        """Root-relative reference stored on the Work item."""
        return f"updates/{work_id}.md"

    def journal_path(self, work_id: str) -> Path:
        return self.store.journal_dir / f"{work_id}.md"

    def create_update(self, work_id: str, update: Update) -> Update:
        """Prepend ``update`` to the journal, creating the document if needed."""
        update.work_id = work_id
        if update.timestamp is None:
            update.timestamp = datetime.now(timezone.utc)

        path = self.journal_path(work_id)
        block = render_update(update)
        body = block
        if path.exists():
            _, existing = split_document(self.store.read_text(path), path)
            if existing:
                body = block + BLOCK_SEPARATOR + existing

        self.store.write_text(path, render_document({"work_id": work_id}, body))
        logger.info("update_created", work_id=work_id, update_id=update.id, type=update.type.value)
        return update

    def get_updates(self, work_id: str) -> List[Update]:
        """All entries, newest first. A missing journal yields an empty list."""
        path = self.journal_path(work_id)
        if not path.exists():
            return []
        _, body = split_document(self.store.read_text(path), path)
        blocks = [b.strip() for b in re.split(r"\n---\n", body)]
        return [parse_update(b, work_id) for b in blocks if b]

    def get_latest_update(self, work_id: str) -> Optional[Update]:
        updates = self.get_updates(work_id)
        return updates[0] if updates else None

    def create_automatic_update(
        self,
        work_id: str,
        title: str,
        summary: str = "",
        tasks_completed: Optional[List[str]] = None,
        tasks_added: Optional[List[str]] = None,
        progress_before: Optional[int] = None,
        progress_after: Optional[int] = None,
        session: str = "",
    ) -> Update:
        return self.create_update(
            work_id,
            Update(
                author=self.default_author,
                type=UpdateType.AUTOMATIC,
                title=title,
                summary=summary,
                tasks_completed=list(tasks_completed or []),
                tasks_added=list(tasks_added or []),
                progress_before=progress_before,
                progress_after=progress_after,
                session=session,
            ),
        )

    def create_manual_update(
        self,
        work_id: str,
        author: str,
        title: str,
        summary: str = "",
        tasks_completed: Optional[List[str]] = None,
        tasks_added: Optional[List[str]] = None,
        progress_before: Optional[int] = None,
        progress_after: Optional[int] = None,
        session: str = "",
    ) -> Update:
        return self.create_update(
            work_id,
            Update(
                author=author,
                type=UpdateType.MANUAL,
                title=title,
                summary=summary,
                tasks_completed=list(tasks_completed or []),
                tasks_added=list(tasks_added or []),
                progress_before=progress_before,
                progress_after=progress_after,
                session=session,
            ),
        )

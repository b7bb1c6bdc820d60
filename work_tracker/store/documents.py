"""
Markdown document codec.

A document is a YAML header between ``---`` delimiters followed by a blank
line and a free-form markdown body. Header keys are emitted in the fixed
orders declared below, never in dict-iteration order of arbitrary input.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Type, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from ..errors import MalformedDocumentError
from ..models import Artifact, Group, Work

WORK_HEADER_FIELDS = (
    "id",
    "title",
    "description",
    "schedule",
    "created_at",
    "updated_at",
    "git_context",
    "session_number",
    "technical_tags",
    "artifact_refs",
    "metadata",
)
# Written only when set.
WORK_OPTIONAL_FIELDS = (
    "started_at",
    "completed_at",
    "group_id",
    "overview_updated",
    "updates_ref",
)

ARTIFACT_HEADER_FIELDS = (
    "id",
    "type",
    "summary",
    "technical_tags",
    "session_number",
    "created_at",
    "updated_at",
    "git_context",
    "related_artifacts",
    "work_refs",
    "group_id",
    "metadata",
)

GROUP_HEADER_FIELDS = (
    "id",
    "name",
    "description",
    "theme",
    "created_at",
    "updated_at",
    "git_context",
    "session_number",
    "artifact_ids",
    "work_refs",
    "technical_tags",
    "metadata",
)

_FRONTMATTER_RE = re.compile(r"^---\n(.*?)\n---\n?(.*)$", re.DOTALL)
_SLUG_RE = re.compile(r"[^a-z0-9-]+")
_DASHES_RE = re.compile(r"-{2,}")

EntityT = TypeVar("EntityT", Work, Artifact, Group)


def normalize_body(body: str) -> str:
    """Drop leading blank lines and trailing whitespace."""
    return body.lstrip("\n").rstrip()


def slugify(text: str, max_words: int = 4) -> str:
    words = text.lower().split()[:max_words]
    slug = _SLUG_RE.sub("-", "-".join(words))
    slug = _DASHES_RE.sub("-", slug).strip("-")
    return slug or "untitled"


def generate_filename(
    prefix: str, text: str, created_at: datetime, entity_id: str, max_words: int = 4
) -> str:
    """``<prefix>-<slug>-<YYYY-MM-DD>-<last 6 id chars>.md``"""
    suffix = entity_id[-6:].lower()
    return f"{prefix}-{slugify(text, max_words)}-{created_at:%Y-%m-%d}-{suffix}.md"


def split_document(text: str, path: Optional[Path] = None) -> Tuple[Dict[str, Any], str]:
    """Return the parsed header mapping and the normalized body."""
    text = text.replace("\r\n", "\n")
    match = _FRONTMATTER_RE.match(text)
    if not match:
        raise MalformedDocumentError(path, "missing header block")

    try:
        header = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        raise MalformedDocumentError(path, f"unparsable header: {exc}") from exc

    if not isinstance(header, dict):
        raise MalformedDocumentError(path, "header is not a mapping")

    return header, normalize_body(match.group(2))


def render_document(header: Dict[str, Any], body: str) -> str:
    fm = yaml.safe_dump(
        header, sort_keys=False, allow_unicode=True, default_flow_style=False
    ).strip()
    text = f"---\n{fm}\n---\n"
    body = normalize_body(body)
    if body:
        text += f"\n{body}\n"
    return text


def _ordered_header(
    entity: BaseModel, fields: Tuple[str, ...], optional: Tuple[str, ...] = ()
) -> Dict[str, Any]:
    data = entity.model_dump(mode="json")
    data["metadata"] = entity.metadata.model_dump(mode="json", exclude_none=True)
    header = {name: data[name] for name in fields}
    for name in optional:
        if data.get(name) is not None:
            header[name] = data[name]
    return header


def work_header(work: Work) -> Dict[str, Any]:
    return _ordered_header(work, WORK_HEADER_FIELDS, WORK_OPTIONAL_FIELDS)


def artifact_header(artifact: Artifact) -> Dict[str, Any]:
    return _ordered_header(artifact, ARTIFACT_HEADER_FIELDS)


def group_header(group: Group) -> Dict[str, Any]:
    return _ordered_header(group, GROUP_HEADER_FIELDS)


def render_entity(entity: BaseModel) -> str:
    if isinstance(entity, Work):
        header = work_header(entity)
    elif isinstance(entity, Artifact):
        header = artifact_header(entity)
    elif isinstance(entity, Group):
        header = group_header(entity)
    else:
        raise TypeError(f"cannot render {type(entity).__name__}")
    return render_document(header, entity.content)


def parse_entity(
    model: Type[EntityT], text: str, path: Optional[Path] = None
) -> EntityT:
    """Parse a document into ``model``; bad headers raise MalformedDocumentError."""
    header, body = split_document(text, path)
    try:
        entity = model.model_validate(header)
    except ValidationError as exc:
        raise MalformedDocumentError(
            path, f"invalid {model.__name__.lower()} header: {exc.error_count()} error(s)"
        ) from exc

    entity.content = body
    if path is not None:
        entity.path = path
        entity.filename = path.name
    return entity

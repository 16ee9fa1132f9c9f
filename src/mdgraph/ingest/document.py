from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import frontmatter

from .utils import cheap_hash


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentReference:
    """Lightweight handle to a document; resolved to content by a repository."""

    id: str
    hash: str
    # Path relative to the repository root, only set by file repositories.
    filename: str | None = None


@dataclass(frozen=True)
class MarkdownDocument:
    id: str
    filename: str
    body: str
    frontmatter: dict[str, str] = field(default_factory=dict)
    content_hash: str = "0"


def message_block(heading: str, message: str) -> str:
    """Markdown block used to surface a problem inside a document body."""
    return f"\n\n## {heading}\n\n```txt\n{message}\n```"


def flatten(data: dict[str, Any], prefix: str = "") -> dict[str, str]:
    out: dict[str, str] = {}
    for key, value in data.items():
        name = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict):
            out.update(flatten(value, name))
        elif isinstance(value, (list, tuple)):
            for idx, item in enumerate(value):
                out[f"{name}.{idx}"] = _stringify(item)
        else:
            out[name] = _stringify(value)
    return out


def _stringify(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def split_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Split YAML frontmatter from a markdown body. Never raises.

    Malformed frontmatter yields empty data and the untouched text with a
    "Frontmatter error" block appended, so the problem shows up in the
    rendered document rather than aborting the scan.
    """
    try:
        data, body = frontmatter.parse(text)
    except Exception as e:
        logger.debug("Frontmatter error: %s", e)
        return {}, text + message_block("Frontmatter error", str(e))
    return dict(data), body


def to_document(reference: DocumentReference, filename: str, text: str) -> MarkdownDocument:
    data, body = split_frontmatter(text)
    return MarkdownDocument(
        id=reference.id,
        filename=filename,
        body=body,
        frontmatter=flatten(data),
        content_hash=cheap_hash(text),
    )

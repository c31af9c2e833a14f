"""Field decoders shared by the platform-specific log decoders."""
from __future__ import annotations

from typing import Any

from request_tracker.models import Workspace
from request_tracker.parsers.errors import DecodeError
from request_tracker.parsers.scalars import as_str, lookup


def decode_workspace(value: Any) -> Workspace | None:
    """Decode a workspace given as an object, a bare project string, or nothing."""
    if isinstance(value, dict):
        return Workspace(
            project=as_str(lookup(value, "project")),
            target_framework=as_str(lookup(value, "targetFramework")),
            repository=as_str(lookup(value, "repository")),
            branch=as_str(lookup(value, "branch")),
        )
    if isinstance(value, str):
        return Workspace(project=value)
    return None


def record_list(doc: dict[str, Any], key: str) -> list[dict[str, Any]]:
    """Return the object items of a structural collection.

    A missing or null collection is empty. A collection of any other JSON type
    makes the document undecodable. Non-object items are dropped.
    """
    value = lookup(doc, key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise DecodeError(f"'{key}' must be an array, got {type(value).__name__}")
    return [item for item in value if isinstance(item, dict)]

"""Generic path-addressable label/value tree for inspecting JSON documents.

Display-only: ``entries``/``requests`` arrays are shown newest-first, but each
item keeps its original array index in its name and source path, so
``entries[3]`` always addresses element 3 of the projected document.
"""
from __future__ import annotations

from typing import Any, Optional

from request_tracker.date_utils import newest_first_key, format_short
from request_tracker.models import CanonicalSession, TreeNode
from request_tracker.parsers.normalizer import UNRECOGNIZED_SOURCE_KIND
from request_tracker.parsers.platforms.unified.decoder import serialize_unified
from request_tracker.parsers.scalars import as_text, decode_timestamp, lookup
from request_tracker.services.aggregator import AGGREGATED_SOURCE_KIND

ROOT_NAME = "Root"
AGGREGATED_LABEL = "Aggregated Unified Log"
_TIMESTAMP_SORTED_KEYS = {"entries", "requests"}
_PREVIEW_LIMIT = 50


def _type_tag(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, dict):
        return "Object"
    if isinstance(value, list):
        return "Array"
    return "Value"


def _scalar_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, (dict, list)):
        return ""
    return as_text(value)


def _join_path(prefix: Optional[str], key: str) -> str:
    return f"{prefix}.{key}" if prefix else key


def _preview(item: Any) -> str:
    if not isinstance(item, dict):
        return ""
    prefix = ""
    raw_timestamp = lookup(item, "timestamp")
    if raw_timestamp is not None:
        parsed = decode_timestamp(raw_timestamp)
        prefix = f"[{format_short(parsed) if parsed else as_text(raw_timestamp)}] "
    for key, value in item.items():
        if str(key).lower() == "timestamp":
            continue
        if isinstance(value, str) and value:
            text = value if len(value) <= _PREVIEW_LIMIT else value[: _PREVIEW_LIMIT - 3] + "..."
            return prefix + text
    return prefix.strip()


def _children(value: Any, path: Optional[str], key: Optional[str]) -> list[TreeNode]:
    if isinstance(value, dict):
        nodes = []
        for child_key, child in value.items():
            child_path = _join_path(path, str(child_key))
            nodes.append(
                TreeNode(
                    name=str(child_key),
                    value=_scalar_value(child),
                    type_tag=_type_tag(child),
                    source_path=child_path,
                    children=_children(child, child_path, str(child_key)),
                )
            )
        return nodes

    if isinstance(value, list):
        indexed = list(enumerate(value))
        sort_items = key is not None and key.lower() in _TIMESTAMP_SORTED_KEYS
        if sort_items:
            indexed.sort(
                key=lambda pair: newest_first_key(decode_timestamp(lookup(pair[1], "timestamp"))),
                reverse=True,
            )
        nodes = []
        for original_index, item in indexed:
            item_path = f"{path or ''}[{original_index}]"
            if isinstance(item, (dict, list)):
                item_value = _preview(item) if sort_items else ""
            else:
                item_value = _scalar_value(item)
            nodes.append(
                TreeNode(
                    name=f"[{original_index}]",
                    value=item_value,
                    type_tag="Item",
                    source_path=item_path,
                    children=_children(item, item_path, None),
                )
            )
        return nodes

    return []


def project(value: Any, path_prefix: Optional[str] = None, name: str = ROOT_NAME, label: str = "") -> TreeNode:
    """Project any JSON value into a TreeNode rooted at ``name``."""
    return TreeNode(
        name=name,
        value=label or _scalar_value(value),
        type_tag=_type_tag(value),
        source_path=path_prefix,
        children=_children(value, path_prefix, None),
    )


def project_tree(value: Any) -> TreeNode:
    """Tree for a canonical session (unified shape) or any raw JSON document."""
    if isinstance(value, CanonicalSession):
        if value.source_kind == UNRECOGNIZED_SOURCE_KIND:
            return project(value.raw_document, label=UNRECOGNIZED_SOURCE_KIND)
        label = AGGREGATED_LABEL if value.source_kind == AGGREGATED_SOURCE_KIND else f"{value.source_kind} (Unified)"
        return project(serialize_unified(value), label=label)
    return project(value, label=UNRECOGNIZED_SOURCE_KIND)


def error_tree(message: str) -> TreeNode:
    return TreeNode(name="Error", value=message, type_tag="Error")


def find_node_by_source_path(root: TreeNode, path: str) -> Optional[TreeNode]:
    """Depth-first, case-insensitive search for the node at ``path``."""
    if not path:
        return None
    wanted = path.lower()
    stack = [root]
    while stack:
        node = stack.pop()
        if node.source_path is not None and node.source_path.lower() == wanted:
            return node
        stack.extend(reversed(node.children))
    return None

"""Structural classification of parsed request-log documents."""
from __future__ import annotations

from enum import Enum
from typing import Any


class SchemaKind(str, Enum):
    COPILOT_SESSION = "copilot_session"
    CURSOR_LOG = "cursor_log"
    CURSOR_SINGLE_RECORD = "cursor_single_record"
    UNIFIED = "unified"
    UNRECOGNIZED = "unrecognized"


_SINGLE_RECORD_MARKERS = ("exactrequest", "exactrequestnote", "actions")


def classify(doc: Any) -> SchemaKind:
    """Return the shape of ``doc`` from its top-level keys alone.

    Key presence is tested case-insensitively and in a fixed order; the first
    matching rule wins. Field values are never inspected.
    """
    if not isinstance(doc, dict):
        return SchemaKind.UNRECOGNIZED

    keys = {str(key).lower() for key in doc}

    if "sessionid" in keys and "statistics" in keys:
        return SchemaKind.COPILOT_SESSION
    if "entries" in keys and "session" in keys:
        return SchemaKind.CURSOR_LOG
    if "requestid" in keys and any(marker in keys for marker in _SINGLE_RECORD_MARKERS):
        return SchemaKind.CURSOR_SINGLE_RECORD
    if "entries" in keys and "sourcetype" in keys:
        return SchemaKind.UNIFIED
    if "entries" in keys:
        # A bare entries list is a request log whose session header was dropped.
        return SchemaKind.CURSOR_LOG
    return SchemaKind.UNRECOGNIZED

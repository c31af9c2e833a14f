"""Schema registry: dispatch classified documents to their decoder + normalizer."""
from __future__ import annotations

import json
import logging
from typing import Any, Callable

from request_tracker.models import CanonicalSession
from request_tracker.parsers.errors import DecodeError, NormalizationError
from request_tracker.parsers.normalizer import (
    backfill_agent,
    normalize_copilot,
    normalize_cursor,
    normalize_unified,
    unrecognized_session,
)
from request_tracker.parsers.platforms.copilot.decoder import decode_copilot_session
from request_tracker.parsers.platforms.cursor.decoder import decode_cursor_log, decode_cursor_record
from request_tracker.parsers.platforms.unified.decoder import decode_unified
from request_tracker.parsers.schema import SchemaKind, classify

logger = logging.getLogger("request_tracker.parsers")

_HANDLERS: dict[SchemaKind, Callable[[Any], CanonicalSession]] = {
    SchemaKind.COPILOT_SESSION: lambda doc: normalize_copilot(decode_copilot_session(doc)),
    SchemaKind.CURSOR_LOG: lambda doc: normalize_cursor(decode_cursor_log(doc)),
    SchemaKind.CURSOR_SINGLE_RECORD: lambda doc: normalize_cursor(decode_cursor_record(doc), single_record=True),
    SchemaKind.UNIFIED: lambda doc: normalize_unified(decode_unified(doc)),
    SchemaKind.UNRECOGNIZED: unrecognized_session,
}

_missing = set(SchemaKind) - set(_HANDLERS)
if _missing:
    raise RuntimeError(f"No handler registered for schema kinds: {sorted(k.value for k in _missing)}")


def parse_document(text: str | bytes, path: str = "") -> Any:
    """Parse raw JSON text, raising NormalizationError on malformed input."""
    if isinstance(text, str):
        text = text.lstrip("\ufeff")
    try:
        return json.loads(text)
    except RecursionError as exc:
        raise NormalizationError(path, "Malformed JSON: nesting too deep") from exc
    except ValueError as exc:
        # JSONDecodeError, UnicodeDecodeError and oversized integer literals.
        raise NormalizationError(path, f"Malformed JSON: {exc}") from exc


def normalize_document(doc: Any, path: str = "") -> CanonicalSession:
    """Classify an already-parsed document and normalize it."""
    kind = classify(doc)
    try:
        session = _HANDLERS[kind](doc)
    except DecodeError as exc:
        raise NormalizationError(path, str(exc)) from exc
    if path:
        for entry in session.entries:
            if not entry.source_file:
                entry.source_file = path
    backfill_agent(session)
    logger.debug("Normalized %s as %s (%d entries)", path or "<text>", kind.value, session.entry_count)
    return session


def classify_and_normalize(text: str | bytes, path: str = "") -> CanonicalSession:
    """Single-file entry point: JSON text in, canonical session out.

    Unrecognized documents are not errors; they produce a zero-entry session
    tagged ``Unrecognized`` that keeps the raw document for tree inspection.
    """
    return normalize_document(parse_document(text, path), path)

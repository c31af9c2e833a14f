"""Parser error types."""
from __future__ import annotations


class DecodeError(ValueError):
    """A recognized document whose structure cannot be decoded."""


class NormalizationError(Exception):
    """Single-file normalization failed; no partial session is produced."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path or '<text>'}: {message}")
        self.path = path
        self.message = message

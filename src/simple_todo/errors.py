# src/simple_todo/errors.py

"""
Error taxonomy.

- ValidationError: bad caller input (empty text, oversized share batch, bad reorder).
- CodecError: a share token could not be turned back into a payload.
- VersionMismatchError: the payload was written by another schema version.
- PersistenceCorruptionError: a persisted `tasks` value is not a task collection.
- InvalidImportLinkError: the only decode failure shown to users; the real cause
  is chained (`raise ... from exc`) and logged.
"""

from __future__ import annotations


class SimpleTodoError(Exception):
    """Base class for errors raised by simple_todo."""


class ValidationError(SimpleTodoError):
    pass


class PayloadTooLargeError(ValidationError):
    def __init__(self, size: int, limit: int) -> None:
        super().__init__("Task list is too large to share via URL.")
        self.size = size
        self.limit = limit


class CodecError(SimpleTodoError):
    pass


class VersionMismatchError(SimpleTodoError):
    def __init__(self, found: object, expected: int) -> None:
        super().__init__(f"Incompatible version: {found!r} (expected {expected})")
        self.found = found
        self.expected = expected


class PersistenceCorruptionError(SimpleTodoError):
    pass


class InvalidImportLinkError(SimpleTodoError):
    MESSAGE = "Invalid or corrupted import link."

    def __init__(self, message: str = MESSAGE) -> None:
        super().__init__(message)

# src/simple_todo/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

TaskStore and SyncListener depend on these Protocols instead of a concrete
backend, so tests can swap in the in-memory store.
"""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class KVChange:
    """One write observed on the shared key-value store."""

    key: str
    value: str | None
    origin: str
    version: int


class KeyValueStore(Protocol):
    """
    Opaque string key -> JSON text value.

    `origin` identifies the writing context (one per open app instance).
    """

    @property
    def origin(self) -> str: ...

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...


class ChangeFeed(Protocol):
    """Push-style view of writes made by *other* origins."""

    def current_cursor(self) -> int: ...
    def changes_since(self, cursor: int) -> tuple[list[KVChange], int]: ...


class SharedKeyValueStore(KeyValueStore, ChangeFeed, Protocol):
    pass

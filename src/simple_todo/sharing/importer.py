# src/simple_todo/sharing/importer.py

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import InvalidImportLinkError, ValidationError
from ..tasks.task_models import ImportStrategy, Task
from ..tasks.task_store import TaskSnapshot, TaskStore
from .codec import ShareSession
from .links import build_share_url, extract_import_token

logger = logging.getLogger(__name__)

PREVIEW_LIMIT = 5


@dataclass(frozen=True, slots=True)
class ImportPreview:
    """
    What an incoming link contains, and how it relates to local state.

    already_imported: this exact batch (by fingerprint) was applied before.
    is_update:        new content, but it touches tasks we already have.
    """

    tasks: tuple[Task, ...]
    exported_at: int | None
    fingerprint: str
    already_imported: bool
    is_update: bool
    local_empty: bool

    @property
    def count(self) -> int:
        return len(self.tasks)

    @property
    def sample(self) -> tuple[Task, ...]:
        return self.tasks[:PREVIEW_LIMIT]


class ImportService:
    """Share/import flow on top of a TaskStore (preview, apply, single-step undo)."""

    def __init__(self, store: TaskStore, session: ShareSession | None = None) -> None:
        self._store = store
        self._session = session or ShareSession()
        self._undo: tuple[Task, ...] | None = None
        self._undo_fingerprint: str | None = None

    @property
    def store(self) -> TaskStore:
        return self._store

    @property
    def can_undo(self) -> bool:
        return self._undo is not None

    async def export_link(self, base_url: str) -> str | None:
        """Share URL for the full task list; None if overtaken by a newer request."""
        tasks = self._store.all_tasks
        if not tasks:
            raise ValidationError("There are no tasks to share yet.")
        token = await self._session.encode(tasks)
        if token is None:
            return None
        return build_share_url(base_url, token)

    async def preview(self, link: str) -> ImportPreview | None:
        token = extract_import_token(link)
        if token is None:
            logger.warning("No import token found in link")
            raise InvalidImportLinkError()

        result = await self._session.decode_with_fingerprint(token)
        if result is None:
            return None
        decoded, fingerprint = result

        local_ids = {t.id for t in self._store.all_tasks}
        already = self._store.has_fingerprint(fingerprint)
        overlap = any(t.id in local_ids for t in decoded.tasks)

        return ImportPreview(
            tasks=tuple(decoded.tasks),
            exported_at=decoded.exported_at,
            fingerprint=fingerprint,
            already_imported=already,
            is_update=(not already and overlap),
            local_empty=not local_ids,
        )

    def apply(self, preview: ImportPreview, strategy: ImportStrategy) -> TaskSnapshot:
        strategy = ImportStrategy(strategy)
        if strategy == ImportStrategy.REPLACE:
            self._undo = self._store.all_tasks
            # only a fingerprint this apply records is forgotten on undo
            already = self._store.has_fingerprint(preview.fingerprint)
            self._undo_fingerprint = None if already else preview.fingerprint
        else:
            self._undo = None
            self._undo_fingerprint = None

        snap = self._store.import_tasks(preview.tasks, strategy)
        self._store.record_fingerprint(preview.fingerprint)
        return snap

    def undo(self) -> TaskSnapshot | None:
        if self._undo is None:
            return None
        previous, self._undo = self._undo, None
        fingerprint, self._undo_fingerprint = self._undo_fingerprint, None
        logger.info("Undoing last replace import (restoring %d tasks)", len(previous))
        snap = self._store.import_tasks(previous, ImportStrategy.REPLACE)
        if fingerprint is not None:
            # the undone batch may be applied again later
            self._store.forget_fingerprint(fingerprint)
        return snap

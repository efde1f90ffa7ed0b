# src/simple_todo/tasks/merge.py

from __future__ import annotations

import logging
from collections.abc import Sequence

from .task_models import ImportStrategy, Task

logger = logging.getLogger(__name__)


def merge_tasks(
    local: Sequence[Task],
    incoming: Sequence[Task],
    strategy: ImportStrategy,
) -> list[Task]:
    """
    Combine an incoming batch with local tasks (result is unsorted).

    replace: the incoming batch, as is.
    merge:   per-task last-writer-wins on updated_at; ties keep the local copy.
             The losing record is dropped whole, fields are never mixed.
    """
    if strategy == ImportStrategy.REPLACE:
        return list(incoming)

    if strategy != ImportStrategy.MERGE:
        raise ValueError(f"unknown import strategy: {strategy!r}")

    result = list(local)
    index = {t.id: i for i, t in enumerate(result)}
    added = replaced = 0

    for task in incoming:
        pos = index.get(task.id)
        if pos is None:
            index[task.id] = len(result)
            result.append(task)
            added += 1
        elif task.updated_at > result[pos].updated_at:
            result[pos] = task
            replaced += 1

    logger.debug(
        "merge_tasks local=%d incoming=%d added=%d replaced=%d",
        len(local),
        len(incoming),
        added,
        replaced,
    )
    return result

# src/simple_todo/sync/listener.py

"""
Cross-instance sync.

Another open instance may overwrite the shared store at any time. The listener
pulls writes made by other origins from the change feed and hands them to the
TaskStore, which replaces its in-memory state wholesale (last writer wins).

It runs as a small polling loop; cancel the coroutine (or stop the background
runner) to end it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from dataclasses import dataclass
from typing import ContextManager

from ..core.ports import ChangeFeed
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


class SyncListener:
    def __init__(
        self,
        store: TaskStore,
        feed: ChangeFeed,
        *,
        lock: ContextManager[object] | None = None,
    ) -> None:
        self._store = store
        self._feed = feed
        self._lock = lock or contextlib.nullcontext()
        # Only changes made after start-up matter; the store already loaded the rest.
        self._cursor = feed.current_cursor()

    @property
    def cursor(self) -> int:
        return self._cursor

    def poll_once(self) -> int:
        """Apply pending external writes; returns how many were applied."""
        changes, cursor = self._feed.changes_since(self._cursor)
        self._cursor = cursor

        # Only the newest write per key matters.
        latest = {change.key: change for change in changes}

        applied = 0
        with self._lock:
            for change in latest.values():
                if self._store.apply_external_write(change.key, change.value):
                    applied += 1
                    logger.info(
                        "Synced external write key=%s origin=%s version=%s",
                        change.key,
                        change.origin,
                        change.version,
                    )
        return applied

    async def run(self, *, interval_seconds: float = 1.0, stop_event: asyncio.Event | None = None) -> None:
        sleep_s = max(0.05, float(interval_seconds))
        logger.info("Sync listener started (interval=%.2fs)", sleep_s)

        while stop_event is None or not stop_event.is_set():
            try:
                self.poll_once()
            except Exception:
                logger.exception("Sync poll failed")

            if stop_event is None:
                await asyncio.sleep(sleep_s)
                continue
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(stop_event.wait(), timeout=sleep_s)

        logger.info("Sync listener stopped")


@dataclass
class SyncBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Failed to signal sync stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_sync_in_background(
    listener: SyncListener,
    *,
    interval_seconds: float = 1.0,
) -> SyncBackgroundRunner | None:
    """
    Run the listener on its own event loop in a daemon thread, so it can sit
    next to the blocking console REPL.
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(listener.run(interval_seconds=interval_seconds, stop_event=stop_event))
        finally:
            loop.close()

    t = threading.Thread(target=runner, name="simple-todo-sync", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Sync thread did not initialize properly.")
        return None

    logger.info("Sync background thread started.")
    return SyncBackgroundRunner(thread=t, loop=loop, stop_event=stop_event)

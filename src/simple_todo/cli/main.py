# src/simple_todo/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts:
- the sync listener in a background thread (optional),
- the console REPL in the main thread.

An import link may be passed as the first argument (what opening
`...#import=<token>` does in a browser).
"""

from __future__ import annotations

import logging
import signal
import sys
import threading

from ..cli.bootstrap import create_initial_state, dispose_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging
from ..sync.listener import SyncBackgroundRunner, SyncListener, start_sync_in_background

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    log_file = setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s... (log file: %s)", settings.app_name, log_file)

    state = create_initial_state(settings=settings)

    sync_runner: SyncBackgroundRunner | None = None
    if settings.sync_enabled:
        listener = SyncListener(state.task_store, state.kv, lock=state.lock)
        sync_runner = start_sync_in_background(listener, interval_seconds=settings.sync_interval_seconds)

    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        signal.signal(signal.SIGTERM, _handle_signal)
    except (ValueError, OSError):
        # Not the main thread, or the platform has no SIGTERM.
        pass

    try:
        if settings.console_enabled:
            run_console_loop(state, initial_link=args[0] if args else None)
            stop_main.set()
        else:
            logger.info("Console disabled. Running sync only. Press Ctrl+C to stop.")
            try:
                stop_main.wait()
            except KeyboardInterrupt:
                pass

    finally:
        if sync_runner is not None:
            sync_runner.stop()
            sync_runner.join(timeout=10.0)

        dispose_state(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()

# src/simple_todo/connectors/console_connector.py

from __future__ import annotations

import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..cli.commands import render_list
from ..core.state import AppState
from ..sharing.links import extract_import_token

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def handle_line(state: AppState, line: str) -> str | None:
    """
    One console line -> reply text.

    Slash commands go to the registry; a pasted share link is treated as
    "/import <link>"; anything else is added as a new task.
    """
    def emit(text: str) -> None:
        # Immediate user-visible feedback for slow operations (compression)
        print(f"[{_ts_local()}] {text}", flush=True)

    if not line.startswith("/"):
        if "#import=" in line and extract_import_token(line):
            line = f"/import {line}"
        else:
            line = f"/add {line}"

    with state.lock:
        return command_registry.handle(state, line, emit=emit)


def run_console_loop(state: AppState, *, initial_link: str | None = None) -> None:
    app_name = str(getattr(getattr(state, "settings", None), "app_name", "simple-todo"))
    logger.info("Console connector started.")
    _print_ts(f"[{app_name}] Type a task to add it. Use /help for commands. Use /exit to quit.\n")

    def show(reply: str | None) -> None:
        if reply is not None:
            _print_ts(reply)

    if initial_link:
        show(handle_line(state, f"/import {initial_link}"))

    with state.lock:
        listing = render_list(state)
    _print_ts(listing)

    while True:
        try:
            user_input = input(">>> ").strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            reply = handle_line(state, user_input)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        show(reply)

    logger.info("Console connector finished.")

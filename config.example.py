# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "SIMPLE_TODO_APP_NAME": "App display name (default: simple-todo).",
    "SIMPLE_TODO_LOG_LEVEL": "Console logging level (default: INFO).",
    # Switches
    "SIMPLE_TODO_CONSOLE_ENABLED": "Run the interactive console (true/false, default: true).",
    "SIMPLE_TODO_SYNC_ENABLED": "Follow writes from other processes (true/false, default: true).",
    "SIMPLE_TODO_SYNC_INTERVAL_SECONDS": "Change-feed polling interval (default: 1.0, min 0.05).",
    # Sharing
    "SIMPLE_TODO_SHARE_BASE_URL": "Base URL for share links (default: https://simple-todo.local/).",
    "SIMPLE_TODO_SHARE_MAX_BYTES": "Max task-list JSON size in bytes, before compression (default: 204800).",
    # Paths (gitignored)
    "SIMPLE_TODO_DATA_DIR": "Local data directory (default: .local/simple_todo).",
    "SIMPLE_TODO_STORE_PATH": "Key-value SQLite path (default: <data_dir>/store.sqlite3).",
}

"""Local-first task tracker: task store, sync and share-link engine."""

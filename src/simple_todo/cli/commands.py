# src/simple_todo/cli/commands.py

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import cast

from ..core.state import AppState
from ..errors import PayloadTooLargeError, SimpleTodoError, ValidationError
from ..tasks import analytics
from ..tasks.dates import day_key, is_overdue, is_today, start_of_day, to_local, to_ms
from ..tasks.task_models import (
    MAX_TIMESTAMP_MS,
    MIN_TIMESTAMP_MS,
    Category,
    ChecklistItem,
    ImportStrategy,
    Priority,
    Recurrence,
    Task,
    TaskFilter,
    new_id,
    now_ms,
)
from ..tasks.task_store import UNSET

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except SimpleTodoError as e:
            # Domain errors carry user-safe messages; details are already logged.
            return str(e)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- parsing helpers ----


@dataclass
class TaskArgs:
    """Tokens shared by /add and /edit: !priority #category @due *recurrence, rest is text."""

    words: list[str] = field(default_factory=list)
    priority: Priority | None = None
    category: Category | None = None
    due_date: int | None = UNSET
    recurrence: Recurrence | None = UNSET

    @property
    def text(self) -> str:
        return " ".join(self.words).strip()


def parse_due(raw: str, *, now: int | None = None) -> int | None:
    """@today, @tomorrow, @YYYY-MM-DD (local midnight) or @none."""
    value = raw.strip().lower()
    ts = now_ms() if now is None else now
    if value in ("none", "-"):
        return None
    if value == "today":
        return start_of_day(ts)
    if value == "tomorrow":
        return start_of_day(to_ms(to_local(ts) + timedelta(days=1)))
    try:
        due = to_ms(datetime.strptime(value, "%Y-%m-%d"))
    except (ValueError, OverflowError) as exc:
        raise ValidationError(f"Bad date: {raw!r} (use YYYY-MM-DD, today or tomorrow).") from exc
    if not MIN_TIMESTAMP_MS <= due < MAX_TIMESTAMP_MS:
        raise ValidationError(f"Date out of range: {raw!r}.")
    return due


def parse_task_args(args: list[str], *, now: int | None = None) -> TaskArgs:
    out = TaskArgs()
    for tok in args:
        if tok.startswith("!") and len(tok) > 1:
            try:
                out.priority = Priority(tok[1:].lower())
                continue
            except ValueError:
                pass
        if tok.startswith("#") and len(tok) > 1:
            try:
                out.category = Category(tok[1:].lower())
                continue
            except ValueError:
                pass
        if tok.startswith("@") and len(tok) > 1:
            out.due_date = parse_due(tok[1:], now=now)
            continue
        if tok.startswith("*") and len(tok) > 1:
            name = tok[1:].lower()
            if name in ("none", "-"):
                out.recurrence = None
                continue
            try:
                out.recurrence = Recurrence(name)
                continue
            except ValueError:
                pass
        out.words.append(tok)
    return out


def resolve_task(state: AppState, ref: str) -> Task:
    """A 1-based position in the current view, or a (prefix of a) task id."""
    snap = state.task_store.snapshot()
    if ref.isdigit():
        n = int(ref)
        if 1 <= n <= len(snap.tasks):
            return snap.tasks[n - 1]
        raise ValidationError(f"No task #{n} in the current view.")

    matches = [t for t in snap.all_tasks if t.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise ValidationError(f"No task with id {ref!r}.")
    raise ValidationError(f"Task id {ref!r} is ambiguous.")


def format_task(task: Task, n: int | None = None, *, now: int | None = None) -> str:
    ts = now_ms() if now is None else now
    mark = "x" if task.completed else " "
    meta = [task.priority.value, task.category.value]
    if task.due_date is not None:
        due = day_key(task.due_date)
        if not task.completed and is_overdue(task.due_date, now=ts):
            due += " overdue"
        elif is_today(task.due_date, now=ts):
            due += " today"
        meta.append(f"due {due}")
    if task.recurrence is not None:
        meta.append(f"every {task.recurrence.value}")
    if task.checklist:
        done = sum(1 for item in task.checklist if item.completed)
        meta.append(f"{done}/{len(task.checklist)} checked")
    prefix = f"{n:>2}. " if n is not None else ""
    return f"{prefix}[{mark}] {task.text}  ({', '.join(meta)})  id={task.id[:8]}"


def render_list(state: AppState) -> str:
    snap = state.task_store.snapshot()
    if not snap.all_tasks:
        return "No tasks yet. Add one with /add <text>."
    if not snap.tasks:
        return f"No tasks match filter '{snap.filter.value}'."
    now = now_ms()
    lines = [f"Tasks ({snap.filter.value}):"]
    lines.extend(format_task(t, i, now=now) for i, t in enumerate(snap.tasks, start=1))
    return "\n".join(lines)


def _update_with(state: AppState, task: Task, **changes) -> None:
    fields = {
        "text": task.text,
        "priority": task.priority,
        "category": task.category,
        "checklist": task.checklist,
    }
    fields.update(changes)
    state.task_store.update(task.id, **fields)


# ---- handlers ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_add(state: AppState, args: list[str]) -> str:
    parsed = parse_task_args(args)
    if not parsed.text:
        return "Usage: /add [!high|!medium|!low] [#category] [@YYYY-MM-DD] [*weekly] text"

    due = None if parsed.due_date is UNSET else parsed.due_date
    rec = None if parsed.recurrence is UNSET else parsed.recurrence
    if rec is not None and due is None:
        return "A repeating task needs a due date (@YYYY-MM-DD)."

    state.task_store.add(
        parsed.text,
        priority=parsed.priority or Priority.LOW,
        category=parsed.category or Category.GENERAL,
        due_date=due,
        recurrence=rec,
    )
    return f"Added: {parsed.text}"


def cmd_list(state: AppState, args: list[str]) -> str:
    if args:
        try:
            state.task_store.set_filter(TaskFilter(args[0].lower()))
        except ValueError:
            names = ", ".join(f.value for f in TaskFilter)
            return f"Unknown filter. Use one of: {names}."
    return render_list(state)


def cmd_done(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /done <n|id>"
    task = resolve_task(state, args[0])
    before = len(state.task_store.all_tasks)
    snap = state.task_store.toggle(task.id)
    if task.completed:
        return f"Reopened: {task.text}"
    if len(snap.all_tasks) > before:
        return f"Completed: {task.text} (next occurrence scheduled)"
    return f"Completed: {task.text}"


def cmd_delete(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /rm <n|id>"
    task = resolve_task(state, args[0])
    state.task_store.delete(task.id)
    return f"Deleted: {task.text}"


def cmd_edit(state: AppState, args: list[str]) -> str:
    """
    /edit <n|id> [new text] [!priority] [#category] [@date|@none] [*rule|*none]
    Tokens that are not given keep their current value.
    """
    if not args:
        return "Usage: /edit <n|id> [text] [!priority] [#category] [@date|@none] [*rule|*none]"
    task = resolve_task(state, args[0])
    parsed = parse_task_args(args[1:])

    changes: dict[str, object] = {}
    if parsed.text:
        changes["text"] = parsed.text
    if parsed.priority is not None:
        changes["priority"] = parsed.priority
    if parsed.category is not None:
        changes["category"] = parsed.category
    if parsed.due_date is not UNSET:
        changes["due_date"] = parsed.due_date
    if parsed.recurrence is not UNSET:
        changes["recurrence"] = parsed.recurrence

    if not changes:
        return "Nothing to change."
    _update_with(state, task, **changes)
    return f"Updated: {changes.get('text', task.text)}"


def cmd_note(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /note <n|id> [text]  (no text clears the note)"
    task = resolve_task(state, args[0])
    text = " ".join(args[1:]).strip()
    _update_with(state, task, notes=text or None)
    return "Note saved." if text else "Note cleared."


def cmd_check(state: AppState, args: list[str]) -> str:
    """
    /check <n|id> <text>  -> add a checklist item
    /check <n|id> #<k>    -> toggle item k
    """
    if len(args) < 2:
        return "Usage: /check <n|id> <text> | /check <n|id> #<k>"
    task = resolve_task(state, args[0])

    if len(args) == 2 and args[1].startswith("#") and args[1][1:].isdigit():
        k = int(args[1][1:])
        if not 1 <= k <= len(task.checklist):
            return f"No checklist item #{k}."
        items = list(task.checklist)
        item = items[k - 1]
        items[k - 1] = ChecklistItem(id=item.id, text=item.text, completed=not item.completed)
        _update_with(state, task, checklist=tuple(items))
        return f"{'Checked' if not item.completed else 'Unchecked'}: {item.text}"

    text = " ".join(args[1:]).strip()
    items = (*task.checklist, ChecklistItem(id=new_id(), text=text))
    _update_with(state, task, checklist=items)
    return f"Checklist item added to: {task.text}"


def cmd_move(state: AppState, args: list[str]) -> str:
    """/move <n|id> <position>: drag-and-drop equivalent over the current full list."""
    if len(args) < 2 or not args[1].isdigit():
        return "Usage: /move <n|id> <position>"
    task = resolve_task(state, args[0])

    ordered = list(state.task_store.snapshot().tasks)
    # Tasks hidden by the filter keep their relative place after the visible ones.
    visible_ids = {t.id for t in ordered}
    hidden = [t for t in state.task_store.all_tasks if t.id not in visible_ids]

    ordered = [t for t in ordered if t.id != task.id]
    pos = max(1, min(int(args[1]), len(ordered) + 1))
    ordered.insert(pos - 1, task)

    state.task_store.reorder([*ordered, *hidden])
    return f"Moved '{task.text}' to position {pos}."


def cmd_clear(state: AppState, args: list[str]) -> str:
    before = len(state.task_store.all_tasks)
    snap = state.task_store.clear_completed()
    removed = before - len(snap.all_tasks)
    return f"Cleared {removed} completed task(s)." if removed else "No completed tasks to clear."


def cmd_share(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    base_url = str(getattr(state.settings, "share_base_url", "https://simple-todo.local/"))
    if emit:
        emit("[SHARE] Compressing task list...")
    try:
        link = asyncio.run(state.importer.export_link(base_url))
    except PayloadTooLargeError as exc:
        return f"{exc} ({exc.size} bytes, limit {exc.limit} bytes)"
    if link is None:
        return "Share request was superseded."
    return f"Share link ({len(state.task_store.all_tasks)} tasks):\n{link}"


def _describe_preview(state: AppState) -> str:
    preview = state.pending_import
    if preview is None:
        return "No pending import."
    if preview.already_imported:
        state.pending_import = None
        return "Already imported: this link has already been added to your list."

    head = (
        "This link contains different task data from what you previously imported."
        if preview.is_update
        else f"This link contains {preview.count} tasks."
    )
    lines = [head]
    if preview.exported_at is not None:
        exported = to_local(preview.exported_at).strftime("%Y-%m-%d %H:%M")
        lines.append(f"Exported on: {exported}")
    lines.extend(f"  - [{'x' if t.completed else ' '}] {t.text}" for t in preview.sample)
    if preview.count > len(preview.sample):
        lines.append(f"  and {preview.count - len(preview.sample)} more tasks...")
    if preview.local_empty:
        lines.append("Use /import replace to add them.")
    else:
        lines.append("Use /import merge (keep newest of each) or /import replace (overwrite your list).")
    return "\n".join(lines)


def cmd_import(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /import <link|token>     -> decode and preview
    /import merge|replace    -> apply the pending preview
    """
    if not args:
        return _describe_preview(state)

    choice = args[0].lower()
    if choice in (ImportStrategy.MERGE.value, ImportStrategy.REPLACE.value):
        preview = state.pending_import
        if preview is None:
            return "No pending import. Use /import <link> first."
        snap = state.importer.apply(preview, ImportStrategy(choice))
        state.pending_import = None
        undo_hint = " Use /undo to restore your previous list." if choice == "replace" else ""
        return f"Imported {preview.count} tasks ({choice}); you now have {len(snap.all_tasks)}.{undo_hint}"

    if emit:
        emit("[IMPORT] Decoding link...")
    preview = asyncio.run(state.importer.preview(args[0]))
    if preview is None:
        return "Import request was superseded."
    state.pending_import = preview
    return _describe_preview(state)


def cmd_undo(state: AppState, args: list[str]) -> str:
    snap = state.importer.undo()
    if snap is None:
        return "Nothing to undo."
    return f"Restored previous list ({len(snap.all_tasks)} tasks)."


def cmd_stats(state: AppState, args: list[str]) -> str:
    try:
        rng = analytics.StatsRange(args[0].lower()) if args else analytics.StatsRange.WEEK
    except ValueError:
        return "Usage: /stats [week|month|all]"

    tasks = list(state.task_store.all_tasks)
    now = now_ms()
    stats = analytics.summarize(tasks, rng, now)
    done, total, pct = analytics.daily_progress(tasks, now)
    counts = state.task_store.counts()

    lines = [
        f"Today: {done}/{total} done ({pct}%)",
        f"Streak: {analytics.completion_streak(tasks, now)} day(s)",
        f"Completed ({rng.value}): {stats.total}, {stats.velocity}/day, on time {stats.on_time_rate}%",
        "Counts: " + ", ".join(f"{f.value}={n}" for f, n in counts.items()),
    ]
    if stats.by_category:
        lines.append("By category: " + ", ".join(f"{c.value}={n}" for c, n in stats.by_category))
    return "\n".join(lines)


def cmd_calendar(state: AppState, args: list[str]) -> str:
    grouped = analytics.tasks_by_day(state.task_store.all_tasks)
    if not grouped:
        return "No tasks with due dates."
    lines = ["Calendar:"]
    for key in sorted(grouped):
        lines.append(f"{key}:")
        lines.extend(f"    {format_task(t)}" for t in grouped[key])
    return "\n".join(lines)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register(
    "add",
    cmd_add,
    help_text="Add a task: /add [!high] [#work] [@2024-05-01|@today] [*weekly] text.",
)
registry.register(
    "list",
    cmd_list,
    help_text="List tasks, optionally switching filter: all|active|completed|high|today|upcoming.",
    aliases=["ls"],
)
registry.register("done", cmd_done, help_text="Toggle completion: /done <n|id>.", aliases=["toggle"])
registry.register("rm", cmd_delete, help_text="Delete a task: /rm <n|id>.", aliases=["delete"])
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <n|id> [text] [!p] [#c] [@date|@none] [*rule|*none].")
registry.register("note", cmd_note, help_text="Set or clear notes: /note <n|id> [text].")
registry.register("check", cmd_check, help_text="Checklist: /check <n|id> <text> | /check <n|id> #<k>.")
registry.register("move", cmd_move, help_text="Reorder: /move <n|id> <position>.")
registry.register("clear", cmd_clear, help_text="Remove all completed tasks.")
registry.register("share", cmd_share, help_text="Create a share link for the whole list.")
registry.register("import", cmd_import, help_text="Import from a link: /import <link>, then /import merge|replace.")
registry.register("undo", cmd_undo, help_text="Undo the last replace import.")
registry.register("stats", cmd_stats, help_text="Completion statistics: /stats [week|month|all].")
registry.register("cal", cmd_calendar, help_text="Tasks grouped by due date.", aliases=["calendar"])

# src/taskpulse/cli/commands.py

from __future__ import annotations

import inspect
import logging
import shlex
from collections.abc import Awaitable, Callable, Sequence
from datetime import date
from typing import TypeVar, cast

from ..core.state import AppState
from ..errors import AuthError
from ..tasks.task_models import Task, TaskDraft, TaskStatus, parse_tags
from ..views.analytics import build_analytics
from ..views.calendar_grid import completion_summary, month_view
from ..views.dashboard import build_dashboard
from ..views.search import ResultType, SearchFilters, count_by_type, search

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], Awaitable[str]]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]
CommandHandler = CommandHandler2 | CommandHandler3

T = TypeVar("T")

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Slash-command registry used by the console connector (/help, /add, ...)."""

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

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like '/command args'. Quoted arguments are kept together.
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError as e:
            return f"Could not parse command: {e}"
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

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return await h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return await h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- argument helpers ----


def split_options(args: Sequence[str]) -> tuple[list[str], dict[str, str]]:
    """['Buy', 'milk', '--due', '2025-06-10'] -> (['Buy', 'milk'], {'due': '2025-06-10'})."""
    positional: list[str] = []
    opts: dict[str, str] = {}
    i = 0
    while i < len(args):
        a = args[i]
        if a.startswith("--") and len(a) > 2:
            key = a[2:].lower()
            if i + 1 < len(args) and not args[i + 1].startswith("--"):
                opts[key] = args[i + 1]
                i += 2
            else:
                opts[key] = ""
                i += 1
            continue
        positional.append(a)
        i += 1
    return positional, opts


def parse_day(raw: str) -> date | None:
    """'none' / '' -> None; otherwise YYYY-MM-DD (ValueError if malformed)."""
    if raw.strip().lower() in ("", "none", "-"):
        return None
    return date.fromisoformat(raw.strip())


def parse_status(raw: str) -> TaskStatus:
    key = raw.strip().lower().replace("_", " ").replace("-", " ")
    if key in ("done", "completed", "complete"):
        return TaskStatus.COMPLETED
    if key in ("deferred", "later", "defer"):
        return TaskStatus.DEFERRED
    if key in ("in progress", "progress", "open", "todo"):
        return TaskStatus.IN_PROGRESS
    raise ValueError(f"unknown status: {raw}")


def resolve(items: Sequence[T], ref: str, id_of: Callable[[T], str]) -> T | None:
    """Pick an item by 1-based list number or by (unique) id prefix."""
    if ref.isdigit():
        idx = int(ref)
        if 1 <= idx <= len(items):
            return items[idx - 1]
    matches = [it for it in items if id_of(it).startswith(ref)]
    return matches[0] if len(matches) == 1 else None


def _signed_in(state: AppState) -> bool:
    return state.session.user_id is not None


_NOT_SIGNED_IN = "Not signed in. Use /login <email> <password>."

_STATUS_MARK = {
    TaskStatus.IN_PROGRESS: " ",
    TaskStatus.COMPLETED: "x",
    TaskStatus.DEFERRED: "~",
}


def format_task(n: int, t: Task) -> str:
    parts = [f"{n}. [{_STATUS_MARK[t.status]}] {t.title}"]
    if t.deadline:
        parts.append(f"(due {t.deadline.isoformat()})")
    if t.tags:
        parts.append(" ".join(f"#{tag}" for tag in t.tags))
    parts.append(f"id={t.id[:8]}")
    return "  ".join(parts)


# ---- session ----


async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_login(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) < 2:
        return "Usage: /login <email> <password>"
    if emit:
        emit("Signing in...")
    try:
        await state.session.sign_in(args[0], args[1])
    except AuthError as e:
        return f"Login failed: {e.message}"
    return (
        f"Welcome back, {args[0]}! Loaded {len(state.tasks.tasks)} tasks, "
        f"{len(state.links.links)} links, {len(state.calendar.events)} events."
    )


async def cmd_signup(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /signup <email> <password>"
    redirect = getattr(state.settings, "signup_redirect_url", None)
    try:
        session = await state.session.sign_up(args[0], args[1], redirect)
    except AuthError as e:
        return f"Sign up failed: {e.message}"
    if session is None:
        return "Account created. Check your email to confirm it, then /login."
    return f"Account created and signed in as {args[0]}."


async def cmd_logout(state: AppState, args: list[str]) -> str:
    if not _signed_in(state):
        return "Not signed in."
    await state.session.sign_out()
    return "Signed out."


async def cmd_whoami(state: AppState, args: list[str]) -> str:
    if not _signed_in(state):
        return "Not signed in."
    return f"Signed in as {state.session.email or state.session.user_id}."


async def cmd_reload(state: AppState, args: list[str]) -> str:
    if not _signed_in(state):
        return _NOT_SIGNED_IN
    await state.reload()
    problems = [
        f"{name}: {store.last_error}"
        for name, store in (("tasks", state.tasks), ("links", state.links), ("calendar", state.calendar))
        if store.last_error
    ]
    if problems:
        return "Reload finished with errors (showing empty lists):\n  " + "\n  ".join(problems)
    return "Reloaded."


# ---- tasks ----


async def cmd_tasks(state: AppState, args: list[str]) -> str:
    """
    /tasks            -> all tasks (newest first)
    /tasks open|done|deferred
    """
    if not _signed_in(state):
        return _NOT_SIGNED_IN
    tasks = state.tasks.tasks
    wanted: TaskStatus | None = None
    if args and args[0].lower() != "all":
        try:
            wanted = parse_status(args[0])
        except ValueError as e:
            return str(e)
    lines = [format_task(i, t) for i, t in enumerate(tasks, start=1) if wanted is None or t.status == wanted]
    if state.tasks.last_error:
        lines.insert(0, f"(could not load tasks: {state.tasks.last_error})")
    return "\n".join(lines) if lines else "No tasks."


async def cmd_add(state: AppState, args: list[str]) -> str:
    """/add <title> [--desc text] [--due YYYY-MM-DD] [--tags a,b] [--status open|done|deferred]"""
    if not _signed_in(state):
        return _NOT_SIGNED_IN
    positional, opts = split_options(args)
    title = " ".join(positional).strip()
    if not title:
        return "Usage: /add <title> [--desc text] [--due YYYY-MM-DD] [--tags a,b] [--status s]"
    try:
        deadline = parse_day(opts.get("due", ""))
        status = parse_status(opts["status"]) if "status" in opts else TaskStatus.IN_PROGRESS
    except ValueError as e:
        return f"Invalid value: {e}"

    draft = TaskDraft(
        title=title,
        description=opts.get("desc", ""),
        status=status,
        tags=parse_tags(opts.get("tags", "")),
        deadline=deadline,
        completed_at=date.today() if status == TaskStatus.COMPLETED else None,
    )
    task = await state.tasks.create(draft)
    if task is None:
        return "Could not create the task (see log)."
    return f"Task created: {format_task(1, task)}"


async def cmd_edit(state: AppState, args: list[str]) -> str:
    """/edit <n|id> [--title t] [--desc d] [--due YYYY-MM-DD|none] [--tags a,b] [--status s]"""
    if not _signed_in(state):
        return _NOT_SIGNED_IN
    positional, opts = split_options(args)
    if not positional:
        return "Usage: /edit <n|id> [--title t] [--desc d] [--due YYYY-MM-DD|none] [--tags a,b] [--status s]"
    task = resolve(state.tasks.tasks, positional[0], lambda t: t.id)
    if task is None:
        return f"No such task: {positional[0]}"

    fields: dict[str, object] = {}
    try:
        if "title" in opts:
            fields["title"] = opts["title"]
        if "desc" in opts:
            fields["description"] = opts["desc"]
        if "due" in opts:
            fields["deadline"] = parse_day(opts["due"])
        if "tags" in opts:
            fields["tags"] = parse_tags(opts["tags"])
        if "status" in opts:
            status = parse_status(opts["status"])
            fields["status"] = status
            if status != task.status:
                fields["completed_at"] = date.today() if status == TaskStatus.COMPLETED else None
    except ValueError as e:
        return f"Invalid value: {e}"
    if not fields:
        return "Nothing to change."

    ok = await state.tasks.update(task.id, fields)
    return "Task updated." if ok else "Could not update the task (see log)."


async def cmd_done(state: AppState, args: list[str]) -> str:
    if not _signed_in(state):
        return _NOT_SIGNED_IN
    if not args:
        return "Usage: /done <n|id>"
    task = resolve(state.tasks.tasks, args[0], lambda t: t.id)
    if task is None:
        return f"No such task: {args[0]}"
    if not await state.tasks.toggle_status(task.id):
        return "Could not update the task (see log)."
    updated = state.tasks.get(task.id)
    return f"{task.title}: {updated.status if updated else task.status}"


async def cmd_rm(state: AppState, args: list[str]) -> str:
    if not _signed_in(state):
        return _NOT_SIGNED_IN
    if not args:
        return "Usage: /rm <n|id>"
    task = resolve(state.tasks.tasks, args[0], lambda t: t.id)
    if task is None:
        return f"No such task: {args[0]}"
    ok = await state.tasks.delete(task.id)
    return "Task deleted." if ok else "Could not delete the task (see log)."


# ---- links / files ----


async def cmd_links(state: AppState, args: list[str]) -> str:
    if not _signed_in(state):
        return _NOT_SIGNED_IN
    links = state.links.links
    if not links:
        return "No links."
    return "\n".join(
        f"{i}. {link.title} <{link.url}> {' '.join('#' + t for t in link.tags)}".rstrip()
        for i, link in enumerate(links, start=1)
    )


async def cmd_link(state: AppState, args: list[str]) -> str:
    """/link <url> [--title t] [--desc d] [--tags a,b]"""
    if not _signed_in(state):
        return _NOT_SIGNED_IN
    positional, opts = split_options(args)
    if not positional:
        return "Usage: /link <url> [--title t] [--desc d] [--tags a,b]"
    url = positional[0]
    link = await state.links.create(
        title=opts.get("title") or url,
        url=url,
        description=opts.get("desc", ""),
        tags=opts.get("tags", ""),
    )
    return f"Link saved: {link.title}" if link else "Could not save the link (see log)."


async def cmd_unlink(state: AppState, args: list[str]) -> str:
    if not _signed_in(state):
        return _NOT_SIGNED_IN
    if not args:
        return "Usage: /unlink <n|id>"
    link = resolve(state.links.links, args[0], lambda x: x.id)
    if link is None:
        return f"No such link: {args[0]}"
    ok = await state.links.delete(link.id)
    return "Link deleted." if ok else "Could not delete the link (see log)."


async def cmd_files(state: AppState, args: list[str]) -> str:
    files = state.files.files
    if not files:
        return "No files."
    return "\n".join(
        f"{i}. {f.name} ({f.type}, {f.size}) {' '.join('#' + t for t in f.tags)}".rstrip()
        for i, f in enumerate(files, start=1)
    )


async def cmd_file(state: AppState, args: list[str]) -> str:
    """/file <path> [--tags a,b]"""
    positional, opts = split_options(args)
    if not positional:
        return "Usage: /file <path> [--tags a,b]"
    item = state.files.add_from_path(positional[0], opts.get("tags", ""))
    if item is None:
        limit = getattr(state.settings, "max_file_size_mb", 10)
        return f"File not added: missing, not a regular file, or larger than {limit}MB."
    return f"File added: {item.name} ({item.type}, {item.size})"


async def cmd_unfile(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /unfile <n|id>"
    item = resolve(state.files.files, args[0], lambda x: x.id)
    if item is None or not state.files.delete(item.id):
        return f"No such file: {args[0]}"
    return "File removed."


# ---- calendar ----


def _events_sorted(state: AppState):
    return sorted(state.calendar.events, key=lambda ev: (ev.date, ev.created_at))


def _parse_month(raw: str | None) -> tuple[int, int]:
    if not raw:
        today = date.today()
        return today.year, today.month
    y, m = raw.split("-", 1)
    year, month = int(y), int(m)
    if not 1 <= month <= 12:
        raise ValueError(f"invalid month: {raw}")
    return year, month


async def cmd_events(state: AppState, args: list[str]) -> str:
    if not _signed_in(state):
        return _NOT_SIGNED_IN
    events = _events_sorted(state)
    if not events:
        return "No events."
    lines = []
    for i, ev in enumerate(events, start=1):
        mark = "x" if ev.completed else " "
        desc = f" - {ev.description}" if ev.description else ""
        lines.append(f"{i}. [{mark}] {ev.date.isoformat()} {ev.title}{desc}")
    return "\n".join(lines)


async def cmd_event(state: AppState, args: list[str]) -> str:
    """/event <YYYY-MM-DD> <title> [--desc d]"""
    if not _signed_in(state):
        return _NOT_SIGNED_IN
    positional, opts = split_options(args)
    if len(positional) < 2:
        return "Usage: /event <YYYY-MM-DD> <title> [--desc d]"
    try:
        day = date.fromisoformat(positional[0])
    except ValueError:
        return f"Invalid date: {positional[0]}"
    title = " ".join(positional[1:]).strip()
    if not title:
        return "Title required."
    ev = await state.calendar.create(title=title, event_date=day, description=opts.get("desc") or None)
    return f"Event added: {ev.date.isoformat()} {ev.title}" if ev else "Could not add the event (see log)."


async def cmd_eventdone(state: AppState, args: list[str]) -> str:
    if not _signed_in(state):
        return _NOT_SIGNED_IN
    if not args:
        return "Usage: /eventdone <n|id>"
    ev = resolve(_events_sorted(state), args[0], lambda x: x.id)
    if ev is None:
        return f"No such event: {args[0]}"
    ok = await state.calendar.toggle_completed(ev.id)
    return "Event updated." if ok else "Could not update the event (see log)."


async def cmd_unevent(state: AppState, args: list[str]) -> str:
    if not _signed_in(state):
        return _NOT_SIGNED_IN
    if not args:
        return "Usage: /unevent <n|id>"
    ev = resolve(_events_sorted(state), args[0], lambda x: x.id)
    if ev is None:
        return f"No such event: {args[0]}"
    ok = await state.calendar.delete(ev.id)
    return "Event deleted." if ok else "Could not delete the event (see log)."


async def cmd_cal(state: AppState, args: list[str]) -> str:
    """/cal [YYYY-MM] -> month grid; days with events are starred."""
    try:
        year, month = _parse_month(args[0] if args else None)
    except ValueError:
        return "Usage: /cal [YYYY-MM]"
    view = month_view(state.calendar.events, year, month)
    lines = [view.title, "Su  Mo  Tu  We  Th  Fr  Sa"]
    for week in view.weeks():
        cells = []
        for d in week:
            if not d.is_current_month:
                cells.append("  ")
                continue
            mark = "*" if d.events else " "
            cells.append(f"{d.day.day:2d}{mark}")
        lines.append("  ".join(c.ljust(2) for c in cells).rstrip())
    done, pct = completion_summary(state.calendar.events)
    lines.append(f"Events: {len(state.calendar.events)}  completed: {done} ({pct}%)")
    return "\n".join(lines)


# ---- views ----


async def cmd_dash(state: AppState, args: list[str]) -> str:
    dash = build_dashboard(state.snapshot())
    t = dash.today
    lines = [
        "Today:",
        f"  Tasks: {t.tasks_completed}/{t.tasks_total} ({t.completion_percentage}%)",
        f"  Files added: {t.files_added}  Links added: {t.links_added}",
        f"  Streak: {dash.streak} day(s)",
    ]
    if dash.upcoming_deadlines:
        lines.append("Upcoming deadlines:")
        lines += [f"  {task.deadline.isoformat()} {task.title}" for task in dash.upcoming_deadlines if task.deadline]
    if dash.recent_tasks:
        lines.append("Recent tasks:")
        lines += [f"  {task.title} [{task.status}]" for task in dash.recent_tasks]
    if dash.recent_links:
        lines.append("Recent links:")
        lines += [f"  {link.title} <{link.url}>" for link in dash.recent_links]
    if dash.recent_files:
        lines.append("Recent files:")
        lines += [f"  {f.name} ({f.size})" for f in dash.recent_files]
    return "\n".join(lines)


async def cmd_stats(state: AppState, args: list[str]) -> str:
    report = build_analytics(state.snapshot())
    m = report.metrics
    lines = [
        "Analytics:",
        f"  Completed this week: {m.completed_this_week}  (avg {m.avg_daily:g}/day)",
        f"  Success rate: {m.success_rate}%",
        f"  Most active category: {m.most_active_category or 'None'} ({m.most_active_pct}%)",
        "  Last 7 days: " + "  ".join(f"{p.label} {p.completed}/{p.total}" for p in report.weekly),
        "  Last 6 months: " + "  ".join(f"{p.label} {p.completed}" for p in report.monthly),
    ]
    if report.categories:
        lines.append("  Categories: " + ", ".join(f"{c.label} {c.value}" for c in report.categories))
    for ins in report.insights:
        lines.append(f"* {ins.title} {ins.description}")
    return "\n".join(lines)


async def cmd_search(state: AppState, args: list[str]) -> str:
    """/search <query> [--type task|file|link] [--tag t] [--date YYYY-MM-DD]"""
    positional, opts = split_options(args)
    try:
        filters = SearchFilters(
            query=" ".join(positional),
            type=ResultType(opts["type"].lower()) if opts.get("type") else None,
            tag=opts.get("tag") or None,
            on_date=date.fromisoformat(opts["date"]) if opts.get("date") else None,
        )
    except ValueError as e:
        return f"Invalid filter: {e}"
    results = search(state.snapshot(), filters)
    if not results:
        return "No results."
    counts = count_by_type(results)
    lines = [", ".join(f"{rt.value}s: {n}" for rt, n in counts.items())]
    for r in results:
        extra = f" [{r.status}]" if r.status else (f" <{r.url}>" if r.url else "")
        lines.append(f"  ({r.type.value}) {r.date.isoformat()} {r.title}{extra}")
    return "\n".join(lines)


async def cmd_notifs(state: AppState, args: list[str]) -> str:
    """/notifs -> pending reminders; /notifs clear -> drop them all."""
    if args and args[0].lower() == "clear":
        await state.notifier.clear_all()
        return "All notifications cleared."
    pending = await state.notifier.list_pending()
    if not pending:
        return "No pending notifications."
    return "\n".join(
        f"  {n.schedule:%Y-%m-%d %H:%M} [{n.kind}] {n.title}: {n.body}" for n in pending
    )


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("login", cmd_login, help_text="Sign in: /login <email> <password>.")
registry.register("signup", cmd_signup, help_text="Create an account: /signup <email> <password>.")
registry.register("logout", cmd_logout, help_text="Sign out (always clears local data).")
registry.register("whoami", cmd_whoami, help_text="Show the signed-in account.")
registry.register("reload", cmd_reload, help_text="Re-fetch tasks, links and events (files are kept).")
registry.register("tasks", cmd_tasks, help_text="List tasks: /tasks [all|open|done|deferred].", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a task: /add <title> [--due D] [--tags a,b] [--desc d].")
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <n|id> [--title|--desc|--due|--tags|--status].")
registry.register("done", cmd_done, help_text="Toggle a task between completed and in progress.")
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <n|id>.")
registry.register("links", cmd_links, help_text="List saved links.")
registry.register("link", cmd_link, help_text="Save a link: /link <url> [--title t] [--tags a,b].")
registry.register("unlink", cmd_unlink, help_text="Delete a link: /unlink <n|id>.")
registry.register("files", cmd_files, help_text="List files added this session.")
registry.register("file", cmd_file, help_text="Add a local file: /file <path> [--tags a,b].")
registry.register("unfile", cmd_unfile, help_text="Remove a file: /unfile <n|id>.")
registry.register("events", cmd_events, help_text="List calendar events.")
registry.register("event", cmd_event, help_text="Add an event: /event <YYYY-MM-DD> <title> [--desc d].")
registry.register("eventdone", cmd_eventdone, help_text="Toggle an event's completed flag.")
registry.register("unevent", cmd_unevent, help_text="Delete an event: /unevent <n|id>.")
registry.register("cal", cmd_cal, help_text="Month grid: /cal [YYYY-MM].")
registry.register("dash", cmd_dash, help_text="Today's dashboard.")
registry.register("stats", cmd_stats, help_text="Analytics and insights.")
registry.register("search", cmd_search, help_text="Search: /search <q> [--type t] [--tag t] [--date D].")
registry.register("notifs", cmd_notifs, help_text="Pending reminders: /notifs [clear].")

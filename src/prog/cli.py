from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any

from rich.markup import escape

from . import __version__
from .config import ConfigValidationError, ProgConfig, load_config
from .errors import InvariantViolation
from .logging_setup import setup_logging
from .model import ITEM_TYPES, STATUSES
from .stores.items import ItemStore, ListFilter
from .stores.state import DB_FILENAME, STATE_DIR_NAME
from .tracker import StatusReport, Tracker
from .ui import (
    STATUS_ICONS,
    OutputMode,
    add_output_mode_argument,
    make_console,
    render_help,
    render_panel,
    render_table,
    resolve_output_mode,
    styled_status,
)
from .util import eprint, emit_json, format_time, truncate

logger = logging.getLogger(__name__)

EXIT_ERROR = 1
EXIT_CONFIG = 2
EXIT_INTERNAL = 70

_ITEM_HEADERS = ("ID", "TYPE", "STATUS", "PRI", "PROJECT", "TITLE", "LABELS")
_EDGE_HEADERS = ("ITEM", "STATUS", "DEPENDS ON", "STATUS", "STATE")


def _item_columns(item: dict[str, Any]) -> tuple[str, ...]:
    return (
        str(item.get("id") or ""),
        str(item.get("type") or ""),
        str(item.get("status") or ""),
        f"P{item.get('priority')}",
        str(item.get("project") or "-"),
        truncate(item.get("title"), 56),
        truncate(",".join(str(v) for v in item.get("labels") or []), 28),
    )


def _edge_columns(edge: dict[str, Any]) -> tuple[str, ...]:
    return (
        str(edge.get("item_id") or ""),
        str(edge.get("item_status") or ""),
        str(edge.get("depends_on") or ""),
        str(edge.get("depends_on_status") or ""),
        "waiting" if edge.get("unresolved") else "resolved",
    )


def print_table(headers: tuple[str, ...], values: list[tuple[str, ...]]) -> None:
    widths = [len(item) for item in headers]
    for row in values:
        for idx, col in enumerate(row):
            widths[idx] = max(widths[idx], len(col))

    print("  ".join(headers[idx].ljust(widths[idx]) for idx in range(len(headers))))
    print("  ".join("-" * widths[idx] for idx in range(len(headers))))
    for row in values:
        print("  ".join(row[idx].ljust(widths[idx]) for idx in range(len(headers))))


def print_rows(
    output_mode: OutputMode,
    *,
    headers: tuple[str, ...],
    values: list[tuple[str, ...]],
    title: str,
    empty: str,
    status_columns: tuple[int, ...] = (),
) -> None:
    if not values:
        if output_mode == "rich":
            render_panel(make_console("rich"), empty, title=title)
        else:
            print(empty)
        return
    if output_mode == "rich":
        render_table(
            make_console("rich"),
            title=title,
            headers=headers,
            rows=values,
            no_wrap_columns=(0, 1, 2, 3),
            status_columns=status_columns,
        )
        return
    print_table(headers, values)


def _print_item(item: dict[str, Any]) -> None:
    icon = STATUS_ICONS.get(str(item.get("status")), "[ ]")
    print(f"{icon} {item['id']}  {item['status']:<11}  {item['title']}")


def _print_item_details(detail: dict[str, Any]) -> None:
    _print_item(detail)
    print(f"type: {detail['type']}")
    print(f"project: {detail.get('project') or '-'}")
    print(f"priority: P{detail['priority']}")
    if detail.get("parent_id"):
        print(f"parent: {detail['parent_id']}")
    if detail.get("labels"):
        print(f"labels: {', '.join(detail['labels'])}")
    print(f"created: {format_time(detail.get('created_at'))}")
    print(f"updated: {format_time(detail.get('updated_at'))}")

    description = str(detail.get("description") or "").strip()
    if description:
        print()
        print(description)

    dod = detail.get("definition_of_done")
    if dod:
        print()
        print("definition of done:")
        print(f"  {dod}")

    if detail.get("children"):
        print()
        print("children:")
        for child in detail["children"]:
            print(f"  {child['id']}  {child['status']:<11}  {child['title']}")

    print()
    print("dependencies:")
    if not detail["dependencies"]:
        print("  (none)")
    for dep in detail["dependencies"]:
        state = "waiting" if dep["unresolved"] else "resolved"
        print(f"  {dep['id']}  {dep['status']:<11}  {dep['title']} ({state})")

    if detail["dependents"]:
        print()
        print("blocks:")
        for dep in detail["dependents"]:
            print(f"  {dep['id']}  {dep['status']:<11}  {dep['title']}")

    if detail.get("related_concepts"):
        print()
        print(f"related concepts: {', '.join(detail['related_concepts'])}")

    print()
    print("logs:")
    if not detail["logs"]:
        print("  (none)")
    for entry in detail["logs"]:
        print(f"  {format_time(entry['created_at'])}  {entry['message']}")


def _print_item_details_rich(detail: dict[str, Any]) -> None:
    console = make_console("rich")
    ready_note = (
        "[red]waiting on dependencies[/red]"
        if detail["has_unmet_dependencies"]
        else "[green]no unmet dependencies[/green]"
    )
    summary = "\n".join(
        [
            f"type: {detail['type']}",
            f"status: {styled_status(str(detail['status']))}",
            f"priority: P{detail['priority']}",
            f"project: {escape(detail.get('project') or '-')}",
            f"parent: {detail.get('parent_id') or '-'}",
            f"labels: {escape(', '.join(detail.get('labels') or []) or '-')}",
            f"created: {format_time(detail.get('created_at'))}",
            f"updated: {format_time(detail.get('updated_at'))}",
            ready_note,
        ]
    )
    render_panel(console, summary, title=f"{detail['id']}: {detail['title']}")

    description = str(detail.get("description") or "").strip()
    render_panel(
        console, description or "(no description)", title="Description", literal=True
    )
    if detail.get("definition_of_done"):
        render_panel(
            console,
            str(detail["definition_of_done"]),
            title="Definition of done",
            literal=True,
        )

    if detail.get("children"):
        render_table(
            console,
            title="Children",
            headers=_ITEM_HEADERS,
            rows=[_item_columns(child) for child in detail["children"]],
            no_wrap_columns=(0, 1, 2, 3),
            status_columns=(2,),
        )

    if detail["dependencies"]:
        render_table(
            console,
            title="Depends on",
            headers=("ID", "STATUS", "TITLE", "STATE"),
            rows=[
                (
                    dep["id"],
                    dep["status"],
                    truncate(dep["title"], 56),
                    "waiting" if dep["unresolved"] else "resolved",
                )
                for dep in detail["dependencies"]
            ],
            no_wrap_columns=(0, 1),
            status_columns=(1,),
        )
    if detail["dependents"]:
        render_table(
            console,
            title="Blocks",
            headers=("ID", "STATUS", "TITLE"),
            rows=[
                (dep["id"], dep["status"], truncate(dep["title"], 56))
                for dep in detail["dependents"]
            ],
            no_wrap_columns=(0, 1),
            status_columns=(1,),
        )
    if detail.get("related_concepts"):
        render_panel(
            console,
            ", ".join(detail["related_concepts"]),
            title="Related concepts (prog learn list --concept NAME)",
            literal=True,
        )

    if detail["logs"]:
        render_table(
            console,
            title="Log",
            headers=("TIME", "MESSAGE"),
            rows=[
                (format_time(entry["created_at"]), entry["message"])
                for entry in detail["logs"]
            ],
            no_wrap_columns=(0,),
        )
    else:
        render_panel(console, "(none)", title="Log")


def _print_status_report(report: StatusReport) -> None:
    print(f"project: {report.project or '(all)'}")
    print(
        "  ".join(f"{status}={report.counts[status]}" for status in STATUSES)
        + f"  ready={report.ready_count}"
    )
    sections = (
        ("in progress", report.in_progress),
        ("reviewing", report.reviewing),
        ("ready", report.ready),
        ("recently done", report.recent_done),
    )
    for title, rows in sections:
        if not rows:
            continue
        print()
        print(f"{title}:")
        for item in rows:
            print(f"  {item['id']}  P{item['priority']}  {item['title']}")
    if report.blocked:
        print()
        print("blocked:")
        for item in report.blocked:
            reason = f"  ({item['reason']})" if item.get("reason") else ""
            print(f"  {item['id']}  {item['title']}{reason}")


def _print_status_report_rich(report: StatusReport) -> None:
    console = make_console("rich")
    render_table(
        console,
        title=f"Status: {report.project or 'all projects'}",
        headers=(*STATUSES, "ready"),
        rows=[
            (
                *(str(report.counts[status]) for status in STATUSES),
                str(report.ready_count),
            )
        ],
    )
    sections = (
        ("In progress", report.in_progress),
        ("Reviewing", report.reviewing),
        ("Ready", report.ready),
        ("Recently done", report.recent_done),
    )
    for title, rows in sections:
        if rows:
            render_table(
                console,
                title=title,
                headers=_ITEM_HEADERS,
                rows=[_item_columns(item) for item in rows],
                no_wrap_columns=(0, 1, 2, 3),
                status_columns=(2,),
            )
    if report.blocked:
        render_table(
            console,
            title="Blocked",
            headers=("ID", "TITLE", "REASON"),
            rows=[
                (item["id"], truncate(item["title"], 48), item.get("reason") or "-")
                for item in report.blocked
            ],
            no_wrap_columns=(0,),
        )


def _print_help(output_mode: OutputMode) -> None:
    render_help(
        output_mode=output_mode,
        command="prog",
        summary="local task tracker for coding agents",
        usage=("prog [-v] [--log-file PATH] <command> [ARGS]",),
        sections=(
            (
                "Items",
                (
                    ("add <title> [-e]", "create a task (or epic with -e)"),
                    ("list [filters]", "list items with effective statuses"),
                    ("ready", "open tasks with every dependency resolved"),
                    ("show <id>", "item details, dependencies, children, log"),
                    ("edit <id> [flags]", "change title/description/dod/priority/project"),
                    ("parent <id> <epic>", "move an item under an epic (--clear to detach)"),
                    ("label add|rm <id> <label>", "manage labels"),
                    ("delete <id...> --yes", "delete items and their edges"),
                ),
            ),
            (
                "Workflow",
                (
                    ("start <id...>", "mark in_progress"),
                    ("review <id>", "move in_progress work to reviewing"),
                    ("done <id...>", "mark done"),
                    ("block <id> <reason>", "mark blocked and log the reason"),
                    ("cancel <id> [reason]", "mark canceled"),
                    ("reopen <id...>", "mark open"),
                    ("log <id> <message>", "append a progress note"),
                    ("append <id> <text>", "append to the description"),
                ),
            ),
            (
                "Dependencies",
                (
                    ("dep add|rm <id> <depends-on>", "edit dependency edges"),
                    ("deps <id>", "edges touching one item"),
                    ("graph", "every edge in scope"),
                ),
            ),
            (
                "Overview",
                (
                    ("status", "per-status counts and current work"),
                    ("projects", "known projects"),
                    ("learn <command>", "record and search project learnings"),
                    ("init [--here]", "create the database"),
                ),
            ),
        ),
        examples=(
            ("prog add 'Write parser' -p api --priority 1", "create a high-priority task"),
            ("prog dep add ts-a1b2c3 ep-d4e5f6", "task waits for the whole epic"),
            ("prog ready --json", "next work items for an agent"),
        ),
    )


def _build_parser() -> argparse.ArgumentParser:
    from .learn import add_learn_parser

    p = argparse.ArgumentParser(prog="prog", description="Local task tracker.")
    p.add_argument("--version", action="version", version=f"prog {__version__}")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    p.add_argument("--log-file", help="Also write debug logs to this file")
    sub = p.add_subparsers(dest="command", required=True, metavar="command")

    init = sub.add_parser("init", help="Create the database")
    init.add_argument(
        "--here",
        action="store_true",
        help=f"Create {STATE_DIR_NAME}/ in the current directory",
    )

    add = sub.add_parser("add", help="Create a task or epic")
    add.add_argument("title", help="Item title")
    add.add_argument("-e", "--epic", action="store_true", help="Create an epic")
    add.add_argument("-p", "--project", help="Project (default from config)")
    add.add_argument("--priority", type=int, help="Priority 1 (high) to 3 (low)")
    add.add_argument("--parent", help="Parent epic id")
    add.add_argument("-d", "--description", default="", help="Description")
    add.add_argument("--dod", help="Definition of done")
    add.add_argument("-l", "--label", action="append", default=[], help="Label (repeatable)")
    add.add_argument("--json", action="store_true", help="Output JSON")

    ls = sub.add_parser("list", help="List items")
    ls.add_argument("-p", "--project", help="Filter by project")
    ls.add_argument("--status", help=f"Filter by effective status ({', '.join(STATUSES)})")
    ls.add_argument("--type", dest="item_type", choices=ITEM_TYPES, help="Filter by type")
    ls.add_argument("--parent", help="Children of this epic")
    ls.add_argument("--label", help="Filter by label")
    ls.add_argument("--search", help="Filter by text in id/title/description")
    ls.add_argument("--blocking", help="Items this item depends on")
    ls.add_argument("--blocked-by", help="Items that depend on this item")
    blockers = ls.add_mutually_exclusive_group()
    blockers.add_argument("--has-blockers", action="store_true", help="Only items waiting on a dependency")
    blockers.add_argument("--no-blockers", action="store_true", help="Only items with no unmet dependency")
    ls.add_argument("--limit", type=int, help="Max rows")
    ls.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(ls)

    ready = sub.add_parser("ready", help="List tasks ready for work")
    ready.add_argument("-p", "--project", help="Filter by project")
    ready.add_argument("-l", "--label", action="append", default=[], help="Required label (repeatable)")
    ready.add_argument("--limit", type=int, help="Max rows")
    ready.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(ready)

    show = sub.add_parser("show", help="Show one item with details")
    show.add_argument("id", help="Item id")
    show.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(show)

    for name, help_text in (
        ("start", "Mark item(s) in_progress"),
        ("done", "Mark item(s) done"),
        ("reopen", "Mark item(s) open"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("id", nargs="+", help="Item id(s)")
        cmd.add_argument("--json", action="store_true", help="Output JSON")

    review = sub.add_parser("review", help="Move an in_progress item to reviewing")
    review.add_argument("id", help="Item id")
    review.add_argument("--json", action="store_true", help="Output JSON")

    cancel = sub.add_parser("cancel", help="Cancel an item")
    cancel.add_argument("id", help="Item id")
    cancel.add_argument("reason", nargs="?", help="Why it was canceled")
    cancel.add_argument("--json", action="store_true", help="Output JSON")

    block = sub.add_parser("block", help="Mark an item blocked")
    block.add_argument("id", help="Item id")
    block.add_argument("reason", help="What it is waiting on")
    block.add_argument("--json", action="store_true", help="Output JSON")

    log = sub.add_parser("log", help="Append a progress note")
    log.add_argument("id", help="Item id")
    log.add_argument("message", help="Log message")
    log.add_argument("--json", action="store_true", help="Output JSON")

    append = sub.add_parser("append", help="Append text to the description")
    append.add_argument("id", help="Item id")
    append.add_argument("text", help="Text to append")
    append.add_argument("--json", action="store_true", help="Output JSON")

    edit = sub.add_parser("edit", help="Edit item fields")
    edit.add_argument("id", help="Item id")
    edit.add_argument("--title", help="New title")
    edit.add_argument("-d", "--description", help="New description")
    edit.add_argument("--dod", help="New definition of done")
    edit.add_argument("--clear-dod", action="store_true", help="Remove the definition of done")
    edit.add_argument("--priority", type=int, help="New priority 1-3")
    edit.add_argument("-p", "--project", help="Move to project")
    edit.add_argument("--json", action="store_true", help="Output JSON")

    parent = sub.add_parser("parent", help="Set or clear an item's parent epic")
    parent.add_argument("id", help="Item id")
    parent.add_argument("epic", nargs="?", help="Parent epic id")
    parent.add_argument("--clear", action="store_true", help="Detach from parent")
    parent.add_argument("--json", action="store_true", help="Output JSON")

    dep = sub.add_parser("dep", help="Dependency operations")
    dep_sub = dep.add_subparsers(dest="dep_cmd", required=True, metavar="dep_cmd")
    dep_add = dep_sub.add_parser("add", help="Make an item wait on another")
    dep_add.add_argument("id", help="Item id")
    dep_add.add_argument("depends_on", help="Item it depends on")
    dep_add.add_argument("--json", action="store_true", help="Output JSON")
    dep_rm = dep_sub.add_parser("rm", help="Remove a dependency")
    dep_rm.add_argument("id", help="Item id")
    dep_rm.add_argument("depends_on", help="Item it depends on")
    dep_rm.add_argument("--json", action="store_true", help="Output JSON")

    deps = sub.add_parser("deps", help="Dependency edges around an item")
    deps.add_argument("id", help="Item id")
    deps.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(deps)

    graph = sub.add_parser("graph", help="All dependency edges")
    graph.add_argument("-p", "--project", help="Filter by project")
    graph.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(graph)

    label = sub.add_parser("label", help="Label operations")
    label_sub = label.add_subparsers(dest="label_cmd", required=True, metavar="label_cmd")
    for name, help_text in (("add", "Add a label"), ("rm", "Remove a label")):
        cmd = label_sub.add_parser(name, help=help_text)
        cmd.add_argument("id", help="Item id")
        cmd.add_argument("label", help="Label value")
        cmd.add_argument("--json", action="store_true", help="Output JSON")

    status = sub.add_parser("status", help="Project status report")
    status.add_argument("-p", "--project", help="Project (default from config)")
    status.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(status)

    projects = sub.add_parser("projects", help="List projects")
    projects.add_argument("--json", action="store_true", help="Output JSON")

    delete = sub.add_parser("delete", help="Delete item(s)")
    delete.add_argument("id", nargs="+", help="Item id(s)")
    delete.add_argument("--yes", action="store_true", help="Confirm delete operation")
    delete.add_argument("--json", action="store_true", help="Output JSON")

    add_learn_parser(sub)
    return p


def _scope(args: argparse.Namespace, config: ProgConfig) -> str | None:
    return getattr(args, "project", None) or config.default_project or None


def _emit_item(args: argparse.Namespace, item: dict[str, Any]) -> None:
    if args.json:
        emit_json(item)
    else:
        _print_item(item)


def _emit_items(args: argparse.Namespace, items: list[dict[str, Any]]) -> None:
    if args.json:
        emit_json(items)
        return
    for item in items:
        _print_item(item)


def _run(
    args: argparse.Namespace,
    tracker: Tracker,
    config: ProgConfig,
    output_mode: OutputMode,
) -> None:
    items = tracker.items

    if args.command == "init":
        store = items
        if args.here:
            store = ItemStore(Path.cwd() / STATE_DIR_NAME / DB_FILENAME)
        print(store.init())
        return

    if args.command == "add":
        item = items.create(
            args.title,
            item_type="epic" if args.epic else "task",
            project=args.project if args.project is not None else config.default_project,
            description=args.description,
            definition_of_done=args.dod,
            priority=args.priority if args.priority is not None else config.default_priority,
            parent_id=args.parent,
            labels=list(args.label or []),
        )
        if args.json:
            emit_json(item)
        else:
            print(item["id"])
        return

    if args.command == "list":
        rows = items.list(
            ListFilter(
                project=_scope(args, config),
                status=args.status,
                item_type=args.item_type,
                parent=args.parent,
                label=args.label,
                search=args.search,
                blocking=args.blocking,
                blocked_by=args.blocked_by,
                has_blockers=args.has_blockers,
                no_blockers=args.no_blockers,
                limit=args.limit,
            )
        )
        if args.json:
            emit_json(rows)
            return
        print_rows(
            output_mode,
            headers=_ITEM_HEADERS,
            values=[_item_columns(row) for row in rows],
            status_columns=(2,),
            title="Items",
            empty="(no matching items)" if args.status or args.search or args.label else "(no items)",
        )
        return

    if args.command == "ready":
        rows = tracker.list_ready(_scope(args, config), list(args.label or []), limit=args.limit)
        if args.json:
            emit_json(rows)
            return
        print_rows(
            output_mode,
            headers=_ITEM_HEADERS,
            values=[_item_columns(row) for row in rows],
            status_columns=(2,),
            title="Ready",
            empty="(no ready tasks)",
        )
        return

    if args.command == "show":
        detail = tracker.show(args.id)
        if args.json:
            emit_json(detail)
        elif output_mode == "rich":
            _print_item_details_rich(detail)
        else:
            _print_item_details(detail)
        return

    if args.command in {"start", "done", "reopen"}:
        transition = getattr(tracker, args.command)
        _emit_items(args, [transition(item_id) for item_id in args.id])
        return

    if args.command == "review":
        _emit_item(args, tracker.review(args.id))
        return

    if args.command == "cancel":
        _emit_item(args, tracker.cancel(args.id, args.reason))
        return

    if args.command == "block":
        _emit_item(args, tracker.block(args.id, args.reason))
        return

    if args.command == "log":
        entry = items.add_log(args.id, args.message)
        if args.json:
            emit_json(entry)
        else:
            print(f"logged: {entry['item_id']}")
        return

    if args.command == "append":
        _emit_item(args, items.append_description(args.id, args.text))
        return

    if args.command == "edit":
        if args.dod is not None and args.clear_dod:
            raise ValueError("--dod and --clear-dod are mutually exclusive")
        item = items.update(
            args.id,
            title=args.title,
            description=args.description,
            definition_of_done=args.dod,
            definition_of_done_provided=args.dod is not None or args.clear_dod,
            priority=args.priority,
            project=args.project,
        )
        _emit_item(args, item)
        return

    if args.command == "parent":
        if args.clear:
            if args.epic:
                raise ValueError("pass either an epic id or --clear, not both")
            _emit_item(args, items.clear_parent(args.id))
            return
        if not args.epic:
            raise ValueError("an epic id is required (or use --clear)")
        _emit_item(args, items.set_parent(args.id, args.epic))
        return

    if args.command == "dep" and args.dep_cmd == "add":
        row = items.add_dependency(args.id, args.depends_on)
        if args.json:
            emit_json(row)
        elif row["added"]:
            print(f"{row['item_id']} depends on {row['depends_on']}")
        else:
            print(f"{row['item_id']} already depends on {row['depends_on']}")
        return

    if args.command == "dep" and args.dep_cmd == "rm":
        removed = items.remove_dependency(args.id, args.depends_on)
        if args.json:
            emit_json({"item_id": args.id, "depends_on": args.depends_on, "removed": removed})
        elif removed:
            print(f"removed: {args.id} -> {args.depends_on}")
        else:
            print(f"no dependency: {args.id} -> {args.depends_on}")
        return

    if args.command == "deps":
        items.get(args.id)
        rows = items.edges_touching(args.id)
        if args.json:
            emit_json(rows)
            return
        print_rows(
            output_mode,
            headers=_EDGE_HEADERS,
            values=[_edge_columns(row) for row in rows],
            status_columns=(1, 3),
            title=f"Dependencies: {args.id}",
            empty="(no dependencies)",
        )
        return

    if args.command == "graph":
        rows = items.dependency_edges(_scope(args, config))
        if args.json:
            emit_json(rows)
            return
        print_rows(
            output_mode,
            headers=_EDGE_HEADERS,
            values=[_edge_columns(row) for row in rows],
            status_columns=(1, 3),
            title="Dependency graph",
            empty="(no dependencies)",
        )
        return

    if args.command == "label" and args.label_cmd == "add":
        _emit_item(args, items.add_label(args.id, args.label))
        return

    if args.command == "label" and args.label_cmd == "rm":
        _emit_item(args, items.remove_label(args.id, args.label))
        return

    if args.command == "status":
        report = tracker.project_status_report(_scope(args, config))
        if args.json:
            emit_json(report.to_dict())
        elif output_mode == "rich":
            _print_status_report_rich(report)
        else:
            _print_status_report(report)
        return

    if args.command == "projects":
        names = items.projects()
        if args.json:
            emit_json(names)
        elif not names:
            print("(no projects)")
        else:
            for name in names:
                print(name)
        return

    if args.command == "delete":
        if not args.yes:
            raise ValueError("refusing to delete without --yes")
        rows = [items.delete(item_id) for item_id in args.id]
        if args.json:
            emit_json(rows)
        else:
            for row in rows:
                print(f"deleted: {row['id']}")
        return

    if args.command == "learn":
        from .learn import run_learn

        run_learn(args, tracker, config, output_mode)
        return

    raise ValueError(f"unknown command: {args.command}")


def main(argv: list[str] | None = None) -> None:
    raw_argv = list(argv) if argv is not None else sys.argv[1:]
    if not raw_argv or raw_argv in (["-h"], ["--help"]):
        try:
            help_output_mode = resolve_output_mode(
                is_tty=getattr(sys.stdout, "isatty", lambda: False)(),
            )
        except ValueError as exc:
            eprint(f"error: {exc}")
            raise SystemExit(EXIT_CONFIG) from exc
        _print_help(help_output_mode)
        raise SystemExit(0)

    args = _build_parser().parse_args(raw_argv)

    try:
        config = load_config()
    except ConfigValidationError as exc:
        eprint(f"error: {exc}")
        raise SystemExit(EXIT_CONFIG) from exc

    setup_logging(
        logging.DEBUG if args.verbose else config.log_level,
        log_file=args.log_file,
    )
    logger.debug("database: %s", config.db_path)

    output_mode: OutputMode = "plain"
    if hasattr(args, "output"):
        try:
            output_mode = resolve_output_mode(args.output or config.output)
        except ValueError as exc:
            eprint(f"error: {exc}")
            raise SystemExit(EXIT_CONFIG) from exc

    tracker = Tracker.from_config(config)
    try:
        _run(args, tracker, config, output_mode)
    except InvariantViolation as exc:
        logger.error("invariant violation: %s", exc)
        eprint(f"internal error: {exc}")
        raise SystemExit(EXIT_INTERNAL) from exc
    except ValueError as exc:
        eprint(f"error: {exc}")
        raise SystemExit(EXIT_ERROR) from exc


if __name__ == "__main__":
    main()

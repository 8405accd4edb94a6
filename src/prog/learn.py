"""`prog learn`: record, search and export project learnings."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any

from .cli import print_rows
from .config import ProgConfig
from .model import IN_PROGRESS, LEARNING_STATUSES, TASK
from .pages import read_learning_page, render_learning_page
from .stores.items import ListFilter
from .tracker import Tracker
from .ui import OutputMode, add_output_mode_argument, make_console, render_markdown
from .util import emit_json, format_time, truncate

_LEARNING_HEADERS = ("ID", "STATUS", "CREATED", "SUMMARY", "CONCEPTS")
_CONCEPT_HEADERS = ("NAME", "LEARNINGS", "UPDATED", "SUMMARY")


def _learning_columns(row: dict[str, Any]) -> tuple[str, ...]:
    return (
        str(row["id"]),
        str(row["status"]),
        format_time(row.get("created_at")),
        truncate(row.get("summary"), 60),
        truncate(", ".join(row.get("concepts") or []), 32),
    )


def _concept_columns(row: dict[str, Any]) -> tuple[str, ...]:
    return (
        str(row["name"]),
        str(row["learning_count"]),
        format_time(row.get("last_updated")),
        truncate(row.get("summary"), 60),
    )


def add_learn_parser(sub: argparse._SubParsersAction) -> None:
    learn = sub.add_parser("learn", help="Project learnings")
    learn_sub = learn.add_subparsers(dest="learn_cmd", required=True, metavar="learn_cmd")

    add = learn_sub.add_parser("add", help="Record a learning")
    add.add_argument("summary", help="One-line summary")
    add.add_argument("-d", "--detail", default="", help="Longer explanation")
    add.add_argument("-c", "--concept", action="append", default=[], help="Concept (repeatable)")
    add.add_argument("-f", "--file", action="append", default=[], help="Related file (repeatable)")
    add.add_argument("--task", help="Task id (default: the in-progress task)")
    add.add_argument("--no-task", action="store_true", help="Do not link a task")
    add.add_argument("-p", "--project", help="Project (default from config)")
    add.add_argument("--json", action="store_true", help="Output JSON")

    ls = learn_sub.add_parser("list", help="List learnings")
    ls.add_argument("-p", "--project", help="Project (default from config)")
    ls.add_argument("--concept", help="Only learnings tagged with this concept")
    ls.add_argument("--status", choices=LEARNING_STATUSES, help="Filter by status")
    ls.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(ls)

    search = learn_sub.add_parser("search", help="Search learnings by text")
    search.add_argument("text", help="Text to look for")
    search.add_argument("-p", "--project", help="Project (default from config)")
    search.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(search)

    show = learn_sub.add_parser("show", help="Show one learning")
    show.add_argument("id", help="Learning id")
    show.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(show)

    status = learn_sub.add_parser("status", help="Set a learning's status")
    status.add_argument("id", help="Learning id")
    status.add_argument("value", choices=LEARNING_STATUSES, help="New status")
    status.add_argument("--json", action="store_true", help="Output JSON")

    export = learn_sub.add_parser("export", help="Write a learning as markdown")
    export.add_argument("id", help="Learning id")
    export.add_argument("-o", "--out", help="Output file (default: stdout)")

    imp = learn_sub.add_parser("import", help="Create a learning from a markdown page")
    imp.add_argument("path", help="Markdown file with YAML frontmatter")
    imp.add_argument("-p", "--project", help="Override the page's project")
    imp.add_argument("--json", action="store_true", help="Output JSON")

    concepts = learn_sub.add_parser("concepts", help="List concepts")
    concepts.add_argument("-p", "--project", help="Project (default from config)")
    concepts.add_argument("--recent", action="store_true", help="Most recently updated first")
    concepts.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(concepts)

    concept = learn_sub.add_parser("concept", help="Edit one concept")
    concept_sub = concept.add_subparsers(dest="concept_cmd", required=True, metavar="concept_cmd")
    summary = concept_sub.add_parser("summary", help="Set the concept summary")
    summary.add_argument("name", help="Concept name")
    summary.add_argument("text", help="Summary text")
    summary.add_argument("-p", "--project", help="Project (default from config)")
    rename = concept_sub.add_parser("rename", help="Rename a concept")
    rename.add_argument("name", help="Current name")
    rename.add_argument("new_name", help="New name")
    rename.add_argument("-p", "--project", help="Project (default from config)")


def _project(args: argparse.Namespace, config: ProgConfig) -> str:
    value = getattr(args, "project", None)
    return value if value is not None else config.default_project


def current_task_id(tracker: Tracker, project: str) -> str | None:
    """Most recently touched in-progress task of the project, if any."""
    rows = tracker.items.list(
        ListFilter(project=project or None, status=IN_PROGRESS, item_type=TASK)
    )
    if not rows:
        return None
    return str(max(rows, key=lambda row: int(row["updated_at"]))["id"])


def _print_learning(row: dict[str, Any], output_mode: OutputMode) -> None:
    if output_mode == "rich":
        render_markdown(make_console("rich"), render_learning_page(row))
        return
    print(f"{row['id']}  {row['status']}  {row['summary']}")
    print(f"project: {row['project'] or '-'}")
    print(f"task: {row.get('task_id') or '-'}")
    print(f"concepts: {', '.join(row['concepts']) or '-'}")
    if row["files"]:
        print(f"files: {', '.join(row['files'])}")
    print(f"created: {format_time(row['created_at'])}")
    if row["detail"]:
        print()
        print(row["detail"])


def run_learn(
    args: argparse.Namespace,
    tracker: Tracker,
    config: ProgConfig,
    output_mode: OutputMode,
) -> None:
    store = tracker.learnings
    project = _project(args, config)

    if args.learn_cmd == "add":
        task_id = None
        if args.task:
            task_id = str(tracker.items.get(args.task)["id"])
        elif not args.no_task:
            task_id = current_task_id(tracker, project)
        row = store.create(
            project,
            args.summary,
            detail=args.detail,
            task_id=task_id,
            files=list(args.file or []),
            concepts=list(args.concept or []),
        )
        if args.json:
            emit_json(row)
        else:
            print(row["id"])
        return

    if args.learn_cmd in {"list", "search"}:
        if args.learn_cmd == "list":
            rows = store.list(project, concept=args.concept, status=args.status)
        else:
            rows = store.search(project, args.text)
        if args.json:
            emit_json(rows)
            return
        print_rows(
            output_mode,
            headers=_LEARNING_HEADERS,
            values=[_learning_columns(row) for row in rows],
            title="Learnings",
            empty="(no learnings)",
        )
        return

    if args.learn_cmd == "show":
        row = store.get(args.id)
        if args.json:
            emit_json(row)
        else:
            _print_learning(row, output_mode)
        return

    if args.learn_cmd == "status":
        row = store.set_status(args.id, args.value)
        if args.json:
            emit_json(row)
        else:
            print(f"{row['id']}  {row['status']}")
        return

    if args.learn_cmd == "export":
        page = render_learning_page(store.get(args.id))
        if args.out:
            Path(args.out).write_text(page, encoding="utf-8")
            print(args.out)
        else:
            print(page, end="")
        return

    if args.learn_cmd == "import":
        fields = read_learning_page(args.path)
        row = store.create(
            args.project if args.project is not None else fields["project"],
            fields["summary"],
            detail=fields["detail"],
            task_id=fields["task_id"],
            files=fields["files"],
            concepts=fields["concepts"],
            status=fields["status"],
            learning_id=fields["id"],
        )
        if args.json:
            emit_json(row)
        else:
            print(row["id"])
        return

    if args.learn_cmd == "concepts":
        rows = store.concepts(project, sort_recent=args.recent)
        if args.json:
            emit_json(rows)
            return
        print_rows(
            output_mode,
            headers=_CONCEPT_HEADERS,
            values=[_concept_columns(row) for row in rows],
            title="Concepts",
            empty="(no concepts)",
        )
        return

    if args.learn_cmd == "concept" and args.concept_cmd == "summary":
        store.set_concept_summary(args.name, project, args.text)
        print(f"updated: {args.name}")
        return

    if args.learn_cmd == "concept" and args.concept_cmd == "rename":
        store.rename_concept(args.name, args.new_name, project)
        print(f"renamed: {args.name} -> {args.new_name}")
        return

    raise ValueError(f"unknown learn command: {args.learn_cmd}")

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Mapping, Sequence
from typing import Literal

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

OUTPUT_CHOICES = ("auto", "plain", "rich")
OUTPUT_ENV_VAR = "PROG_OUTPUT"
OutputMode = Literal["plain", "rich"]

STATUS_STYLES = {
    "open": "white",
    "in_progress": "yellow",
    "blocked": "red",
    "reviewing": "magenta",
    "done": "green",
    "canceled": "dim",
}

STATUS_ICONS = {
    "open": "[ ]",
    "in_progress": "[>]",
    "blocked": "[!]",
    "reviewing": "[?]",
    "done": "[x]",
    "canceled": "[-]",
}

HelpRows = Sequence[tuple[str, str]]


def add_output_mode_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--output",
        choices=OUTPUT_CHOICES,
        help=f"auto (default), plain or rich; overrides {OUTPUT_ENV_VAR}",
    )


def resolve_output_mode(
    requested: str | None = None,
    *,
    env: Mapping[str, str] | None = None,
    is_tty: bool | None = None,
) -> OutputMode:
    """Pick plain or rich output.

    The first non-empty choice wins: ``requested`` (``--output`` or the
    config file), then ``PROG_OUTPUT``. ``auto`` means rich on a terminal.
    """
    environ = os.environ if env is None else env
    choice = "auto"
    for source, raw in (("--output", requested), (OUTPUT_ENV_VAR, environ.get(OUTPUT_ENV_VAR))):
        value = (raw or "").strip().lower()
        if not value:
            continue
        if value not in OUTPUT_CHOICES:
            raise ValueError(
                f"invalid {source} value {raw!r}; expected one of: {', '.join(OUTPUT_CHOICES)}"
            )
        choice = value
        break

    if choice != "auto":
        return "rich" if choice == "rich" else "plain"
    if is_tty is None:
        isatty = getattr(sys.stdout, "isatty", None)
        try:
            is_tty = bool(isatty()) if callable(isatty) else False
        except (OSError, ValueError):
            is_tty = False
    return "rich" if is_tty else "plain"


def make_console(mode: OutputMode, *, stderr: bool = False) -> Console:
    return Console(
        file=sys.stderr if stderr else sys.stdout,
        force_terminal=mode == "rich",
        no_color=mode != "rich",
        highlight=False,
    )


def styled_status(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def _cell(value: object, *, status: bool = False) -> Text:
    text = str(value or "")
    # Item text is user input; never parse it as markup.
    return Text(text, style=STATUS_STYLES.get(text, "") if status else "")


def render_table(
    console: Console,
    *,
    headers: Sequence[str],
    rows: Sequence[Sequence[object]],
    title: str | None = None,
    no_wrap_columns: Sequence[int] = (),
    status_columns: Sequence[int] = (),
) -> None:
    table = Table(title=title)
    for idx, header in enumerate(headers):
        table.add_column(str(header), no_wrap=idx in no_wrap_columns)
    for row in rows:
        table.add_row(
            *(_cell(value, status=idx in status_columns) for idx, value in enumerate(row))
        )
    console.print(table)


def render_panel(
    console: Console,
    body: str,
    *,
    title: str | None = None,
    literal: bool = False,
) -> None:
    content = Text(body) if literal else body
    console.print(Panel(content, title=Text(title) if title else None))


def render_markdown(console: Console, body: str) -> None:
    console.print(Markdown(body))


def render_help(
    *,
    output_mode: OutputMode,
    command: str,
    summary: str,
    usage: Sequence[str],
    sections: Sequence[tuple[str, HelpRows]],
    examples: HelpRows = (),
) -> None:
    """Print top-level help: one block per command group, then examples."""
    groups = [(title, rows) for title, rows in (*sections, ("Examples", examples)) if rows]

    if output_mode == "plain":
        print(f"{command}  {summary}")
        print()
        print("Usage")
        for line in usage:
            print(f"  {line}")
        width = max(len(item) for _, rows in groups for item, _ in rows)
        for title, rows in groups:
            print()
            print(title)
            for item, description in rows:
                print(f"  {item.ljust(width)}  {description}".rstrip())
        return

    console = make_console("rich")
    console.print(Text(f"{command}  ", style="bold blue") + Text(summary))
    for line in usage:
        console.print(Text(f"  {line}"))
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(no_wrap=True, style="cyan")
    table.add_column()
    for title, rows in groups:
        table.add_section()
        table.add_row(Text(title, style="bold"), "")
        for item, description in rows:
            table.add_row(Text(f"  {item}"), Text(description))
    console.print(table)

from __future__ import annotations

import pytest

from prog.ui import (
    OUTPUT_ENV_VAR,
    make_console,
    render_help,
    render_table,
    resolve_output_mode,
    styled_status,
)


def test_resolve_output_mode_defaults_to_plain_without_tty() -> None:
    assert resolve_output_mode(env={}, is_tty=False) == "plain"


def test_resolve_output_mode_auto_uses_tty_for_rich() -> None:
    assert resolve_output_mode(env={}, is_tty=True) == "rich"


def test_resolve_output_mode_uses_env_when_flag_missing() -> None:
    assert resolve_output_mode(env={OUTPUT_ENV_VAR: "rich"}, is_tty=False) == "rich"


def test_resolve_output_mode_flag_overrides_env() -> None:
    mode = resolve_output_mode("plain", env={OUTPUT_ENV_VAR: "rich"}, is_tty=True)
    assert mode == "plain"


def test_resolve_output_mode_rejects_invalid_env_value() -> None:
    with pytest.raises(ValueError, match=OUTPUT_ENV_VAR):
        resolve_output_mode(env={OUTPUT_ENV_VAR: "invalid"}, is_tty=True)


def test_styled_status_wraps_known_and_unknown_values() -> None:
    assert styled_status("done") == "[green]done[/green]"
    assert styled_status("mystery") == "[white]mystery[/white]"


def test_plain_console_renders_table_without_ansi(capsys: pytest.CaptureFixture[str]) -> None:
    console = make_console("plain")
    render_table(console, headers=("ID", "Title"), rows=[("ts-000001", "Write docs")])

    out = capsys.readouterr().out
    assert "ts-000001" in out
    assert "Write docs" in out
    assert "\x1b[" not in out


def test_table_cells_are_literal_text(capsys: pytest.CaptureFixture[str]) -> None:
    console = make_console("plain")
    render_table(
        console,
        headers=("ID", "STATUS", "TITLE"),
        rows=[("ts-000001", "done", "Fix [/bold] parsing")],
        status_columns=(1,),
    )

    out = capsys.readouterr().out
    assert "Fix [/bold] parsing" in out
    assert "done" in out


def _help_kwargs() -> dict:
    return {
        "command": "prog",
        "summary": "local task tracker",
        "usage": ("prog <command>",),
        "sections": (
            ("Items", (("add <title>", "create a task"),)),
            ("Empty", ()),
        ),
        "examples": (("prog ready", "next work"),),
    }


def test_plain_help_aligns_groups(capsys: pytest.CaptureFixture[str]) -> None:
    render_help(output_mode="plain", **_help_kwargs())

    out = capsys.readouterr().out
    assert out.startswith("prog  local task tracker\n\nUsage\n  prog <command>\n")
    assert "\nItems\n  add <title>  create a task\n" in out
    assert "\nExamples\n  prog ready   next work\n" in out
    assert "Empty" not in out


def test_rich_help_lists_every_group(capsys: pytest.CaptureFixture[str]) -> None:
    render_help(output_mode="rich", **_help_kwargs())

    out = capsys.readouterr().out
    assert "Items" in out
    assert "add <title>" in out
    assert "Examples" in out
    assert "Empty" not in out

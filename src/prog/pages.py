"""Learning pages: markdown with YAML frontmatter."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml

_META_KEYS = ("id", "project", "task_id", "status", "concepts", "files")

# Delimiters must sit on their own lines.
_FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)


def _split_frontmatter(text: str) -> tuple[dict, str]:
    """Split optional YAML frontmatter from markdown body."""
    match = _FRONTMATTER_RE.match(text)
    if match is None:
        if text.startswith("---\n"):
            raise ValueError("invalid frontmatter: no closing '---' line")
        return {}, text
    try:
        meta = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"invalid frontmatter: {exc}") from exc
    if not isinstance(meta, dict):
        raise ValueError("frontmatter must be a mapping")
    return meta, text[match.end():].lstrip("\n")


def _first_non_empty_line(text: str) -> str:
    for line in text.splitlines():
        stripped = line.strip()
        if stripped:
            return stripped
    return ""


def _string_list(value: Any, *, key: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if not isinstance(value, list):
        raise ValueError(f"frontmatter {key} must be a list")
    return [str(part).strip() for part in value if str(part).strip()]


def render_learning_page(learning: dict[str, Any]) -> str:
    meta = {
        key: learning.get(key)
        for key in _META_KEYS
        if learning.get(key) not in (None, "", [])
    }
    header = yaml.safe_dump(meta, sort_keys=False, default_flow_style=False)
    body = f"# {learning['summary']}\n"
    detail = str(learning.get("detail") or "").strip()
    if detail:
        body += f"\n{detail}\n"
    return f"---\n{header}---\n\n{body}"


def parse_learning_page(text: str) -> dict[str, Any]:
    """Parse a learning page back into create() keyword fields.

    The summary comes from the first heading of the body; everything after
    it is the detail.
    """
    meta, body = _split_frontmatter(text)
    first = _first_non_empty_line(body)
    if not first:
        raise ValueError("learning page has no summary")

    lines = body.strip().splitlines()
    summary = first.lstrip("#").strip()
    detail = "\n".join(lines[1:]).strip()

    task_id = meta.get("task_id")
    return {
        "id": str(meta["id"]).strip() if meta.get("id") else None,
        "project": str(meta.get("project") or "").strip(),
        "task_id": str(task_id).strip() if task_id else None,
        "status": str(meta.get("status") or "active").strip(),
        "summary": summary,
        "detail": detail,
        "concepts": _string_list(meta.get("concepts"), key="concepts"),
        "files": _string_list(meta.get("files"), key="files"),
    }


def read_learning_page(path: str | Path) -> dict[str, Any]:
    return parse_learning_page(Path(path).read_text())

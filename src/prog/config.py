from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import tomllib

from .model import DEFAULT_PRIORITY, MAX_PRIORITY, MIN_PRIORITY
from .stores.state import DB_FILENAME, resolve_state_dir

CONFIG_FILENAME = "config.toml"
DB_ENV_VAR = "PROG_DB"
PROJECT_ENV_VAR = "PROG_PROJECT"
OUTPUT_ENV_VAR = "PROG_OUTPUT"
LOG_LEVEL_ENV_VAR = "PROG_LOG_LEVEL"

_OUTPUT_MODES = ("auto", "plain", "rich")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class ProgConfig:
    state_dir: Path
    db_path: Path
    default_project: str = ""
    default_priority: int = DEFAULT_PRIORITY
    output: str = "auto"
    log_level: str = "WARNING"
    path: Path | None = None


class ConfigValidationError(ValueError):
    pass


def _as_str(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    if not stripped:
        return None
    return stripped


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigValidationError(f"[{name}] must be a table")
    return value


def _string_field(table: dict[str, Any], key: str, *, field: str) -> str | None:
    if key not in table:
        return None
    value = _as_str(table[key])
    if value is None:
        raise ConfigValidationError(f"{field} must be a non-empty string")
    return value


def _parse_output(value: str, *, field: str) -> str:
    mode = value.strip().lower()
    if mode not in _OUTPUT_MODES:
        raise ConfigValidationError(
            f"{field} must be one of: {', '.join(_OUTPUT_MODES)} (got {value!r})"
        )
    return mode


def _parse_log_level(value: str, *, field: str) -> str:
    level = value.strip().upper()
    if level not in _LOG_LEVELS:
        raise ConfigValidationError(
            f"{field} must be one of: {', '.join(_LOG_LEVELS)} (got {value!r})"
        )
    return level


def _parse_priority(value: object) -> int:
    field = "[defaults].priority"
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigValidationError(f"{field} must be an integer")
    if value < MIN_PRIORITY or value > MAX_PRIORITY:
        raise ConfigValidationError(
            f"{field} must be between {MIN_PRIORITY} and {MAX_PRIORITY}"
        )
    return value


def _read_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigValidationError(f"invalid TOML in {path}: {exc}") from exc


def load_config(
    env: Mapping[str, str] | None = None,
    cwd: Path | None = None,
) -> ProgConfig:
    """Resolve settings from the environment, then config.toml, then defaults."""
    environ = os.environ if env is None else env
    state_dir = resolve_state_dir(cwd, env=environ)
    path = state_dir / CONFIG_FILENAME
    raw = _read_file(path)

    try:
        store = _section(raw, "store")
        defaults = _section(raw, "defaults")
        ui = _section(raw, "ui")
        logging_table = _section(raw, "logging")

        db_raw = _as_str(environ.get(DB_ENV_VAR)) or _string_field(
            store, "path", field="[store].path"
        )
        if db_raw:
            db_path = Path(db_raw).expanduser()
            if not db_path.is_absolute():
                db_path = state_dir / db_path
        else:
            db_path = state_dir / DB_FILENAME

        project = _as_str(environ.get(PROJECT_ENV_VAR))
        if project is None:
            project = _string_field(defaults, "project", field="[defaults].project") or ""

        priority = DEFAULT_PRIORITY
        if "priority" in defaults:
            priority = _parse_priority(defaults["priority"])

        output_env = _as_str(environ.get(OUTPUT_ENV_VAR))
        if output_env is not None:
            output = _parse_output(output_env, field=OUTPUT_ENV_VAR)
        else:
            output = _parse_output(
                _string_field(ui, "output", field="[ui].output") or "auto",
                field="[ui].output",
            )

        level_env = _as_str(environ.get(LOG_LEVEL_ENV_VAR))
        if level_env is not None:
            log_level = _parse_log_level(level_env, field=LOG_LEVEL_ENV_VAR)
        else:
            log_level = _parse_log_level(
                _string_field(logging_table, "level", field="[logging].level")
                or "WARNING",
                field="[logging].level",
            )
    except ConfigValidationError as exc:
        if path.exists():
            raise ConfigValidationError(f"{path}: {exc}") from exc
        raise

    logging.getLogger(__name__).debug("loaded config from %s", path)
    return ProgConfig(
        state_dir=state_dir,
        db_path=db_path,
        default_project=project,
        default_priority=priority,
        output=output,
        log_level=log_level,
        path=path if path.exists() else None,
    )

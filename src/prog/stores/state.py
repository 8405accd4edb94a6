from __future__ import annotations

import os
import time
from collections.abc import Mapping
from pathlib import Path

STATE_DIR_ENV_VAR = "PROG_STATE_DIR"
STATE_DIR_NAME = ".prog"
DB_FILENAME = "prog.db"


def now_ms() -> int:
    return int(time.time() * 1000)


def resolve_state_dir(
    cwd: Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
    create: bool = True,
) -> Path:
    """Return the prog state directory, creating it if needed.

    Resolution order:
    1. PROG_STATE_DIR
    2. nearest existing .prog directory from cwd upward
    3. ~/.prog
    """
    environ = os.environ if env is None else env
    raw = environ.get(STATE_DIR_ENV_VAR, "").strip()
    if raw:
        state_dir = Path(raw).expanduser().resolve()
    else:
        start = (cwd or Path.cwd()).resolve()
        state_dir = Path.home() / STATE_DIR_NAME
        for base in (start, *start.parents):
            candidate = base / STATE_DIR_NAME
            if candidate.exists() and candidate.is_dir():
                state_dir = candidate
                break

    if create:
        state_dir.mkdir(parents=True, exist_ok=True)
    return state_dir

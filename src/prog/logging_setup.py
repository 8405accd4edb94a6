from __future__ import annotations

import logging
import sys
from pathlib import Path


class _ConsoleNoiseFilter(logging.Filter):
    """Pass prog records; other libraries only at ERROR and above."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == "prog" or record.name.startswith("prog."):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    level: int | str = logging.WARNING,
    *,
    log_file: str | Path | None = None,
    file_level: int = logging.DEBUG,
) -> None:
    """Configure root logging: a filtered stderr handler plus an optional file.

    Calling it again replaces the handlers installed earlier.
    """
    console_level = logging.getLevelName(level) if isinstance(level, str) else level
    if not isinstance(console_level, int):
        raise ValueError(f"unknown log level: {level}")

    root = logging.getLogger()
    root.setLevel(logging.DEBUG if log_file else console_level)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(path), encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(fmt)
        root.addHandler(fh)

    logging.captureWarnings(True)

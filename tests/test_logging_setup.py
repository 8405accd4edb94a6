from __future__ import annotations

import logging
from pathlib import Path

import pytest

from prog.logging_setup import setup_logging


def _installed() -> list[logging.Handler]:
    return [
        h
        for h in logging.getLogger().handlers
        if type(h) in (logging.StreamHandler, logging.FileHandler)
    ]


def test_console_filter_hides_library_noise(capsys: pytest.CaptureFixture[str]) -> None:
    setup_logging("INFO")

    logging.getLogger("prog.stores.items").info("created ts-000001")
    logging.getLogger("urllib3").warning("retrying")
    logging.getLogger("urllib3").error("gave up")

    err = capsys.readouterr().err
    assert "INFO prog.stores.items: created ts-000001" in err
    assert "retrying" not in err
    assert "gave up" in err


def test_repeated_setup_replaces_handlers(tmp_path: Path) -> None:
    setup_logging()
    setup_logging(logging.DEBUG, log_file=tmp_path / "logs" / "prog.log")

    handlers = _installed()
    assert [type(h) for h in handlers] == [logging.StreamHandler, logging.FileHandler]

    logging.getLogger("prog.tracker").debug("to the file")
    for handler in handlers:
        handler.flush()
    assert "to the file" in (tmp_path / "logs" / "prog.log").read_text(encoding="utf-8")


def test_unknown_level_is_rejected() -> None:
    with pytest.raises(ValueError, match="unknown log level"):
        setup_logging("loud")

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from prog.stores.items import ItemStore
from prog.stores.learnings import LearningStore
from prog.tracker import Tracker


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PROG_STATE_DIR", str(tmp_path / "state"))
    for name in ("PROG_DB", "PROG_PROJECT", "PROG_OUTPUT", "PROG_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        # Handlers installed by prog.logging_setup; pytest uses subclasses.
        if type(handler) in (logging.StreamHandler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()
    logging.captureWarnings(False)


@pytest.fixture
def store(tmp_path: Path) -> ItemStore:
    return ItemStore(tmp_path / "prog.db")


@pytest.fixture
def tracker(store: ItemStore) -> Tracker:
    return Tracker(items=store, learnings=LearningStore(store.db_path))

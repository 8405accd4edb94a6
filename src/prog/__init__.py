from __future__ import annotations

from typing import TYPE_CHECKING

__all__ = [
    "__version__",
    "ItemStore",
    "LearningStore",
    "StatusReport",
    "Tracker",
]

__version__ = "0.1.0"

if TYPE_CHECKING:
    from .stores import ItemStore, LearningStore
    from .tracker import StatusReport, Tracker


def __getattr__(name: str):
    if name in {"ItemStore", "LearningStore"}:
        from .stores import ItemStore, LearningStore

        return {"ItemStore": ItemStore, "LearningStore": LearningStore}[name]
    if name in {"StatusReport", "Tracker"}:
        from .tracker import StatusReport, Tracker

        return {"StatusReport": StatusReport, "Tracker": Tracker}[name]
    raise AttributeError(f"module 'prog' has no attribute {name!r}")

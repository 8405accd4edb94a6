from __future__ import annotations

from .items import DEP_UNRESOLVED_SQL, ItemStore, ListFilter
from .learnings import LearningStore
from .state import now_ms, resolve_state_dir

__all__ = [
    "DEP_UNRESOLVED_SQL",
    "ItemStore",
    "LearningStore",
    "ListFilter",
    "now_ms",
    "resolve_state_dir",
]

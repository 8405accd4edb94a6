from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from typing import Any


def _to_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            return None
    return None


def iso_from_epoch_ms(value: object) -> str | None:
    ms = _to_int(value)
    if ms is None:
        return None
    try:
        dt = datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def with_iso_timestamps(payload: Any) -> Any:
    if isinstance(payload, dict):
        out: dict[str, Any] = {}
        for key, value in payload.items():
            out[key] = with_iso_timestamps(value)
            if key.endswith("_at") or key == "last_updated":
                iso = iso_from_epoch_ms(value)
                if iso:
                    out[f"{key}_iso"] = iso
        return out
    if isinstance(payload, list):
        return [with_iso_timestamps(item) for item in payload]
    return payload


def emit_json(payload: Any) -> None:
    print(json.dumps(with_iso_timestamps(payload), ensure_ascii=False, indent=2))


def format_time(value: object) -> str:
    return iso_from_epoch_ms(value) or "-"


def truncate(value: object, limit: int) -> str:
    text = str(value or "").strip()
    if len(text) <= limit:
        return text
    if limit <= 3:
        return text[:limit]
    return text[: limit - 3] + "..."


def eprint(*parts: object) -> None:
    print(*parts, file=sys.stderr)

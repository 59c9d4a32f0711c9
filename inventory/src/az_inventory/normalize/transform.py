from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Sequence

from .schema import NOT_AVAILABLE


def yes_no(value: Any) -> str:
    """
    Render a boolean-ish flag as Yes/No. az prints booleans as JSON true/false,
    older exports carry them as strings.
    """
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, str):
        return "Yes" if value.strip().lower() in {"true", "yes", "1", "enabled"} else "No"
    raise ValueError(f"Not a flag: {value!r}")


def as_count(value: Any) -> int:
    """
    Instance counts come back as strings from autoscale settings and as
    integers from plans.
    """
    if isinstance(value, bool):
        raise ValueError("Boolean is not a count")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip():
        return int(value.strip())
    raise ValueError(f"Not a count: {value!r}")


def canonicalize_row(row: Mapping[str, Any], columns: Sequence[str]) -> Dict[str, Any]:
    """
    Return a copy of row with the given columns first, in order.
    Keys not in columns are appended in sorted order.
    """
    out: Dict[str, Any] = {}
    for k in columns:
        if k in row:
            out[k] = row[k]
    for k in sorted(k for k in row.keys() if k not in out):
        out[k] = row[k]
    return out


def stable_json_dumps(obj: Any, *, sort_keys: bool = True) -> str:
    """
    Dump JSON with fixed separators so output is byte-stable across runs.
    """
    return json.dumps(obj, sort_keys=sort_keys, separators=(",", ":"), ensure_ascii=False)


def render_cell(value: Any, sentinel: str = NOT_AVAILABLE) -> str:
    if value is None:
        return sentinel
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return stable_json_dumps(value)
    text = str(value)
    return text if text.strip() else sentinel


from __future__ import annotations

from pathlib import Path
from typing import Iterable, Sequence

from ..normalize.schema import FlatRow
from ..normalize.transform import canonicalize_row, stable_json_dumps


def write_jsonl(rows: Iterable[FlatRow], columns: Sequence[str], path: Path) -> int:
    """
    Write one JSON object per row. Keys follow the report's column order and
    line order follows row order. Values are written as resolved (numbers stay numbers).
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    count = 0
    with path.open("w", encoding="utf-8") as f:
        for row in rows:
            f.write(stable_json_dumps(canonicalize_row(row, columns), sort_keys=False))
            f.write("\n")
            count += 1
    return count

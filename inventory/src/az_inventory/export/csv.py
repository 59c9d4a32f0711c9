from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable, Sequence

from ..normalize.schema import NOT_AVAILABLE, FlatRow
from ..normalize.transform import render_cell
from ..util.errors import ExportError


def write_csv(
    rows: Iterable[FlatRow],
    columns: Sequence[str],
    path: Path,
    *,
    delimiter: str = ",",
    sentinel: str = NOT_AVAILABLE,
) -> int:
    """
    Write report rows as delimited text with a header row. Rows keep the order
    they are given in; missing or empty cells are written as the sentinel.
    Returns the number of data rows written.
    """
    if len(delimiter) != 1:
        raise ExportError(f"CSV delimiter must be a single character, got {delimiter!r}")
    path.parent.mkdir(parents=True, exist_ok=True)

    count = 0
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f, delimiter=delimiter)
        writer.writerow(list(columns))
        for row in rows:
            writer.writerow([render_cell(row.get(c), sentinel) for c in columns])
            count += 1
    return count

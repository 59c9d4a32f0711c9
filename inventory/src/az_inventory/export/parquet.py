from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Sequence

from ..logging import get_logger
from ..normalize.schema import NOT_AVAILABLE, FlatRow
from ..normalize.transform import render_cell

LOG = get_logger(__name__)


class ParquetNotAvailable(RuntimeError):
    pass


def _require_pyarrow():
    try:
        import pyarrow as pa  # type: ignore
        import pyarrow.parquet as pq  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ParquetNotAvailable(
            "pyarrow is required for Parquet export. Install with: pip install .[parquet]"
        ) from e
    return pa, pq


def _string_columns(
    rows: Iterable[FlatRow],
    columns: Sequence[str],
    sentinel: str,
) -> Dict[str, List[str]]:
    # Cells mix numbers and sentinels, so every column is written as text.
    data: Dict[str, List[str]] = {c: [] for c in columns}
    for row in rows:
        for c in columns:
            data[c].append(render_cell(row.get(c), sentinel))
    return data


def write_parquet(
    rows: Iterable[FlatRow],
    columns: Sequence[str],
    path: Path,
    *,
    sentinel: str = NOT_AVAILABLE,
) -> int:
    """
    Write report rows to a Parquet file with one string column per report column.
    Returns the number of rows written.
    """
    pa, pq = _require_pyarrow()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = _string_columns(rows, columns, sentinel)
    schema = pa.schema([pa.field(c, pa.string(), nullable=False) for c in columns])
    table = pa.Table.from_pydict(data, schema=schema)
    pq.write_table(table, path)
    LOG.debug(
        "Parquet written",
        extra={"step": "export", "phase": "complete", "artifact": "parquet", "rows": table.num_rows},
    )
    return table.num_rows

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from ..logging import get_logger
from .schema import (
    DEFAULT_ASSOCIATION,
    PRIMARY,
    AssociationIndex,
    ColumnSpec,
    FieldMap,
    FlatRow,
    InventoryRecord,
)

LOG = get_logger(__name__)

PathToken = Union[str, int]

_PATH_TOKEN = re.compile(r"([^.\[\]]+)|\[(-?\d+)\]")
_MISSING = object()


def _require_sequence(name: str, value: Any) -> None:
    if isinstance(value, (str, bytes, bytearray, Mapping)) or not isinstance(value, Sequence):
        raise TypeError(f"{name} must be a sequence of records, got {type(value).__name__}")


def parse_path(path: str) -> Tuple[PathToken, ...]:
    """
    Split "profiles[0].capacity.minimum" into ("profiles", 0, "capacity", "minimum").
    """
    tokens: List[PathToken] = []
    for m in _PATH_TOKEN.finditer(path):
        name, index = m.group(1), m.group(2)
        if index is not None:
            tokens.append(int(index))
        elif name:
            tokens.append(name)
    return tuple(tokens)


def _walk(value: Any, tokens: Sequence[PathToken]) -> Any:
    current = value
    for tok in tokens:
        if isinstance(tok, int):
            if isinstance(current, (str, bytes)) or not isinstance(current, Sequence):
                return _MISSING
            try:
                current = current[tok]
            except IndexError:
                return _MISSING
        else:
            if not isinstance(current, Mapping) or tok not in current:
                return _MISSING
            current = current[tok]
        if current is None:
            return _MISSING
    return current


def resolve_path(record: Any, path: str, default: Any = None) -> Any:
    """
    Optional-field accessor: follow path into record and return default when any
    step is absent, null, or of the wrong shape.
    """
    found = _walk(record, parse_path(path))
    return default if found is _MISSING else found


def extract_parent_id(
    value: Any,
    pattern: Union[str, re.Pattern[str]],
    *,
    fold_case: bool = False,
) -> Optional[str]:
    """
    Extract a parent identifier from an identifier-bearing string.

    Returns the first capture group when the pattern defines one, else the whole
    match. Non-strings, non-matches and empty captures return None. With
    fold_case the identifier is lowercased, so ARM ids that differ only in the
    casing of their segments compare equal.
    """
    if not isinstance(value, str):
        return None
    rx = re.compile(pattern) if isinstance(pattern, str) else pattern
    m = rx.search(value)
    if m is None:
        return None
    extracted = m.group(1) if rx.groups else m.group(0)
    if not extracted:
        return None
    return extracted.lower() if fold_case else extracted


def build_association_index(
    secondary_records: Sequence[InventoryRecord],
    parent_id_pattern: Union[str, re.Pattern[str]],
    parent_id_field: str,
    *,
    fold_case: bool = False,
) -> AssociationIndex:
    """
    Bucket secondary records by the parent identifier extracted from parent_id_field.
    Records whose field is absent or does not match are left out of the index.
    """
    _require_sequence("secondary_records", secondary_records)
    rx = re.compile(parent_id_pattern) if isinstance(parent_id_pattern, str) else parent_id_pattern

    index: AssociationIndex = {}
    skipped = 0
    for rec in secondary_records:
        parent = extract_parent_id(resolve_path(rec, parent_id_field), rx, fold_case=fold_case)
        if parent is None:
            skipped += 1
            continue
        index.setdefault(parent, []).append(rec)

    if skipped:
        LOG.debug(
            "Secondary records without a resolvable parent were not indexed",
            extra={"step": "index", "phase": "skip", "field": parent_id_field, "skipped": skipped},
        )
    return index


def primary_key(record: InventoryRecord, field_map: FieldMap) -> Optional[str]:
    value = resolve_path(record, field_map.key_field)
    if field_map.key_pattern:
        return extract_parent_id(value, field_map.key_pattern, fold_case=field_map.fold_case)
    if isinstance(value, str) and value:
        return value.lower() if field_map.fold_case else value
    return None


def _column_value(column: ColumnSpec, tokens: Tuple[PathToken, ...], source: Any) -> Any:
    if source is None:
        return column.default
    found = _walk(source, tokens)
    if found is _MISSING:
        return column.default
    if column.transform is None:
        return found
    try:
        return column.transform(found)
    except (TypeError, ValueError):
        return column.default


def flatten_joined(
    primary_records: Sequence[InventoryRecord],
    indexes: Mapping[str, AssociationIndex],
    field_map: FieldMap,
) -> List[FlatRow]:
    """
    Emit one row per primary record, in input order.

    Secondary columns read from the first record of their association's bucket;
    later records for the same parent are ignored. An association missing from
    indexes behaves like an empty index.
    """
    _require_sequence("primary_records", primary_records)
    compiled = [(c, parse_path(c.path)) for c in field_map.columns]
    wanted = field_map.associations

    rows: List[FlatRow] = []
    unmatched: Dict[str, int] = {name: 0 for name in wanted}
    for rec in primary_records:
        key = primary_key(rec, field_map)
        firsts: Dict[str, Any] = {}
        for name in wanted:
            bucket = indexes.get(name, {}).get(key) if key is not None else None
            firsts[name] = bucket[0] if bucket else None
            if not bucket:
                unmatched[name] += 1

        row: FlatRow = {}
        for column, tokens in compiled:
            source = rec if column.source == PRIMARY else firsts[column.association]
            row[column.name] = _column_value(column, tokens, source)
        rows.append(row)

    for name, count in unmatched.items():
        if count:
            LOG.info(
                "Primary records without an associated record; defaults used",
                extra={"step": "flatten", "phase": "unmatched", "association": name, "count": count},
            )
    return rows


def flatten(
    primary_records: Sequence[InventoryRecord],
    index: AssociationIndex,
    field_map: FieldMap,
) -> List[FlatRow]:
    """
    Single-association form of flatten_joined. Secondary columns of field_map
    are read from index regardless of their association name.
    """
    names = field_map.associations or [DEFAULT_ASSOCIATION]
    return flatten_joined(primary_records, {name: index for name in names}, field_map)

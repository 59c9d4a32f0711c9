from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ..logging import get_logger
from ..normalize.flatten import build_association_index, flatten_joined, primary_key
from ..normalize.schema import NOT_AVAILABLE, AssociationIndex, Association, FieldMap, FlatRow

LOG = get_logger(__name__)

FieldMapFactory = Callable[[str], FieldMap]


@dataclass(frozen=True)
class ReportDefinition:
    """
    A named report: the primary listing, the secondary listings joined onto
    it, and the field map (built for a given sentinel) used to flatten them.
    """

    name: str
    description: str
    primary: str
    associations: Tuple[Association, ...]
    field_map: FieldMapFactory

    @property
    def listings(self) -> List[str]:
        out = [self.primary]
        for assoc in self.associations:
            if assoc.listing not in out:
                out.append(assoc.listing)
        return out

    def columns(self, sentinel: str = NOT_AVAILABLE) -> List[str]:
        return self.field_map(sentinel).column_names


def build_indexes(
    definition: ReportDefinition,
    listings: Mapping[str, Sequence[Mapping[str, Any]]],
) -> Dict[str, AssociationIndex]:
    indexes: Dict[str, AssociationIndex] = {}
    for assoc in definition.associations:
        indexes[assoc.name] = build_association_index(
            listings.get(assoc.listing, []),
            assoc.parent_id_pattern,
            assoc.parent_id_field,
            fold_case=assoc.fold_case,
        )
    return indexes


def match_counts(
    definition: ReportDefinition,
    listings: Mapping[str, Sequence[Mapping[str, Any]]],
    indexes: Mapping[str, AssociationIndex],
) -> Dict[str, int]:
    """
    Per association, how many primary records found an associated record.
    """
    field_map = definition.field_map(NOT_AVAILABLE)
    counts = {assoc.name: 0 for assoc in definition.associations}
    for rec in listings.get(definition.primary, []):
        key = primary_key(rec, field_map)
        if key is None:
            continue
        for name in counts:
            if indexes.get(name, {}).get(key):
                counts[name] += 1
    return counts


def build_report(
    definition: ReportDefinition,
    listings: Mapping[str, Sequence[Mapping[str, Any]]],
    *,
    sentinel: str = NOT_AVAILABLE,
    indexes: Optional[Mapping[str, AssociationIndex]] = None,
) -> List[FlatRow]:
    """
    Flatten one report from already-fetched listings. No I/O.
    """
    if indexes is None:
        indexes = build_indexes(definition, listings)
    rows = flatten_joined(listings.get(definition.primary, []), indexes, definition.field_map(sentinel))
    LOG.debug(
        "Report flattened",
        extra={"step": "flatten", "phase": "complete", "report": definition.name, "rows": len(rows)},
    )
    return rows

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

# One cloud resource as printed by an az listing call. No fixed schema.
InventoryRecord = Mapping[str, Any]
# Parent resource identifier -> secondary records that point at it, in input order.
AssociationIndex = Dict[str, List[InventoryRecord]]
# One output row: column name -> scalar, ordered like the FieldMap columns.
FlatRow = Dict[str, Any]

PRIMARY = "primary"
SECONDARY = "secondary"
COLUMN_SOURCES = (PRIMARY, SECONDARY)

DEFAULT_ASSOCIATION = "default"

NOT_AVAILABLE = "N/A"

# Segment following "/serverfarms/" in an ARM resource id: the plan name only,
# which is unique within a resource group but not across a subscription.
SERVER_FARM_PATTERN = r"(?i)/serverfarms/([^/]+)"

# Full ARM id of an App Service plan. ARM is not consistent about the casing of
# the resourceGroups, provider and type segments, so keys built from it are
# case-folded.
PLAN_ID_PATTERN = (
    r"(?i)(/subscriptions/[^/]+/resourceGroups/[^/]+/providers/Microsoft\.Web/serverfarms/[^/]+)"
)


@dataclass(frozen=True)
class ColumnSpec:
    """
    One output column.

    path is a dotted path with optional list indexes, e.g. "sku.name" or
    "profiles[0].capacity.minimum". source selects whether the path is read from
    the primary record or from the first associated record of `association`.
    transform, if set, is applied to a resolved value only; defaults are emitted as-is.
    """

    name: str
    path: str
    source: str = PRIMARY
    default: Any = NOT_AVAILABLE
    transform: Optional[Callable[[Any], Any]] = None
    association: str = DEFAULT_ASSOCIATION

    def __post_init__(self) -> None:
        if self.source not in COLUMN_SOURCES:
            raise ValueError(f"Column '{self.name}' has unknown source '{self.source}'")
        if not self.path:
            raise ValueError(f"Column '{self.name}' must declare a path")


@dataclass(frozen=True)
class FieldMap:
    """
    Ordered output columns plus how to resolve a primary record's own identifier.

    key_field names the primary field holding the identifier. When key_pattern is
    set, the identifier is extracted from that field the same way association
    indexes extract parent identifiers; otherwise the value is used verbatim.
    fold_case lowercases the identifier, and must agree with the fold_case of
    the indexes it is looked up in.
    """

    columns: Tuple[ColumnSpec, ...]
    key_field: str = "id"
    key_pattern: Optional[str] = None
    fold_case: bool = False

    def __post_init__(self) -> None:
        names = [c.name for c in self.columns]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"Duplicate column names in field map: {', '.join(dupes)}")

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    @property
    def associations(self) -> List[str]:
        seen: List[str] = []
        for c in self.columns:
            if c.source == SECONDARY and c.association not in seen:
                seen.append(c.association)
        return seen


@dataclass(frozen=True)
class Association:
    """
    How to index one secondary listing: which listing, which field carries the
    parent identifier, and the pattern that extracts it.
    """

    name: str
    listing: str
    parent_id_field: str
    parent_id_pattern: str = PLAN_ID_PATTERN
    fold_case: bool = True


@dataclass(frozen=True)
class OutputPaths:
    root: Path
    reports_dir: Path
    raw_dir: Path
    logs_dir: Path
    run_summary_json: Path
    debug_log: Path

    def report_path(self, report: str, suffix: str) -> Path:
        return self.reports_dir / f"{report}.{suffix}"


def resolve_output_paths(outdir: Path) -> OutputPaths:
    root = outdir
    logs_dir = root / "logs"
    return OutputPaths(
        root=root,
        reports_dir=root / "reports",
        raw_dir=root / "raw",
        logs_dir=logs_dir,
        run_summary_json=root / "run_summary.json",
        debug_log=logs_dir / "debug.log",
    )

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Protocol, runtime_checkable

from ..logging import get_logger
from ..normalize.transform import stable_json_dumps
from ..util.errors import ConfigError, ExportError
from ..util.serialization import sanitize_for_json
from .listings import LISTERS
from .subscriptions import AzContext

LOG = get_logger(__name__)


@runtime_checkable
class InventorySource(Protocol):
    """
    Supplies raw listings by name (see listings.LISTERS).
    Implementations return fresh lists; callers may not rely on caching.
    """

    def fetch(self, listing: str) -> List[Dict[str, Any]]:
        ...


class AzCliSource:
    def __init__(self, ctx: AzContext) -> None:
        self.ctx = ctx

    def fetch(self, listing: str) -> List[Dict[str, Any]]:
        lister = LISTERS.get(listing)
        if lister is None:
            raise ConfigError(f"Unknown listing: {listing}")
        return lister(self.ctx)


class JsonDirSource:
    """
    Reads <root>/<listing>.json files holding what az printed for that listing.
    A missing file is an empty listing.
    """

    def __init__(self, root: Path) -> None:
        if not root.is_dir():
            raise ConfigError(f"Input directory not found: {root}")
        self.root = root

    def path_for(self, listing: str) -> Path:
        return self.root / f"{listing}.json"

    def fetch(self, listing: str) -> List[Dict[str, Any]]:
        if listing not in LISTERS:
            raise ConfigError(f"Unknown listing: {listing}")
        path = self.path_for(listing)
        if not path.exists():
            LOG.warning(
                "Listing file missing; treating as empty",
                extra={"step": "list", "phase": "warning", "listing": listing, "path": str(path)},
            )
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Failed to read listing {path}: {e}") from e
        if not isinstance(data, list):
            raise ConfigError(f"Listing {path} must hold a JSON array")
        return [dict(r) for r in data if isinstance(r, Mapping)]


def write_raw_listing(root: Path, listing: str, records: List[Dict[str, Any]]) -> Path:
    """
    Write a listing in the layout JsonDirSource reads, with secret-looking keys redacted.
    """
    path = root / f"{listing}.json"
    try:
        root.mkdir(parents=True, exist_ok=True)
        path.write_text(stable_json_dumps(sanitize_for_json(records)) + "\n", encoding="utf-8")
    except OSError as e:
        raise ExportError(f"Failed to write raw listing {path}: {e}") from e
    return path

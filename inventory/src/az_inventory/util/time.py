from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

RUN_DIR_FORMAT = "%Y%m%dT%H%M%SZ"


def utc_now_iso(now: Optional[datetime] = None) -> str:
    """
    ISO-8601 UTC timestamp with seconds precision, used for collectedAt stamps.
    """
    return (now or datetime.now(timezone.utc)).isoformat(timespec="seconds")


def run_dir_name(now: Optional[datetime] = None) -> str:
    """
    Directory name for one report run, e.g. 20250101T120000Z.
    """
    return (now or datetime.now(timezone.utc)).strftime(RUN_DIR_FORMAT)

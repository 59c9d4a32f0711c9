from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

# Attributes every LogRecord carries; anything else arrived through extra={...}.
_STANDARD_ATTRS = frozenset(logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
}


def _extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _STANDARD_ATTRS and v is not None}


def _timestamp(record: logging.LogRecord, timespec: str) -> str:
    return datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec=timespec)


@dataclass(frozen=True)
class LogConfig:
    level: str = "INFO"
    json_logs: bool = False


class JsonFormatter(logging.Formatter):
    """One JSON object per line. Extras that json cannot encode are dropped."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": _timestamp(record, "milliseconds"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        for key, value in _extras(record).items():
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                continue
            payload[key] = value
        return json.dumps(payload, sort_keys=True)


class PlainFormatter(logging.Formatter):
    """
    "<ts> LEVEL logger: [step:phase] message (duration_ms=N)". The step/phase
    prefix and duration suffix only appear when the record carries them.
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        step = getattr(record, "step", None)
        phase = getattr(record, "phase", None)
        duration_ms = getattr(record, "duration_ms", None)

        message = record.getMessage()
        if step or phase:
            message = f"[{step or '-'}:{phase or '-'}] {message}"
        if duration_ms is not None:
            message = f"{message} (duration_ms={duration_ms})"

        text = f"{_timestamp(record, 'seconds')} {record.levelname} {record.name}: {message}"
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text


def _env_flag(name: str) -> bool:
    return (os.getenv(name) or "").strip().lower() in ("1", "true", "yes", "on")


def setup_logging(config: Optional[LogConfig] = None) -> None:
    """
    Configure the root logger once; later calls are no-ops.
    AZ_INV_LOG_LEVEL and AZ_INV_JSON_LOGS apply when config does not set them.
    """
    if getattr(setup_logging, "_configured", False):
        return

    level_name = ((config.level if config else None) or os.getenv("AZ_INV_LOG_LEVEL") or "INFO").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO
    json_logs = (config.json_logs if config else False) or _env_flag("AZ_INV_JSON_LOGS")

    # stdout carries list-* output; logs go to stderr
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(JsonFormatter() if json_logs else PlainFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]

    setattr(setup_logging, "_configured", True)


def add_run_log_file(log_path: Path) -> None:
    """
    Mirror root logging into <outdir>/logs/debug.log. Attaching the same path
    twice is a no-op.
    """
    log_path.parent.mkdir(parents=True, exist_ok=True)
    root = logging.getLogger()
    target = os.path.abspath(log_path)
    if any(isinstance(h, logging.FileHandler) and h.baseFilename == target for h in root.handlers):
        return

    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setLevel(root.level)
    formatter = root.handlers[0].formatter if root.handlers else None
    handler.setFormatter(formatter or PlainFormatter())
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)

from __future__ import annotations

import argparse
import json
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .azure.runner import DEFAULT_AZ_PATH, DEFAULT_TIMEOUT_SECONDS
from .normalize.schema import NOT_AVAILABLE
from .util.time import run_dir_name, utc_now_iso

# --------
# Defaults
# --------
DEFAULT_DELIMITER = ","
DEFAULT_OUTDIR = "out"
COMMANDS = ("report", "list-subscriptions", "validate-auth", "list-reports")
ALLOWED_CONFIG_KEYS = {
    "outdir",
    "subscription",
    "reports",
    "delimiter",
    "sentinel",
    "jsonl",
    "parquet",
    "save_raw",
    "input_dir",
    "progress",
    "az_path",
    "az_timeout",
    "json_logs",
    "log_level",
}
BOOL_CONFIG_KEYS = {"jsonl", "parquet", "save_raw", "progress", "json_logs"}
INT_CONFIG_KEYS = {"az_timeout"}
PATH_CONFIG_KEYS = {"outdir", "input_dir"}
STR_CONFIG_KEYS = {"subscription", "delimiter", "sentinel", "az_path", "log_level"}


@dataclass(frozen=True)
class RunConfig:
    # General
    outdir: Path
    subscription: Optional[str] = None
    reports: Optional[List[str]] = None
    json_logs: bool = False
    log_level: str = "INFO"

    # Output
    delimiter: str = DEFAULT_DELIMITER
    sentinel: str = NOT_AVAILABLE
    jsonl: bool = False
    parquet: bool = False
    save_raw: bool = False
    progress: bool = True

    # Source
    input_dir: Optional[Path] = None
    az_path: str = DEFAULT_AZ_PATH
    az_timeout: int = DEFAULT_TIMEOUT_SECONDS

    # Internal/derived
    collected_at: str = field(default_factory=utc_now_iso)


def _parse_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text) or {}
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ValueError(f"Failed to parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Top-level config must be an object")
    return data


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    return raw


def _env_bool(name: str) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip().lower()
    if not raw:
        return None
    return raw in {"1", "true", "yes", "on"}


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in {"1", "true", "yes", "on"}:
            return True
        if raw in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"Config field '{key}' must be a boolean")


def _coerce_int(key: str, value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return int(value)
        except ValueError:
            pass
    raise ValueError(f"Config field '{key}' must be an integer")


def _split_names(value: Union[str, List[Any]], key: str) -> List[str]:
    if isinstance(value, str):
        return [r.strip() for r in value.split(",") if r.strip()]
    if isinstance(value, list) and all(isinstance(r, str) for r in value):
        return [r.strip() for r in value if r.strip()]
    raise ValueError(f"Config field '{key}' must be a list of strings or comma-separated string")


def _normalize_config_file(data: Dict[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(data.keys()) - ALLOWED_CONFIG_KEYS)
    if unknown:
        warnings.warn(f"Unknown config keys ignored: {', '.join(unknown)}")
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in ALLOWED_CONFIG_KEYS:
            continue
        if value is None:
            normalized[key] = None
            continue
        if key == "reports":
            normalized[key] = _split_names(value, key)
        elif key in BOOL_CONFIG_KEYS:
            normalized[key] = _coerce_bool(key, value)
        elif key in INT_CONFIG_KEYS:
            normalized[key] = _coerce_int(key, value)
        elif key in PATH_CONFIG_KEYS:
            if isinstance(value, (str, Path)):
                normalized[key] = value
            else:
                raise ValueError(f"Config field '{key}' must be a string path")
        elif key in STR_CONFIG_KEYS:
            if isinstance(value, str):
                normalized[key] = value
            else:
                raise ValueError(f"Config field '{key}' must be a string")
    return _compact_dict(normalized)


def _compact_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Drop keys with None values so they don't override lower-precedence config.
    """
    return {k: v for k, v in data.items() if v is not None}


def _merge_dicts(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """
    Shallow merge: values in b override a.
    """
    merged = dict(a)
    merged.update(b)
    return merged


def _timestamp_dir(base: Optional[Union[str, Path]]) -> Path:
    return Path(base or DEFAULT_OUTDIR) / run_dir_name()


def _validate_delimiter(value: str) -> str:
    # "\t" arrives literally from shells and YAML single-quoted strings
    if value in {"\\t", "tab", "TAB"}:
        return "\t"
    if len(value) != 1:
        raise ValueError(f"Delimiter must be a single character, got {value!r}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="az-inv", description="Azure App Service inventory reports")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # common flags builder
    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", type=Path, help="Optional YAML/JSON config file")
        p.add_argument(
            "--json-logs",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Enable JSON logs",
        )
        p.add_argument("--log-level", default=None, help="Log level (INFO, DEBUG, ...)")
        p.add_argument("--az-path", default=None, help=f"az executable (default: {DEFAULT_AZ_PATH})")
        p.add_argument(
            "--az-timeout",
            type=int,
            default=None,
            help=f"Seconds before an az call is abandoned (default {DEFAULT_TIMEOUT_SECONDS})",
        )

    # report
    p_rep = subparsers.add_parser("report", help="Build App Service inventory reports")
    add_common(p_rep)
    p_rep.add_argument("--subscription", default=None, help="Subscription id or name (default: az default)")
    p_rep.add_argument("--reports", default=None, help="Comma-separated report names (default: all)")
    p_rep.add_argument("--outdir", type=Path, default=None, help=f"Output base directory ({DEFAULT_OUTDIR}/TS)")
    p_rep.add_argument("--delimiter", default=None, help="Field delimiter for the delimited report files")
    p_rep.add_argument("--sentinel", default=None, help=f"Value for unresolved cells (default {NOT_AVAILABLE})")
    p_rep.add_argument(
        "--jsonl",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Also write JSONL",
    )
    p_rep.add_argument(
        "--parquet",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Also write Parquet (pyarrow)",
    )
    p_rep.add_argument(
        "--save-raw",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Save the raw az listings (redacted) under raw/",
    )
    p_rep.add_argument(
        "--input-dir",
        type=Path,
        default=None,
        help="Read listings from <dir>/<listing>.json instead of calling az",
    )
    p_rep.add_argument(
        "--progress",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Show progress and a summary table",
    )

    # list-subscriptions
    p_ls = subparsers.add_parser("list-subscriptions", help="List subscriptions visible to az")
    add_common(p_ls)

    # validate-auth
    p_val = subparsers.add_parser("validate-auth", help="Validate the active az login")
    add_common(p_val)

    # list-reports
    p_lr = subparsers.add_parser("list-reports", help="List built-in reports and their columns")
    add_common(p_lr)

    return parser


def load_run_config(
    args: Optional[argparse.Namespace] = None,
    argv: Optional[list[str]] = None,
    subcommand: Optional[str] = None,
) -> Tuple[str, RunConfig]:
    """
    Build RunConfig by merging defaults, optional config file, env vars, and CLI args.
    Precedence (low -> high): defaults < config file < env < CLI.

    Returns:
      (command, RunConfig) where command is one of COMMANDS
    """
    ns = args if args is not None else build_parser().parse_args(argv)
    command = ns.command if subcommand is None else subcommand

    # defaults
    base: Dict[str, Any] = {
        "outdir": None,
        "subscription": None,
        "reports": None,
        "delimiter": DEFAULT_DELIMITER,
        "sentinel": NOT_AVAILABLE,
        "jsonl": False,
        "parquet": False,
        "save_raw": False,
        "input_dir": None,
        "progress": True,
        "az_path": DEFAULT_AZ_PATH,
        "az_timeout": DEFAULT_TIMEOUT_SECONDS,
        "json_logs": False,
        "log_level": "INFO",
    }

    # config file
    file_cfg: Dict[str, Any] = {}
    if getattr(ns, "config", None):
        file_cfg = _normalize_config_file(_parse_config_file(Path(ns.config)))

    # env
    env_cfg: Dict[str, Any] = _compact_dict(
        {
            "outdir": _env_str("AZ_INV_OUTDIR"),
            "subscription": _env_str("AZ_INV_SUBSCRIPTION"),
            "reports": _env_str("AZ_INV_REPORTS"),
            "delimiter": _env_str("AZ_INV_DELIMITER"),
            "sentinel": _env_str("AZ_INV_SENTINEL"),
            "jsonl": _env_bool("AZ_INV_JSONL"),
            "parquet": _env_bool("AZ_INV_PARQUET"),
            "save_raw": _env_bool("AZ_INV_SAVE_RAW"),
            "input_dir": _env_str("AZ_INV_INPUT_DIR"),
            "progress": _env_bool("AZ_INV_PROGRESS"),
            "az_path": _env_str("AZ_INV_AZ_PATH"),
            "az_timeout": _env_int("AZ_INV_AZ_TIMEOUT"),
            "json_logs": _env_bool("AZ_INV_JSON_LOGS"),
            "log_level": _env_str("AZ_INV_LOG_LEVEL"),
        }
    )

    # CLI
    cli_cfg: Dict[str, Any] = _compact_dict(
        {
            "outdir": getattr(ns, "outdir", None),
            "subscription": getattr(ns, "subscription", None),
            "reports": getattr(ns, "reports", None),
            "delimiter": getattr(ns, "delimiter", None),
            "sentinel": getattr(ns, "sentinel", None),
            "jsonl": getattr(ns, "jsonl", None),
            "parquet": getattr(ns, "parquet", None),
            "save_raw": getattr(ns, "save_raw", None),
            "input_dir": getattr(ns, "input_dir", None),
            "progress": getattr(ns, "progress", None),
            "az_path": getattr(ns, "az_path", None),
            "az_timeout": getattr(ns, "az_timeout", None),
            "json_logs": getattr(ns, "json_logs", None),
            "log_level": getattr(ns, "log_level", None),
        }
    )

    merged = _merge_dicts(base, _merge_dicts(file_cfg, _merge_dicts(env_cfg, cli_cfg)))

    # Normalize/construct types
    outdir_raw = merged.get("outdir")
    if command == "report":
        outdir = _timestamp_dir(outdir_raw)
    else:
        outdir = Path(outdir_raw) if outdir_raw else Path.cwd()
    reports_raw = merged.get("reports")
    reports = _split_names(reports_raw, "reports") if reports_raw else None
    input_dir = Path(merged["input_dir"]) if merged.get("input_dir") else None
    az_timeout = int(merged["az_timeout"] or DEFAULT_TIMEOUT_SECONDS)
    if az_timeout < 1:
        raise ValueError("az_timeout must be a positive number of seconds")

    cfg = RunConfig(
        outdir=outdir,
        subscription=str(merged["subscription"]) if merged.get("subscription") else None,
        reports=reports or None,
        json_logs=bool(merged["json_logs"]),
        log_level=(merged.get("log_level") or "INFO").upper(),
        delimiter=_validate_delimiter(str(merged["delimiter"])),
        sentinel=str(merged["sentinel"]),
        jsonl=bool(merged["jsonl"]),
        parquet=bool(merged["parquet"]),
        save_raw=bool(merged["save_raw"]),
        progress=bool(merged["progress"]),
        input_dir=input_dir,
        az_path=str(merged["az_path"] or DEFAULT_AZ_PATH),
        az_timeout=az_timeout,
    )
    return command, cfg


def dump_config(cfg: RunConfig) -> Dict[str, Any]:
    return {
        "outdir": str(cfg.outdir),
        "subscription": cfg.subscription,
        "reports": cfg.reports,
        "json_logs": cfg.json_logs,
        "log_level": cfg.log_level,
        "delimiter": cfg.delimiter,
        "sentinel": cfg.sentinel,
        "jsonl": cfg.jsonl,
        "parquet": cfg.parquet,
        "save_raw": cfg.save_raw,
        "progress": cfg.progress,
        "input_dir": str(cfg.input_dir) if cfg.input_dir else None,
        "az_path": cfg.az_path,
        "az_timeout": cfg.az_timeout,
        "collected_at": cfg.collected_at,
    }

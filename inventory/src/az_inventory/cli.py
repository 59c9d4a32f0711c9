from __future__ import annotations

import logging
import sys
from pathlib import Path
from time import perf_counter
from typing import Any, Dict, List, Optional, Tuple

from .azure.runner import AzCli
from .azure.source import AzCliSource, InventorySource, JsonDirSource, write_raw_listing
from .azure.subscriptions import list_subscriptions, resolve_context, show_account
from .config import RunConfig, dump_config, load_run_config
from .export.csv import write_csv
from .export.jsonl import write_jsonl
from .export.parquet import ParquetNotAvailable, write_parquet
from .logging import LogConfig, add_run_log_file, get_logger, setup_logging
from .normalize.schema import OutputPaths, resolve_output_paths
from .normalize.transform import stable_json_dumps
from .reports import list_report_names, get_report, select_reports
from .reports.base import ReportDefinition, build_indexes, build_report, match_counts
from .util.errors import ConfigError, ExportError, as_exit_code
from .util.rich_progress import RunProgress, render_run_summary_table

LOG = get_logger(__name__)

OUT_SCHEMA_VERSION = "1"


class _StepTimers:
    def __init__(self) -> None:
        self._starts: Dict[str, float] = {}

    def start(self, key: str) -> None:
        self._starts[key] = perf_counter()

    def finish(self, key: str) -> Optional[int]:
        started = self._starts.pop(key, None)
        if started is None:
            return None
        return int((perf_counter() - started) * 1000)


def _log_event(
    logger: Any,
    level: int,
    message: str,
    *,
    step: str,
    phase: str,
    timers: Optional[_StepTimers] = None,
    timer_key: Optional[str] = None,
    **extra: Any,
) -> None:
    key = timer_key or step
    duration_ms = None
    if timers is not None:
        if phase == "start":
            timers.start(key)
        elif phase in {"complete", "error", "skipped"}:
            duration_ms = timers.finish(key)
    payload: Dict[str, Any] = {"step": step, "phase": phase, "event": f"{step}.{phase}"}
    if duration_ms is not None:
        payload["duration_ms"] = duration_ms
    payload.update(extra)
    logger.log(level, message, extra=payload)


def _runner(cfg: RunConfig) -> AzCli:
    return AzCli(az_path=cfg.az_path, timeout=cfg.az_timeout)


def _resolve_source(cfg: RunConfig) -> Tuple[InventorySource, Dict[str, Any]]:
    if cfg.input_dir is not None:
        if cfg.subscription:
            LOG.warning("--subscription is ignored when reading listings from --input-dir")
        return JsonDirSource(cfg.input_dir), {
            "source": "input_dir",
            "input_dir": str(cfg.input_dir),
            "subscription_id": None,
            "subscription_name": None,
        }
    ctx = resolve_context(_runner(cfg), cfg.subscription)
    return AzCliSource(ctx), {
        "source": "az",
        "subscription_id": ctx.subscription_id,
        "subscription_name": ctx.subscription_name,
    }


def _required_listings(definitions: List[ReportDefinition]) -> List[str]:
    out: List[str] = []
    for d in definitions:
        for listing in d.listings:
            if listing not in out:
                out.append(listing)
    return out


def _fetch_listings(
    source: InventorySource,
    names: List[str],
    *,
    cfg: RunConfig,
    paths: OutputPaths,
    progress: RunProgress,
    timers: _StepTimers,
) -> Dict[str, List[Dict[str, Any]]]:
    listings: Dict[str, List[Dict[str, Any]]] = {}
    progress.start_listings(names)
    for name in names:
        progress.listing_started(name)
        _log_event(LOG, logging.INFO, "Listing started", step="list", phase="start",
                   timers=timers, timer_key=f"list:{name}", listing=name)
        records = source.fetch(name)
        listings[name] = records
        if cfg.save_raw:
            write_raw_listing(paths.raw_dir, name, records)
        _log_event(LOG, logging.INFO, "Listing complete", step="list", phase="complete",
                   timers=timers, timer_key=f"list:{name}", listing=name, count=len(records))
        progress.listing_done(name, len(records))
    return listings


def _report_filename_suffix(delimiter: str) -> str:
    return "tsv" if delimiter == "\t" else "csv"


def _export_report(
    definition: ReportDefinition,
    rows: List[Dict[str, Any]],
    *,
    cfg: RunConfig,
    paths: OutputPaths,
) -> Dict[str, Any]:
    columns = definition.columns(cfg.sentinel)
    csv_path = paths.report_path(definition.name, _report_filename_suffix(cfg.delimiter))
    try:
        write_csv(rows, columns, csv_path, delimiter=cfg.delimiter, sentinel=cfg.sentinel)
        info: Dict[str, Any] = {"rows": len(rows), "csv": str(csv_path)}
        if cfg.jsonl:
            jsonl_path = paths.report_path(definition.name, "jsonl")
            write_jsonl(rows, columns, jsonl_path)
            info["jsonl"] = str(jsonl_path)
    except OSError as e:
        raise ExportError(f"Failed to write report '{definition.name}': {e}") from e
    if cfg.parquet:
        parquet_path = paths.report_path(definition.name, "parquet")
        try:
            write_parquet(rows, columns, parquet_path, sentinel=cfg.sentinel)
        except ParquetNotAvailable as e:
            raise ExportError(str(e)) from e
        info["parquet"] = str(parquet_path)
    return info


def _write_run_summary(paths: OutputPaths, summary: Dict[str, Any]) -> Path:
    payload = dict(summary)
    payload["schema_version"] = OUT_SCHEMA_VERSION
    paths.run_summary_json.parent.mkdir(parents=True, exist_ok=True)
    paths.run_summary_json.write_text(stable_json_dumps(payload), encoding="utf-8")
    return paths.run_summary_json


def cmd_report(cfg: RunConfig) -> int:
    definitions = select_reports(cfg.reports)
    paths = resolve_output_paths(cfg.outdir)
    paths.root.mkdir(parents=True, exist_ok=True)
    add_run_log_file(paths.debug_log)
    timers = _StepTimers()

    _log_event(LOG, logging.INFO, "Report run started", step="run", phase="start", timers=timers,
               reports=[d.name for d in definitions], config=dump_config(cfg))

    source, source_info = _resolve_source(cfg)
    summary: Dict[str, Any] = {"collected_at": cfg.collected_at, **source_info}

    with RunProgress(enabled=cfg.progress) as progress:
        listings = _fetch_listings(
            source,
            _required_listings(definitions),
            cfg=cfg,
            paths=paths,
            progress=progress,
            timers=timers,
        )
        summary["listings"] = {name: len(records) for name, records in listings.items()}

        reports: Dict[str, Any] = {}
        progress.start_reports([d.name for d in definitions])
        for definition in definitions:
            indexes = build_indexes(definition, listings)
            rows = build_report(definition, listings, sentinel=cfg.sentinel, indexes=indexes)
            info = _export_report(definition, rows, cfg=cfg, paths=paths)
            info["matched"] = match_counts(definition, listings, indexes)
            reports[definition.name] = info
            _log_event(LOG, logging.INFO, "Report written", step="report", phase="complete",
                       report=definition.name, rows=info["rows"], path=info["csv"])
            progress.report_done(definition.name)
        summary["reports"] = reports

    _write_run_summary(paths, summary)
    _log_event(LOG, logging.INFO, "Report run complete", step="run", phase="complete", timers=timers,
               outdir=str(paths.root))
    render_run_summary_table(enabled=cfg.progress, status="OK", summary=summary, outdir=str(paths.root))
    return 0


def cmd_list_subscriptions(cfg: RunConfig) -> int:
    for sub in list_subscriptions(_runner(cfg)):
        marker = "*" if sub["isDefault"] else ""
        print(f'{sub["id"]},{sub["name"]}{marker}')
    return 0


def cmd_validate_auth(cfg: RunConfig) -> int:
    account = show_account(_runner(cfg))
    LOG.info("Authentication validated", extra={"subscription_id": account["id"], "tenant_id": account["tenantId"]})
    print(f'OK: az login active; subscription {account["name"]} ({account["id"]})')
    return 0


def cmd_list_reports(cfg: RunConfig) -> int:
    for name in list_report_names():
        definition = get_report(name)
        print(f"{name}: {definition.description}")
        print(f"  listings: {', '.join(definition.listings)}")
        print(f"  columns: {', '.join(definition.columns(cfg.sentinel))}")
    return 0


def main() -> None:
    try:
        command, cfg = load_run_config()
        setup_logging(LogConfig(level=cfg.log_level, json_logs=cfg.json_logs))

        if command == "report":
            code = cmd_report(cfg)
        elif command == "list-subscriptions":
            code = cmd_list_subscriptions(cfg)
        elif command == "validate-auth":
            code = cmd_validate_auth(cfg)
        elif command == "list-reports":
            code = cmd_list_reports(cfg)
        else:
            raise ConfigError(f"Unknown command: {command}")

        sys.exit(code)
    except SystemExit:
        raise
    except BrokenPipeError:
        # Common when users pipe to `head` or similar tools.
        sys.exit(0)
    except Exception as e:
        setup_logging(LogConfig())
        LOG.error("Execution failed", extra={"error": str(e)})
        sys.exit(as_exit_code(e))


if __name__ == "__main__":
    main()

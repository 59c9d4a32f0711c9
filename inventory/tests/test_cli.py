from __future__ import annotations

import csv
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pytest

import az_inventory.cli as cli
from az_inventory.azure.listings import APP_SERVICE_PLANS, AUTOSCALE_SETTINGS, FUNCTION_APPS, WEB_APPS
from az_inventory.config import load_run_config
from az_inventory.util.errors import ExitCode

FARM = "/subscriptions/sub-1/resourceGroups/rg-web/providers/Microsoft.Web/serverFarms"

PLANS = [
    {"id": f"{FARM}/plan-B", "name": "plan-B", "resourceGroup": "rg-web", "sku": {"name": "S1", "capacity": 1}},
    {"id": f"{FARM}/plan-A", "name": "plan-A", "resourceGroup": "rg-web", "sku": {"name": "P1v2", "capacity": 2}},
]
AUTOSCALE = [
    {
        "targetResourceUri": f"{FARM.lower()}/plan-A",
        "enabled": True,
        "profiles": [{"capacity": {"minimum": "1", "maximum": "4", "default": "2"}}],
    }
]
SITES = [
    {"name": "web-1", "kind": "app", "state": "Running", "serverFarmId": f"{FARM}/plan-A"},
    {"name": "func-1", "kind": "functionapp", "state": "Running", "serverFarmId": f"{FARM}/plan-B"},
]


def _write_listings(root: Path) -> None:
    root.mkdir(parents=True, exist_ok=True)
    listings = {
        APP_SERVICE_PLANS: PLANS,
        AUTOSCALE_SETTINGS: AUTOSCALE,
        WEB_APPS: SITES[:1],
        FUNCTION_APPS: SITES[1:],
    }
    for name, records in listings.items():
        (root / f"{name}.json").write_text(json.dumps(records), encoding="utf-8")


def _read_csv(path: Path) -> List[Dict[str, str]]:
    with path.open(encoding="utf-8", newline="") as f:
        return list(csv.DictReader(f))


def test_report_from_input_dir(tmp_path) -> None:
    input_dir = tmp_path / "raw"
    _write_listings(input_dir)
    command, cfg = load_run_config(
        argv=[
            "report",
            "--input-dir",
            str(input_dir),
            "--outdir",
            str(tmp_path / "out"),
            "--jsonl",
            "--no-progress",
        ]
    )
    assert command == "report"

    assert cli.cmd_report(cfg) == 0

    plans = _read_csv(cfg.outdir / "reports" / "plans.csv")
    assert [p["Plan"] for p in plans] == ["plan-B", "plan-A"]
    assert plans[0]["AutoScale"] == "No"
    assert plans[0]["Min"] == "N/A"
    assert (plans[1]["AutoScale"], plans[1]["Min"], plans[1]["Max"], plans[1]["Default"]) == ("Yes", "1", "4", "2")

    webapps = _read_csv(cfg.outdir / "reports" / "webapps.csv")
    assert webapps == [
        {
            "App": "web-1",
            "ResourceGroup": "N/A",
            "Location": "N/A",
            "State": "Running",
            "Kind": "app",
            "DefaultHostName": "N/A",
            "Plan": "plan-A",
            "PlanSKU": "P1v2",
            "PlanWorkers": "2",
            "AutoScale": "Yes",
            "Min": "1",
            "Max": "4",
            "Default": "2",
        }
    ]

    functions = [json.loads(line) for line in (cfg.outdir / "reports" / "functionapps.jsonl").read_text().splitlines()]
    assert functions[0]["App"] == "func-1"
    assert functions[0]["Plan"] == "plan-B"
    assert functions[0]["AutoScale"] == "No"

    summary = json.loads((cfg.outdir / "run_summary.json").read_text(encoding="utf-8"))
    assert summary["schema_version"] == cli.OUT_SCHEMA_VERSION
    assert summary["source"] == "input_dir"
    assert summary["listings"][APP_SERVICE_PLANS] == 2
    assert summary["reports"]["plans"]["rows"] == 2
    assert summary["reports"]["plans"]["matched"] == {"autoscale": 1}
    assert summary["reports"]["webapps"]["matched"] == {"plan": 1, "autoscale": 1}
    assert (cfg.outdir / "logs" / "debug.log").exists()


def test_report_tab_delimiter_and_sentinel(tmp_path) -> None:
    input_dir = tmp_path / "raw"
    _write_listings(input_dir)
    _, cfg = load_run_config(
        argv=[
            "report",
            "--input-dir",
            str(input_dir),
            "--outdir",
            str(tmp_path / "out"),
            "--reports",
            "plans",
            "--delimiter",
            "\\t",
            "--sentinel",
            "Unknown",
            "--no-progress",
        ]
    )
    assert cli.cmd_report(cfg) == 0

    reports_dir = cfg.outdir / "reports"
    assert sorted(p.name for p in reports_dir.iterdir()) == ["plans.tsv"]
    lines = (reports_dir / "plans.tsv").read_text(encoding="utf-8").splitlines()
    assert lines[0].split("\t")[:3] == ["Plan", "ResourceGroup", "Location"]
    assert lines[1].split("\t")[2] == "Unknown"


class FakeAz:
    def __init__(self, responses: Dict[tuple, Any]) -> None:
        self.responses = responses
        self.subscriptions: List[Optional[str]] = []

    def run_json(self, args: Sequence[str], *, subscription: Optional[str] = None) -> Any:
        self.subscriptions.append(subscription)
        return self.responses.get(tuple(args))

    def run_list(self, args: Sequence[str], *, subscription: Optional[str] = None) -> List[Any]:
        return self.run_json(args, subscription=subscription) or []


def _fake_az() -> FakeAz:
    return FakeAz(
        {
            ("account", "list"): [
                {"id": "sub-1", "name": "Production", "tenantId": "t1", "isDefault": True},
            ],
            ("account", "show"): {"id": "sub-1", "name": "Production", "tenantId": "t1", "isDefault": True},
            ("appservice", "plan", "list"): PLANS,
            ("webapp", "list"): SITES,
            ("functionapp", "list"): SITES[1:],
            ("group", "list"): [{"name": "rg-web"}],
            ("monitor", "autoscale", "list", "--resource-group", "rg-web"): AUTOSCALE,
        }
    )


def test_report_from_az_saves_raw_listings(tmp_path, monkeypatch) -> None:
    fake = _fake_az()
    monkeypatch.setattr(cli, "_runner", lambda cfg: fake)
    _, cfg = load_run_config(
        argv=["report", "--outdir", str(tmp_path / "out"), "--save-raw", "--no-progress"]
    )

    assert cli.cmd_report(cfg) == 0

    raw = json.loads((cfg.outdir / "raw" / f"{WEB_APPS}.json").read_text(encoding="utf-8"))
    assert [r["name"] for r in raw] == ["web-1"]
    summary = json.loads((cfg.outdir / "run_summary.json").read_text(encoding="utf-8"))
    assert summary["subscription_id"] == "sub-1"
    assert summary["reports"]["functionapps"]["rows"] == 1
    # every listing call after account selection targets the selected subscription
    assert set(fake.subscriptions[1:]) == {"sub-1"}


def test_list_subscriptions_and_validate_auth(monkeypatch, capsys) -> None:
    monkeypatch.setattr(cli, "_runner", lambda cfg: _fake_az())
    _, cfg = load_run_config(argv=["list-subscriptions"])

    assert cli.cmd_list_subscriptions(cfg) == 0
    assert capsys.readouterr().out.strip() == "sub-1,Production*"

    assert cli.cmd_validate_auth(cfg) == 0
    assert "OK: az login active" in capsys.readouterr().out


def test_list_reports(capsys) -> None:
    _, cfg = load_run_config(argv=["list-reports"])
    assert cli.cmd_list_reports(cfg) == 0
    out = capsys.readouterr().out
    assert "plans:" in out
    assert "columns: Plan, ResourceGroup" in out


def test_main_maps_unknown_report_to_config_exit_code(tmp_path, monkeypatch) -> None:
    input_dir = tmp_path / "raw"
    _write_listings(input_dir)
    monkeypatch.setattr(
        sys,
        "argv",
        ["az-inv", "report", "--input-dir", str(input_dir), "--reports", "nope", "--outdir", str(tmp_path)],
    )
    with pytest.raises(SystemExit) as excinfo:
        cli.main()
    assert excinfo.value.code == int(ExitCode.CONFIG_ERROR)

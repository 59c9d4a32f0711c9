from __future__ import annotations

from pathlib import Path

import pytest

from az_inventory.config import DEFAULT_DELIMITER, RunConfig, dump_config, load_run_config
from az_inventory.normalize.schema import NOT_AVAILABLE


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in (
        "AZ_INV_OUTDIR",
        "AZ_INV_SUBSCRIPTION",
        "AZ_INV_REPORTS",
        "AZ_INV_DELIMITER",
        "AZ_INV_SENTINEL",
        "AZ_INV_JSONL",
        "AZ_INV_PARQUET",
        "AZ_INV_SAVE_RAW",
        "AZ_INV_INPUT_DIR",
        "AZ_INV_PROGRESS",
        "AZ_INV_AZ_PATH",
        "AZ_INV_AZ_TIMEOUT",
        "AZ_INV_JSON_LOGS",
        "AZ_INV_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults_for_report() -> None:
    command, cfg = load_run_config(argv=["report"])
    assert command == "report"
    assert isinstance(cfg, RunConfig)
    assert cfg.delimiter == DEFAULT_DELIMITER
    assert cfg.sentinel == NOT_AVAILABLE
    assert cfg.reports is None
    assert cfg.subscription is None
    assert cfg.jsonl is False
    assert cfg.progress is True
    assert cfg.outdir.parent == Path("out")
    assert len(cfg.outdir.name) == 16
    assert cfg.outdir.name.endswith("Z")


def test_non_report_commands_do_not_timestamp_outdir() -> None:
    command, cfg = load_run_config(argv=["list-subscriptions"])
    assert command == "list-subscriptions"
    assert cfg.outdir == Path.cwd()


def test_env_overrides_defaults(monkeypatch) -> None:
    monkeypatch.setenv("AZ_INV_SUBSCRIPTION", "from-env")
    monkeypatch.setenv("AZ_INV_REPORTS", "plans, webapps")
    _, cfg = load_run_config(argv=["report"])
    assert cfg.subscription == "from-env"
    assert cfg.reports == ["plans", "webapps"]


def test_cli_overrides_env(monkeypatch) -> None:
    monkeypatch.setenv("AZ_INV_SUBSCRIPTION", "from-env")
    _, cfg = load_run_config(argv=["report", "--subscription", "from-cli"])
    assert cfg.subscription == "from-cli"


def test_config_file_used_when_env_and_cli_missing(tmp_path) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("subscription: from-config\nsentinel: Unknown\n", encoding="utf-8")
    _, cfg = load_run_config(argv=["report", "--config", str(cfg_path)])
    assert cfg.subscription == "from-config"
    assert cfg.sentinel == "Unknown"


def test_json_config_file(tmp_path) -> None:
    cfg_path = tmp_path / "config.json"
    cfg_path.write_text('{"reports": ["plans"], "jsonl": "yes"}', encoding="utf-8")
    _, cfg = load_run_config(argv=["report", "--config", str(cfg_path)])
    assert cfg.reports == ["plans"]
    assert cfg.jsonl is True


def test_repo_example_config_loads() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    cfg_path = repo_root / "config" / "reports.yaml"
    _, cfg = load_run_config(argv=["report", "--config", str(cfg_path)])
    assert cfg.reports == ["plans", "webapps", "functionapps"]
    assert cfg.jsonl is True
    assert cfg.az_timeout == 300


def test_env_overrides_config_file(monkeypatch, tmp_path) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("jsonl: true\nsentinel: Unknown\n", encoding="utf-8")
    monkeypatch.setenv("AZ_INV_JSONL", "0")
    monkeypatch.setenv("AZ_INV_SENTINEL", "None")
    _, cfg = load_run_config(argv=["report", "--config", str(cfg_path)])
    assert cfg.jsonl is False
    assert cfg.sentinel == "None"


def test_cli_can_disable_config_boolean(tmp_path) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("parquet: true\nprogress: true\n", encoding="utf-8")
    _, cfg = load_run_config(argv=["report", "--config", str(cfg_path), "--no-parquet", "--no-progress"])
    assert cfg.parquet is False
    assert cfg.progress is False


def test_tab_delimiter_aliases() -> None:
    _, cfg = load_run_config(argv=["report", "--delimiter", "\\t"])
    assert cfg.delimiter == "\t"
    _, cfg = load_run_config(argv=["report", "--delimiter", ";"])
    assert cfg.delimiter == ";"


def test_multi_character_delimiter_rejected() -> None:
    with pytest.raises(ValueError):
        load_run_config(argv=["report", "--delimiter", ";;"])


def test_unknown_config_keys_warn(tmp_path) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("subscription: from-config\nunknown_key: value\n", encoding="utf-8")
    with pytest.warns(UserWarning):
        _, cfg = load_run_config(argv=["report", "--config", str(cfg_path)])
    assert cfg.subscription == "from-config"


def test_invalid_config_type_raises(tmp_path) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("az_timeout: not-a-number\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_run_config(argv=["report", "--config", str(cfg_path)])


def test_missing_config_file_raises(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_run_config(argv=["report", "--config", str(tmp_path / "nope.yaml")])


def test_dump_config_is_plain_data(tmp_path) -> None:
    _, cfg = load_run_config(argv=["report", "--outdir", str(tmp_path), "--input-dir", str(tmp_path)])
    dumped = dump_config(cfg)
    assert dumped["input_dir"] == str(tmp_path)
    assert dumped["outdir"].startswith(str(tmp_path))
    assert dumped["collected_at"]

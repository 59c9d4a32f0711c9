from __future__ import annotations

import re

import pytest

from az_inventory.normalize.flatten import extract_parent_id, parse_path, resolve_path
from az_inventory.normalize.schema import PLAN_ID_PATTERN, SERVER_FARM_PATTERN
from az_inventory.normalize.transform import as_count, yes_no


def test_parse_path_handles_dots_and_indexes() -> None:
    assert parse_path("profiles[0].capacity.minimum") == ("profiles", 0, "capacity", "minimum")
    assert parse_path("sku") == ("sku",)
    assert parse_path("a[1][2].b") == ("a", 1, 2, "b")


def test_resolve_path_returns_value_or_default() -> None:
    record = {"sku": {"name": "P1v2", "capacity": 0}, "tags": None, "profiles": [{"capacity": {"minimum": "1"}}]}
    assert resolve_path(record, "sku.name") == "P1v2"
    assert resolve_path(record, "sku.capacity") == 0
    assert resolve_path(record, "profiles[0].capacity.minimum") == "1"
    assert resolve_path(record, "profiles[1].capacity.minimum", "N/A") == "N/A"
    assert resolve_path(record, "tags.owner", "N/A") == "N/A"
    assert resolve_path(record, "sku.name.first", "N/A") == "N/A"
    assert resolve_path(record, "sku[0]", "N/A") == "N/A"
    assert resolve_path("not-a-mapping", "sku", "N/A") == "N/A"


def test_extract_parent_id_takes_segment_after_marker() -> None:
    uri = "/subscriptions/s1/resourceGroups/rg-web/providers/Microsoft.Web/serverFarms/plan-A"
    assert extract_parent_id(uri, SERVER_FARM_PATTERN) == "plan-A"
    assert extract_parent_id(uri.lower(), SERVER_FARM_PATTERN) == "plan-a"


def test_extract_parent_id_full_plan_id_folds_case() -> None:
    plan_id = "/subscriptions/s1/resourceGroups/RG-Web/providers/Microsoft.Web/serverFarms/plan-A"
    autoscale_target = "/subscriptions/s1/resourcegroups/rg-web/providers/microsoft.web/serverfarms/plan-a"
    expected = "/subscriptions/s1/resourcegroups/rg-web/providers/microsoft.web/serverfarms/plan-a"

    assert extract_parent_id(plan_id, PLAN_ID_PATTERN, fold_case=True) == expected
    assert extract_parent_id(autoscale_target, PLAN_ID_PATTERN, fold_case=True) == expected
    assert extract_parent_id(f"{plan_id}/sites/web-1", PLAN_ID_PATTERN) == plan_id
    assert extract_parent_id("/subscriptions/s1/virtualMachineScaleSets/vmss-1", PLAN_ID_PATTERN) is None


@pytest.mark.parametrize("value", ["not-a-matching-shape", "/serverfarms/", "", None, 12, ["/serverfarms/a"]])
def test_extract_parent_id_non_match_is_none(value) -> None:
    assert extract_parent_id(value, SERVER_FARM_PATTERN) is None


def test_extract_parent_id_without_group_returns_whole_match() -> None:
    assert extract_parent_id("plan-A-prod", re.compile(r"plan-[A-Z]")) == "plan-A"


def test_yes_no_and_as_count() -> None:
    assert yes_no(True) == "Yes"
    assert yes_no(False) == "No"
    assert yes_no("true") == "Yes"
    assert as_count("3") == 3
    assert as_count(4) == 4
    with pytest.raises(ValueError):
        as_count(True)
    with pytest.raises(ValueError):
        yes_no(1)

from __future__ import annotations

from ..azure.listings import APP_SERVICE_PLANS, AUTOSCALE_SETTINGS, FUNCTION_APPS, WEB_APPS
from ..normalize.schema import PLAN_ID_PATTERN, SECONDARY, Association, ColumnSpec, FieldMap
from ..normalize.transform import as_count, yes_no
from .base import ReportDefinition

AUTOSCALE = Association(
    name="autoscale",
    listing=AUTOSCALE_SETTINGS,
    parent_id_field="targetResourceUri",
)
PLAN = Association(
    name="plan",
    listing=APP_SERVICE_PLANS,
    parent_id_field="id",
)


def _autoscale_columns(sentinel: str) -> tuple[ColumnSpec, ...]:
    return (
        ColumnSpec("AutoScale", "enabled", SECONDARY, "No", yes_no, AUTOSCALE.name),
        ColumnSpec("Min", "profiles[0].capacity.minimum", SECONDARY, sentinel, as_count, AUTOSCALE.name),
        ColumnSpec("Max", "profiles[0].capacity.maximum", SECONDARY, sentinel, as_count, AUTOSCALE.name),
        ColumnSpec("Default", "profiles[0].capacity.default", SECONDARY, sentinel, as_count, AUTOSCALE.name),
    )


def plan_field_map(sentinel: str) -> FieldMap:
    return FieldMap(
        columns=(
            ColumnSpec("Plan", "name", default=sentinel),
            ColumnSpec("ResourceGroup", "resourceGroup", default=sentinel),
            ColumnSpec("Location", "location", default=sentinel),
            ColumnSpec("SKU", "sku.name", default=sentinel),
            ColumnSpec("Tier", "sku.tier", default=sentinel),
            ColumnSpec("Workers", "sku.capacity", default=sentinel),
            ColumnSpec("Apps", "numberOfSites", default=sentinel),
            *_autoscale_columns(sentinel),
        ),
        key_field="id",
        key_pattern=PLAN_ID_PATTERN,
        fold_case=True,
    )


def app_field_map(sentinel: str) -> FieldMap:
    # Apps join to their plan (and the plan's autoscale setting) through the full
    # plan id in serverFarmId. Plan names repeat across resource groups.
    return FieldMap(
        columns=(
            ColumnSpec("App", "name", default=sentinel),
            ColumnSpec("ResourceGroup", "resourceGroup", default=sentinel),
            ColumnSpec("Location", "location", default=sentinel),
            ColumnSpec("State", "state", default=sentinel),
            ColumnSpec("Kind", "kind", default=sentinel),
            ColumnSpec("DefaultHostName", "defaultHostName", default=sentinel),
            ColumnSpec("Plan", "name", SECONDARY, sentinel, association=PLAN.name),
            ColumnSpec("PlanSKU", "sku.name", SECONDARY, sentinel, association=PLAN.name),
            ColumnSpec("PlanWorkers", "sku.capacity", SECONDARY, sentinel, association=PLAN.name),
            *_autoscale_columns(sentinel),
        ),
        key_field="serverFarmId",
        key_pattern=PLAN_ID_PATTERN,
        fold_case=True,
    )


PLANS_REPORT = ReportDefinition(
    name="plans",
    description="App Service plans with their autoscale bounds",
    primary=APP_SERVICE_PLANS,
    associations=(AUTOSCALE,),
    field_map=plan_field_map,
)

WEBAPPS_REPORT = ReportDefinition(
    name="webapps",
    description="Web apps with their hosting plan and its autoscale bounds",
    primary=WEB_APPS,
    associations=(PLAN, AUTOSCALE),
    field_map=app_field_map,
)

FUNCTIONAPPS_REPORT = ReportDefinition(
    name="functionapps",
    description="Function apps with their hosting plan and its autoscale bounds",
    primary=FUNCTION_APPS,
    associations=(PLAN, AUTOSCALE),
    field_map=app_field_map,
)

BUILTIN_REPORTS = (PLANS_REPORT, WEBAPPS_REPORT, FUNCTIONAPPS_REPORT)

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping

from ..logging import get_logger
from .subscriptions import AzContext

LOG = get_logger(__name__)

APP_SERVICE_PLANS = "app_service_plans"
WEB_APPS = "web_apps"
FUNCTION_APPS = "function_apps"
AUTOSCALE_SETTINGS = "autoscale_settings"

Lister = Callable[[AzContext], List[Dict[str, Any]]]


def _records(items: List[Any]) -> List[Dict[str, Any]]:
    return [dict(i) for i in items if isinstance(i, Mapping)]


def is_function_app(record: Mapping[str, Any]) -> bool:
    return "functionapp" in str(record.get("kind") or "").lower()


def list_app_service_plans(ctx: AzContext) -> List[Dict[str, Any]]:
    return _records(ctx.runner.run_list(["appservice", "plan", "list"], subscription=ctx.subscription_id))


def list_web_apps(ctx: AzContext) -> List[Dict[str, Any]]:
    """
    `az webapp list` also returns function apps; those are reported separately.
    """
    sites = _records(ctx.runner.run_list(["webapp", "list"], subscription=ctx.subscription_id))
    return [s for s in sites if not is_function_app(s)]


def list_function_apps(ctx: AzContext) -> List[Dict[str, Any]]:
    return _records(ctx.runner.run_list(["functionapp", "list"], subscription=ctx.subscription_id))


def list_resource_groups(ctx: AzContext) -> List[str]:
    groups = ctx.runner.run_list(["group", "list"], subscription=ctx.subscription_id)
    names = [str(g.get("name")) for g in groups if isinstance(g, Mapping) and g.get("name")]
    return sorted(set(names), key=str.lower)


def list_autoscale_settings(ctx: AzContext) -> List[Dict[str, Any]]:
    """
    `az monitor autoscale list` is scoped to a resource group, so walk them all.
    """
    settings: List[Dict[str, Any]] = []
    for rg in list_resource_groups(ctx):
        found = _records(
            ctx.runner.run_list(
                ["monitor", "autoscale", "list", "--resource-group", rg],
                subscription=ctx.subscription_id,
            )
        )
        if found:
            LOG.debug(
                "Autoscale settings found",
                extra={"step": "list", "phase": "progress", "resource_group": rg, "count": len(found)},
            )
        settings.extend(found)
    return settings


LISTERS: Dict[str, Lister] = {
    APP_SERVICE_PLANS: list_app_service_plans,
    WEB_APPS: list_web_apps,
    FUNCTION_APPS: list_function_apps,
    AUTOSCALE_SETTINGS: list_autoscale_settings,
}

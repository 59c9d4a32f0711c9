from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..logging import get_logger
from ..util.errors import AuthResolutionError, AzCliError, ConfigError, is_login_error
from .runner import AzCli

LOG = get_logger(__name__)


@dataclass(frozen=True)
class AzContext:
    """
    The subscription a run works against, resolved once at startup and passed
    to every listing call.
    """

    subscription_id: str
    subscription_name: str
    tenant_id: Optional[str]
    runner: AzCli


def _subscription_summary(account: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(account.get("id") or ""),
        "name": str(account.get("name") or account.get("id") or ""),
        "tenantId": account.get("tenantId"),
        "isDefault": bool(account.get("isDefault")),
        "state": account.get("state"),
    }


def _wrap_login(exc: AzCliError) -> Exception:
    if is_login_error(exc):
        return AuthResolutionError(f"az is not logged in; run 'az login' first ({exc})")
    return exc


def show_account(runner: AzCli) -> Dict[str, Any]:
    try:
        account = runner.run_json(["account", "show"])
    except AzCliError as e:
        raise _wrap_login(e) from e
    if not isinstance(account, Mapping):
        raise AuthResolutionError("az account show returned no active account")
    return _subscription_summary(account)


def list_subscriptions(runner: AzCli) -> List[Dict[str, Any]]:
    try:
        accounts = runner.run_list(["account", "list"])
    except AzCliError as e:
        raise _wrap_login(e) from e
    subs = [_subscription_summary(a) for a in accounts if isinstance(a, Mapping)]
    return [s for s in subs if s["id"]]


def resolve_subscription(
    requested: Optional[str],
    subscriptions: Sequence[Mapping[str, Any]],
) -> Mapping[str, Any]:
    """
    Pick a subscription by id, or by case-insensitive name. With nothing
    requested, the account az marks as default is used.
    """
    if not subscriptions:
        raise AuthResolutionError("No subscriptions are available to the current az login")

    if not requested:
        for sub in subscriptions:
            if sub.get("isDefault"):
                return sub
        if len(subscriptions) == 1:
            return subscriptions[0]
        raise ConfigError("Multiple subscriptions are available and none is default; pass --subscription")

    wanted = requested.strip()
    for sub in subscriptions:
        if sub.get("id") == wanted:
            return sub
    by_name = [s for s in subscriptions if str(s.get("name") or "").lower() == wanted.lower()]
    if len(by_name) == 1:
        return by_name[0]
    if len(by_name) > 1:
        raise ConfigError(f"Subscription name '{requested}' is ambiguous; pass the subscription id")
    raise ConfigError(f"Subscription '{requested}' is not available in the current az context")


def resolve_context(runner: AzCli, requested: Optional[str]) -> AzContext:
    sub = resolve_subscription(requested, list_subscriptions(runner))
    ctx = AzContext(
        subscription_id=str(sub["id"]),
        subscription_name=str(sub.get("name") or sub["id"]),
        tenant_id=sub.get("tenantId"),
        runner=runner,
    )
    LOG.info(
        "Subscription selected",
        extra={"step": "auth", "phase": "complete", "subscription_id": ctx.subscription_id},
    )
    return ctx

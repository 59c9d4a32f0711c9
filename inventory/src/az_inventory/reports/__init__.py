from __future__ import annotations

from typing import Dict, List, Sequence

from ..util.errors import ConfigError
from .base import ReportDefinition


class ReportRegistry:
    """
    Registry mapping report names to their definitions, in registration order.
    """

    def __init__(self) -> None:
        self._map: Dict[str, ReportDefinition] = {}

    def register(self, definition: ReportDefinition) -> None:
        if definition.name in self._map:
            raise ValueError(f"Report already registered: {definition.name}")
        self._map[definition.name] = definition

    def is_registered(self, name: str) -> bool:
        return name in self._map

    def names(self) -> List[str]:
        return list(self._map.keys())

    def get(self, name: str) -> ReportDefinition:
        try:
            return self._map[name]
        except KeyError:
            raise ConfigError(
                f"Unknown report '{name}'; available: {', '.join(self.names())}"
            ) from None

    def select(self, names: Sequence[str] | None) -> List[ReportDefinition]:
        if not names:
            return list(self._map.values())
        return [self.get(n) for n in dict.fromkeys(names)]


_global_registry = ReportRegistry()


def register_report(definition: ReportDefinition) -> None:
    _global_registry.register(definition)


def get_report(name: str) -> ReportDefinition:
    return _global_registry.get(name)


def list_report_names() -> List[str]:
    return _global_registry.names()


def select_reports(names: Sequence[str] | None) -> List[ReportDefinition]:
    return _global_registry.select(names)


def _register_builtin_reports() -> None:
    from .app_service import BUILTIN_REPORTS

    for definition in BUILTIN_REPORTS:
        register_report(definition)


_register_builtin_reports()

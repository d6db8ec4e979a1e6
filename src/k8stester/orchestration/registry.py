"""Capability registry: one descriptor per add-on, dispatched by data rather than by type."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

import structlog

from k8stester.config.environment import EnvironmentConfig
from k8stester.core.errors import ConfigurationError, InternalConsistencyError
from k8stester.orchestration.catalog import CATALOG, CATALOG_NAMES, AddOnSpec, Tier
from k8stester.providers.base import AddOn, AddOnFactory, LogFetcher, ResultAggregator

EnablementPredicate = Callable[[EnvironmentConfig], bool]


@dataclass(frozen=True)
class AddOnDescriptor:
    """Immutable description of one add-on and its materialised handle."""

    name: str
    tier: Tier
    is_enabled: EnablementPredicate
    handle: Optional[AddOn] = None
    delete_settle_seconds: float = 0.0
    load_balancer: bool = False

    @property
    def can_fetch_logs(self) -> bool:
        return isinstance(self.handle, LogFetcher)

    @property
    def can_aggregate_results(self) -> bool:
        return isinstance(self.handle, ResultAggregator)


class CapabilityRegistry:
    """Ordered table of add-on descriptors for one environment."""

    def __init__(self, config: EnvironmentConfig) -> None:
        self._config = config
        self._descriptors: Dict[str, AddOnDescriptor] = {}

    def register(self, descriptor: AddOnDescriptor) -> None:
        if descriptor.name in self._descriptors:
            raise ValueError(f"Add-on '{descriptor.name}' is already registered")
        self._descriptors[descriptor.name] = descriptor

    def get(self, name: str) -> Optional[AddOnDescriptor]:
        return self._descriptors.get(name)

    def descriptors(self, tier: Tier | None = None) -> List[AddOnDescriptor]:
        """All descriptors in creation order, optionally limited to one tier."""
        return [d for d in self._descriptors.values() if tier is None or d.tier == tier]

    def enabled(self, tier: Tier | None = None) -> List[AddOnDescriptor]:
        return [d for d in self.descriptors(tier) if d.is_enabled(self._config)]

    def is_created(self, name: str) -> bool:
        return name in self._descriptors and self._config.is_created(name)

    def require(self, name: str) -> AddOn:
        """Return the handle for an enabled or created add-on, or fail loudly."""
        descriptor = self._descriptors.get(name)
        if descriptor is None:
            raise InternalConsistencyError(f"add-on {name!r} is not registered")
        if descriptor.handle is None:
            raise InternalConsistencyError(
                f"{name} handle is missing while {name} is enabled",
                {"add_on": name},
            )
        return descriptor.handle

    def names(self) -> List[str]:
        return list(self._descriptors.keys())


def _enabled_predicate(name: str) -> EnablementPredicate:
    def predicate(config: EnvironmentConfig) -> bool:
        return config.is_enabled(name)

    return predicate


def build_registry(
    config: EnvironmentConfig,
    factories: Mapping[str, AddOnFactory],
    logger: Any = None,
    catalog: Iterable[AddOnSpec] = CATALOG,
) -> CapabilityRegistry:
    """
    Materialise a handle for every add-on that is enabled or already created.

    Created-but-now-disabled add-ons still get a handle so teardown can
    remove what an earlier run left behind. An enabled add-on without a
    factory is left without a handle; the sagas treat that as an internal
    consistency failure when they reach it.
    """
    log = logger or structlog.get_logger()

    unknown = sorted(set(config.add_ons) - CATALOG_NAMES)
    if unknown:
        raise ConfigurationError(f"unknown add-ons: {', '.join(unknown)}")

    registry = CapabilityRegistry(config)
    for spec in catalog:
        handle: Optional[AddOn] = None
        if config.is_enabled(spec.name) or config.is_created(spec.name):
            factory = factories.get(spec.name)
            if factory is None:
                log.warning("add_on_factory_missing", add_on=spec.name)
            else:
                handle = factory(config, log.bind(add_on=spec.name))
                if not isinstance(handle, AddOn):
                    raise InternalConsistencyError(
                        f"factory for {spec.name} returned {type(handle).__name__}, "
                        "which does not implement create/delete"
                    )
                log.debug(
                    "add_on_handle_created",
                    add_on=spec.name,
                    fetch_logs=isinstance(handle, LogFetcher),
                    aggregate_results=isinstance(handle, ResultAggregator),
                )

        registry.register(
            AddOnDescriptor(
                name=spec.name,
                tier=spec.tier,
                is_enabled=_enabled_predicate(spec.name),
                handle=handle,
                delete_settle_seconds=config.settle.add_ons.get(
                    spec.name, spec.delete_settle_seconds
                ),
                load_balancer=spec.load_balancer,
            )
        )
    return registry

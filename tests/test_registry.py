"""Tests for the add-on catalog and capability registry."""

import pytest

from k8stester.config.environment import AddOnState
from k8stester.core.errors import ConfigurationError, InternalConsistencyError
from k8stester.orchestration.catalog import CATALOG, DEFAULT_DELETE_SETTLE, Tier
from k8stester.orchestration.registry import build_registry
from k8stester.providers.memory import InMemoryAddOn


class TestCatalog:
    def test_names_unique(self):
        names = [spec.name for spec in CATALOG]
        assert len(names) == len(set(names))

    def test_tiers_in_order(self):
        tiers = [spec.tier for spec in CATALOG]
        order = [Tier.COMPUTE, Tier.CLUSTER, Tier.WORKLOAD]
        assert tiers == sorted(tiers, key=order.index)

    def test_load_balancer_add_ons(self):
        assert {s.name for s in CATALOG if s.load_balancer} == {"nlb-hello-world", "alb-2048"}


class TestBuildRegistry:
    def test_handles_only_for_enabled_or_created(self, env_config, bundle):
        env_config.add_ons["jobs-echo"] = AddOnState(enabled=True)
        env_config.add_ons["jobs-pi"] = AddOnState(enabled=False, created=True)
        env_config.add_ons["wordpress"] = AddOnState(enabled=False)

        registry = build_registry(env_config, bundle.add_on_factories)

        assert registry.get("jobs-echo").handle is not None
        assert registry.get("jobs-pi").handle is not None
        assert registry.get("wordpress").handle is None
        assert registry.get("kubeflow").handle is None

    def test_enabled_filters_by_tier(self, env_config, bundle):
        env_config.add_ons["conformance"] = AddOnState(enabled=True)
        env_config.add_ons["jobs-echo"] = AddOnState(enabled=True)

        registry = build_registry(env_config, bundle.add_on_factories)

        assert [d.name for d in registry.enabled(Tier.CLUSTER)] == ["conformance"]
        assert [d.name for d in registry.enabled(Tier.WORKLOAD)] == ["jobs-echo"]
        assert [d.name for d in registry.enabled(Tier.COMPUTE)] == ["node-groups"]

    def test_enablement_follows_config(self, env_config, bundle):
        """Predicates read the config; they are not frozen at build time."""
        env_config.add_ons["jobs-echo"] = AddOnState(enabled=True)
        registry = build_registry(env_config, bundle.add_on_factories)

        env_config.add_ons["jobs-echo"].enabled = False

        assert registry.enabled(Tier.WORKLOAD) == []

    def test_build_does_not_add_config_entries(self, env_config, bundle):
        build_registry(env_config, bundle.add_on_factories)

        assert env_config.add_ons == {}

    def test_unknown_add_on_rejected(self, env_config, bundle):
        env_config.add_ons["no-such-thing"] = AddOnState(enabled=True)

        with pytest.raises(ConfigurationError, match="no-such-thing"):
            build_registry(env_config, bundle.add_on_factories)

    def test_missing_factory_leaves_no_handle(self, env_config, bundle):
        env_config.add_ons["jobs-echo"] = AddOnState(enabled=True)
        factories = dict(bundle.add_on_factories)
        del factories["jobs-echo"]

        registry = build_registry(env_config, factories)

        with pytest.raises(InternalConsistencyError, match="jobs-echo handle is missing"):
            registry.require("jobs-echo")

    def test_factory_must_return_add_on(self, env_config, bundle):
        env_config.add_ons["jobs-echo"] = AddOnState(enabled=True)
        factories = dict(bundle.add_on_factories)
        factories["jobs-echo"] = lambda config, log: object()

        with pytest.raises(InternalConsistencyError):
            build_registry(env_config, factories)

    def test_capabilities_detected_structurally(self, env_config, bundle):
        env_config.add_ons["stresser-remote"] = AddOnState(enabled=True)
        env_config.add_ons["jobs-echo"] = AddOnState(enabled=True)

        registry = build_registry(env_config, bundle.add_on_factories)

        assert registry.get("node-groups").can_fetch_logs
        assert registry.get("stresser-remote").can_aggregate_results
        assert not registry.get("jobs-echo").can_fetch_logs
        assert not registry.get("jobs-echo").can_aggregate_results

    def test_settle_overrides(self, env_config, bundle, recorder):
        env_config.settle.add_ons["alb-2048"] = 5.0
        factories = {"jobs-echo": lambda config, log: InMemoryAddOn("jobs-echo", recorder)}

        registry = build_registry(env_config, factories)

        assert registry.get("alb-2048").delete_settle_seconds == 5.0
        assert registry.get("nlb-hello-world").delete_settle_seconds == 60.0
        assert registry.get("jobs-echo").delete_settle_seconds == DEFAULT_DELETE_SETTLE

    def test_require_unregistered(self, env_config, bundle):
        registry = build_registry(env_config, bundle.add_on_factories)

        with pytest.raises(InternalConsistencyError):
            registry.require("no-such-thing")

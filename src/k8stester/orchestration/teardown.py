"""
Teardown saga (Down).

Best effort: every failure is logged and collected, and the saga always
runs to the end before raising a single TeardownError. Only resources
whose created flag is set are deleted, and each flag is cleared (and the
config synced) as soon as its delete succeeds, so a second Down makes no
destructive calls.

Order follows the dependency hazards between resources:
  1. key pair
  2. add-ons without load balancers, reverse creation order
  3. load-balancer add-ons, then the load balancer release wait
  4. managed node groups, then unmanaged node groups
  5. cluster, encryption key, cluster role
  6. VPC, when this tool created it
  7. bucket
"""

from __future__ import annotations

import time
from typing import Any, Callable

import structlog

from k8stester.config.environment import MANAGED_NODE_GROUPS, NODE_GROUPS, EnvironmentConfig
from k8stester.core.errors import TeardownError
from k8stester.orchestration.catalog import Tier
from k8stester.orchestration.executor import StepExecutor
from k8stester.orchestration.registry import AddOnDescriptor, CapabilityRegistry
from k8stester.orchestration.results import SagaResult, StepCollector
from k8stester.providers.base import Infrastructure


class TeardownSaga:
    """Runs Down once against one environment."""

    def __init__(
        self,
        config: EnvironmentConfig,
        infrastructure: Infrastructure,
        registry: CapabilityRegistry,
        executor: StepExecutor,
        log: Any = None,
    ) -> None:
        self._config = config
        self._infra = infrastructure
        self._registry = registry
        self._executor = executor
        self._log = log or structlog.get_logger()
        self._collector = StepCollector("down", config.name)

    def run(self) -> SagaResult:
        """Delete everything marked created; raise TeardownError if any step failed."""
        start = time.monotonic()
        self._log.info("down_started", config_path=str(self._config.config_path or ""))

        self._delete_prerequisite("key_pair")

        add_ons = [d for d in reversed(self._registry.descriptors()) if d.tier != Tier.COMPUTE]
        for descriptor in add_ons:
            if not descriptor.load_balancer:
                self._delete_add_on(descriptor)

        load_balancers_attempted = False
        for descriptor in add_ons:
            if descriptor.load_balancer:
                load_balancers_attempted |= self._delete_add_on(descriptor)
        if load_balancers_attempted and self._config.any_node_groups_enabled():
            self._settle("load_balancer_release", self._config.settle.load_balancer_release)

        for name in (MANAGED_NODE_GROUPS, NODE_GROUPS):
            descriptor = self._registry.get(name)
            if descriptor is not None and self._delete_add_on(descriptor, settle=False):
                self._settle(f"after_delete:{name}", self._config.settle.after_node_group_delete)

        self._delete_prerequisite("cluster")
        if not self._config.status.resource("cluster").created:
            self._config.mark_down()
            self._config.sync()

        self._delete_prerequisite("encryption_key")
        self._delete_prerequisite("cluster_role")

        if not self._config.parameters.vpc_create:
            self._log.info("vpc_delete_skipped", reason="imported", id=self._config.parameters.vpc_id)
        elif self._config.status.resource("vpc").created:
            self._settle("before_vpc_delete", self._config.settle.before_vpc_delete)
            self._delete_prerequisite("vpc")

        self._delete_prerequisite("bucket")

        result = self._collector.finalize(time.monotonic() - start)
        self._log.info(
            "down_finished",
            duration=round(result.duration_seconds, 3),
            completed=len(result.completed),
            failed=len(result.errors),
        )
        if result.errors:
            raise TeardownError(result.errors)
        return result

    def _settle(self, hazard: str, seconds: float) -> None:
        if self._executor.wait(hazard, seconds):
            self._log.warning("settle_wait_skipped", hazard=hazard, reason=self._executor.stop_signal.reason)

    def _step(self, name: str, fn: Callable[[], Any]) -> bool:
        """Run one delete; collect its failure instead of raising."""
        outcome = self._executor.run(name, fn)
        if outcome.interrupted:
            reason = self._executor.stop_signal.reason or "stop requested"
            self._collector.record_error(name, f"interrupted ({reason})")
            return False
        if outcome.error is not None:
            self._log.error("teardown_step_failed", step=name, error=str(outcome.error))
            self._collector.record_error(name, outcome.error)
            return False
        self._collector.record(name)
        return True

    def _delete_prerequisite(self, name: str) -> None:
        state = self._config.status.resource(name)
        if not state.created:
            self._collector.record_skip(f"delete_{name}")
            return
        if self._step(f"delete_{name}", getattr(self._infra, f"delete_{name}")):
            state.created = False
            self._config.sync()

    def _delete_add_on(self, descriptor: AddOnDescriptor, settle: bool = True) -> bool:
        """Delete one add-on if created. Returns True if a delete was attempted."""
        name = descriptor.name
        if not self._config.is_created(name):
            return False
        # A created add-on without a handle is a construction bug and aborts Down as well.
        handle = self._registry.require(name)
        if self._step(f"delete:{name}", handle.delete):
            self._config.state_for(name).created = False
            self._config.sync()
            if settle:
                self._settle(f"after_delete:{name}", descriptor.delete_settle_seconds)
        return True

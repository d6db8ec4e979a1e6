"""
Provisioning saga (Up).

Phases run in a strict total order and every step is fatal: the first
failure propagates to the caller and nothing scheduled after it runs.
Compensation (running Down after a failure) is the caller's decision; see
k8stester.orchestrator.Tester.up.

Phase order:
  1. prerequisites (bucket, encryption key, key pair, cluster role, VPC, cluster)
  2. settle, then the post-create health gate
  3. command_after_create_cluster hook
  4. node groups (unmanaged, then managed)
  5. GPU bootstrap when a node group uses a GPU AMI
  6. add-on sweep: cluster tier, health gate, workload tier
  7. final health gate, command_after_create_addons hook, best-effort log pass
"""

from __future__ import annotations

import time
from typing import Any

import structlog

from k8stester.config.environment import (
    MANAGED_NODE_GROUPS,
    NODE_GROUPS,
    PREREQUISITES,
    EnvironmentConfig,
    HookConfig,
)
from k8stester.core.errors import InternalConsistencyError, StepInterrupted
from k8stester.orchestration.catalog import Tier
from k8stester.orchestration.executor import StepExecutor
from k8stester.orchestration.health import HealthGate
from k8stester.orchestration.hooks import CommandHook
from k8stester.orchestration.registry import CapabilityRegistry
from k8stester.orchestration.results import SagaResult, StepCollector
from k8stester.providers.base import ClusterInfo, GpuBootstrapper, Infrastructure

GPU_AMI_TYPES = frozenset(
    {
        "AL2_x86_64_GPU",
        "AL2023_x86_64_NVIDIA",
        "BOTTLEROCKET_x86_64_NVIDIA",
        "BOTTLEROCKET_ARM_64_NVIDIA",
    }
)


class ProvisioningSaga:
    """Runs Up once against one environment."""

    def __init__(
        self,
        config: EnvironmentConfig,
        infrastructure: Infrastructure,
        registry: CapabilityRegistry,
        executor: StepExecutor,
        health: HealthGate,
        gpu: GpuBootstrapper | None = None,
        log: Any = None,
    ) -> None:
        self._config = config
        self._infra = infrastructure
        self._registry = registry
        self._executor = executor
        self._health = health
        self._gpu = gpu
        self._log = log or structlog.get_logger()
        self._collector = StepCollector("up", config.name)

    def run(self) -> SagaResult:
        start = time.monotonic()
        self._log.info("up_started", config_path=str(self._config.config_path or ""))

        self._create_prerequisites()

        self._settle("before_health_check", self._config.settle.before_health_check)
        self._health.check("post-create")
        self._collector.record("check_health:post-create")

        self._run_hook("command-after-create-cluster", self._config.command_after_create_cluster)

        for name in (NODE_GROUPS, MANAGED_NODE_GROUPS):
            if self._config.is_enabled(name):
                self._create_add_on(name)

        self._bootstrap_gpu()

        if self._registry.enabled(Tier.CLUSTER) or self._registry.enabled(Tier.WORKLOAD):
            self._sweep(Tier.CLUSTER)
            self._health.check("cluster-add-ons")
            self._sweep(Tier.WORKLOAD)
        else:
            self._log.info("add_on_sweep_skipped", reason="no add-ons enabled")

        self._health.check("post-add-ons")
        self._run_hook("command-after-create-addons", self._config.command_after_create_addons)
        self._config.mark_up()
        self._config.sync()

        self._collect_logs()
        self._config.sync()

        result = self._collector.finalize(time.monotonic() - start)
        self._log.info(
            "up_finished",
            duration=round(result.duration_seconds, 3),
            completed=len(result.completed),
            skipped=len(result.skipped),
        )
        return result

    def _create_prerequisites(self) -> None:
        status = self._config.status
        for name in PREREQUISITES:
            state = status.resource(name)
            if state.created:
                self._log.info("prerequisite_exists", resource=name, id=state.id)
                self._collector.record_skip(f"create_{name}")
                continue
            if name == "vpc" and not self._config.parameters.vpc_create:
                state.id = self._config.parameters.vpc_id
                self._log.info("vpc_imported", id=state.id)
                self._collector.record_skip("create_vpc")
                continue

            value = self._executor.run_or_raise(f"create_{name}", getattr(self._infra, f"create_{name}"))
            if isinstance(value, ClusterInfo):
                state.id = value.id
                status.cluster_endpoint = value.endpoint
                status.cluster_ca = value.ca
            else:
                state.id = str(value or "")
            state.created = True
            self._config.sync()
            self._collector.record(f"create_{name}")

    def _settle(self, hazard: str, seconds: float) -> None:
        if self._executor.wait(hazard, seconds):
            reason = self._executor.stop_signal.reason or "stop requested"
            raise StepInterrupted(f"{hazard} wait interrupted ({reason})", step=hazard)

    def _run_hook(self, name: str, hook: HookConfig) -> None:
        if not hook.enabled:
            return
        command = CommandHook(name, hook, self._config, log=self._log)
        self._executor.run_or_raise(f"hook:{name}", command.run)
        self._collector.record(f"hook:{name}")

    def _create_add_on(self, name: str) -> None:
        handle = self._registry.require(name)
        if self._config.is_created(name):
            self._log.info("add_on_exists", add_on=name)
            self._collector.record_skip(f"create:{name}")
            return
        self._executor.run_or_raise(f"create:{name}", handle.create)
        self._config.state_for(name).created = True
        self._config.sync()
        self._collector.record(f"create:{name}")

    def _sweep(self, tier: Tier) -> None:
        for descriptor in self._registry.enabled(tier):
            self._create_add_on(descriptor.name)

    def _needs_gpu(self) -> bool:
        return any(
            group.ami_type in GPU_AMI_TYPES
            for ng in (self._config.node_groups, self._config.managed_node_groups)
            if ng.enabled
            for group in ng.groups
        )

    def _bootstrap_gpu(self) -> None:
        if not self._needs_gpu():
            return
        if self._gpu is None:
            raise InternalConsistencyError(
                "a node group uses a GPU AMI but no GPU bootstrapper was configured"
            )
        self._executor.run_or_raise("install_nvidia_driver", self._gpu.install_nvidia_driver)
        self._executor.run_or_raise("create_nvidia_smi", self._gpu.create_nvidia_smi)
        self._collector.record("gpu_bootstrap")

    def _collect_logs(self) -> None:
        """Fetch node logs and aggregate remote results; failures are only logged."""
        fetched = False
        for name in (NODE_GROUPS, MANAGED_NODE_GROUPS):
            state = self._config.state_for(name)
            if not (state.created and state.fetch_logs):
                continue
            descriptor = self._registry.get(name)
            if descriptor is None or not descriptor.can_fetch_logs:
                self._log.warning("fetch_logs_unsupported", add_on=name)
                continue
            if self._executor.wait("before_fetch_logs", self._config.settle.before_fetch_logs):
                self._log.warning("log_pass_interrupted", reason=self._executor.stop_signal.reason)
                return
            outcome = self._executor.run(f"fetch_logs:{name}", descriptor.handle.fetch_logs)
            if outcome.interrupted:
                self._log.warning("log_pass_interrupted", reason=self._executor.stop_signal.reason)
                return
            if outcome.error is not None:
                self._log.warning("fetch_logs_failed", add_on=name, error=str(outcome.error))
                continue
            fetched = True
            self._collector.record(f"fetch_logs:{name}")

        if not fetched:
            return

        for descriptor in self._registry.enabled():
            if not descriptor.can_aggregate_results or not self._config.is_created(descriptor.name):
                continue
            outcome = self._executor.run(
                f"aggregate_results:{descriptor.name}", descriptor.handle.aggregate_results
            )
            if outcome.interrupted:
                self._log.warning("log_pass_interrupted", reason=self._executor.stop_signal.reason)
                return
            if outcome.error is not None:
                self._log.warning(
                    "aggregate_results_failed", add_on=descriptor.name, error=str(outcome.error)
                )
                continue
            self._collector.record(f"aggregate_results:{descriptor.name}")

"""
In-memory simulation provider.

Every collaborator appends the operation it performs to one shared call
list and makes no external changes. Operations named in ``failures`` raise
SimulatedFailure instead, so failure paths can be exercised without a
cloud account. Operation names match the saga step names: ``create_vpc``,
``delete_cluster``, ``create:jobs-echo``, ``fetch_logs:node-groups``,
``check_health`` and so on.
"""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import Any, Iterable, List, Sequence

import structlog

from k8stester.config.environment import MANAGED_NODE_GROUPS, NODE_GROUPS, EnvironmentConfig
from k8stester.core.errors import HealthCheckError
from k8stester.orchestration.catalog import CATALOG
from k8stester.providers.base import AddOnFactory, ClusterInfo, ProviderBundle
from k8stester.providers.registry import register_provider


class SimulatedFailure(RuntimeError):
    """Raised by a simulated collaborator for an injected failure."""


class CallRecorder:
    """Ordered record of simulated calls, shared by one provider bundle."""

    def __init__(self, failures: Iterable[str] = ()) -> None:
        self.calls: List[str] = []
        self.failures = set(failures)

    def __call__(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.failures:
            raise SimulatedFailure(f"simulated failure in {operation}")

    def count(self, operation: str) -> int:
        return self.calls.count(operation)


class InMemoryInfrastructure:
    def __init__(self, record: CallRecorder, name: str = "sim") -> None:
        self._record = record
        self._name = name

    def _id(self, kind: str) -> str:
        return f"{self._name}-{kind}-{uuid.uuid4().hex[:8]}"

    def create_bucket(self) -> str:
        self._record("create_bucket")
        return self._id("bucket")

    def delete_bucket(self) -> None:
        self._record("delete_bucket")

    def create_encryption_key(self) -> str:
        self._record("create_encryption_key")
        return self._id("key")

    def delete_encryption_key(self) -> None:
        self._record("delete_encryption_key")

    def create_key_pair(self) -> str:
        self._record("create_key_pair")
        return self._id("key-pair")

    def delete_key_pair(self) -> None:
        self._record("delete_key_pair")

    def create_cluster_role(self) -> str:
        self._record("create_cluster_role")
        return self._id("role")

    def delete_cluster_role(self) -> None:
        self._record("delete_cluster_role")

    def create_vpc(self) -> str:
        self._record("create_vpc")
        return self._id("vpc")

    def delete_vpc(self) -> None:
        self._record("delete_vpc")

    def create_cluster(self) -> ClusterInfo:
        self._record("create_cluster")
        return ClusterInfo(
            id=self._id("cluster"),
            endpoint=f"https://{self._name}.cluster.local",
            ca="c2ltdWxhdGVk",
        )

    def delete_cluster(self) -> None:
        self._record("delete_cluster")


class InMemoryAddOn:
    """Create/delete only."""

    def __init__(self, name: str, record: CallRecorder, log: Any = None) -> None:
        self.name = name
        self._record = record
        self._log = log or structlog.get_logger()

    def create(self) -> None:
        self._record(f"create:{self.name}")
        self._log.debug("simulated_create", add_on=self.name)

    def delete(self) -> None:
        self._record(f"delete:{self.name}")
        self._log.debug("simulated_delete", add_on=self.name)


class InMemoryNodeGroup(InMemoryAddOn):
    """Node group that writes a placeholder log file per group on fetch_logs."""

    def __init__(self, name: str, record: CallRecorder, logs_dir: str, groups: Sequence[str], log: Any = None) -> None:
        super().__init__(name, record, log)
        self._logs_dir = logs_dir
        self._groups = list(groups)

    def fetch_logs(self) -> None:
        self._record(f"fetch_logs:{self.name}")
        if not self._logs_dir:
            return
        out = Path(self._logs_dir)
        out.mkdir(parents=True, exist_ok=True)
        for group in self._groups:
            (out / f"{group}.log").write_text(f"simulated logs for {group}\n")


class InMemoryRemoteTester(InMemoryAddOn):
    """Remote tester whose pods write results that can be aggregated."""

    def aggregate_results(self) -> None:
        self._record(f"aggregate_results:{self.name}")


class InMemoryGpu:
    def __init__(self, record: CallRecorder) -> None:
        self._record = record

    def install_nvidia_driver(self) -> None:
        self._record("install_nvidia_driver")

    def create_nvidia_smi(self) -> None:
        self._record("create_nvidia_smi")


class InMemoryHealthChecker:
    def __init__(self, record: CallRecorder) -> None:
        self._record = record

    def check(self) -> None:
        try:
            self._record("check_health")
        except SimulatedFailure as e:
            raise HealthCheckError(str(e), step="check_health") from e


def _add_on_factory(name: str, record: CallRecorder) -> AddOnFactory:
    def factory(config: EnvironmentConfig, log: Any) -> InMemoryAddOn:
        if name in (NODE_GROUPS, MANAGED_NODE_GROUPS):
            ng = config.node_groups if name == NODE_GROUPS else config.managed_node_groups
            return InMemoryNodeGroup(name, record, ng.logs_dir, [g.name for g in ng.groups], log)
        if name.endswith("-remote"):
            return InMemoryRemoteTester(name, record, log)
        return InMemoryAddOn(name, record, log)

    return factory


def memory_provider(
    config: EnvironmentConfig | None = None,
    failures: Iterable[str] = (),
    recorder: CallRecorder | None = None,
    **_: Any,
) -> ProviderBundle:
    """Build a simulated bundle covering every catalog add-on."""
    record = recorder or CallRecorder(failures)
    name = config.name if config is not None else "sim"
    return ProviderBundle(
        infrastructure=InMemoryInfrastructure(record, name),
        health=InMemoryHealthChecker(record),
        add_on_factories={spec.name: _add_on_factory(spec.name, record) for spec in CATALOG},
        gpu=InMemoryGpu(record),
    )


register_provider(
    "memory",
    memory_provider,
    description="In-memory simulation; records calls and makes no external changes",
)

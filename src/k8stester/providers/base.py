from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, Sequence, runtime_checkable

from k8stester.config.environment import EnvironmentConfig


@runtime_checkable
class AddOn(Protocol):
    """Contract every add-on collaborator implements."""

    def create(self) -> None:
        ...

    def delete(self) -> None:
        ...


@runtime_checkable
class LogFetcher(Protocol):
    """Optional capability: pull logs from the nodes an add-on manages."""

    def fetch_logs(self) -> None:
        ...


@runtime_checkable
class ResultAggregator(Protocol):
    """Optional capability: collect results written by remote test pods."""

    def aggregate_results(self) -> None:
        ...


@dataclass(frozen=True)
class ClusterInfo:
    """Control plane coordinates reported by the infrastructure collaborator."""

    id: str
    endpoint: str = ""
    ca: str = ""


class Infrastructure(Protocol):
    """Prerequisite resources created before any add-on."""

    def create_bucket(self) -> str:
        ...

    def delete_bucket(self) -> None:
        ...

    def create_encryption_key(self) -> str:
        ...

    def delete_encryption_key(self) -> None:
        ...

    def create_key_pair(self) -> str:
        ...

    def delete_key_pair(self) -> None:
        ...

    def create_cluster_role(self) -> str:
        ...

    def delete_cluster_role(self) -> None:
        ...

    def create_vpc(self) -> str:
        ...

    def delete_vpc(self) -> None:
        ...

    def create_cluster(self) -> ClusterInfo:
        ...

    def delete_cluster(self) -> None:
        ...


class GpuBootstrapper(Protocol):
    def install_nvidia_driver(self) -> None:
        ...

    def create_nvidia_smi(self) -> None:
        ...


class HealthChecker(Protocol):
    def check(self) -> None:
        """Raise HealthCheckError if the control plane is unhealthy."""
        ...


class ArtifactUploader(Protocol):
    def upload(self, paths: Sequence[str]) -> None:
        ...


AddOnFactory = Callable[[EnvironmentConfig, Any], AddOn]


@dataclass
class ProviderBundle:
    """The full set of external collaborators one tester run needs."""

    infrastructure: Infrastructure
    # None selects HttpHealthChecker against the cluster endpoint.
    health: HealthChecker | None = None
    add_on_factories: dict[str, AddOnFactory] = field(default_factory=dict)
    gpu: GpuBootstrapper | None = None
    uploader: ArtifactUploader | None = None

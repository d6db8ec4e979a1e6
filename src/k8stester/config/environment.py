"""
Environment configuration and persisted state.

One EnvironmentConfig describes a single test environment: which add-ons
are enabled, how long to wait around known eventual-consistency hazards,
which hooks to run, and the status of everything created so far. The
sagas mutate it after every successful step and call sync() after every
phase so an interrupted run can be resumed or audited.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from k8stester.core.errors import ConfigurationError

NODE_GROUPS = "node-groups"
MANAGED_NODE_GROUPS = "managed-node-groups"

# Prerequisite resources, in creation order.
PREREQUISITES = ("bucket", "encryption_key", "key_pair", "cluster_role", "vpc", "cluster")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class AddOnState:
    """Per add-on enablement and lifecycle flags."""

    enabled: bool = False
    created: bool = False
    fetch_logs: bool = False
    namespace: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> AddOnState:
        data = data or {}
        return cls(
            enabled=bool(data.get("enabled", False)),
            created=bool(data.get("created", False)),
            fetch_logs=bool(data.get("fetch_logs", False)),
            namespace=str(data.get("namespace", "") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "created": self.created,
            "fetch_logs": self.fetch_logs,
            "namespace": self.namespace,
        }


@dataclass
class NodeGroupSpec:
    name: str
    ami_type: str = "AL2_x86_64"


@dataclass
class NodeGroupsConfig(AddOnState):
    """Node group add-on: AddOnState plus the groups to launch."""

    logs_dir: str = ""
    groups: list[NodeGroupSpec] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> NodeGroupsConfig:
        data = data or {}
        base = AddOnState.from_dict(data)
        groups = [
            NodeGroupSpec(name=str(g["name"]), ami_type=str(g.get("ami_type", "AL2_x86_64")))
            for g in data.get("groups", []) or []
        ]
        return cls(
            enabled=base.enabled,
            created=base.created,
            fetch_logs=base.fetch_logs,
            namespace=base.namespace,
            logs_dir=str(data.get("logs_dir", "") or ""),
            groups=groups,
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["logs_dir"] = self.logs_dir
        data["groups"] = [{"name": g.name, "ami_type": g.ami_type} for g in self.groups]
        return data


@dataclass
class HookConfig:
    """Operator-supplied command run at a saga checkpoint."""

    command: str = ""
    timeout_seconds: int = 600
    output_path: str = ""

    @property
    def enabled(self) -> bool:
        return bool(self.command.strip())


@dataclass
class SettleDelays:
    """Waits (seconds) inserted around known eventual-consistency hazards."""

    before_health_check: float = 30.0
    before_fetch_logs: float = 15.0
    after_node_group_delete: float = 10.0
    load_balancer_release: float = 120.0
    before_vpc_delete: float = 30.0
    # Per add-on delete settle overrides; catalog defaults apply otherwise.
    add_ons: dict[str, float] = field(default_factory=dict)


@dataclass
class Parameters:
    version: str = ""
    # False when an existing network was imported; it is never deleted.
    vpc_create: bool = True
    vpc_id: str = ""


@dataclass
class ResourceState:
    created: bool = False
    id: str = ""


@dataclass
class Status:
    """Global status of the environment."""

    up: bool = False
    created_at: str | None = None
    deleted_at: str | None = None
    cluster_endpoint: str = ""
    cluster_ca: str = ""
    resources: dict[str, ResourceState] = field(default_factory=dict)

    def resource(self, name: str) -> ResourceState:
        if name not in self.resources:
            self.resources[name] = ResourceState()
        return self.resources[name]


@dataclass
class EnvironmentConfig:
    """Persisted root document for one test environment."""

    name: str
    region: str = "us-west-2"
    config_path: Path | None = None
    kubeconfig_path: str = ""
    on_failure_delete: bool = True
    on_failure_delete_wait_seconds: float = 60.0
    command_after_create_cluster: HookConfig = field(default_factory=HookConfig)
    command_after_create_addons: HookConfig = field(default_factory=HookConfig)
    parameters: Parameters = field(default_factory=Parameters)
    settle: SettleDelays = field(default_factory=SettleDelays)
    node_groups: NodeGroupsConfig = field(default_factory=NodeGroupsConfig)
    managed_node_groups: NodeGroupsConfig = field(default_factory=NodeGroupsConfig)
    add_ons: dict[str, AddOnState] = field(default_factory=dict)
    status: Status = field(default_factory=Status)

    def state_for(self, name: str) -> AddOnState:
        """Return the mutable state for an add-on, creating a disabled one if absent."""
        if name == NODE_GROUPS:
            return self.node_groups
        if name == MANAGED_NODE_GROUPS:
            return self.managed_node_groups
        if name not in self.add_ons:
            self.add_ons[name] = AddOnState()
        return self.add_ons[name]

    def is_enabled(self, name: str) -> bool:
        if name == NODE_GROUPS:
            return self.node_groups.enabled
        if name == MANAGED_NODE_GROUPS:
            return self.managed_node_groups.enabled
        state = self.add_ons.get(name)
        return state is not None and state.enabled

    def is_created(self, name: str) -> bool:
        if name == NODE_GROUPS:
            return self.node_groups.created
        if name == MANAGED_NODE_GROUPS:
            return self.managed_node_groups.created
        state = self.add_ons.get(name)
        return state is not None and state.created

    def any_node_groups_enabled(self) -> bool:
        return self.node_groups.enabled or self.managed_node_groups.enabled

    def kubectl_command(self) -> str:
        return f"kubectl --kubeconfig={self.kubeconfig_path}"

    def validate_and_set_defaults(self) -> None:
        """Check invariants and fill in derived defaults."""
        if not self.name:
            raise ConfigurationError("environment name is required")
        if self.on_failure_delete_wait_seconds < 0:
            raise ConfigurationError(
                "on_failure_delete_wait_seconds must not be negative",
                {"value": self.on_failure_delete_wait_seconds},
            )
        for label in (
            "before_health_check",
            "before_fetch_logs",
            "after_node_group_delete",
            "load_balancer_release",
            "before_vpc_delete",
        ):
            if getattr(self.settle, label) < 0:
                raise ConfigurationError(f"settle.{label} must not be negative")
        for addon, seconds in self.settle.add_ons.items():
            if seconds < 0:
                raise ConfigurationError(f"settle.add_ons.{addon} must not be negative")
        for ng in (self.node_groups, self.managed_node_groups):
            if ng.enabled and not ng.groups:
                raise ConfigurationError("node groups enabled but no groups configured")

        base_dir = self.config_path.parent if self.config_path else Path.cwd()
        if not self.kubeconfig_path:
            self.kubeconfig_path = str(base_dir / f"{self.name}.kubeconfig.yaml")
        for suffix, hook in (
            ("command-after-create-cluster", self.command_after_create_cluster),
            ("command-after-create-addons", self.command_after_create_addons),
        ):
            if hook.enabled and not hook.output_path:
                hook.output_path = str(base_dir / f"{self.name}.{suffix}.out")
            if hook.timeout_seconds <= 0:
                raise ConfigurationError(f"{suffix} timeout must be positive")
        for ng_name, ng in (
            (NODE_GROUPS, self.node_groups),
            (MANAGED_NODE_GROUPS, self.managed_node_groups),
        ):
            if ng.enabled and not ng.logs_dir:
                ng.logs_dir = str(base_dir / f"{self.name}-{ng_name}-logs")

    @classmethod
    def from_dict(cls, data: dict[str, Any], config_path: Path | None = None) -> EnvironmentConfig:
        status_data = data.get("status", {}) or {}
        settle_data = data.get("settle", {}) or {}
        params_data = data.get("parameters", {}) or {}
        try:
            return cls(
                name=str(data.get("name", "") or ""),
                region=str(data.get("region", "us-west-2")),
                config_path=config_path,
                kubeconfig_path=str(data.get("kubeconfig_path", "") or ""),
                on_failure_delete=bool(data.get("on_failure_delete", True)),
                on_failure_delete_wait_seconds=float(
                    data.get("on_failure_delete_wait_seconds", 60.0)
                ),
                command_after_create_cluster=HookConfig(
                    **(data.get("command_after_create_cluster", {}) or {})
                ),
                command_after_create_addons=HookConfig(
                    **(data.get("command_after_create_addons", {}) or {})
                ),
                parameters=Parameters(**params_data),
                settle=SettleDelays(
                    **{k: float(v) for k, v in settle_data.items() if k != "add_ons"},
                    add_ons={k: float(v) for k, v in (settle_data.get("add_ons") or {}).items()},
                ),
                node_groups=NodeGroupsConfig.from_dict(data.get("node_groups")),
                managed_node_groups=NodeGroupsConfig.from_dict(data.get("managed_node_groups")),
                add_ons={
                    name: AddOnState.from_dict(state)
                    for name, state in (data.get("add_ons", {}) or {}).items()
                },
                status=Status(
                    up=bool(status_data.get("up", False)),
                    created_at=status_data.get("created_at"),
                    deleted_at=status_data.get("deleted_at"),
                    cluster_endpoint=str(status_data.get("cluster_endpoint", "") or ""),
                    cluster_ca=str(status_data.get("cluster_ca", "") or ""),
                    resources={
                        name: ResourceState(**(state or {}))
                        for name, state in (status_data.get("resources", {}) or {}).items()
                    },
                ),
            )
        except (TypeError, ValueError, KeyError) as exc:
            raise ConfigurationError(f"invalid environment config: {exc}") from exc

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "region": self.region,
            "kubeconfig_path": self.kubeconfig_path,
            "on_failure_delete": self.on_failure_delete,
            "on_failure_delete_wait_seconds": self.on_failure_delete_wait_seconds,
            "command_after_create_cluster": vars(self.command_after_create_cluster).copy(),
            "command_after_create_addons": vars(self.command_after_create_addons).copy(),
            "parameters": vars(self.parameters).copy(),
            "settle": {
                "before_health_check": self.settle.before_health_check,
                "before_fetch_logs": self.settle.before_fetch_logs,
                "after_node_group_delete": self.settle.after_node_group_delete,
                "load_balancer_release": self.settle.load_balancer_release,
                "before_vpc_delete": self.settle.before_vpc_delete,
                "add_ons": dict(self.settle.add_ons),
            },
            "node_groups": self.node_groups.to_dict(),
            "managed_node_groups": self.managed_node_groups.to_dict(),
            "add_ons": {name: state.to_dict() for name, state in sorted(self.add_ons.items())},
            "status": {
                "up": self.status.up,
                "created_at": self.status.created_at,
                "deleted_at": self.status.deleted_at,
                "cluster_endpoint": self.status.cluster_endpoint,
                "cluster_ca": self.status.cluster_ca,
                "resources": {
                    name: {"created": r.created, "id": r.id}
                    for name, r in self.status.resources.items()
                },
            },
        }

    def sync(self) -> None:
        """Persist the document to config_path; no-op for in-memory configs."""
        if self.config_path is None:
            return
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.config_path.parent, prefix=f".{self.config_path.name}."
        )
        try:
            with os.fdopen(fd, "w") as f:
                yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
            os.replace(tmp_name, self.config_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def mark_up(self) -> None:
        self.status.up = True
        if self.status.created_at is None:
            self.status.created_at = _now()

    def mark_down(self) -> None:
        self.status.up = False
        self.status.deleted_at = _now()

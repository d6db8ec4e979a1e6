"""Known add-ons, in creation order, with their dependency tier and delete latency."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from k8stester.config.environment import MANAGED_NODE_GROUPS, NODE_GROUPS


class Tier(str, Enum):
    COMPUTE = "compute"
    CLUSTER = "cluster"
    WORKLOAD = "workload"


# Used for add-ons with no measured cleanup latency.
DEFAULT_DELETE_SETTLE = 10.0


@dataclass(frozen=True)
class AddOnSpec:
    name: str
    tier: Tier
    delete_settle_seconds: float = DEFAULT_DELETE_SETTLE
    # Backed by a cloud load balancer; must be gone before the network is deleted.
    load_balancer: bool = False


CATALOG: tuple[AddOnSpec, ...] = (
    # Node groups are created in their own phase, unmanaged first.
    AddOnSpec(NODE_GROUPS, Tier.COMPUTE),
    AddOnSpec(MANAGED_NODE_GROUPS, Tier.COMPUTE),
    AddOnSpec("conformance", Tier.CLUSTER, 20.0),
    AddOnSpec("csi-ebs", Tier.CLUSTER, 20.0),
    AddOnSpec("app-mesh", Tier.CLUSTER),
    AddOnSpec("kubernetes-dashboard", Tier.CLUSTER),
    AddOnSpec("prometheus-grafana", Tier.CLUSTER, 20.0),
    AddOnSpec("nlb-hello-world", Tier.WORKLOAD, 60.0, load_balancer=True),
    AddOnSpec("alb-2048", Tier.WORKLOAD, 60.0, load_balancer=True),
    AddOnSpec("jobs-pi", Tier.WORKLOAD),
    AddOnSpec("jobs-echo", Tier.WORKLOAD),
    AddOnSpec("cron-jobs", Tier.WORKLOAD),
    AddOnSpec("csrs-local", Tier.WORKLOAD),
    AddOnSpec("csrs-remote", Tier.WORKLOAD),
    AddOnSpec("config-maps-local", Tier.WORKLOAD),
    AddOnSpec("config-maps-remote", Tier.WORKLOAD),
    AddOnSpec("secrets-local", Tier.WORKLOAD),
    AddOnSpec("secrets-remote", Tier.WORKLOAD),
    AddOnSpec("fargate", Tier.WORKLOAD),
    AddOnSpec("irsa", Tier.WORKLOAD),
    AddOnSpec("irsa-fargate", Tier.WORKLOAD),
    AddOnSpec("wordpress", Tier.WORKLOAD, 20.0),
    AddOnSpec("jupyter-hub", Tier.WORKLOAD, 20.0),
    AddOnSpec("kubeflow", Tier.WORKLOAD),
    AddOnSpec("hollow-nodes-local", Tier.WORKLOAD),
    AddOnSpec("hollow-nodes-remote", Tier.WORKLOAD),
    AddOnSpec("cluster-loader-local", Tier.WORKLOAD, 20.0),
    AddOnSpec("cluster-loader-remote", Tier.WORKLOAD, 20.0),
    AddOnSpec("stresser-local", Tier.WORKLOAD, 20.0),
    AddOnSpec("stresser-remote", Tier.WORKLOAD, 20.0),
)

CATALOG_NAMES = frozenset(spec.name for spec in CATALOG)

"""
Provisioning and teardown orchestration.

Usage:
    from k8stester.orchestration import ProvisioningSaga, TeardownSaga, build_registry

    registry = build_registry(config, bundle.add_on_factories, logger=log)
    ProvisioningSaga(config, bundle.infrastructure, registry, executor, gate).run()
"""

from k8stester.orchestration.catalog import CATALOG, AddOnSpec, Tier
from k8stester.orchestration.executor import StepExecutor, StepOutcome
from k8stester.orchestration.health import HealthGate, HttpHealthChecker
from k8stester.orchestration.hooks import CommandHook, HookResult
from k8stester.orchestration.provisioning import GPU_AMI_TYPES, ProvisioningSaga
from k8stester.orchestration.registry import AddOnDescriptor, CapabilityRegistry, build_registry
from k8stester.orchestration.results import SagaResult, StepCollector
from k8stester.orchestration.stop import SignalSource, StopSignal
from k8stester.orchestration.teardown import TeardownSaga

__all__ = [
    "AddOnDescriptor",
    "AddOnSpec",
    "CATALOG",
    "CapabilityRegistry",
    "CommandHook",
    "GPU_AMI_TYPES",
    "HealthGate",
    "HookResult",
    "HttpHealthChecker",
    "ProvisioningSaga",
    "SagaResult",
    "SignalSource",
    "StepCollector",
    "StepExecutor",
    "StepOutcome",
    "StopSignal",
    "TeardownSaga",
    "Tier",
    "build_registry",
]

"""
Collaborator sets the orchestrator runs against.

Importing this package registers the built-in ``memory`` provider.
"""

from k8stester.providers.base import (
    AddOn,
    ArtifactUploader,
    ClusterInfo,
    GpuBootstrapper,
    HealthChecker,
    Infrastructure,
    LogFetcher,
    ProviderBundle,
    ResultAggregator,
)
from k8stester.providers.memory import CallRecorder, SimulatedFailure, memory_provider
from k8stester.providers.registry import create_provider, list_providers, register_provider

__all__ = [
    "AddOn",
    "ArtifactUploader",
    "CallRecorder",
    "ClusterInfo",
    "GpuBootstrapper",
    "HealthChecker",
    "Infrastructure",
    "LogFetcher",
    "ProviderBundle",
    "ResultAggregator",
    "SimulatedFailure",
    "create_provider",
    "list_providers",
    "memory_provider",
    "register_provider",
]

"""Core primitives shared across k8s-tester."""

from k8stester.core.errors import (
    ConfigurationError,
    ExitCode,
    HealthCheckError,
    InternalConsistencyError,
    K8sTesterError,
    ProvisioningError,
    StepInterrupted,
    TeardownError,
)

__all__ = [
    "ConfigurationError",
    "ExitCode",
    "HealthCheckError",
    "InternalConsistencyError",
    "K8sTesterError",
    "ProvisioningError",
    "StepInterrupted",
    "TeardownError",
]

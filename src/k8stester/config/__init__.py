"""
k8s-tester configuration.

- Pydantic-based process settings (environment variables, .env files)
- The YAML environment document: enabled add-ons, settle delays, hooks
  and the persisted status the sagas resume from
"""

from k8stester.config.environment import (
    MANAGED_NODE_GROUPS,
    NODE_GROUPS,
    PREREQUISITES,
    AddOnState,
    EnvironmentConfig,
    HookConfig,
    NodeGroupsConfig,
    NodeGroupSpec,
    Parameters,
    ResourceState,
    SettleDelays,
    Status,
)
from k8stester.config.loader import get_config_path, load_environment
from k8stester.config.settings import Settings, get_settings

__all__ = [
    "MANAGED_NODE_GROUPS",
    "NODE_GROUPS",
    "PREREQUISITES",
    "AddOnState",
    "EnvironmentConfig",
    "HookConfig",
    "NodeGroupSpec",
    "NodeGroupsConfig",
    "Parameters",
    "ResourceState",
    "SettleDelays",
    "Settings",
    "Status",
    "get_config_path",
    "get_settings",
    "load_environment",
]

"""
Environment document loading.

Search order:
1. Explicit path (--path flag or K8STESTER_CONFIG_PATH)
2. .k8s-tester/config.yaml (project root)
3. ~/.k8s-tester/config.yaml (user home)
"""

from __future__ import annotations

from pathlib import Path

import structlog
import yaml

from k8stester.config.environment import EnvironmentConfig
from k8stester.core.errors import ConfigurationError

logger = structlog.get_logger()


def get_config_path(explicit_path: str | Path | None = None) -> Path | None:
    """
    Find the environment document to use.

    An explicit path is returned even if it does not exist yet, so a new
    environment can be created there.

    Returns:
        Path to config file or None if not found
    """
    if explicit_path:
        return Path(explicit_path).expanduser()

    cwd_config = Path.cwd() / ".k8s-tester" / "config.yaml"
    if cwd_config.exists():
        return cwd_config

    home_config = Path.home() / ".k8s-tester" / "config.yaml"
    if home_config.exists():
        return home_config

    return None


def load_environment(path: str | Path | None = None) -> EnvironmentConfig:
    """Load, validate and default an environment document."""
    config_path = get_config_path(path)
    if config_path is None:
        raise ConfigurationError("no environment config found; pass --path")
    if not config_path.exists():
        raise ConfigurationError(f"environment config not found: {config_path}")

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"failed to read {config_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping")

    config = EnvironmentConfig.from_dict(data, config_path=config_path)
    config.validate_and_set_defaults()
    logger.debug("loaded_environment", path=str(config_path), name=config.name)
    return config

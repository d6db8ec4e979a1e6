"""
Process settings using Pydantic.

Provides environment-based configuration loading with K8STESTER_ prefix.
These settings describe how the tool itself runs; the environment being
provisioned is described by the YAML document in config.environment.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Environment document (overrides the default search order)
    config_path: str | None = None

    # Collaborator set built by the CLI
    provider: str = "memory"

    # AWS
    aws_region: str = "us-west-2"

    # Artifact upload to the environment bucket
    upload_artifacts: bool = False
    artifacts_prefix: str = "k8s-tester"

    # Health checks
    health_timeout: float = 15.0
    health_verify_tls: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "K8STESTER_"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
